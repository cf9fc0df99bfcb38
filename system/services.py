# services.py
from sensor.client import DeviceClient
from sensor.calibration.wizard import WizardController
from sensor.reading_service import ReadingService
from system.preferences import Preferences

# ------------------------------------------------------------------------------
# Service singletons (initialized in order in device_init.py)
# ------------------------------------------------------------------------------

preferences_service: Preferences = None

device_client: DeviceClient = None

wizard: WizardController = None

reading_service: ReadingService = None
