from enum import Enum


class WorkflowPhase(Enum):
    CLOSED = "closed"                           # wizard collapsed
    AWAITING_INPUT = "go_outside"               # form shown, waiting for elevation
    IN_PROGRESS = "calibration_in_progress"     # device calibrating, poller running
    SUCCEEDED = "calibration_successful"        # success shown until auto-close


# Phases in which calibration has not been started on the device yet.
PENDING_PHASES = (WorkflowPhase.CLOSED, WorkflowPhase.AWAITING_INPUT)
