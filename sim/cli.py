import os
import socket
import threading
import time

from sim.server import start_server, PORT
from system.utils import get_ip_address


def main():
    calibration = os.environ.get("SENSOR_SIM_CALIBRATION_SEC", "20")
    host_ip = get_ip_address()
    hostname = socket.gethostname()

    print("[SIMULATOR CLI] Starting server (Ctrl+C to stop)")
    print(f"[SIMULATOR CLI] Hostname: {hostname}")
    print(f"[SIMULATOR CLI] Server IP: {host_ip}")
    print(f"[SIMULATOR CLI] Port:      {PORT}")
    print(f"[SIMULATOR CLI] Calibration: {calibration}s")
    print("-----------------------------------------------------------")
    print(f"Set device_url to http://{host_ip}:{PORT} or enable simulator_enabled.")

    t = threading.Thread(target=start_server, daemon=True)
    t.start()
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        print("\n[SIMULATOR CLI] Shutting down...")


if __name__ == "__main__":
    main()
