from datetime import datetime
import socket


def get_ip_address():
    """Best-effort detection of the primary IPv4 address for outbound traffic."""
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as s:
            # Doesn't need to be reachable; no packets are sent
            s.connect(("8.8.8.8", 80))
            return s.getsockname()[0]
    except OSError:
        try:
            return socket.gethostbyname(socket.gethostname())
        except OSError:
            return "127.0.0.1"


def get_formatted_timestamp():
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S")
