# run.py

import atexit
import sys

from waitress import serve

from app import create_app, init_services, cleanup
from system.log_utils import info

init_services(sys.argv[1] if len(sys.argv) > 1 else None)
atexit.register(cleanup)

info("Serving via Waitress on http://0.0.0.0:5001")
# SSE clients each hold a worker thread; keep headroom for API requests
serve(create_app(), host='0.0.0.0', port=5001, threads=10)
