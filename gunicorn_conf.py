"""Gunicorn configuration for the interview prep service.

Run with ``gunicorn -c gunicorn_conf.py``. Container platforms provide PORT.
"""

import multiprocessing
import os

wsgi_app = "interview_prep.server:app"

port = os.environ.get("PORT", "8080")
bind = f"0.0.0.0:{port}"

# Stage calls are network-bound; a couple of async workers per instance is enough.
# Each worker holds its own per-client rate limit windows.
workers = int(os.environ.get("GUNICORN_WORKERS", min(2, multiprocessing.cpu_count())))
worker_class = "uvicorn.workers.UvicornWorker"

# A professors stage runs up to five staggered detail queries plus fact-checking,
# each under a 100 s stream deadline with one retry and one fallback attempt.
timeout = int(os.environ.get("GUNICORN_TIMEOUT", "300"))
graceful_timeout = int(os.environ.get("GUNICORN_GRACEFUL_TIMEOUT", "30"))
keepalive = int(os.environ.get("GUNICORN_KEEPALIVE", "5"))

loglevel = os.environ.get("GUNICORN_LOG_LEVEL", "info")
accesslog = "-"
errorlog = "-"

preload_app = True
backlog = 2048

max_requests = int(os.environ.get("GUNICORN_MAX_REQUESTS", "1000"))
max_requests_jitter = int(os.environ.get("GUNICORN_MAX_REQUESTS_JITTER", "50"))
