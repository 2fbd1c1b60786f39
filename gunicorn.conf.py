"""Gunicorn settings for the analytics API.

    gunicorn -c gunicorn.conf.py gaming_analytics.main:app

Each worker owns its own database and Redis pools, so the worker count
multiplied by DATABASE_POOL_SIZE + DATABASE_MAX_OVERFLOW must stay under the
database's connection limit. Only one worker should run the snapshot
worker; set SNAPSHOT_WORKER_ENABLED=false on all other deployments.
"""

import os

bind = os.getenv("GUNICORN_BIND", "0.0.0.0:8000")
worker_class = "uvicorn.workers.UvicornWorker"
workers = int(os.getenv("GUNICORN_WORKERS", "4"))
proc_name = "gaming-analytics-api"

# Year-long report windows scan a lot of bets
timeout = int(os.getenv("GUNICORN_TIMEOUT", "120"))
graceful_timeout = 30
keepalive = 5

# Recycle workers now and then to return memory held by large report payloads
max_requests = 5000
max_requests_jitter = 500

# Request logs come from the tracing middleware as JSON; gunicorn only logs errors
accesslog = None
errorlog = "-"
loglevel = os.getenv("GUNICORN_LOG_LEVEL", "info")

keyfile = os.getenv("GUNICORN_KEYFILE")
certfile = os.getenv("GUNICORN_CERTFILE")


def post_fork(server, worker):  # type: ignore[no-untyped-def]
    server.log.info("analytics worker %s started", worker.pid)
