"""
Production Server Configuration

Uvicorn workers under Gunicorn. Each worker process runs its own
background dispatcher, so the effective tracking concurrency is
workers * WORKER_POOL_SIZE.
"""

import multiprocessing
import os

# Server socket
bind = os.getenv("BIND", "0.0.0.0:8000")
backlog = 2048

# Worker processes
workers = int(os.getenv("WORKERS", multiprocessing.cpu_count() * 2 + 1))
worker_class = "uvicorn.workers.UvicornWorker"
worker_connections = 1000
max_requests = 10000
max_requests_jitter = 1000
timeout = 120
keepalive = 5
# Longer than WORKER_DRAIN_TIMEOUT_SECONDS so queued tracking writes can flush
graceful_timeout = int(os.getenv("GRACEFUL_TIMEOUT", 30))

proc_name = "storefront-signals-api"
daemon = False

# Logging
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info").lower()
accesslog = "-"
access_log_format = '%(h)s %(l)s %(u)s %(t)s "%(r)s" %(s)s %(b)s "%(f)s" "%(a)s" %(D)s'


def when_ready(server):
    server.log.info("Storefront Signals ready on %s with %s workers", bind, workers)


def worker_abort(worker):
    worker.log.warning("Worker %s aborted; queued background tasks are lost", worker.pid)
