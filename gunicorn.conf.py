# Gunicorn configuration for BookBoss
#
# The metadata refresh job and its pollable status live in this process
# (in-process APScheduler), so the application MUST run with a single worker.
import os

workers = 1
threads = int(os.environ.get("GUNICORN_THREADS", "4"))
bind = os.environ.get("GUNICORN_BIND", "0.0.0.0:3001")
timeout = int(os.environ.get("GUNICORN_TIMEOUT_SECONDS", "120"))
graceful_timeout = int(os.environ.get("GUNICORN_GRACEFUL_TIMEOUT_SECONDS", "30"))


def post_fork(server, worker):
    server.log.info("Worker spawned (pid: %s). Single-worker mode active.", worker.pid)
