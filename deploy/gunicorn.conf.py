"""
HRMS — Gunicorn production configuration.

Usage:
    gunicorn -c deploy/gunicorn.conf.py 'src.app:create_app()'

The app is preloaded so the certificate reminder scheduler starts once in
the master process rather than once per worker.
"""

import multiprocessing

# Server socket
bind = "127.0.0.1:5000"
backlog = 256

# Worker processes
workers = multiprocessing.cpu_count() * 2 + 1
worker_class = "sync"
timeout = 60
keepalive = 5

# Logging
accesslog = "/var/log/hrms/access.log"
errorlog = "/var/log/hrms/error.log"
loglevel = "info"
access_log_format = '%(h)s %(l)s %(u)s %(t)s "%(r)s" %(s)s %(b)s "%(f)s" "%(a)s" %(D)s'

# Process naming
proc_name = "hrms"

# Server mechanics
daemon = False
pidfile = "/run/hrms/hrms.pid"
umask = 0o022

preload_app = True

max_requests = 1000
max_requests_jitter = 50
