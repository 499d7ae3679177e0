# gunicorn.conf.py
"""
Gunicorn settings for serving RetailHub (retailhub.wsgi).

    gunicorn -c gunicorn.conf.py

Bind address, worker count and log level come from the environment.
"""
import multiprocessing
import os

wsgi_app = 'retailhub.wsgi:application'

bind = os.environ.get('GUNICORN_BIND', '0.0.0.0:8000')
workers = int(os.environ.get('GUNICORN_WORKERS', multiprocessing.cpu_count() * 2 + 1))
worker_class = 'sync'

# Stock writes hold row locks; keep requests short
timeout = int(os.environ.get('GUNICORN_TIMEOUT', 60))
graceful_timeout = 30
keepalive = 5

# Recycle workers periodically
max_requests = 1000
max_requests_jitter = 50

preload_app = True

accesslog = '-'
errorlog = '-'
loglevel = os.environ.get('GUNICORN_LOG_LEVEL', 'info')

proc_name = 'retailhub'

# TLS terminates at the reverse proxy
forwarded_allow_ips = os.environ.get('GUNICORN_FORWARDED_ALLOW_IPS', '127.0.0.1')
secure_scheme_headers = {'X-FORWARDED-PROTO': 'https'}
