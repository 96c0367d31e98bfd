# Run with: gunicorn -c gunicorn.conf.py "authcore:create_app()"
import os

# Bind & workers
bind = os.getenv("GUNICORN_BIND", "0.0.0.0:8000")
workers = int(os.getenv("GUNICORN_WORKERS", "2"))
threads = 1
timeout = 60
graceful_timeout = 30
keepalive = 5

# Logs to stdout/stderr; the app emits its own JSON records
accesslog = "-"
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info").lower()

# Proxy headers are handled by ProxyFix inside the app (USE_PROXYFIX)
forwarded_allow_ips = os.getenv("FORWARDED_ALLOW_IPS", "127.0.0.1")
proxy_protocol = False
