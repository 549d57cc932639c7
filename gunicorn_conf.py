import os

host = os.getenv("HOST", "0.0.0.0")
port = os.getenv("PORT", "5010")
bind = f"{host}:{port}"

# Per-key refresh locks live in process memory; a second worker would
# refresh and write the same keys independently
workers = 1
worker_class = "uvicorn.workers.UvicornWorker"
keepalive = 120
# Long enough for a CO-OPS catalog fetch plus a series fetch at the request timeout
timeout = int(os.getenv("TIMEOUT", "90"))

# Logging
loglevel = os.getenv("TIDEWEATHER_LOG_LEVEL", "info").lower()
errorlog = "-"
accesslog = "-"
access_log_format = '%(h)s "%(r)s" %(s)s %(b)s %(M)sms'

def post_worker_init(worker):
    worker.log.info(f"🌊 Worker {worker.pid} serving records from {os.getenv('TIDEWEATHER_DB_PATH', 'data/records.duckdb')}")
