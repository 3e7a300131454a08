import os

SERVICE_NAME = os.getenv("SERVICE_NAME", "proxy-server")
HOST = os.environ.get("HOST", "0.0.0.0")
PORT = int(os.environ.get("PORT", "3000"))
APP_ENV = os.environ.get("APP_ENV", os.environ.get("NODE_ENV", "production")).lower()

PROXY_PREFIX = "/" + (os.environ.get("PROXY_PREFIX", "/api").strip("/") or "api")
PROXY_TIMEOUT = float(os.environ.get("PROXY_TIMEOUT", "30"))
PROXY_MAX_REDIRECTS = int(os.environ.get("PROXY_MAX_REDIRECTS", "5"))

LOG_DIR = os.getenv("LOG_DIR", "logs")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
# 5MB per file, five rotated files kept
LOG_MAX_BYTES = int(os.getenv("LOG_MAX_BYTES", "5242880"))
LOG_BACKUP_COUNT = int(os.getenv("LOG_BACKUP_COUNT", "5"))

OTLP_ENDPOINT = os.getenv("OTLP_ENDPOINT")
OTLP_HEADERS = os.getenv("OTLP_HEADERS", "")

CORS_ALLOW_METHODS = ["GET", "POST", "PUT", "DELETE", "OPTIONS"]
CORS_ALLOW_HEADERS = ["Content-Type", "Authorization"]
CORS_EXPOSE_HEADERS = ["Content-Length", "X-Proxy-Response"]
CORS_MAX_AGE = int(os.getenv("CORS_MAX_AGE", "86400"))


def is_development() -> bool:
    return APP_ENV == "development"
