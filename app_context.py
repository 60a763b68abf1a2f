import os

ORIGIN = os.environ.get("WEBAUTHN_ORIGIN", "http://localhost:3000")
RP_NAME = os.environ.get("WEBAUTHN_RP_NAME", "OWASP Org.")
RP_ID = os.environ.get("WEBAUTHN_RP_ID") or None
USERNAME_FIELD = os.environ.get("WEBAUTHN_USERNAME_FIELD", "username")
MOUNT_PATH = os.environ.get("WEBAUTHN_MOUNT_PATH", "/webauthn")
STORE_BACKEND = os.environ.get("WEBAUTHN_STORE", "memory")

SECRET_KEY = os.environ.get("SECRET_KEY", "dev_secret_key_change_in_production")
RATE_LIMIT_PER_MINUTE = int(os.environ.get("RATE_LIMIT_PER_MINUTE", "60"))
LOG_REQUESTS = os.environ.get("LOG_REQUESTS", "0").lower() in ("1", "true", "yes")
PORT = int(os.environ.get("PORT", "5000"))

# Per-client request timestamps for rate limiting
cache = {}

if os.environ.get("FLASK_ENV") == "testing":
    DB_PATH = os.environ.get("TEST_DB_PATH", ":memory:")
else:
    DB_PATH = os.environ.get("DB_PATH", "./webauthn.db")
