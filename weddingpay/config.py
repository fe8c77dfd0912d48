import os


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes", "on")


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key")
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Asaas gateway; missing credentials only fail when a charge is attempted
    ASAAS_API_URL = os.getenv("ASAAS_API_URL", "")
    ASAAS_API_KEY = os.getenv("ASAAS_API_KEY", "")
    ASAAS_WEBHOOK_TOKEN = os.getenv("ASAAS_WEBHOOK_TOKEN", "")
    ASAAS_TIMEOUT_SECONDS = float(os.getenv("ASAAS_TIMEOUT_SECONDS", "15"))

    CUSTOMER_CREATE_MAX_ATTEMPTS = int(os.getenv("CUSTOMER_CREATE_MAX_ATTEMPTS", "3"))
    CUSTOMER_CREATE_BACKOFF_MS = int(os.getenv("CUSTOMER_CREATE_BACKOFF_MS", "200"))

    CORS_ALLOWED_ORIGINS = os.getenv("CORS_ALLOWED_ORIGINS", "http://localhost:5173,http://localhost:3000")

    WEDDINGPAY_LOG_JSON = _env_bool("WEDDINGPAY_LOG_JSON", "true")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
    WEDDINGPAY_METRICS_ENABLED = _env_bool("WEDDINGPAY_METRICS_ENABLED", "true")
    WEDDINGPAY_AUDIT_PERSIST = _env_bool("WEDDINGPAY_AUDIT_PERSIST", "true")
    WEDDINGPAY_DB_AUTOCREATE = _env_bool("WEDDINGPAY_DB_AUTOCREATE", "false")

    REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    NOTIFICATIONS_ENABLED = _env_bool("NOTIFICATIONS_ENABLED", "true")

    SENDGRID_API_KEY = os.environ.get("SENDGRID_API_KEY")
    FROM_EMAIL = os.environ.get("FROM_EMAIL", "pagamentos@weddingpay.com.br")
    FROM_NAME = os.environ.get("FROM_NAME", "WeddingPay")
    SENDGRID_SANDBOX = _env_bool("SENDGRID_SANDBOX", "false")
    APP_LOGIN_URL = os.environ.get("APP_LOGIN_URL", "http://localhost:5173/login")
