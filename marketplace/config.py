import os
from datetime import timedelta
from typing import Dict, List

from dotenv import load_dotenv


def _env_flag(name: str, default: str = "false") -> bool:
    return (os.getenv(name, default) or "").strip().lower() in ("1", "true", "yes")


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except (TypeError, ValueError):
        return default


def load_config() -> Dict[str, object]:
    """Read the runtime settings from the environment (and ``.env``)."""
    load_dotenv()

    return {
        "JWT_SECRET_KEY": os.getenv("JWT_SECRET_KEY", "change-me-in-production"),
        "JWT_ACCESS_TOKEN_EXPIRES": timedelta(hours=3),
        "MONGO_URI": os.getenv("MONGO_URI", "mongodb://localhost:27017/marketplace"),
        "FRONTEND_URL": (os.getenv("FRONTEND_URL") or "http://localhost:5173").rstrip("/"),
        "BACKEND_URL": (os.getenv("BACKEND_URL") or "http://localhost:5000").rstrip("/"),
        "SSLCOMMERZ_STORE_ID": (os.getenv("SSLCOMMERZ_STORE_ID") or "").strip(),
        "SSLCOMMERZ_STORE_PASSWORD": (os.getenv("SSLCOMMERZ_STORE_PASSWORD") or "").strip(),
        "SSLCOMMERZ_IS_LIVE": _env_flag("SSLCOMMERZ_IS_LIVE"),
        "PAYMENT_CURRENCY": (os.getenv("PAYMENT_CURRENCY") or "BDT").strip().upper(),
        "PROVISIONAL_CHECKOUT_TTL_SECONDS": _env_int("PROVISIONAL_CHECKOUT_TTL_SECONDS", 3600),
        "ORDER_ID_DIGITS": _env_int("ORDER_ID_DIGITS", 5),
        "TRANSACTION_ID_DIGITS": _env_int("TRANSACTION_ID_DIGITS", 7),
        "IDENTIFIER_MAX_ATTEMPTS": _env_int("IDENTIFIER_MAX_ATTEMPTS", 25),
        "RESEND_ORDER_API_KEY": (os.getenv("RESEND_ORDER_API_KEY") or "").strip(),
        "ORDER_EMAIL_SENDER": (
            os.getenv("ORDER_EMAIL_SENDER", "orders@marketplace.local")
            or "orders@marketplace.local"
        ).strip(),
        "CORS_ALLOWED_ORIGINS": os.getenv("CORS_ALLOWED_ORIGINS", ""),
        "LOG_LEVEL": (os.getenv("LOG_LEVEL") or "INFO").strip().upper(),
    }


def allowed_origins(config) -> List[str]:
    origins = [
        "http://localhost:5173",
        "http://localhost:4173",
        "http://localhost:3000",
        str(config.get("FRONTEND_URL") or "").strip(),
    ]
    extra = str(config.get("CORS_ALLOWED_ORIGINS") or "")
    for origin in extra.split(","):
        trimmed = origin.strip()
        if trimmed:
            origins.append(trimmed)
    return [origin for origin in origins if origin]
