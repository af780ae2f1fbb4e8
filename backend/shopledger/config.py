# backend/shopledger/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/shopledger.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///shopledger.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Loyalty: 1 point per currency unit spent, 100 points redeem for 1 unit
    LOYALTY_ENABLED = _env_bool("LOYALTY_ENABLED", True)
    LOYALTY_POINTS_PER_CURRENCY_UNIT = int(os.environ.get("LOYALTY_POINTS_PER_CURRENCY_UNIT", "100"))

    # Retries for lock/version conflicts on stock writes
    STOCK_WRITE_RETRY_ATTEMPTS = int(os.environ.get("STOCK_WRITE_RETRY_ATTEMPTS", "3"))

    CORS_ALLOWED_ORIGINS = [
        origin.strip()
        for origin in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173,http://localhost:4173,"
            "http://127.0.0.1:4173,capacitor://localhost",
        ).split(",")
        if origin.strip()
    ]
