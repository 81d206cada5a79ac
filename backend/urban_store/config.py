# backend/urban_store/config.py
from __future__ import annotations
import os


def _engine_options(database_uri: str, lock_timeout: float) -> dict:
    # Bound lock waits so a blocked writer fails instead of hanging
    if database_uri.startswith("sqlite"):
        return {"connect_args": {"timeout": lock_timeout}}
    return {"pool_pre_ping": True}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/urban_store.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///urban_store.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    DB_LOCK_TIMEOUT_SECONDS = float(os.environ.get("DB_LOCK_TIMEOUT_SECONDS", "5"))
    SQLALCHEMY_ENGINE_OPTIONS = _engine_options(SQLALCHEMY_DATABASE_URI, DB_LOCK_TIMEOUT_SECONDS)

    # Single dashboard origin allowed by CORS
    FRONTEND_URL = os.environ.get("FRONTEND_URL", "http://localhost:5173")

    STORE_NAME = os.environ.get("STORE_NAME", "Urban Store")
    LOW_STOCK_THRESHOLD = int(os.environ.get("LOW_STOCK_THRESHOLD", "5"))

    # WhatsApp delivery through Twilio; unset credentials -> simulated sends
    TWILIO_ACCOUNT_SID = os.environ.get("TWILIO_ACCOUNT_SID")
    TWILIO_AUTH_TOKEN = os.environ.get("TWILIO_AUTH_TOKEN")
    TWILIO_WHATSAPP_FROM = os.environ.get("TWILIO_WHATSAPP_FROM")
    TWILIO_API_BASE = os.environ.get("TWILIO_API_BASE", "https://api.twilio.com/2010-04-01")
    MESSAGING_TIMEOUT_SECONDS = float(os.environ.get("MESSAGING_TIMEOUT_SECONDS", "10"))

    REMINDER_INTERVAL_DAYS = int(os.environ.get("REMINDER_INTERVAL_DAYS", "7"))
    NOTIFICATION_DELAY_SECONDS = float(os.environ.get("NOTIFICATION_DELAY_SECONDS", "1.0"))
