# backend/cashdesk/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/cashdesk.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///cashdesk.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Wall clock used for operational days when a branch has no timezone of its own
    DEFAULT_TIMEZONE = os.environ.get(
        "CASHDESK_DEFAULT_TIMEZONE",
        "America/Argentina/Buenos_Aires",
    )

    # Dashboards poll shift/cash status at this interval
    DASHBOARD_REFRESH_SECONDS = int(os.environ.get("CASHDESK_DASHBOARD_REFRESH_SECONDS", "60"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    CORS_ALLOWED_ORIGINS = [
        origin.strip()
        for origin in os.environ.get(
            "CASHDESK_CORS_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173",
        ).split(",")
        if origin.strip()
    ]
