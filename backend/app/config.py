# backend/app/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/pos.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///pos.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Bounded retry for lock waits / optimistic conflicts on stock writes
    POS_RETRY_ATTEMPTS = int(os.environ.get("POS_RETRY_ATTEMPTS", "3"))
    POS_RETRY_BACKOFF_SECONDS = float(os.environ.get("POS_RETRY_BACKOFF_SECONDS", "0.05"))

    SESSION_TIMEOUT_HOURS = int(os.environ.get("SESSION_TIMEOUT_HOURS", "12"))
