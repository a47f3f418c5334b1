# backend/cashdesk/config.py
from __future__ import annotations
import os
from decimal import Decimal


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # Local state cache (SQLite file next to the process by default)
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///cashdesk.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Identity of this physical station
    TERMINAL_ID = os.environ.get("TERMINAL_ID", "T001")

    # Single authoritative idle limit for employee sessions
    SESSION_IDLE_TIMEOUT_SECONDS = int(os.environ.get("SESSION_IDLE_TIMEOUT_SECONDS", "1200"))

    # Pricing
    IGV_RATE = Decimal(os.environ.get("IGV_RATE", "0.18"))
    CASH_ROUNDING_STEP = Decimal(os.environ.get("CASH_ROUNDING_STEP", "0.10"))
    LOW_STOCK_THRESHOLD = int(os.environ.get("LOW_STOCK_THRESHOLD", "10"))

    # Credentials
    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))
    MIN_PASSWORD_LENGTH = int(os.environ.get("MIN_PASSWORD_LENGTH", "4"))

    # Write the state cache after every mutating request
    AUTOSAVE_STATE = os.environ.get("AUTOSAVE_STATE", "true").lower() == "true"
