# backend/shopledger/config.py
from __future__ import annotations
import os


class Config:
    # Signs and verifies bearer credentials; dev default only
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")
    JWT_ALGORITHM = os.environ.get("JWT_ALGORITHM", "HS256")

    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///shopledger.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # max_scan | global_counter | shop_counter
    INVOICE_NUMBER_POLICY = os.environ.get("INVOICE_NUMBER_POLICY", "global_counter")
    INVOICE_NUMBER_START = int(os.environ.get("INVOICE_NUMBER_START", "10260001"))
    INVOICE_DEFAULT_DUE_DAYS = int(os.environ.get("INVOICE_DEFAULT_DUE_DAYS", "30"))
