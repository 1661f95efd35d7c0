# backend/ledgerpos/config.py
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

    # SQLite DB stored in backend/instance/ledgerpos.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///ledgerpos.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Submitted unit prices may differ from the tier price by at most this much
    PRICE_TOLERANCE_CENTS = int(os.environ.get("PRICE_TOLERANCE_CENTS", "1"))

    # Guarded stock updates are re-issued at most this many times per line
    STOCK_GUARD_ATTEMPTS = int(os.environ.get("STOCK_GUARD_ATTEMPTS", "2"))

    # "debits_first" or "credits_first" for events sharing the same timestamp
    LEDGER_SAME_DATE_ORDER = os.environ.get("LEDGER_SAME_DATE_ORDER", "debits_first")

    # Rebuild party balances from source rows after every balance-affecting write
    RECONCILE_ON_WRITE = _env_bool("RECONCILE_ON_WRITE", True)

    CURRENCY_CODE = os.environ.get("CURRENCY_CODE", "PKR")

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    LOG_FILE = os.environ.get("LOG_FILE")
