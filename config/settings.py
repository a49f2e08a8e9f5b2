"""
Ledgerline – Django Settings (Infrastructure Only)
==================================================
Django serves as the persistence container for the Ledger.
Ledgerline architecture is the authority — Django does not dictate structure.

Platform parameters live in LEDGERLINE below and are read through
core.config.PlatformSettings, which also applies LEDGERLINE_<KEY>
environment overrides.
"""

import os
from pathlib import Path

# ── Paths ─────────────────────────────────────────────────────
BASE_DIR = Path(__file__).resolve().parent.parent

# ── Security ──────────────────────────────────────────────────
SECRET_KEY = os.environ.get("LEDGERLINE_SECRET_KEY", "ledgerline-dev-key")

DEBUG = os.environ.get("LEDGERLINE_DEBUG", "1") == "1"

ALLOWED_HOSTS = []

# ── Installed Apps ────────────────────────────────────────────
INSTALLED_APPS = [
    "django.contrib.contenttypes",
    # ── Ledgerline Modules ────────────────────────────────
    "core.ledger",
]

# ── Database ──────────────────────────────────────────────────
# SQLite by default. Point LEDGERLINE_DB_PATH elsewhere per environment.
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": os.environ.get("LEDGERLINE_DB_PATH", str(BASE_DIR / "db.sqlite3")),
    }
}

# ── Internationalization ──────────────────────────────────────
LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# ── Logging ───────────────────────────────────────────────────
# One named logger per layer, all under "ledgerline".
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "plain": {
            "format": "%(asctime)s %(levelname)s %(name)s %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "plain",
        },
    },
    "loggers": {
        "ledgerline": {
            "handlers": ["console"],
            "level": os.environ.get("LEDGERLINE_LOG_LEVEL", "INFO"),
        },
    },
}

# ── Ledgerline Platform ───────────────────────────────────────
LEDGERLINE = {
    "MANIFEST_DIR": str(BASE_DIR / "manifests"),
    "EVENT_SINK_URL": None,
    "EVENT_SINK_TIMEOUT_SECONDS": 2.0,
    "TASK_TRIGGER_URL": None,
    "TASK_TRIGGER_TIMEOUT_SECONDS": 2.0,
    "DELIVERY_FAILURE_ALERT_THRESHOLD": 0.05,
    "DELIVERY_WINDOW_SIZE": 100,
    "DELIVERY_MIN_SAMPLES": 20,
    "RECONCILIATION_INTERVAL_SECONDS": 300,
    "COMMAND_MAX_ATTEMPTS": 3,
    "TASK_ALLOW_DIRECT_COMPLETION": False,
    "RENEWAL_HORIZON": 2,
    "CANCELLATION_WINDOW_DAYS": 30,
    "DEFAULT_NOTICE_DAYS": 30,
}
