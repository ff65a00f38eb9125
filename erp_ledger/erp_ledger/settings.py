import os
import sys
from pathlib import Path

import dj_database_url
from celery.schedules import crontab
from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(BASE_DIR / ".env")

SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "changeme")
DEBUG = os.getenv("DJANGO_DEBUG", "True") == "True"
ALLOWED_HOSTS = os.getenv("ALLOWED_HOSTS", "127.0.0.1,localhost").split(",")

# pytest / "manage.py test" runs
TESTING = (
    "PYTEST_CURRENT_TEST" in os.environ
    or any("pytest" in arg for arg in sys.argv[:1])
    or "test" in sys.argv
)

INSTALLED_APPS = [
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "ledger_core.apps.LedgerCoreConfig",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    # attaches request.company (the tenant) for ledger views
    "ledger_core.middleware.CurrentCompanyMiddleware",
]

ROOT_URLCONF = "erp_ledger.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
            ],
        },
    }
]

# =============================================================================
# Database
# =============================================================================
# Postgres in production (row locks back the period close),
# SQLite file for local runs and the test-suite
DATABASES = {
    "default": dj_database_url.config(
        env="DATABASE_URL",
        default=f"sqlite:///{BASE_DIR / 'db.sqlite3'}",
        conn_max_age=600,
    )
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# Custom user lives in the ledger app (created_by / closed_by / matched_by)
AUTH_USER_MODEL = "ledger_core.User"

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

# =============================================================================
# Ledger
# =============================================================================
# Reference kinds whose bindings are exclusive unless the caller says otherwise:
# at most one entry per (company, kind, source id, qualifier)
LEDGER_EXCLUSIVE_REFERENCE_KINDS = [
    kind.strip()
    for kind in os.getenv(
        "LEDGER_EXCLUSIVE_REFERENCE_KINDS",
        "invoice,sales_order,purchase_order,payslip,stock_adjustment,"
        "expense,supplier_bill,bill_payment,customer_payment,journal_entry",
    ).split(",")
    if kind.strip()
]

# Level used by the integrity task when it finds drift
LEDGER_INTEGRITY_ALERT_LEVEL = os.getenv("LEDGER_INTEGRITY_ALERT_LEVEL", "CRITICAL")

# =============================================================================
# Celery
# =============================================================================
REDIS_URL = os.getenv("REDIS_URL", "redis://127.0.0.1:6379/0")

CELERY_BROKER_URL = REDIS_URL
CELERY_ACCEPT_CONTENT = ["json"]
CELERY_TASK_SERIALIZER = "json"
CELERY_RESULT_SERIALIZER = "json"
CELERY_TIMEZONE = TIME_ZONE
CELERY_TASK_ALWAYS_EAGER = os.getenv("CELERY_TASK_ALWAYS_EAGER", str(TESTING)) == "True"

# Nightly drift check over every tenant
CELERY_BEAT_SCHEDULE = {
    "verify-ledger-nightly": {
        "task": "ledger_core.tasks.verify_all_tenants",
        "schedule": crontab(hour=2, minute=30),
    },
}

# =============================================================================
# Logging
# =============================================================================
from erp_ledger.logging_config import get_logging_config  # noqa: E402

LOGGING = get_logging_config(DEBUG)
