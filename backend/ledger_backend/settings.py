"""
Settings for the ledger backend.

Everything environment-specific comes from the process environment,
optionally seeded from backend/.env.
"""
import os
import re
from datetime import timedelta
from pathlib import Path

import dj_database_url
from dotenv import load_dotenv

from ops.logging_config import get_logging_config

BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(BASE_DIR / ".env")


def env_flag(name: str, default: str = "False") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes")


def env_list(name: str, default: str) -> list:
    return [item.strip() for item in os.getenv(name, default).split(",") if item.strip()]


# =============================================================================
# Core
# =============================================================================
SECRET_KEY = os.getenv("SECRET_KEY", "insecure-dev-key")
DEBUG = env_flag("DEBUG", "True")
ALLOWED_HOSTS = env_list("ALLOWED_HOSTS", "127.0.0.1,localhost,testserver")
VERSION = os.getenv("APP_VERSION", "dev")

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "corsheaders",
    "rest_framework",
    "ops",
    "tenant.apps.TenantConfig",
    "accounting.apps.AccountingConfig",
    "reports.apps.ReportsConfig",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    # Outermost after security so the histogram sees the full request
    "ops.metrics.track_request_metrics",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "corsheaders.middleware.CorsMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "ledger_backend.urls"
WSGI_APPLICATION = "ledger_backend.wsgi.application"

# Only the admin renders templates
TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    }
]

# =============================================================================
# Databases
# =============================================================================
# "default" holds the tenant directory and users. A tenant's ledger lives
# in Tenant.db_alias, inside its own schema when that database is PostgreSQL.
DATABASES = {
    "default": dj_database_url.config(
        env="DATABASE_URL",
        default=f"sqlite:///{BASE_DIR / 'db.sqlite3'}",
        conn_max_age=600,
    )
}

# LEDGER_DATABASE_URL_<NAME>=postgresql://... adds alias "ledger_<name>"
_LEDGER_DB_ENV = re.compile(r"^LEDGER_DATABASE_URL_([A-Z0-9_]+)$")
DATABASES.update(
    {
        f"ledger_{m.group(1).lower()}": dj_database_url.parse(url, conn_max_age=600)
        for m, url in ((_LEDGER_DB_ENV.match(k), v) for k, v in os.environ.items())
        if m
    }
)

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

AUTH_PASSWORD_VALIDATORS = [
    {"NAME": "django.contrib.auth.password_validation.UserAttributeSimilarityValidator"},
    {
        "NAME": "django.contrib.auth.password_validation.MinimumLengthValidator",
        "OPTIONS": {"min_length": 8},
    },
]

LANGUAGE_CODE = "en-us"
TIME_ZONE = os.getenv("TIME_ZONE", "UTC")
USE_I18N = False
USE_TZ = True
STATIC_URL = "static/"

# =============================================================================
# API
# =============================================================================
REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": (
        "rest_framework_simplejwt.authentication.JWTAuthentication",
        "rest_framework.authentication.SessionAuthentication",
    ),
    "DEFAULT_PERMISSION_CLASSES": ("rest_framework.permissions.IsAuthenticated",),
    # Amounts travel as strings, never floats
    "COERCE_DECIMAL_TO_STRING": True,
}

SIMPLE_JWT = {
    "ACCESS_TOKEN_LIFETIME": timedelta(minutes=int(os.getenv("JWT_ACCESS_MINUTES", "30"))),
    "REFRESH_TOKEN_LIFETIME": timedelta(days=int(os.getenv("JWT_REFRESH_DAYS", "30"))),
}

CORS_ALLOWED_ORIGINS = env_list("CORS_ALLOWED_ORIGINS", "http://localhost:3000")
CORS_ALLOW_CREDENTIALS = True

# =============================================================================
# Ledger policies (validated by the accounting system checks)
# =============================================================================
# Date of the reversal a void creates:
# "VOID_DATE" is the day of the void, "ORIGINAL_DATE" is the voided entry's date.
LEDGER_VOID_DATE_POLICY = os.getenv("LEDGER_VOID_DATE_POLICY", "VOID_DATE")

# Posting a draft whose account was deactivated after the draft was saved:
# "ALLOW" posts it, "REJECT" refuses with inactive_account.
LEDGER_INACTIVE_ACCOUNT_ON_POST = os.getenv("LEDGER_INACTIVE_ACCOUNT_ON_POST", "ALLOW")

# PostgreSQL lock_timeout inside every ledger transaction
LEDGER_LOCK_TIMEOUT_MS = int(os.getenv("LEDGER_LOCK_TIMEOUT_MS", "5000"))

# =============================================================================
# Logging
# =============================================================================
LOGGING = get_logging_config(DEBUG)
