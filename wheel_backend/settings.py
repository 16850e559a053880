"""Django settings for the wheel spin backend.

Every value can be overridden from the environment (or a `.env` file next to
`manage.py`).
"""

import os
from pathlib import Path
from urllib.parse import parse_qs, urlparse

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent

load_dotenv(BASE_DIR / ".env")


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _database_from_url(url: str) -> dict:
    parsed = urlparse(url)
    if parsed.scheme in {"mysql", "mariadb"}:
        qs = parse_qs(parsed.query)
        return {
            "ENGINE": "django.db.backends.mysql",
            "NAME": (parsed.path or "/").lstrip("/"),
            "USER": parsed.username or "",
            "PASSWORD": parsed.password or "",
            "HOST": parsed.hostname or "localhost",
            "PORT": str(parsed.port or 3306),
            "OPTIONS": {"charset": (qs.get("charset", ["utf8mb4"]) or ["utf8mb4"])[0]},
        }
    if parsed.scheme == "sqlite":
        return {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": parsed.path.lstrip("/") or str(BASE_DIR / "db.sqlite3"),
        }
    raise ValueError("DATABASE_URL must use mysql://, mariadb:// or sqlite://")


SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "dev-only-secret-key-change-me")
DEBUG = _env_bool("DEBUG", False)
ALLOWED_HOSTS = [
    host.strip()
    for host in os.getenv("ALLOWED_HOSTS", "*").split(",")
    if host.strip()
]

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "spin",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
]

ROOT_URLCONF = "wheel_backend.urls"
WSGI_APPLICATION = "wheel_backend.wsgi.application"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

_database_url = os.getenv("DATABASE_URL")
if _database_url:
    DATABASES = {"default": _database_from_url(_database_url)}
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": BASE_DIR / "db.sqlite3",
        }
    }

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"
USE_TZ = True
TIME_ZONE = "UTC"
STATIC_URL = "static/"

# Platform (Shopify Admin API) access.
SHOPIFY_STORE = os.getenv("SHOPIFY_STORE", "")
SHOPIFY_ADMIN_TOKEN = os.getenv("SHOPIFY_ADMIN_TOKEN", "")
SHOPIFY_API_VERSION = os.getenv("SHOPIFY_API_VERSION", "2024-10")
SHOPIFY_TIMEOUT = _env_int("SHOPIFY_TIMEOUT", 15)
SHOPIFY_METAOBJECT_TYPE = os.getenv("SHOPIFY_METAOBJECT_TYPE", "wheel_prize")

REDIS_URL = os.getenv("REDIS_URL")

# Wheel campaign.
SPIN_ADMIN_KEY = os.getenv("SPIN_ADMIN_KEY") or os.getenv("ADMIN_RESET_KEY", "")
SPIN_CATALOG_BACKEND = os.getenv("SPIN_CATALOG_BACKEND", "database")
SPIN_PARTICIPANT_BACKEND = os.getenv("SPIN_PARTICIPANT_BACKEND", "database")
SPIN_LOCK_BACKEND = os.getenv("SPIN_LOCK_BACKEND", "local")
SPIN_LOCK_TIMEOUT = _env_int("SPIN_LOCK_TIMEOUT", 30)
SPIN_LOCK_WAIT = _env_int("SPIN_LOCK_WAIT", 10)
SPIN_MIRROR_ENABLED = _env_bool("SPIN_MIRROR_ENABLED", False)
SPIN_MIRROR_PREFIX = os.getenv("SPIN_MIRROR_PREFIX", "spin:prize:")
SPIN_FALLBACK_PRIZE_ID = os.getenv("SPIN_FALLBACK_PRIZE_ID", "better_luck")
SPIN_MAX_DRAW_ATTEMPTS = _env_int("SPIN_MAX_DRAW_ATTEMPTS", 3)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {
            "format": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": LOG_LEVEL,
    },
    "loggers": {
        "django": {
            "handlers": ["console"],
            "level": "WARNING",
            "propagate": False,
        },
    },
}
