"""
Django settings for the save sync service.

Every deployment-specific value is read from the environment.
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent
DATA_DIR = Path(os.environ.get("SAVESYNC_DATA_DIR", BASE_DIR / "data"))


def env_bool(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "insecure-dev-key")
DEBUG = env_bool("DJANGO_DEBUG", False)
ALLOWED_HOSTS = [h for h in os.environ.get("DJANGO_ALLOWED_HOSTS", "localhost").split(",") if h]

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "savesync.apps.SaveSyncConfig",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
]

ROOT_URLCONF = "config.urls"

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

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": os.environ.get("SAVESYNC_DB_PATH", str(DATA_DIR / "savesync.sqlite3")),
    }
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"
USE_TZ = True
TIME_ZONE = "UTC"
STATIC_URL = "static/"

# Google Drive
GOOGLE_TOKEN_FILE = Path(os.environ.get("GOOGLE_TOKEN_FILE", DATA_DIR / "google_token.json"))

# Save sync
SAVESYNC_APP_FOLDER_NAME = os.environ.get("SAVESYNC_APP_FOLDER_NAME", "Mupen64Plus AE")
SAVESYNC_GAME_DATA_DIR = Path(
    os.environ.get("SAVESYNC_GAME_DATA_DIR", DATA_DIR / "GameData")
)
SAVESYNC_USE_EXTERNAL_STORAGE = env_bool("SAVESYNC_USE_EXTERNAL_STORAGE", False)
SAVESYNC_EXTERNAL_STORAGE_PATH = os.environ.get("SAVESYNC_EXTERNAL_STORAGE_PATH", "")

# Celery: one worker process, one task at a time
CELERY_BROKER_URL = os.environ.get("CELERY_BROKER_URL", "redis://localhost:6379/0")
CELERY_RESULT_BACKEND = os.environ.get("CELERY_RESULT_BACKEND", CELERY_BROKER_URL)
CELERY_WORKER_CONCURRENCY = 1
CELERY_WORKER_PREFETCH_MULTIPLIER = 1
# Cancellation must not queue behind a running sync
CELERY_TASK_ROUTES = {
    "savesync.tasks.sync_saves_task": {"queue": "savesync"},
    "savesync.tasks.cancel_sync_task": {"queue": "savesync_control"},
}

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {
            "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
        },
    },
    "loggers": {
        "savesync": {
            "handlers": ["console"],
            "level": os.environ.get("SAVESYNC_LOG_LEVEL", "INFO"),
            "propagate": False,
        },
    },
}
