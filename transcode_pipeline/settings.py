from pathlib import Path
import os
import tempfile
from urllib.parse import quote

from dotenv import load_dotenv
from django.core.exceptions import ImproperlyConfigured

# -----------------------------------------------------
# Helpers
# -----------------------------------------------------
def env(name: str, default=None, *, required: bool = False):
    val = os.getenv(name, default)
    if required and (val is None or (isinstance(val, str) and val.strip() == "")):
        raise ImproperlyConfigured(f"Missing required environment variable: {name}")
    return val

def env_bool(name: str, default: bool = False) -> bool:
    return str(os.getenv(name, str(default))).lower() in {"1", "true", "yes", "on"}

def env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ImproperlyConfigured(f"Environment variable {name} must be an integer, got {raw!r}")

# -----------------------------------------------------
# Paths & basics
# -----------------------------------------------------
BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(BASE_DIR / ".env")

DEBUG = env_bool("DEBUG", False)

# Only used by the status endpoint; no sessions or signing in the worker
SECRET_KEY = env("DJANGO_SECRET_KEY", "dev-only-secret-key-change-me")

ALLOWED_HOSTS = [h.strip() for h in os.getenv("ALLOWED_HOSTS", "127.0.0.1,localhost").split(",") if h.strip()]

# -----------------------------------------------------
# Applications
# -----------------------------------------------------
INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "django.contrib.auth",

    # Third-party
    "rest_framework",

    # Local
    "worker",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
]

ROOT_URLCONF = "transcode_pipeline.urls"

WSGI_APPLICATION = "transcode_pipeline.wsgi.application"

# The worker keeps no state of its own; SQLite only satisfies contrib apps.
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": BASE_DIR / "db.sqlite3",
    }
}

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = False
USE_TZ = True

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# -----------------------------------------------------
# Django REST Framework (read-only status endpoint)
# -----------------------------------------------------
REST_FRAMEWORK = {
    "DEFAULT_RENDERER_CLASSES": [
        "rest_framework.renderers.JSONRenderer",
    ],
    "DEFAULT_AUTHENTICATION_CLASSES": [],
    "DEFAULT_PERMISSION_CLASSES": [
        "rest_framework.permissions.AllowAny",
    ],
    "UNAUTHENTICATED_USER": None,
}

# -----------------------------------------------------
# Logging
# -----------------------------------------------------
LOG_LEVEL = env("LOG_LEVEL", "INFO").upper()

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "{levelname} {asctime} {module} {message}",
            "style": "{",
        },
    },
    "handlers": {
        "console": {
            "level": LOG_LEVEL,
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": LOG_LEVEL,
    },
}

# -----------------------------------------------------
# AMQP broker (input, output and error queues)
# -----------------------------------------------------
AMQP_HOST = env("AMQP_HOST", "127.0.0.1")
AMQP_PORT = env_int("AMQP_PORT", 5672)
AMQP_USER = env("AMQP_USER", "guest")
AMQP_PASSWORD = env("AMQP_PASSWORD", "guest")
AMQP_VHOST = env("AMQP_VHOST", "/")
AMQP_HEARTBEAT = env_int("AMQP_HEARTBEAT", 60)

TRANSCODE_INPUT_QUEUE = env("TRANSCODE_INPUT_QUEUE", "encode_input")
TRANSCODE_OUTPUT_QUEUE = env("TRANSCODE_OUTPUT_QUEUE", "encode_output")
TRANSCODE_ERROR_QUEUE = env("TRANSCODE_ERROR_QUEUE", "encode_error")
# Must match how the upstream producer declared the queues.
TRANSCODE_QUEUE_DURABLE = env_bool("TRANSCODE_QUEUE_DURABLE", False)

# -----------------------------------------------------
# Celery
# -----------------------------------------------------
CELERY_BROKER_URL = env(
    "CELERY_BROKER_URL",
    f"amqp://{quote(AMQP_USER, safe='')}:{quote(AMQP_PASSWORD, safe='')}"
    f"@{AMQP_HOST}:{AMQP_PORT}/{quote(AMQP_VHOST, safe='')}",
)
CELERY_BROKER_HEARTBEAT = AMQP_HEARTBEAT
CELERY_TASK_TRACK_STARTED = True
CELERY_TASK_TIME_LIMIT = env_int("CELERY_TASK_TIME_LIMIT", 60 * 60 * 4)  # seconds
# One job at a time per worker process.
CELERY_WORKER_CONCURRENCY = env_int("CELERY_WORKER_CONCURRENCY", 1)
CELERY_WORKER_PREFETCH_MULTIPLIER = 1

# -----------------------------------------------------
# Transcoding job
# -----------------------------------------------------
TRANSCODE_JOB_TYPE = env("TRANSCODE_JOB_TYPE", "rss")
TRANSCODE_OUTPUT_EXTENSION = env("TRANSCODE_OUTPUT_EXTENSION", "mp4").lstrip(".")
TRANSCODE_WORK_DIR = Path(env("TRANSCODE_WORK_DIR", tempfile.gettempdir()))
# Keep the downloaded source on disk after a failed job for diagnostics.
TRANSCODE_RETAIN_FAILED_SOURCE = env_bool("TRANSCODE_RETAIN_FAILED_SOURCE", True)
TRANSCODE_FETCH_MAX_REDIRECTS = env_int("TRANSCODE_FETCH_MAX_REDIRECTS", 2)
TRANSCODE_FETCH_TIMEOUT_SECONDS = env_int("TRANSCODE_FETCH_TIMEOUT_SECONDS", 60)

TRANSCODER_BIN = env("TRANSCODER_BIN", "HandBrakeCLI")
# 0 disables the wall-clock limit.
TRANSCODER_TIMEOUT_SECONDS = env_int("TRANSCODER_TIMEOUT_SECONDS", 60 * 60)

if TRANSCODE_FETCH_MAX_REDIRECTS < 0:
    raise ImproperlyConfigured("TRANSCODE_FETCH_MAX_REDIRECTS must not be negative")

# -----------------------------------------------------
# S3 / MinIO (env-driven; no hardcoded secrets)
# -----------------------------------------------------
S3_ENDPOINT_URL = os.getenv("S3_ENDPOINT_URL") or None  # None -> AWS default endpoint
S3_REGION = os.getenv("S3_REGION", "us-east-1")
S3_BUCKET = env("S3_BUCKET", "media-local")
S3_ACCESS_KEY = os.getenv("S3_ACCESS_KEY")          # set in .env for local
S3_SECRET_KEY = os.getenv("S3_SECRET_KEY")          # set in .env for local
