import os
from pathlib import Path
from dotenv import load_dotenv
import dj_database_url
from django.core.exceptions import ImproperlyConfigured

# Base directory
BASE_DIR = Path(__file__).resolve().parent.parent

# Load environment variables
load_dotenv(BASE_DIR / ".env", override=False)

from .logging_config import LOGGING  # noqa: E402,F401

# Security
SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    raise ImproperlyConfigured("SECRET_KEY is not set")

ENVIRONMENT = os.getenv("ENVIRONMENT", "development").lower()
IS_PRODUCTION = ENVIRONMENT == "production"

DEBUG = os.getenv("DEBUG", "false").lower() == "true"

def _parse_csv(value: str | None, default: list[str]) -> list[str]:
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]


ALLOWED_HOSTS = _parse_csv(
    os.getenv("ALLOWED_HOSTS"),
    ["localhost", "127.0.0.1", "core"],
)

# Applications
INSTALLED_APPS = [
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.staticfiles",
    "rest_framework",
    "corsheaders",
    "drf_spectacular",
    "accounts",
    "users",
    "posts",
]

# Middleware
MIDDLEWARE = [
    "corsheaders.middleware.CorsMiddleware",
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

# URLs
ROOT_URLCONF = "project.urls"

# Templates (used by the browsable API and Swagger UI)
TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
            ],
        },
    }
]

# WSGI
WSGI_APPLICATION = "project.wsgi.application"

# Database
# DATABASE_URL wins (managed Postgres); otherwise fall back to the DB_* variables.
DATABASE_URL = os.getenv("DATABASE_URL")

if DATABASE_URL:
    DATABASES = {
        "default": dj_database_url.config(
            default=DATABASE_URL,
            conn_max_age=600,
        )
    }
else:
    if not all([os.getenv("DB_NAME"), os.getenv("DB_USER"), os.getenv("DB_PASSWORD"), os.getenv("DB_HOST"), os.getenv("DB_PORT")]):
        raise ImproperlyConfigured("Database configuration incomplete. Set DATABASE_URL or DB_NAME, DB_USER, DB_PASSWORD, DB_HOST and DB_PORT.")

    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": os.getenv("DB_NAME"),
            "USER": os.getenv("DB_USER"),
            "PASSWORD": os.getenv("DB_PASSWORD"),
            "HOST": os.getenv("DB_HOST"),
            "PORT": os.getenv("DB_PORT"),
        }
    }


# Password validation
AUTH_PASSWORD_VALIDATORS = [
    {
        "NAME": "django.contrib.auth.password_validation.UserAttributeSimilarityValidator"
    },
    {"NAME": "django.contrib.auth.password_validation.MinimumLengthValidator"},
    {"NAME": "django.contrib.auth.password_validation.CommonPasswordValidator"},
    {"NAME": "django.contrib.auth.password_validation.NumericPasswordValidator"},
]

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

# Static files
STATIC_URL = "static/"

# Media files (post images and profile pictures)
MEDIA_URL = "/media/"
MEDIA_ROOT = os.getenv("MEDIA_ROOT", os.path.join(BASE_DIR, "media"))

# Backend URL (for absolute media paths)
BACKEND_URL = os.getenv("BACKEND_URL", "http://localhost:8000")

# Uploaded post images are fitted into this box and re-encoded as JPEG
POST_IMAGE_MAX_SIZE = (800, 800)
POST_IMAGE_QUALITY = 80


# Cache Configuration
CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.redis.RedisCache',
        'LOCATION': os.getenv("REDIS_URL", "redis://redis:6379/0"),
        'OPTIONS': {
            'db': 1,  # Use different Redis DB than Celery
        },
        'KEY_PREFIX': 'photoflow',
        'TIMEOUT': 300,  # Default timeout: 5 minutes
    }
}

# Default primary key
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# CORS
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")
CORS_ALLOWED_ORIGINS = _parse_csv(
    os.getenv("CORS_ALLOWED_ORIGINS"),
    [
        FRONTEND_URL,
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
)
CORS_ALLOW_CREDENTIALS = True

# drf_spectacular

SPECTACULAR_SETTINGS = {
    "TITLE": "PhotoFlow API",
    "DESCRIPTION": "API documentation for the PhotoFlow photo sharing platform",
    "VERSION": "1.0.0",
    "SERVE_INCLUDE_SCHEMA": False,
}

# Django REST Framework
REST_FRAMEWORK = {
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "accounts.authentication.JWTAuthentication",
    ],
    "DEFAULT_PERMISSION_CLASSES": [
        "rest_framework.permissions.IsAuthenticated",
    ],
    "DEFAULT_THROTTLE_CLASSES": [
        "rest_framework.throttling.AnonRateThrottle",
        "rest_framework.throttling.UserRateThrottle",
    ],
    "DEFAULT_THROTTLE_RATES": {
        "anon": os.getenv("THROTTLE_ANON_RATE", "60/minute"),       # General anonymous limit
        "user": os.getenv("THROTTLE_USER_RATE", "200/minute"),      # General authenticated user limit
        "otp": os.getenv("THROTTLE_OTP_RATE", "5/minute"),          # OTP emails (resend / forgot password)
        "auth": os.getenv("THROTTLE_AUTH_RATE", "10/minute"),       # Login/signup attempts (brute force protection)
        "sensitive": os.getenv("THROTTLE_SENSITIVE_RATE", "5/minute"),   # Verify, reset and change password
    },
    "EXCEPTION_HANDLER": "project.exceptions.api_exception_handler",
}

# JWT
# HS256 signs with JWT_SECRET_KEY. Setting JWT_ALGORITHM=RS256 switches to the key pair.
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

if JWT_ALGORITHM.startswith("HS"):
    JWT_PRIVATE_KEY = os.getenv("JWT_SECRET_KEY", SECRET_KEY)
    JWT_PUBLIC_KEY = JWT_PRIVATE_KEY
else:
    # Private key for signing tokens (keep secure!)
    JWT_PRIVATE_KEY = os.getenv("JWT_PRIVATE_KEY", "").replace("\\n", "\n")
    # Public key for verifying tokens (can be shared with other services)
    JWT_PUBLIC_KEY = os.getenv("JWT_PUBLIC_KEY", "").replace("\\n", "\n")
    if not JWT_PRIVATE_KEY or not JWT_PUBLIC_KEY:
        raise ImproperlyConfigured(f"{JWT_ALGORITHM} requires JWT_PRIVATE_KEY and JWT_PUBLIC_KEY")

JWT_ACCESS_TOKEN_LIFETIME = int(os.getenv("JWT_ACCESS_TOKEN_LIFETIME", 60 * 60 * 24 * 7))

# HttpOnly JWT cookie settings
JWT_COOKIE_NAME = os.getenv("JWT_COOKIE_NAME", "token")
JWT_COOKIE_SECURE = os.getenv("JWT_COOKIE_SECURE", str(IS_PRODUCTION)).lower() == "true"
# Cross-site frontends need SameSite=None, which browsers only accept on secure cookies
JWT_COOKIE_SAMESITE = os.getenv("JWT_COOKIE_SAMESITE", "None" if IS_PRODUCTION else "Lax")

if JWT_COOKIE_SECURE:
    SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")

# OTP lifetimes (seconds)
OTP_VERIFY_LIFETIME = int(os.getenv("OTP_VERIFY_LIFETIME", 24 * 60 * 60))
OTP_RESET_LIFETIME = int(os.getenv("OTP_RESET_LIFETIME", 5 * 60))

# Email Configuration
# django_ses.SESBackend (AWS SES) or project.mail.BrevoEmailBackend (Brevo / Sendinblue HTTP API)
EMAIL_BACKEND = os.getenv("EMAIL_BACKEND", "django_ses.SESBackend")
AWS_SES_REGION_NAME = os.getenv("AWS_SES_REGION", "ap-south-1")
AWS_SES_REGION_ENDPOINT = f"email.{AWS_SES_REGION_NAME}.amazonaws.com"
BREVO_API_KEY = os.getenv("BREVO_API_KEY", os.getenv("SENDINBLUE_API_KEY", ""))
BREVO_API_URL = os.getenv("BREVO_API_URL", "https://api.brevo.com/v3/smtp/email")
DEFAULT_FROM_EMAIL = os.getenv("DEFAULT_FROM_EMAIL", "PhotoFlow <no-reply@photoflow.app>")


# Celery Configuration
CELERY_BROKER_URL = os.getenv("REDIS_URL", "redis://redis:6379/0")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", CELERY_BROKER_URL)
CELERY_ACCEPT_CONTENT = ["json"]
CELERY_TASK_SERIALIZER = "json"
CELERY_RESULT_SERIALIZER = "json"
CELERY_TIMEZONE = TIME_ZONE

CELERY_BEAT_SCHEDULE = {
    "purge-expired-otps-every-15-minutes": {
        "task": "accounts.tasks.purge_expired_otps",
        "schedule": 900.0,  # 15 minutes
    },
}
