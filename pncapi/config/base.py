from datetime import timedelta
import logging
import os

logger = logging.getLogger(__name__)


def _split_limits(value):
    return [s.strip() for s in value.split(",") if s.strip()]


SETTINGS = {
    "logging": {"level": os.getenv("LOG_LEVEL", "INFO")},
    "service": {"port": 3000},
    "environment": {
        "ROLLBAR_SERVER_TOKEN": os.getenv("ROLLBAR_SERVER_TOKEN"),
        "SPARKPOST_API_KEY": os.getenv("SPARKPOST_API_KEY"),
        "CORS_ORIGINS": os.getenv("CORS_ORIGINS"),
    },
    "ROLES": ["SUPERADMIN", "ADMIN", "USER"],
    "SQLALCHEMY_DATABASE_URI": os.getenv("DATABASE_URL")
    or (
        "postgresql://"
        + (os.getenv("DATABASE_ENV_POSTGRES_USER") or "postgres")
        + ":"
        + (os.getenv("DATABASE_ENV_POSTGRES_PASSWORD") or "postgres")
        + "@"
        + (os.getenv("DATABASE_PORT_5432_TCP_ADDR") or "localhost")
        + ":"
        + (os.getenv("DATABASE_PORT_5432_TCP_PORT") or "5432")
        + "/"
        + (os.getenv("DATABASE_ENV_POSTGRES_DB") or "postgres")
    ),
    "SECRET_KEY": os.getenv("SECRET_KEY"),
    "JWT_SECRET_KEY": os.getenv("JWT_SECRET_KEY") or os.getenv("SECRET_KEY"),
    "JWT_ACCESS_TOKEN_EXPIRES": timedelta(seconds=60 * 60 * 1),
    # Browsers get the session as a cookie, API clients may still send a header
    "JWT_TOKEN_LOCATION": ["headers", "cookies"],
    "JWT_COOKIE_SECURE": os.getenv("JWT_COOKIE_SECURE", "true").lower() == "true",
    "JWT_COOKIE_SAMESITE": "Strict",
    "JWT_COOKIE_CSRF_PROTECT": True,
    "TRUSTED_PROXY_COUNT": int(os.getenv("TRUSTED_PROXY_COUNT", "0")),
    "NOTIFICATION_FROM_EMAIL": os.getenv(
        "NOTIFICATION_FROM_EMAIL", "security@phishnclick.app"
    ),
    # Escalating lockout after consecutive failed logins. Each entry is the
    # consecutive-failure count that engages the stage; a duration of None
    # means the lock never expires and must be cleared by an administrator.
    "LOCKOUT": {
        "STAGES": [
            {"threshold": 3, "stage": 1, "duration_seconds": 30 * 60},
            {"threshold": 6, "stage": 2, "duration_seconds": 3 * 60 * 60},
            {"threshold": 9, "stage": 3, "duration_seconds": 24 * 60 * 60},
            {"threshold": 12, "stage": 3, "duration_seconds": None},
        ],
        "PASSWORD_RESET_TOKEN_EXPIRY_SECONDS": 60 * 60,
        "MAX_UPDATE_RETRIES": 3,
    },
    "CELERY_BROKER_URL": os.getenv("REDIS_URL")
    or (
        "redis://"
        + (os.getenv("REDIS_PORT_6379_TCP_ADDR") or "localhost")
        + ":"
        + (os.getenv("REDIS_PORT_6379_TCP_PORT") or "6379")
    ),
    "CELERY_RESULT_BACKEND": os.getenv("REDIS_URL")
    or (
        "redis://"
        + (os.getenv("REDIS_PORT_6379_TCP_ADDR") or "localhost")
        + ":"
        + (os.getenv("REDIS_PORT_6379_TCP_PORT") or "6379")
    ),
    "CELERY_TASK_ALWAYS_EAGER": os.getenv("CELERY_TASK_ALWAYS_EAGER", "false").lower()
    == "true",
    # Rate limiting configuration
    # Note: ADMIN and SUPERADMIN users are exempt from the default limits, but
    # never from the per-origin login limit
    "RATE_LIMITING": {
        "ENABLED": os.getenv("RATE_LIMITING_ENABLED", "true").lower() == "true",
        "STORAGE_URI": os.getenv("RATE_LIMIT_STORAGE_URI")
        or os.getenv("REDIS_URL")
        or "memory://",
        # DEFAULT_LIMITS: Applied automatically to ALL endpoints (global fallback)
        "DEFAULT_LIMITS": _split_limits(
            os.getenv("DEFAULT_LIMITS") or "1000 per hour,100 per minute"
        ),
        # LOGIN_LIMIT: attempts per origin address on POST /auth
        "LOGIN_LIMIT": os.getenv("LOGIN_LIMIT") or "5 per minute",
        "PASSWORD_RESET_LIMITS": _split_limits(
            os.getenv("PASSWORD_RESET_LIMITS") or "10 per hour,3 per minute"
        ),
        "USER_CREATION_LIMITS": _split_limits(
            os.getenv("USER_CREATION_LIMITS") or "100 per hour"
        ),
    },
}


# Check for email configuration
if not os.getenv("SPARKPOST_API_KEY"):
    logger.warning(
        "SPARKPOST_API_KEY is not set. Lockout and password reset notifications "
        "will be logged but not delivered."
    )
