"""Configuration for testing environment"""

import os

SETTINGS = {
    "SQLALCHEMY_DATABASE_URI": os.getenv("DATABASE_URL", "sqlite://"),
    # Testing flags
    "testing": True,
    "TESTING": True,
    "DEBUG": False,
    "JWT_COOKIE_SECURE": False,
    # Rate limiting configuration for testing
    "RATE_LIMITING": {
        "ENABLED": os.getenv("RATE_LIMITING_ENABLED", "true").lower() == "true",
        # Use in-memory storage for testing instead of Redis
        "STORAGE_URI": "memory://",
        "DEFAULT_LIMITS": ["1000 per hour", "200 per minute"],
        "LOGIN_LIMIT": "5 per minute",
        "PASSWORD_RESET_LIMITS": ["100 per minute"],
        "USER_CREATION_LIMITS": ["100 per minute"],
    },
    # Notifications run in-process so no broker is needed
    "CELERY_TASK_ALWAYS_EAGER": True,
    "CELERY_BROKER_URL": "memory://",
    "CELERY_RESULT_BACKEND": "cache+memory://",
}
