import os

if os.getenv("ENVIRONMENT") == "prod":
    SETTINGS = {
        "logging": {"level": "INFO"},
        "JWT_COOKIE_SECURE": True,
        "CELERY_BROKER_URL": "redis://"
        + os.getenv("REDIS_PORT_6379_TCP_ADDR", "localhost")
        + ":"
        + os.getenv("REDIS_PORT_6379_TCP_PORT", "6379"),
        "CELERY_RESULT_BACKEND": "redis://"
        + os.getenv("REDIS_PORT_6379_TCP_ADDR", "localhost")
        + ":"
        + os.getenv("REDIS_PORT_6379_TCP_PORT", "6379"),
        # Several API instances share one login window per origin
        "RATE_LIMITING": {
            "STORAGE_URI": os.getenv("RATE_LIMIT_STORAGE_URI")
            or os.getenv("REDIS_URL"),
        },
    }
else:
    SETTINGS = {}
