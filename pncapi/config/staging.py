import os

SETTINGS = {
    "logging": {"level": "DEBUG"},
    "service": {"port": 3000},
    "RATE_LIMITING": {
        "STORAGE_URI": os.getenv("RATE_LIMIT_STORAGE_URI") or os.getenv("REDIS_URL"),
    },
}
