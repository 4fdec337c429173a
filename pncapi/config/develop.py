SETTINGS = {
    "logging": {"level": "DEBUG"},
    "service": {"port": 3000},
    # Local development runs over plain http
    "JWT_COOKIE_SECURE": False,
    "CORS_ORIGINS": "http://localhost:3000,http://localhost:8080",
}
