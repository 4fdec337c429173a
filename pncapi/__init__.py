"""The PhishNClick API MODULE"""

from datetime import UTC, datetime
import logging
import os
import sys

from flask import Flask, got_request_exception, jsonify, request
from flask_compress import Compress
from flask_cors import CORS
from flask_jwt_extended import JWTManager, set_access_cookies, unset_jwt_cookies
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
import rollbar
import rollbar.contrib.flask
from werkzeug.middleware.proxy_fix import ProxyFix

from pncapi.celery import make_celery
from pncapi.config import SETTINGS
from pncapi.utils.rate_limiting import (
    AttemptRateLimiter,
    RateLimitConfig,
    create_rate_limit_response,
    get_user_id_or_ip,
    rate_limit_error_handler,
)

# Flask App
app = Flask(__name__)

# Respect trusted proxy configuration for accurate client IP detection. The
# login limiter keys on the client address, so this must match the deployment.
trusted_proxy_count = SETTINGS.get("TRUSTED_PROXY_COUNT", 0)
if trusted_proxy_count:
    app.wsgi_app = ProxyFix(  # type: ignore[assignment]
        app.wsgi_app,
        x_for=trusted_proxy_count,
        x_proto=trusted_proxy_count,
        x_host=trusted_proxy_count,
        x_port=trusted_proxy_count,
        x_prefix=trusted_proxy_count,
    )

# Configure CORS with specific origins; credentials are needed for the cookie
cors_origins = os.getenv(
    "CORS_ORIGINS", "http://localhost:3000,http://localhost:5173"
).split(",")
CORS(
    app,
    origins=cors_origins,
    supports_credentials=True,
    allow_headers=["Content-Type", "Authorization", "X-CSRF-TOKEN"],
    methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
)

app.config["COMPRESS_MIMETYPES"] = ["application/json", "text/plain"]
app.config["COMPRESS_LEVEL"] = 6
app.config["COMPRESS_MIN_SIZE"] = 500
Compress(app)

logger = logging.getLogger()
log_level = SETTINGS.get("logging", {}).get("level", "INFO")
logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

logging.getLogger("urllib3.connectionpool").setLevel(logging.WARNING)

# Ensure all unhandled exceptions are logged, and reported to rollbar
formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
handler = logging.StreamHandler(stream=sys.stdout)
handler.setLevel(logging.INFO)
handler.setFormatter(formatter)
logger.addHandler(handler)

rollbar.init(os.getenv("ROLLBAR_SERVER_TOKEN"), os.getenv("ENVIRONMENT"))
with app.app_context():
    got_request_exception.connect(rollbar.contrib.flask.report_exception, app)


@app.after_request
def set_security_headers(response):
    """Add security headers to all responses."""
    response.headers["Content-Security-Policy"] = (
        "default-src 'self'; frame-ancestors 'none'"
    )
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    # Login and admin responses carry session or lockout data
    response.headers["Cache-Control"] = "no-store"

    if os.getenv("ENVIRONMENT") == "prod" or request.is_secure:
        response.headers["Strict-Transport-Security"] = (
            "max-age=31536000; includeSubDomains; preload"
        )
    return response


app.config["SQLALCHEMY_DATABASE_URI"] = SETTINGS.get("SQLALCHEMY_DATABASE_URI")
if app.config["SQLALCHEMY_DATABASE_URI"].startswith("postgresql"):
    app.config["SQLALCHEMY_ENGINE_OPTIONS"] = {
        "pool_recycle": 3600,
        "pool_pre_ping": True,
        "pool_size": 10,
        "max_overflow": 20,
        "pool_timeout": 30,
    }

app.config["TESTING"] = SETTINGS.get("TESTING", False)
app.config["LOCKOUT"] = SETTINGS.get("LOCKOUT", {})
app.config["RATE_LIMITING"] = SETTINGS.get("RATE_LIMITING", {})

jwt_secret = (
    SETTINGS.get("JWT_SECRET_KEY")
    or SETTINGS.get("SECRET_KEY")
    or os.getenv("JWT_SECRET_KEY")
    or os.getenv("SECRET_KEY")
)
app.config["SECRET_KEY"] = SETTINGS.get("SECRET_KEY") or jwt_secret
app.config["JWT_SECRET_KEY"] = jwt_secret
app.config["JWT_ACCESS_TOKEN_EXPIRES"] = SETTINGS.get("JWT_ACCESS_TOKEN_EXPIRES")
app.config["JWT_TOKEN_LOCATION"] = SETTINGS.get("JWT_TOKEN_LOCATION")
app.config["JWT_COOKIE_SECURE"] = SETTINGS.get("JWT_COOKIE_SECURE", True)
app.config["JWT_COOKIE_SAMESITE"] = SETTINGS.get("JWT_COOKIE_SAMESITE", "Strict")
app.config["JWT_COOKIE_CSRF_PROTECT"] = SETTINGS.get("JWT_COOKIE_CSRF_PROTECT", True)
app.config["broker_url"] = SETTINGS.get("CELERY_BROKER_URL")
app.config["result_backend"] = SETTINGS.get("CELERY_RESULT_BACKEND")
app.config["task_always_eager"] = SETTINGS.get("CELERY_TASK_ALWAYS_EAGER", False)

app.config["MAX_CONTENT_LENGTH"] = 1 * 1024 * 1024

# Database
db = SQLAlchemy(app)
migrate = Migrate(app, db)

# Celery
celery = make_celery(app)

# Rate Limiting (must be after db and celery)
limiter = Limiter(
    app=app,
    key_func=get_user_id_or_ip,  # Default key function that exempts admin users
    storage_uri=RateLimitConfig.get_storage_uri(),
    default_limits=RateLimitConfig.get_default_limits(),
    headers_enabled=True,
    enabled=True,
    on_breach=rate_limit_error_handler,
)

# Per-origin budget for POST /auth, separate from the default limits
attempt_limiter = AttemptRateLimiter(
    storage_uri=RateLimitConfig.get_storage_uri(),
    limit=RateLimitConfig.get_login_limit(),
)

jwt = JWTManager(app)

# DB has to be ready!
# Import tasks to register them with Celery
from pncapi import tasks  # noqa: E402,F401
from pncapi.routes.api.v1 import endpoints, error  # noqa: E402

# Blueprint Flask Routing
app.register_blueprint(endpoints, url_prefix="/api/v1")

from pncapi.errors import (  # noqa: E402
    AccountLockedError,
    InvalidCredential,
    RateLimited,
    TransientStoreFailure,
)
from pncapi.models import User  # noqa: E402
from pncapi.services import AdminService, LoginService  # noqa: E402
from pncapi.validators import validate_login  # noqa: E402

app.extensions["lockout"] = {
    "login": LoginService(rate_limiter=attempt_limiter),
    "admin": AdminService(),
}

total_routes = len(list(app.url_map.iter_rules()))
logger.info(f"Registered Flask app with {total_routes} total routes")


@app.route("/api-health", methods=["GET"])
def health_check():
    """Simple health check endpoint"""
    db_status = "unknown"
    try:
        from sqlalchemy import text

        result = db.session.execute(text("SELECT 1 as health_check")).fetchone()
        db_status = "healthy" if result and result[0] == 1 else "unhealthy"
    except Exception as e:
        logger.warning(f"Database health check failed: {str(e)}")
        db_status = "unhealthy"

    return jsonify(
        {
            "status": "ok",
            "timestamp": datetime.now(UTC).isoformat(),
            "database": db_status,
            "version": "1.0",
        }
    ), 200


@app.route("/ping", methods=["GET"])
def ping():
    """Simple ping endpoint without database dependency"""
    return jsonify(
        {"status": "ok", "timestamp": datetime.now(UTC).isoformat(), "message": "pong"}
    ), 200


@app.route("/auth", methods=["POST"])
@limiter.exempt
@validate_login
def create_token():
    """
    Log in with email and password.

    The attempt runs through the per-origin attempt limiter and the escalating
    lockout (3 failures: 30 minutes, 6: 3 hours, 9: 24 hours, 12: until an
    administrator unlocks the account).

    **Responses**:
    - `200 OK`: `{"data": {"user_id", "email", "access_token", "expires_in"}}`
      and the access token as an http-only cookie
    - `400 Bad Request`: missing email or password
    - `401 Unauthorized`: invalid email or password
    - `423 Locked`: account locked, with `permanent`, and for temporary locks
      `locked_until` and `remaining_seconds`
    - `429 Too Many Requests`: more than 5 attempts per minute from the origin
    - `503 Service Unavailable`: account store unavailable
    """
    logger.info("[JWT]: Attempting auth...")
    body = request.get_json()
    login_service = app.extensions["lockout"]["login"]

    try:
        result = login_service.login(
            body["email"], body["password"], origin=get_remote_address()
        )
    except RateLimited as e:
        return create_rate_limit_response(retry_after=e.retry_after, detail=e.message)
    except AccountLockedError as e:
        extra = {k: v for k, v in e.serialize.items() if k != "message"}
        return error(status=423, detail=e.message, **extra)
    except InvalidCredential as e:
        return error(status=401, detail=e.message, error_code="invalid_credentials")
    except TransientStoreFailure as e:
        return error(status=503, detail=e.message)

    response = jsonify(data=result.serialize())
    set_access_cookies(response, result.access_token)
    return response, 200


@app.route("/auth/logout", methods=["POST"])
@limiter.exempt
def logout():
    logger.info("[JWT]: User logout...")
    response = jsonify({"msg": "Successfully logged out"})
    unset_jwt_cookies(response)
    return response, 200


@jwt.user_lookup_loader
def user_lookup_callback(_jwt_header, jwt_data):
    identity = jwt_data["sub"]
    return User.query.filter_by(id=identity).one_or_none()


@app.errorhandler(403)
def forbidden(e):
    return error(status=403, detail="Forbidden")


@app.errorhandler(404)
def page_not_found(e):
    return error(status=404, detail="Not Found")


@app.errorhandler(405)
def method_not_allowed(e):
    return error(status=405, detail="Method Not Allowed")


@app.errorhandler(413)
def request_entity_too_large(e):
    return error(status=413, detail="Request too large")


@app.errorhandler(500)
def internal_server_error(e):
    return error(status=500, detail="Internal Server Error")
