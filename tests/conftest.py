"""
Test configuration and fixtures for PhishNClick API tests
"""

import os
import sys
import tempfile

import pytest

# Add the project root to the Python path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

# Set environment variables for testing before importing the app
os.environ["ENVIRONMENT"] = "testing"
os.environ["TESTING"] = "true"

if not os.environ.get("JWT_SECRET_KEY"):
    os.environ["JWT_SECRET_KEY"] = "test-jwt-secret-key-for-ci"
if not os.environ.get("SECRET_KEY"):
    os.environ["SECRET_KEY"] = "test-secret-key-for-ci"

# The engine is created when the app module is imported, so the database has
# to be chosen here. CI may point DATABASE_URL at PostgreSQL instead.
_db_fd = None
_db_path = None
if not os.environ.get("DATABASE_URL"):
    _db_fd, _db_path = tempfile.mkstemp(suffix=".sqlite")
    os.environ["DATABASE_URL"] = f"sqlite:///{_db_path}"

from flask_jwt_extended import create_access_token  # noqa: E402

from pncapi import app as flask_app  # noqa: E402
from pncapi import db  # noqa: E402
from pncapi.models import User  # noqa: E402

# Strong password values for test fixtures
USER_TEST_PASSWORD = "UserPass123!xyz"
ADMIN_TEST_PASSWORD = "AdminPass123!xyz"
SUPERADMIN_TEST_PASSWORD = "SuperAdmin1!xyz"
NEW_STRONG_PASSWORD = "NewStrong123!xyz"
WRONG_PASSWORD = "WrongPass123!xyz"


def pytest_sessionfinish(session, exitstatus):
    if _db_fd is not None:
        os.close(_db_fd)
        os.unlink(_db_path)


def _make_app(rate_limiting):
    app = flask_app
    test_config = {
        "TESTING": True,
        "RATE_LIMITING": {
            "ENABLED": rate_limiting,
            "STORAGE_URI": "memory://",
            "DEFAULT_LIMITS": ["1000 per hour", "200 per minute"],
            "LOGIN_LIMIT": "5 per minute",
            "PASSWORD_RESET_LIMITS": ["100 per minute"],
            "USER_CREATION_LIMITS": ["100 per minute"],
        },
    }

    with app.app_context():
        original_config = {key: app.config.get(key) for key in test_config}
        app.config.update(test_config)

        from pncapi import limiter
        from pncapi.utils.rate_limiting import reconfigure_limiter_for_testing

        original_limiter_enabled = limiter.enabled
        reconfigure_limiter_for_testing()

        db.create_all()
        try:
            yield app
        finally:
            db.session.remove()
            db.drop_all()
            limiter.enabled = original_limiter_enabled
            app.config.update(original_config)


@pytest.fixture(scope="function")
def app():
    """Create application for testing"""
    yield from _make_app(rate_limiting=True)


@pytest.fixture(scope="function")
def app_no_rate_limiting():
    """Create application for testing without rate limiting"""
    yield from _make_app(rate_limiting=False)


@pytest.fixture
def client(app):
    """Create test client"""
    return app.test_client()


@pytest.fixture
def client_no_rate_limiting(app_no_rate_limiting):
    return app_no_rate_limiting.test_client()


def create_test_user(
    email, password=None, name="Test User", role="USER", auth_provider="local"
):
    user = User(
        email=email,
        password=password,
        name=name,
        role=role,
        auth_provider=auth_provider,
    )
    db.session.add(user)
    db.session.commit()
    db.session.refresh(user)
    return user


@pytest.fixture
def regular_user(app):
    """Create regular user for testing"""
    return create_test_user("user@test.com", USER_TEST_PASSWORD, "Regular User")


@pytest.fixture
def admin_user(app):
    """Create admin user for testing"""
    return create_test_user(
        "admin@test.com", ADMIN_TEST_PASSWORD, "Admin User", "ADMIN"
    )


@pytest.fixture
def superadmin_user(app):
    """Create superadmin user for testing"""
    return create_test_user(
        "superadmin@test.com",
        SUPERADMIN_TEST_PASSWORD,
        "Super Admin User",
        "SUPERADMIN",
    )


@pytest.fixture
def external_user(app):
    """User provisioned by an external identity provider (no local password)"""
    return create_test_user("oauth@test.com", name="OAuth User", auth_provider="google")


@pytest.fixture
def user_token(regular_user):
    return create_access_token(identity=str(regular_user.id))


@pytest.fixture
def admin_token(admin_user):
    return create_access_token(identity=str(admin_user.id))


@pytest.fixture
def superadmin_token(superadmin_user):
    return create_access_token(identity=str(superadmin_user.id))


@pytest.fixture
def auth_headers_user(user_token):
    """Get authorization headers for regular user"""
    return {"Authorization": f"Bearer {user_token}"}


@pytest.fixture
def auth_headers_admin(admin_token):
    """Get authorization headers for admin"""
    return {"Authorization": f"Bearer {admin_token}"}


@pytest.fixture
def auth_headers_superadmin(superadmin_token):
    """Get authorization headers for superadmin user"""
    return {"Authorization": f"Bearer {superadmin_token}"}
