"""Rate limiting utilities for the PNC API"""

import logging
import time

from flask import current_app, jsonify, request
from flask_jwt_extended import get_current_user, verify_jwt_in_request
from flask_limiter.util import get_remote_address
from limits import parse
from limits.storage import storage_from_string
from limits.strategies import FixedWindowRateLimiter
import rollbar

from pncapi.config import SETTINGS
from pncapi.utils.permissions import is_admin_or_higher
from pncapi.utils.security_events import log_rate_limit_exceeded

logger = logging.getLogger(__name__)

LOGIN_NAMESPACE = "login"


class RateLimitConfig:
    """Helper class to centralize rate limit configuration."""

    @classmethod
    def _get_config(cls):
        """Get rate limiting config from Flask app config or fallback to SETTINGS"""
        try:
            # Try to get from Flask app config first (for testing)
            return current_app.config.get("RATE_LIMITING", {})
        except RuntimeError:
            # Fallback to SETTINGS if no app context
            return SETTINGS.get("RATE_LIMITING", {})

    @classmethod
    def is_enabled(cls):
        """Check if rate limiting is globally enabled."""
        return cls._get_config().get("ENABLED", True)

    @classmethod
    def get_storage_uri(cls):
        """Get the storage URI for the rate limiters."""
        return cls._get_config().get("STORAGE_URI") or "memory://"

    @classmethod
    def get_default_limits(cls):
        """Get the global default rate limits."""
        return cls._get_config().get("DEFAULT_LIMITS", ["1000 per hour"])

    @classmethod
    def get_login_limit(cls):
        """Get the per-origin attempt budget for the login endpoint."""
        return cls._get_config().get("LOGIN_LIMIT", "5 per minute")

    @classmethod
    def get_password_reset_limits(cls):
        """Get rate limits for password reset endpoints."""
        return cls._get_config().get("PASSWORD_RESET_LIMITS", ["3 per hour"])

    @classmethod
    def get_user_creation_limits(cls):
        """Get user creation rate limits."""
        return cls._get_config().get("USER_CREATION_LIMITS", ["10 per hour"])


class AttemptRateLimiter:
    """Fixed-window login attempt counter keyed by origin address.

    Counts live in a ``limits`` storage: ``memory://`` keeps them in this
    process, ``redis://`` shares them between instances. Losing them (for
    example on restart) only opens a fresh window.
    """

    def __init__(self, storage_uri="memory://", limit="5 per minute"):
        self.storage = storage_from_string(storage_uri)
        self.strategy = FixedWindowRateLimiter(self.storage)
        self.limit = parse(limit)

    def __repr__(self):
        return f"<AttemptRateLimiter {self.limit}>"

    def hit(self, origin):
        """Count one attempt. Returns False once the window budget is spent."""
        return self.strategy.hit(self.limit, LOGIN_NAMESPACE, origin)

    def remaining(self, origin):
        return self.strategy.get_window_stats(
            self.limit, LOGIN_NAMESPACE, origin
        ).remaining

    def retry_after(self, origin):
        """Seconds until the origin's current window closes."""
        stats = self.strategy.get_window_stats(self.limit, LOGIN_NAMESPACE, origin)
        return max(1, int(stats.reset_time - time.time()))

    def clear(self, origin):
        self.strategy.clear(self.limit, LOGIN_NAMESPACE, origin)

    def reset(self):
        """Drop every window."""
        try:
            self.storage.reset()
        except NotImplementedError:
            logger.warning("Login limiter storage does not support reset")


def is_rate_limiting_disabled():
    """Helper function for exempt_when parameter to check if rate limiting is
    disabled"""
    enabled = RateLimitConfig.is_enabled()
    # Also check if Flask-Limiter is globally disabled
    from pncapi import limiter

    if hasattr(limiter, "enabled"):
        enabled = enabled and limiter.enabled
    return not enabled


def get_user_id_or_ip():
    """
    Get user ID for authenticated requests, IP address for anonymous requests.
    Returns None if user should be exempt from rate limiting.
    """
    try:
        verify_jwt_in_request(optional=True)
        current_user = get_current_user()
        if current_user:
            # Exempt admin and superadmin users from the default limits
            if is_admin_or_higher(current_user):
                return None
            return f"user:{current_user.id}"
    except Exception as e:
        logger.debug(f"Failed to get current user for rate limiting: {e}")
    return f"ip:{get_remote_address()}"


def create_rate_limit_response(retry_after=None, detail=None):
    """
    Create a standardized rate limit exceeded response and send security event
    notification
    """
    ip_address = get_remote_address()
    endpoint = request.path or request.endpoint

    log_rate_limit_exceeded(limit_type=endpoint or "unknown_endpoint")

    try:
        rollbar.report_message(
            message=f"Rate limit applied to IP {ip_address} on endpoint {endpoint}",
            level="warning",
            extra_data={
                "ip_address": ip_address,
                "endpoint": endpoint,
                "user_agent": request.headers.get("User-Agent"),
                "method": request.method,
                "retry_after": retry_after,
            },
        )
    except Exception as e:
        # Don't let Rollbar errors prevent the rate limit response
        logger.error(f"Failed to send rate limit notification to Rollbar: {e}")

    response_data = {
        "status": 429,
        "detail": detail or "Rate limit exceeded. Please try again later.",
        "error_code": "RATE_LIMIT_EXCEEDED",
    }

    if retry_after:
        response_data["retry_after"] = retry_after

    response = jsonify(response_data)
    response.status_code = 429

    if retry_after:
        response.headers["Retry-After"] = str(retry_after)

    return response


def rate_limit_error_handler(error):
    """Custom error handler for rate limit exceeded"""
    retry_after = getattr(error, "retry_after", None)
    logger.info(f"Rate limit exceeded: {error}")
    return create_rate_limit_response(retry_after=retry_after)


def reconfigure_limiter_for_testing():
    """
    Reconfigure the Flask-Limiter instance and the login limiter for testing.
    This should be called after test configuration is applied.
    """
    try:
        from pncapi import attempt_limiter, limiter

        test_config = current_app.config.get("RATE_LIMITING", {})

        limiter.enabled = test_config.get("ENABLED", True)

        storage_uri = test_config.get("STORAGE_URI", "")
        if "memory://" in storage_uri:
            try:
                limiter.reset()
            except Exception as e:
                logger.debug(f"Rate limiter cleanup failed: {e}")
        attempt_limiter.reset()

        return True
    except Exception as e:
        logger.warning(f"Failed to reconfigure limiter for testing: {e}")
        return False
