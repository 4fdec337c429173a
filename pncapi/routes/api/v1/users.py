"""User routes for the PhishNClick API."""

import logging

from flask import jsonify, request
from flask_jwt_extended import current_user, jwt_required

from pncapi import limiter
from pncapi.errors import (
    InvalidResetToken,
    PasswordValidationError,
    TransientStoreFailure,
    UserDuplicated,
)
from pncapi.routes.api.v1 import endpoints, error
from pncapi.services import UserService
from pncapi.utils.rate_limiting import RateLimitConfig, is_rate_limiting_disabled
from pncapi.validators import validate_password_reset, validate_user_creation

logger = logging.getLogger()


@endpoints.route("/user", strict_slashes=False, methods=["POST"])
@limiter.limit(
    lambda: ";".join(RateLimitConfig.get_user_creation_limits()) or "10 per hour",
    exempt_when=is_rate_limiting_disabled,
)
@validate_user_creation
def create_user():
    """
    Register a new player account.

    **Access**: Public endpoint. New accounts always get the `USER` role.

    **Request Schema**:
    ```json
    {
      "email": "player@example.com",
      "password": "Correct-Horse-42",
      "name": "Jane Player"
    }
    ```

    **Password Requirements**: 12 to 128 characters with at least one
    uppercase letter, one lowercase letter, one digit and one special character.

    **Error Responses**:
    - `400 Bad Request`: missing field, invalid email or duplicate account
    - `422 Unprocessable Entity`: password too weak
    - `429 Too Many Requests`: Rate limit exceeded
    """
    logger.info("[ROUTER]: Creating user")
    body = request.get_json()
    body["role"] = "USER"
    try:
        user = UserService.create_user(body)
    except UserDuplicated as e:
        logger.error("[ROUTER]: " + e.message)
        return error(status=400, detail=e.message)
    except PasswordValidationError as e:
        logger.error("[ROUTER]: " + e.message)
        return error(status=422, detail=e.message)
    except TransientStoreFailure as e:
        return error(status=503, detail=e.message)
    return jsonify(data=user.serialize()), 200


@endpoints.route("/user/me", strict_slashes=False, methods=["GET"])
@jwt_required()
def get_me():
    """
    Get current authenticated user's profile information.

    **Authentication**: JWT in the `Authorization` header or the session cookie
    """
    logger.info("[ROUTER]: Getting my user")
    user = current_user
    return jsonify(data=user.serialize()), 200


@endpoints.route("/user/reset-password", strict_slashes=False, methods=["POST"])
@limiter.limit(
    lambda: ";".join(RateLimitConfig.get_password_reset_limits()) or "3 per hour",
    exempt_when=is_rate_limiting_disabled,
)
@validate_password_reset
def reset_password_with_token():
    """
    Reset password using the token from an admin-forced reset notification.

    **Access**: Public endpoint - no authentication required

    **Request Body Schema**:
    ```json
    {
      "token": "token-from-notification",
      "password": "New-Secure-Password-1"
    }
    ```

    Tokens are single use and expire one hour after the administrator issued
    them. A successful reset also clears any lockout on the account.

    **Error Responses**:
    - `400 Bad Request`: Missing token or password
    - `404 Not Found`: Invalid or expired token
    - `422 Unprocessable Entity`: Password doesn't meet requirements
    - `429 Too Many Requests`: Rate limit exceeded
    """
    logger.info("[ROUTER]: Reset password with token")
    body = request.get_json()
    try:
        UserService.reset_password_with_token(body["token"], body["password"])
    except InvalidResetToken as e:
        logger.error("[ROUTER]: " + e.message)
        return error(status=404, detail=e.message)
    except TransientStoreFailure as e:
        return error(status=503, detail=e.message)
    return jsonify(data={"message": "Password reset successful"}), 200
