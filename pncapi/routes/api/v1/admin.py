"""Admin routes for account lockout management."""

import logging

from flask import current_app, jsonify, request
from flask_jwt_extended import current_user, jwt_required

from pncapi.errors import NotAllowed, TransientStoreFailure, UserNotFound
from pncapi.routes.api.v1 import endpoints, error
from pncapi.utils.permissions import is_admin_or_higher

logger = logging.getLogger()


def _admin_service():
    return current_app.extensions["lockout"]["admin"]


@endpoints.route("/user/<identifier>/unlock", strict_slashes=False, methods=["POST"])
@jwt_required()
def unlock_user(identifier):
    """
    Clear the lockout on a user account.

    **Access**: `ADMIN` or `SUPERADMIN`. An `ADMIN` cannot unlock a `SUPERADMIN`.
    **Path**: `identifier` is the user id or email address.

    Resets the consecutive failure counter, the lockout stage and expiry and
    the permanent lock flag. Calling it on an account that is not locked is
    allowed and changes nothing but the unlock audit fields.

    **Success Response Schema**:
    ```json
    {
      "data": {
        "user": {"id": "...", "email": "player@example.com", "lockout": {...}},
        "unlocked_by": "admin@example.com",
        "unlocked_at": "2026-03-01T10:15:30"
      }
    }
    ```

    **Error Responses**:
    - `401 Unauthorized`: JWT token required
    - `403 Forbidden`: caller is not allowed to manage this user
    - `404 Not Found`: user does not exist
    - `503 Service Unavailable`: the account could not be updated
    """
    logger.info(f"[ROUTER]: Unlocking user {identifier}")
    if not is_admin_or_higher(current_user):
        return error(status=403, detail="Forbidden")
    try:
        user, unlocked_by, unlocked_at = _admin_service().unlock_account(
            identifier, current_user
        )
    except UserNotFound as e:
        logger.error("[ROUTER]: " + e.message)
        return error(status=404, detail=e.message)
    except NotAllowed as e:
        logger.error("[ROUTER]: " + e.message)
        return error(status=403, detail="Forbidden")
    except TransientStoreFailure as e:
        return error(status=503, detail=e.message)
    return jsonify(
        data={
            "user": user.serialize(include=["lockout"]),
            "unlocked_by": unlocked_by,
            "unlocked_at": unlocked_at.isoformat(),
        }
    ), 200


@endpoints.route(
    "/user/<identifier>/require-password-reset",
    strict_slashes=False,
    methods=["POST"],
)
@jwt_required()
def require_password_reset(identifier):
    """
    Force a password reset on a user account.

    **Access**: `ADMIN` or `SUPERADMIN`. An `ADMIN` cannot act on a `SUPERADMIN`.

    **Request Schema** (optional body):
    ```json
    {"send_notification": true}
    ```

    A fresh single-use reset token replaces any earlier one and expires after
    one hour. The token itself is only ever sent to the user; the response
    never contains it.

    **Success Response Schema**:
    ```json
    {
      "data": {
        "user": {"id": "...", "password_reset_required": true},
        "token_expires_at": "2026-03-01T11:15:30",
        "notification_sent": true
      }
    }
    ```
    """
    logger.info(f"[ROUTER]: Requiring password reset for {identifier}")
    if not is_admin_or_higher(current_user):
        return error(status=403, detail="Forbidden")
    body = request.get_json(silent=True) or {}
    send_notification = body.get("send_notification", True)
    if not isinstance(send_notification, bool):
        return error(status=400, detail="send_notification must be a boolean")
    try:
        user, expires_at, notification_sent = _admin_service().require_password_reset(
            identifier, current_user, send_notification=send_notification
        )
    except UserNotFound as e:
        logger.error("[ROUTER]: " + e.message)
        return error(status=404, detail=e.message)
    except NotAllowed as e:
        logger.error("[ROUTER]: " + e.message)
        return error(status=403, detail="Forbidden")
    except TransientStoreFailure as e:
        return error(status=503, detail=e.message)
    return jsonify(
        data={
            "user": user.serialize(),
            "token_expires_at": expires_at.isoformat(),
            "notification_sent": notification_sent,
        }
    ), 200


@endpoints.route("/user/<identifier>/lockout", strict_slashes=False, methods=["GET"])
@jwt_required()
def get_lockout_status(identifier):
    """
    Current lockout state of a user account.

    **Access**: `ADMIN` or `SUPERADMIN`

    The `lockout` section adds `active` and `remaining_seconds` to the stored
    counters. An expired temporary lock shows as inactive even before the next
    login attempt clears it.
    """
    logger.info(f"[ROUTER]: Getting lockout status for {identifier}")
    if not is_admin_or_higher(current_user):
        return error(status=403, detail="Forbidden")
    try:
        status = _admin_service().get_lockout_status(identifier, current_user)
    except UserNotFound as e:
        logger.error("[ROUTER]: " + e.message)
        return error(status=404, detail=e.message)
    except NotAllowed:
        return error(status=403, detail="Forbidden")
    return jsonify(data=status), 200
