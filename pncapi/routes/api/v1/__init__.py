from flask import Blueprint, jsonify

# GENERIC Error


def error(status=400, detail="Bad Request", **extra):
    return jsonify({"status": status, "detail": detail, **extra}), status


endpoints = Blueprint("endpoints", __name__)
import pncapi.routes.api.v1.admin  # noqa: E402, F401
import pncapi.routes.api.v1.users  # noqa: E402, F401
