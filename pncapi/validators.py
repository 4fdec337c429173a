"""PNCAPI VALIDATORS"""

from functools import wraps
import re
import unicodedata

import bleach
from flask import request

from pncapi.routes.api.v1 import error

EMAIL_REGEX = re.compile(r"^[A-Za-z0-9\.\+_-]+@[A-Za-z0-9\._-]+\.[a-zA-Z]*$")
SPECIAL_CHARACTERS = "!@#$%^&*()-_=+[]{};:'\",.<>/?\\|`~"
PASSWORD_MIN_LENGTH = 12
PASSWORD_MAX_LENGTH = 128


def sanitize_text(text, max_length=None):
    """
    Strip markup from free text while preserving international characters
    """
    if not text:
        return text

    text = bleach.clean(str(text).strip(), tags=[], strip=True)

    dangerous_patterns = [
        r"javascript:",
        r"vbscript:",
        r"on\w+\s*=",  # event handlers like onclick=
        r"data:text/html",
    ]
    for pattern in dangerous_patterns:
        if re.search(pattern, text, re.IGNORECASE | re.DOTALL):
            raise ValueError("Invalid content detected")

    text = unicodedata.normalize("NFC", text)

    if max_length and len(text) > max_length:
        text = text[:max_length].strip()

    return text


def validate_name(name):
    if not name:
        raise ValueError("Name is required")

    clean_name = sanitize_text(name, max_length=120)
    if len(clean_name.strip()) < 1:
        raise ValueError("Name cannot be empty")

    for char in clean_name:
        category = unicodedata.category(char)
        if not (
            category.startswith("L")  # Letters
            or category.startswith("M")  # Marks (accents, etc.)
            or category == "Zs"
            or char in " '-."
        ):
            raise ValueError("Name contains invalid characters")

    return clean_name


def validate_email(email):
    """
    Validate email addresses
    """
    if not email:
        raise ValueError("Email is required")

    email = email.strip().lower()

    if len(email) > 254:  # RFC 5321 limit
        raise ValueError("Email address too long")

    if not EMAIL_REGEX.match(email):
        raise ValueError("Invalid email format")

    return email


def validate_password(password):
    """
    Enforce password strength for locally stored credentials
    """
    if not password:
        raise ValueError("Password is required")
    if len(password) < PASSWORD_MIN_LENGTH:
        raise ValueError(
            f"Password must be at least {PASSWORD_MIN_LENGTH} characters long"
        )
    if len(password) > PASSWORD_MAX_LENGTH:
        raise ValueError(
            f"Password must not exceed {PASSWORD_MAX_LENGTH} characters"
        )
    if not any(c.isupper() for c in password):
        raise ValueError("Password must contain at least one uppercase letter")
    if not any(c.islower() for c in password):
        raise ValueError("Password must contain at least one lowercase letter")
    if not any(c.isdigit() for c in password):
        raise ValueError("Password must contain at least one digit")
    if not any(c in SPECIAL_CHARACTERS for c in password):
        raise ValueError("Password must contain at least one special character")
    return password


def validate_login(func):
    """Login payload validation. Credentials are not checked for strength."""

    @wraps(func)
    def wrapper(*args, **kwargs):
        json_data = request.get_json(silent=True)
        if not isinstance(json_data, dict):
            return error(status=400, detail="Email and password are required")

        email = json_data.get("email")
        password = json_data.get("password")
        if not isinstance(email, str) or not isinstance(password, str):
            return error(status=400, detail="Email and password are required")
        if not email.strip() or not password:
            return error(status=400, detail="Email and password are required")
        if len(password) > PASSWORD_MAX_LENGTH:
            return error(status=400, detail="Password too long")

        return func(*args, **kwargs)

    return wrapper


def validate_user_creation(func):
    """User registration validation"""

    @wraps(func)
    def wrapper(*args, **kwargs):
        json_data = request.get_json(silent=True)
        if not isinstance(json_data, dict):
            return error(status=400, detail="Request body must be a JSON object")

        try:
            if "email" not in json_data:
                return error(status=400, detail="Email is required")
            if "name" not in json_data:
                return error(status=400, detail="Name is required")
            if "password" not in json_data:
                return error(status=400, detail="Password is required")

            json_data["email"] = validate_email(json_data["email"])
            json_data["name"] = validate_name(json_data["name"])
        except ValueError as e:
            return error(status=400, detail=str(e))

        try:
            validate_password(json_data["password"])
        except ValueError as e:
            return error(status=422, detail=str(e))

        return func(*args, **kwargs)

    return wrapper


def validate_password_reset(func):
    """Token-based password reset validation"""

    @wraps(func)
    def wrapper(*args, **kwargs):
        json_data = request.get_json(silent=True)
        if not isinstance(json_data, dict):
            return error(status=400, detail="Token and password are required")

        if not json_data.get("token") or not json_data.get("password"):
            return error(status=400, detail="Token and password are required")

        try:
            validate_password(json_data["password"])
        except ValueError as e:
            return error(status=422, detail=str(e))

        return func(*args, **kwargs)

    return wrapper
