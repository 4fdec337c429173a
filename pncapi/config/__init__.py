"""PNCAPI CONFIG MODULE

``SETTINGS`` is ``base.SETTINGS`` with the overrides for the current
``ENVIRONMENT`` merged in. Nested sections such as ``LOCKOUT`` and
``RATE_LIMITING`` are merged key by key, so an environment only lists what it
changes.
"""

import collections.abc
import os

from pncapi.config import base, develop, prod, staging, test

ENVIRONMENT_OVERRIDES = {
    "dev": develop.SETTINGS,
    "develop": develop.SETTINGS,
    "staging": staging.SETTINGS,
    "prod": prod.SETTINGS,
    "test": test.SETTINGS,
    "testing": test.SETTINGS,
}


def merge_settings(target, overrides):
    for key, value in overrides.items():
        if isinstance(value, collections.abc.Mapping):
            target[key] = merge_settings(dict(target.get(key) or {}), value)
        else:
            target[key] = value
    return target


SETTINGS = merge_settings(
    base.SETTINGS, ENVIRONMENT_OVERRIDES.get(os.getenv("ENVIRONMENT"), {})
)
