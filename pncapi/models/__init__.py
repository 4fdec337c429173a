"""PNCAPI MODELS MODULE"""

import uuid

from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.types import CHAR, TypeDecorator


class GUID(TypeDecorator):
    """Account ids: native UUID on PostgreSQL, CHAR(36) everywhere else.

    Accepts ``uuid.UUID`` or its string form on the way in and always hands
    back ``uuid.UUID``, so ids compare the same on every backend.
    """

    impl = CHAR
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(UUID(as_uuid=True))
        return dialect.type_descriptor(CHAR(36))

    @staticmethod
    def _coerce(value):
        if value is None or isinstance(value, uuid.UUID):
            return value
        return uuid.UUID(str(value))

    def process_bind_param(self, value, dialect):
        value = self._coerce(value)
        if value is None or dialect.name == "postgresql":
            return value
        return str(value)

    def process_result_value(self, value, dialect):
        return self._coerce(value)


from pncapi.models.user import User  # noqa: E402

__all__ = ["GUID", "User"]
