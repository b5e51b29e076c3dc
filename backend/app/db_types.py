"""Column type for billing record identifiers."""

from __future__ import annotations

import uuid
from typing import Any, Optional

from sqlalchemy.dialects import postgresql
from sqlalchemy.types import CHAR, TypeDecorator


class RecordId(TypeDecorator):
    """UUID column that always hands back a lowercase dashed string.

    PostgreSQL stores a native ``uuid``; other backends store ``CHAR(36)``.
    Services compare identifiers from request bodies against loaded rows as
    plain strings, so both sides use the same text form.
    """

    impl = CHAR
    cache_ok = True

    def load_dialect_impl(self, dialect):  # type: ignore[override]
        if dialect.name == "postgresql":
            return dialect.type_descriptor(postgresql.UUID(as_uuid=False))
        return dialect.type_descriptor(CHAR(36))

    def process_bind_param(self, value: Any, dialect) -> Optional[str]:  # type: ignore[override]
        if value is None:
            return None
        return str(value if isinstance(value, uuid.UUID) else uuid.UUID(str(value)))

    def process_result_value(self, value: Any, dialect) -> Optional[str]:  # type: ignore[override]
        return None if value is None else str(value).lower()


def new_record_id() -> str:
    return str(uuid.uuid4())
