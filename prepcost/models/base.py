"""
Base model class for the Prep Cost tables.

Every table gets:
- An integer primary key; store ids are these ids
- A uuid column, stable across database copies
- created_at / updated_at timestamps
- to_dict() producing the row dictionaries the stores turn into DTOs
- update_from_dict() used by item and recipe line updates
"""

import uuid as uuid_lib
from datetime import datetime
from typing import Any, Dict, Iterable

from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.orm import declarative_base, validates

from prepcost.utils.datetime_utils import utc_now

Base = declarative_base()

# Columns managed by the database, never written from caller data
PROTECTED_COLUMNS = frozenset({"id", "uuid", "created_at", "updated_at"})


class BaseModel(Base):
    """Abstract base for all Prep Cost tables."""

    __abstract__ = True

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Stored as string for SQLite compatibility
    uuid = Column(
        String(36), unique=True, nullable=False, default=lambda: str(uuid_lib.uuid4()), index=True
    )

    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    def to_dict(self, exclude: Iterable[str] = ()) -> Dict[str, Any]:
        """
        Column values of this row, timestamps as ISO strings.

        Args:
            exclude: Column names to leave out

        Returns:
            Dictionary keyed by column name
        """
        skipped = set(exclude)
        result = {}
        for column in self.__table__.columns:
            if column.name in skipped:
                continue
            value = getattr(self, column.name)
            if isinstance(value, datetime):
                value = value.isoformat()
            result[column.name] = value
        return result

    @validates("uuid")
    def _validate_uuid(self, _key: str, value: Any) -> str:
        """Normalize UUID values to strings for SQLite compatibility."""
        if value is None:
            return value
        return str(value)

    def update_from_dict(self, data: Dict[str, Any]) -> None:
        """
        Copy matching column values from ``data``.

        Keys that are not columns, and the protected columns, are ignored.
        A None value clears the column.
        """
        for column in self.__table__.columns:
            if column.name in data and column.name not in PROTECTED_COLUMNS:
                setattr(self, column.name, data[column.name])
        self.updated_at = utc_now()

    def __repr__(self) -> str:
        label = getattr(self, "name", None) or getattr(self, "line_type", None)
        if label is None:
            return f"{self.__class__.__name__}(id={self.id})"
        return f"{self.__class__.__name__}(id={self.id}, {label!r})"
