"""Conversion of ORM rows into plain records for the feed and the trackers."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict
from uuid import UUID

from ..core.clock import ensure_utc


class RecordMixin:
    """Adds ``to_record()``: a detached dict copy of the row's columns."""

    def to_record(self) -> Dict[str, Any]:
        record = {}
        for column in self.__table__.columns:
            value = getattr(self, column.key)
            if isinstance(value, UUID):
                value = str(value)
            elif isinstance(value, datetime):
                value = ensure_utc(value)
            elif isinstance(value, Enum):
                value = value.value
            elif isinstance(value, Decimal):
                value = float(value)
            record[column.key] = value
        return record
