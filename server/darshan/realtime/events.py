"""Change events carried by the feed and the outcomes of merging them."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional

from ..core.clock import utcnow

Row = Mapping[str, Any]
RowPredicate = Callable[[Row], bool]


class EventType(str, Enum):
    """Kind of store mutation behind a change event."""
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class MergeOutcome(str, Enum):
    """What a consumer did with one offered row."""
    APPLIED = "applied"
    UNCHANGED = "unchanged"
    REMOVED = "removed"
    STALE = "stale"
    REJECTED = "rejected"
    IGNORED = "ignored"

    @property
    def changed_state(self) -> bool:
        return self in (MergeOutcome.APPLIED, MergeOutcome.REMOVED)


def _frozen(row: Optional[Row]) -> Optional[Row]:
    if row is None:
        return None
    return MappingProxyType(dict(row))


@dataclass(frozen=True)
class ChangeEvent:
    """
    One committed mutation of a store table.

    ``new`` is the row after the change (INSERT/UPDATE) and ``old`` the row
    before it (UPDATE/DELETE, when known). Both are read-only copies.
    """

    table: str
    event_type: EventType
    new: Optional[Row] = None
    old: Optional[Row] = None
    commit_timestamp: datetime = field(default_factory=utcnow)

    def __post_init__(self):
        object.__setattr__(self, "new", _frozen(self.new))
        object.__setattr__(self, "old", _frozen(self.old))

    @property
    def record(self) -> Row:
        """The row a subscription filter is evaluated against."""
        if self.new is not None:
            return self.new
        return self.old or {}

    @classmethod
    def insert(cls, table: str, row: Row) -> "ChangeEvent":
        return cls(table=table, event_type=EventType.INSERT, new=row)

    @classmethod
    def update(cls, table: str, row: Row, old: Optional[Row] = None) -> "ChangeEvent":
        return cls(table=table, event_type=EventType.UPDATE, new=row, old=old)

    @classmethod
    def delete(cls, table: str, old: Row) -> "ChangeEvent":
        return cls(table=table, event_type=EventType.DELETE, old=old)


def column_equals(column: str, value: Any) -> RowPredicate:
    """Filter matching rows whose ``column`` equals ``value`` (compared as strings)."""
    expected = str(value)

    def predicate(row: Row) -> bool:
        return str(row.get(column)) == expected

    predicate.__name__ = f"{column}=eq.{expected}"
    return predicate
