"""Helpers shared by the services."""

from uuid import UUID

from ..core.exceptions import ValidationError


def parse_uuid(value: str, path: str) -> UUID:
    """
    Parse an ID received from a client.

    Raises:
        ValidationError: If ``value`` is not a UUID, reported against ``path``
    """
    try:
        return UUID(str(value))
    except ValueError:
        raise ValidationError.for_field(path, "Must be a valid UUID")
