"""Temple lookups shared by the other services."""

import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import NotFoundError
from ..models.temple import Temple
from .common import parse_uuid

logger = logging.getLogger(__name__)


class TempleService:
    """Service for temple-related operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_temple(self, temple_id: str, path: str = "temple_id") -> Temple:
        """
        Get temple by ID or raise.

        Args:
            temple_id: Temple ID as received from the client
            path: Request field the ID came from, for validation errors

        Returns:
            Temple entity

        Raises:
            ValidationError: If the ID is not a UUID
            NotFoundError: If the temple does not exist
        """
        temple_uuid = parse_uuid(temple_id, path)
        temple = await self.db.get(Temple, temple_uuid)
        if not temple:
            raise NotFoundError("temple", str(temple_id))
        return temple

    async def get_temple_with_lock(self, temple_id: UUID) -> Temple:
        """
        Get temple by ID holding a transaction-scoped lock on its queue.

        Queue writes for one temple are serialized on this lock, which is
        released when the transaction ends.
        """
        # SQLite (tests) serializes writers on its own
        if self.db.bind and "postgresql" in str(self.db.bind.dialect.name):
            await self.db.execute(
                text("SELECT pg_advisory_xact_lock(hashtext(:temple_id))"),
                {"temple_id": str(temple_id)}
            )

        temple = await self.db.get(Temple, temple_id)
        if not temple:
            raise NotFoundError("temple", str(temple_id))

        logger.debug("Acquired queue lock for temple", extra={"temple_id": str(temple_id)})
        return temple

    async def find_by_slug(self, slug: str) -> Optional[Temple]:
        result = await self.db.execute(select(Temple).where(Temple.slug == slug.lower()))
        return result.scalar_one_or_none()

    async def list_active(self) -> List[Temple]:
        result = await self.db.execute(
            select(Temple).where(Temple.is_active.is_(True)).order_by(Temple.name)
        )
        return list(result.scalars().all())
