"""TokenMetadata repository.

Provides data access methods for TokenMetadata entities with worker coordination
via FOR UPDATE SKIP LOCKED.
"""

from typing import Any, Iterable

from sqlalchemy import func, not_, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tokenmeta.models.token_metadata import MetadataStatus, TokenIdentity, TokenMetadata
from tokenmeta.services.exceptions import RecordNotFoundError

# Fields a resolution attempt is allowed to write, keyed by their external names
PARTIAL_UPDATE_FIELDS = {
    "status": TokenMetadata.status,
    "metadata": TokenMetadata.metadata_json,
    "retry_count": TokenMetadata.retry_count,
    "update_id": TokenMetadata.update_id,
}


class TokenMetadataRepository:
    """Repository for TokenMetadata entities."""

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy async session for database operations
        """
        self.session = session

    def _identity_clause(self, identity: TokenIdentity):
        return (
            (TokenMetadata.network == identity.network)
            & (TokenMetadata.contract == identity.contract)
            & (TokenMetadata.token_id == identity.token_id)
        )

    async def add(self, token: TokenMetadata) -> TokenMetadata:
        """Persist new record to database.

        Args:
            token: TokenMetadata entity to persist

        Returns:
            Persisted record with generated ID
        """
        self.session.add(token)
        await self.session.flush()
        return token

    async def get_by_identity(self, identity: TokenIdentity) -> TokenMetadata | None:
        """Retrieve record by (network, contract, token_id).

        Returns:
            TokenMetadata if found, None otherwise
        """
        result = await self.session.execute(
            select(TokenMetadata).where(self._identity_clause(identity))
        )
        return result.scalar_one_or_none()

    async def save(self, token: TokenMetadata) -> TokenMetadata:
        """Insert record, or replace the stored one with the same identity.

        A new big-map value restarts resolution, so the retry counter is reset.

        Returns:
            The stored record (the existing row when it was replaced)
        """
        existing = await self.get_by_identity(token.identity)
        if existing is None:
            return await self.add(token)

        existing.status = token.status
        existing.metadata_json = token.metadata_json
        existing.link = token.link
        existing.retry_count = 0
        existing.update_id = token.update_id
        self.session.add(existing)
        await self.session.flush()
        return existing

    async def get_unresolved(
        self, limit: int = 10, exclude: Iterable[TokenIdentity] = ()
    ) -> list[TokenMetadata]:
        """Retrieve records awaiting resolution with row-level locking.

        Query explanation:
        - WHERE status = 'new': Records with a link still to resolve
        - AND NOT (identity in exclude): Records the caller has deferred
        - ORDER BY update_id ASC: Oldest changes first
        - LIMIT: Batch size for worker
        - FOR UPDATE SKIP LOCKED: Lock rows, skip already locked ones

        Args:
            limit: Maximum number of records to retrieve (default: 10)
            exclude: Identities to leave out of this batch

        Returns:
            List of records locked for this worker
        """
        query = select(TokenMetadata).where(
            TokenMetadata.status == MetadataStatus.NEW  # type: ignore[arg-type]
        )
        excluded = [self._identity_clause(identity) for identity in exclude]
        if excluded:
            query = query.where(not_(or_(*excluded)))

        result = await self.session.execute(
            query.order_by(TokenMetadata.update_id.asc())  # type: ignore[attr-defined]
            .limit(limit)
            .with_for_update(skip_locked=True)
        )
        return list(result.scalars().all())

    async def update_partial(self, identity: TokenIdentity, fields: dict[str, Any]) -> None:
        """Atomically write a subset of mutable fields.

        Args:
            identity: Record identity (network, contract, token_id)
            fields: Values keyed by status, metadata, retry_count, update_id

        Raises:
            ValueError: If fields is empty or names an unknown field
            RecordNotFoundError: If no record matches identity
        """
        if not fields:
            raise ValueError("fields cannot be empty")
        unknown = set(fields) - set(PARTIAL_UPDATE_FIELDS)
        if unknown:
            raise ValueError(f"Cannot update fields: {sorted(unknown)}")

        values = {PARTIAL_UPDATE_FIELDS[name]: value for name, value in fields.items()}
        result = await self.session.execute(
            update(TokenMetadata)
            .where(self._identity_clause(identity))
            .values(values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:  # type: ignore[attr-defined]
            raise RecordNotFoundError(
                f"No token metadata for {identity.network}/{identity.contract}/{identity.token_id}"
            )
        await self.session.flush()

    async def get_max_update_id(self) -> int:
        """Highest stored update_id (0 for an empty table)."""
        result = await self.session.execute(select(func.max(TokenMetadata.update_id)))
        return result.scalar() or 0

    async def count_by_status(self) -> dict[str, int]:
        """Number of records per status, e.g. {"new": 3, "applied": 10}."""
        result = await self.session.execute(
            select(TokenMetadata.status, func.count()).group_by(TokenMetadata.status)
        )
        counts = {status.value: 0 for status in MetadataStatus}
        for status, count in result.all():
            key = status.value if isinstance(status, MetadataStatus) else str(status)
            counts[key] = count
        return counts
