"""TokenMetadata entity - resolved token metadata with resolution status tracking."""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import NamedTuple
from uuid import UUID, uuid4

from sqlalchemy import BigInteger, Column, DateTime, Numeric, Text, UniqueConstraint
from sqlalchemy.types import TypeDecorator
from sqlmodel import Field, SQLModel


class MetadataStatus(str, Enum):
    """Metadata resolution status."""

    NEW = "new"
    APPLIED = "applied"
    FAILED = "failed"


class InvalidStateTransition(Exception):
    """Raised when attempting an invalid metadata state transition."""

    pass


class TokenIdentity(NamedTuple):
    """Immutable identity of a token metadata record."""

    network: str
    contract: str
    token_id: int


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Uint64(TypeDecorator):
    """Unsigned 64-bit integer stored as NUMERIC(20, 0).

    BIGINT is signed and cannot hold token ids above 2**63 - 1.
    """

    impl = Numeric(20, 0)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return Decimal(int(value))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return int(value)


class TokenMetadata(SQLModel, table=True):
    """TokenMetadata is the reconciled metadata document of one token."""

    __tablename__ = "token_metadata"  # type: ignore[assignment]
    __table_args__ = (
        UniqueConstraint("network", "contract", "token_id", name="uq_token_metadata_identity"),
    )

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    network: str = Field(max_length=64, index=True)
    contract: str = Field(max_length=64, index=True)
    token_id: int = Field(sa_column=Column(Uint64(), nullable=False))
    status: MetadataStatus = Field(default=MetadataStatus.NEW, index=True)
    # "metadata" is reserved on declarative classes, so the attribute is renamed
    metadata_json: str = Field(
        default="", sa_column=Column("metadata", Text, nullable=False, default="")
    )
    # Unbounded: data: URIs can run to kilobytes
    link: str = Field(default="", sa_column=Column(Text, nullable=False, default=""))
    retry_count: int = Field(default=0, ge=0)
    update_id: int = Field(default=0, sa_column=Column(BigInteger, nullable=False, index=True))
    created_at: datetime = Field(
        default_factory=utcnow, sa_column=Column(DateTime(timezone=True), nullable=False)
    )

    @property
    def identity(self) -> TokenIdentity:
        """(network, contract, token_id) key used for partial updates."""
        return TokenIdentity(self.network, self.contract, self.token_id)

    @property
    def is_terminal(self) -> bool:
        """True once no further resolution attempts are expected."""
        return self.status in (MetadataStatus.APPLIED, MetadataStatus.FAILED)

    def _ensure_resolvable(self, action: str) -> None:
        if self.is_terminal:
            raise InvalidStateTransition(
                f"Cannot {action} from terminal state {self.status.value}. "
                "Metadata must be in new state."
            )

    def register_retry(self, max_retry_count: int) -> bool:
        """Count a transient resolver failure.

        Args:
            max_retry_count: Attempts allowed before the record fails permanently

        Returns:
            True if the record stays retryable, False if it was marked failed

        Raises:
            InvalidStateTransition: If current status is terminal
        """
        self._ensure_resolvable("register retry")
        self.retry_count += 1
        if self.retry_count < max_retry_count:
            return True
        self.status = MetadataStatus.FAILED
        return False

    def mark_failed(self) -> None:
        """Transition from new to failed.

        Raises:
            InvalidStateTransition: If current status is terminal
        """
        self._ensure_resolvable("mark failed")
        self.status = MetadataStatus.FAILED

    def mark_applied(self, metadata_json: str) -> None:
        """Transition from new to applied with the reconciled document.

        Args:
            metadata_json: Escaped, merged metadata document

        Raises:
            InvalidStateTransition: If current status is terminal
        """
        self._ensure_resolvable("mark applied")
        self.metadata_json = metadata_json
        self.status = MetadataStatus.APPLIED
