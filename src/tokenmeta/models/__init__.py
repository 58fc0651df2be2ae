"""SQLModel database entities.

All models are imported here to ensure they're registered with SQLModel metadata
for Alembic autogenerate support.
"""

from tokenmeta.models.token_metadata import (
    InvalidStateTransition,
    MetadataStatus,
    TokenIdentity,
    TokenMetadata,
)

__all__ = [
    "TokenMetadata",
    "TokenIdentity",
    "MetadataStatus",
    "InvalidStateTransition",
]
