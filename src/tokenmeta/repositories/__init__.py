"""Repository layer for the metadata resolver.

Provides data access abstractions for domain entities.
"""

from tokenmeta.repositories.token_metadata import TokenMetadataRepository

__all__ = [
    "TokenMetadataRepository",
]
