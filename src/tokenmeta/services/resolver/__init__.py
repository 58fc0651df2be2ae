"""Pluggable metadata link resolvers.

MetadataResolver dispatches a link to the backend matching its scheme.
"""

from urllib.parse import urlsplit

from tokenmeta.core.config import Settings
from tokenmeta.services.exceptions import ResolvingError, ResolvingErrorKind
from tokenmeta.services.resolver.base import Resolver
from tokenmeta.services.resolver.http import HTTPResolver
from tokenmeta.services.resolver.ipfs import IPFSResolver
from tokenmeta.services.resolver.tezos_storage import TezosStorageResolver


class MetadataResolver:
    """Resolver dispatching on the link scheme (ipfs, http(s), tezos-storage)."""

    def __init__(self, backends: dict[str, Resolver]):
        """Initialize with a scheme → backend mapping (schemes in lowercase)."""
        self.backends = backends

    @classmethod
    def from_settings(cls, settings: Settings) -> "MetadataResolver":
        """Build the default resolver set from application settings."""
        http = HTTPResolver(
            timeout=settings.ipfs_timeout_seconds, max_size=settings.max_metadata_size_bytes
        )
        return cls(
            {
                "ipfs": IPFSResolver(
                    gateways=settings.ipfs_gateways_list,
                    timeout=settings.ipfs_timeout_seconds,
                    max_size=settings.max_metadata_size_bytes,
                ),
                "http": http,
                "https": http,
                "tezos-storage": TezosStorageResolver(
                    tzkt_url=settings.tzkt_url, timeout=settings.ipfs_timeout_seconds
                ),
            }
        )

    async def resolve(self, network: str, contract: str, link: str) -> bytes:
        """Resolve link with the backend registered for its scheme.

        Raises:
            ResolvingError: INVALID_URI, UNKNOWN_PROTOCOL or any backend error
        """
        try:
            scheme = urlsplit(link).scheme.lower()
        except ValueError as e:
            raise ResolvingError(ResolvingErrorKind.INVALID_URI, f"{link}: {e}")
        if not scheme:
            raise ResolvingError(ResolvingErrorKind.INVALID_URI, f"no scheme in {link}")

        backend = self.backends.get(scheme)
        if backend is None:
            raise ResolvingError(ResolvingErrorKind.UNKNOWN_PROTOCOL, scheme)
        return await backend.resolve(network, contract, link)


__all__ = [
    "Resolver",
    "MetadataResolver",
    "HTTPResolver",
    "IPFSResolver",
    "TezosStorageResolver",
]
