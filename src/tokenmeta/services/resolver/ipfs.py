"""IPFS metadata resolver fetching through public HTTP gateways."""

import httpx
import structlog

from tokenmeta.services.exceptions import ResolvingError, ResolvingErrorKind
from tokenmeta.services.resolver.base import read_limited

logger = structlog.get_logger(__name__)

IPFS_PREFIX = "ipfs://"


class IPFSResolver:
    """Resolve ipfs://<cid>[/path] links, trying each gateway in order."""

    def __init__(
        self,
        gateways: list[str],
        timeout: float = 10.0,
        max_size: int = 1024 * 1024,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize IPFS resolver.

        Args:
            gateways: Gateway domains (e.g. ["ipfs.io", "cloudflare-ipfs.com"])
            timeout: Per-gateway request timeout in seconds
            max_size: Largest accepted document in bytes
            transport: Optional httpx transport (tests inject MockTransport)
        """
        if not gateways:
            raise ValueError("at least one IPFS gateway is required")
        self.gateways = gateways
        self.timeout = timeout
        self.max_size = max_size
        self.transport = transport

    @staticmethod
    def content_path(link: str) -> str:
        """Extract "<cid>[/path]" from an ipfs:// link.

        Raises:
            ResolvingError: INVALID_URI if the link carries no CID
        """
        path = link[len(IPFS_PREFIX) :] if link.startswith(IPFS_PREFIX) else link
        # Tolerate the non-standard ipfs://ipfs/<cid> form
        if path.startswith("ipfs/"):
            path = path[len("ipfs/") :]
        path = path.strip("/")
        if not path:
            raise ResolvingError(ResolvingErrorKind.INVALID_URI, f"no CID in {link}")
        return path

    def gateway_url(self, gateway: str, content_path: str) -> str:
        """Build gateway URL (e.g. "https://ipfs.io/ipfs/<CID>")."""
        return f"https://{gateway}/ipfs/{content_path}"

    async def resolve(self, network: str, contract: str, link: str) -> bytes:
        """Fetch the document behind an ipfs:// link.

        Raises:
            ResolvingError: NO_IPFS_RESPONSE when no gateway answered, TOO_LARGE on big bodies
        """
        content_path = self.content_path(link)

        async with httpx.AsyncClient(
            timeout=self.timeout, transport=self.transport, follow_redirects=True
        ) as client:
            for gateway in self.gateways:
                url = self.gateway_url(gateway, content_path)
                try:
                    async with client.stream("GET", url) as response:
                        if response.status_code == 200:
                            return await read_limited(response, self.max_size)
                        logger.debug(
                            "resolver.ipfs.gateway_status",
                            gateway=gateway,
                            status_code=response.status_code,
                            link=link,
                        )
                except httpx.HTTPError as e:
                    logger.debug(
                        "resolver.ipfs.gateway_failed", gateway=gateway, error=str(e), link=link
                    )

        raise ResolvingError(
            ResolvingErrorKind.NO_IPFS_RESPONSE,
            f"no gateway returned {content_path} ({len(self.gateways)} tried)",
        )
