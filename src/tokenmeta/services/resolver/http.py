"""HTTP(S) metadata resolver."""

import httpx
import structlog

from tokenmeta.services.exceptions import ResolvingError, ResolvingErrorKind
from tokenmeta.services.resolver.base import read_limited

logger = structlog.get_logger(__name__)


class HTTPResolver:
    """Resolve http:// and https:// links with a plain GET request."""

    def __init__(
        self,
        timeout: float = 10.0,
        max_size: int = 1024 * 1024,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize HTTP resolver.

        Args:
            timeout: Per-request timeout in seconds
            max_size: Largest accepted body in bytes
            transport: Optional httpx transport (tests inject MockTransport)
        """
        self.timeout = timeout
        self.max_size = max_size
        self.transport = transport

    async def resolve(self, network: str, contract: str, link: str) -> bytes:
        """Fetch the document at link.

        Raises:
            ResolvingError: HTTP_REQUEST on network or status failure, TOO_LARGE on big bodies
        """
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self.transport, follow_redirects=True
            ) as client:
                async with client.stream("GET", link) as response:
                    if response.status_code != 200:
                        raise ResolvingError(
                            ResolvingErrorKind.HTTP_REQUEST,
                            f"unexpected status {response.status_code} for {link}",
                        )
                    return await read_limited(response, self.max_size)
        except httpx.HTTPError as e:
            logger.debug("resolver.http.request_failed", link=link, error=str(e))
            raise ResolvingError(ResolvingErrorKind.HTTP_REQUEST, str(e) or type(e).__name__)
