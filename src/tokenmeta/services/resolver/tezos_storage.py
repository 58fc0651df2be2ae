"""Resolver for tezos-storage: links pointing back into contract storage."""

import re
from urllib.parse import quote, unquote

import httpx
import structlog

from tokenmeta.services.exceptions import ResolvingError, ResolvingErrorKind

logger = structlog.get_logger(__name__)

TEZOS_STORAGE_PREFIX = "tezos-storage:"

_HEX = re.compile(r"(?:[0-9a-fA-F]{2})*")


class TezosStorageResolver:
    """Read a value from a contract's `metadata` big map through the TzKT API.

    Supported forms:
    - tezos-storage:<key>                       (same contract)
    - tezos-storage://<address>[.<network>]/<key> (another contract)
    """

    def __init__(
        self,
        tzkt_url: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.tzkt_url = tzkt_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    @staticmethod
    def parse(contract: str, link: str) -> tuple[str, str]:
        """Split a tezos-storage link into (contract address, big-map key).

        Raises:
            ResolvingError: INVALID_URI for links without a key
        """
        body = link[len(TEZOS_STORAGE_PREFIX) :]
        address = contract
        if body.startswith("//"):
            host, _, body = body[2:].partition("/")
            address = host.split(".", 1)[0]
        key = unquote(body)
        if not address or not key:
            raise ResolvingError(ResolvingErrorKind.INVALID_URI, f"malformed storage link {link}")
        return address, key

    async def resolve(self, network: str, contract: str, link: str) -> bytes:
        """Fetch and hex-decode the big-map value referenced by link.

        Raises:
            ResolvingError: TEZOS_STORAGE_KEY_NOT_FOUND, INVALID_HEX or HTTP_REQUEST
        """
        address, key = self.parse(contract, link)
        url = f"{self.tzkt_url}/v1/contracts/{address}/bigmaps/metadata/keys/{quote(key, safe='')}"

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(url)
        except httpx.HTTPError as e:
            raise ResolvingError(ResolvingErrorKind.HTTP_REQUEST, str(e) or type(e).__name__)

        # TzKT answers 204 No Content for unknown keys
        if response.status_code in (204, 404) or not response.content:
            raise ResolvingError(
                ResolvingErrorKind.TEZOS_STORAGE_KEY_NOT_FOUND, f"{key} in {address}"
            )
        if response.status_code != 200:
            raise ResolvingError(
                ResolvingErrorKind.HTTP_REQUEST,
                f"unexpected status {response.status_code} from {url}",
            )

        try:
            item = response.json()
        except ValueError as e:
            raise ResolvingError(ResolvingErrorKind.HTTP_REQUEST, f"invalid TzKT response: {e}")

        value = item.get("value") if isinstance(item, dict) else None
        if not isinstance(value, str) or (isinstance(item, dict) and item.get("active") is False):
            raise ResolvingError(
                ResolvingErrorKind.TEZOS_STORAGE_KEY_NOT_FOUND, f"{key} in {address}"
            )
        if not _HEX.fullmatch(value):
            raise ResolvingError(ResolvingErrorKind.INVALID_HEX, f"value of {key} is not hex")

        logger.debug("resolver.tezos_storage.found", contract=address, key=key)
        return bytes.fromhex(value)
