"""Resolver contract and shared HTTP helpers."""

from typing import Protocol

import httpx

from tokenmeta.services.exceptions import ResolvingError, ResolvingErrorKind


class Resolver(Protocol):
    """Fetches the raw metadata document behind a link.

    Implementations raise ResolvingError for classified failures and must
    return promptly when the calling task is cancelled.
    """

    async def resolve(self, network: str, contract: str, link: str) -> bytes: ...


async def read_limited(response: httpx.Response, max_size: int) -> bytes:
    """Read a streamed response body, refusing bodies above max_size bytes.

    Raises:
        ResolvingError: TOO_LARGE if the body exceeds max_size
    """
    declared = response.headers.get("Content-Length")
    if declared is not None and declared.isdigit() and int(declared) > max_size:
        raise ResolvingError(
            ResolvingErrorKind.TOO_LARGE, f"declared size {declared} exceeds {max_size} bytes"
        )

    chunks = []
    size = 0
    async for chunk in response.aiter_bytes():
        size += len(chunk)
        if size > max_size:
            raise ResolvingError(
                ResolvingErrorKind.TOO_LARGE, f"body exceeds {max_size} bytes"
            )
        chunks.append(chunk)
    return b"".join(chunks)
