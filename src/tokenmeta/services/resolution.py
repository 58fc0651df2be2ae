"""Resolution state machine for token metadata records.

One call to TokenMetadataResolution.resolve() is one attempt: the link is
fetched through the resolver, the outcome decides the next status, and the
record is re-stamped with a fresh update_id.

Transitions on resolver outcome:
- Retryable ResolvingError: retry_count += 1, status stays new until
  retry_count reaches max_retry_count, then failed
- Any other error (including timeout): failed, retry_count unchanged
- Data: merged into stored metadata; applied if the result is UTF-8 text,
  failed otherwise. MergeError propagates and nothing is stamped.
"""

import asyncio

import structlog

from tokenmeta.core.counter import UpdateIDCounter
from tokenmeta.core.metrics import Metrics
from tokenmeta.models.token_metadata import TokenMetadata
from tokenmeta.services.codec import escape
from tokenmeta.services.exceptions import ResolvingError, ResolvingErrorKind
from tokenmeta.services.merge import merge_metadata
from tokenmeta.services.resolver.base import Resolver

logger = structlog.get_logger(__name__)

RECORD_KIND = "token"


class TokenMetadataResolution:
    """Applies one resolver attempt to a token metadata record."""

    def __init__(
        self,
        resolver: Resolver,
        counter: UpdateIDCounter,
        metrics: Metrics,
        max_retry_count: int = 3,
        timeout_seconds: float = 30.0,
    ):
        """Initialize resolution.

        Args:
            resolver: Backend fetching raw documents for links
            counter: Shared update-id sequence
            metrics: Status and error counters
            max_retry_count: Transient failures allowed before a record fails
            timeout_seconds: Deadline for one resolver call
        """
        self.resolver = resolver
        self.counter = counter
        self.metrics = metrics
        self.max_retry_count = max_retry_count
        self.timeout_seconds = timeout_seconds

    @staticmethod
    def _log(token: TokenMetadata, event: str, level: str = "info", **kw) -> None:
        log = logger.bind(contract=token.contract, token_id=token.token_id, link=token.link)
        getattr(log, level)(event, **kw)

    async def resolve(self, token: TokenMetadata) -> TokenMetadata:
        """Run one resolution attempt, mutating token in place.

        Raises:
            MergeError: Stored or resolved document is not a JSON object
        """
        self._log(token, "metadata.resolve.started", retry_count=token.retry_count)

        try:
            data = await asyncio.wait_for(
                self.resolver.resolve(token.network, token.contract, token.link),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            self.apply_error(
                token,
                ResolvingError(
                    ResolvingErrorKind.TIMEOUT, f"no result after {self.timeout_seconds}s"
                ),
            )
        except Exception as e:
            self.apply_error(token, e)
        else:
            self.apply_data(token, data)

        return token

    def apply_error(self, token: TokenMetadata, error: Exception) -> None:
        """Advance token after a failed resolver call."""
        if isinstance(error, ResolvingError) and error.retryable:
            if token.register_retry(self.max_retry_count):
                self._log(
                    token,
                    "metadata.resolve.retry",
                    level="warning",
                    error=str(error),
                    retry_count=token.retry_count,
                )
            else:
                self._log(
                    token,
                    "metadata.resolve.failed",
                    level="warning",
                    error=str(error),
                    retry_count=token.retry_count,
                    reason="retries_exhausted",
                )
        else:
            token.mark_failed()
            self._log(
                token,
                "metadata.resolve.failed",
                level="warning",
                error=str(error),
                error_type=type(error).__name__,
            )

        if isinstance(error, ResolvingError):
            self.metrics.record_error(error.kind)

        self._stamp(token)

    def apply_data(self, token: TokenMetadata, data: bytes) -> None:
        """Advance token after the resolver returned a document.

        Raises:
            MergeError: Propagated from merge_metadata, token left untouched
        """
        merged = merge_metadata(token.metadata_json, data)

        try:
            text = merged.decode("utf-8")
        except UnicodeDecodeError:
            token.mark_failed()
            self._log(token, "metadata.resolve.failed", level="warning", reason="invalid_utf8")
        else:
            token.mark_applied(escape(text))
            self._log(token, "metadata.resolve.applied")

        self._stamp(token)

    def _stamp(self, token: TokenMetadata) -> None:
        self.metrics.record_status(RECORD_KIND, token.status)
        token.update_id = self.counter.increment()
