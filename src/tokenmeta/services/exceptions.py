"""Service error hierarchy for metadata decoding, merging and resolution.

This module defines the exception hierarchy for service-level errors:
- ServiceError: Base for all service errors
- DecodeError: Malformed big-map update (the update is dropped)
- MergeError: Malformed JSON while merging documents (the attempt is aborted)
- ResolvingError: Tagged resolver failure, classified by ResolvingErrorKind
- RecordNotFoundError: Partial update matched no stored record
"""

from enum import Enum


class ServiceError(Exception):
    """Base exception for all service errors."""

    pass


class DecodeError(ServiceError):
    """Raw big-map update payload could not be decoded.

    Examples:
    - Token id is not an unsigned 64-bit decimal integer
    - Link value under the reserved "" key is not valid hex
    - Payload is not a JSON object of the expected shape
    """

    pass


class MergeError(ServiceError):
    """Stored or resolved metadata is not a JSON object."""

    pass


class RecordNotFoundError(ServiceError):
    """No stored record matched the identity of a partial update."""

    pass


class ResolvingErrorKind(str, Enum):
    """Classification of resolver failures."""

    NO_IPFS_RESPONSE = "no_ipfs_response"
    TEZOS_STORAGE_KEY_NOT_FOUND = "tezos_storage_key_not_found"
    INVALID_URI = "invalid_uri"
    UNKNOWN_PROTOCOL = "unknown_protocol"
    HTTP_REQUEST = "http_request"
    TOO_LARGE = "too_large"
    INVALID_HEX = "invalid_hex"
    TIMEOUT = "timeout"


RETRYABLE_KINDS = frozenset(
    {
        ResolvingErrorKind.NO_IPFS_RESPONSE,
        ResolvingErrorKind.TEZOS_STORAGE_KEY_NOT_FOUND,
    }
)


class ResolvingError(ServiceError):
    """Resolver failure carrying an explicit classification.

    Callers switch on `kind`; only the kinds in RETRYABLE_KINDS are retried.
    """

    def __init__(self, kind: ResolvingErrorKind, message: str = ""):
        super().__init__(f"{kind.value}: {message}" if message else kind.value)
        self.kind = kind
        self.message = message

    @property
    def retryable(self) -> bool:
        """True for transient backend unavailability."""
        return self.kind in RETRYABLE_KINDS
