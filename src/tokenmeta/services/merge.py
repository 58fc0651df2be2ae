"""Accretive merge of metadata documents."""

import json

from tokenmeta.services.codec import dump_metadata
from tokenmeta.services.exceptions import MergeError


def _load_object(data: bytes | str, side: str) -> dict:
    text = data.decode("utf-8", errors="replace") if isinstance(data, (bytes, bytearray)) else data
    try:
        document = json.loads(text)
    except ValueError as e:
        raise MergeError(f"{side} metadata is not valid JSON: {e}") from e
    if not isinstance(document, dict):
        raise MergeError(f"{side} metadata must be a JSON object, got {type(document).__name__}")
    return document


def merge_metadata(existing: bytes | str, incoming: bytes | str) -> bytes:
    """Merge newly resolved metadata into the stored document.

    Keys already present in `existing` always win; `incoming` only fills gaps.
    An empty side returns the other side untouched.

    Args:
        existing: Stored metadata document (may be empty)
        incoming: Freshly resolved document (may be empty)

    Returns:
        Merged JSON document as bytes

    Raises:
        MergeError: If a non-empty side is not a JSON object
    """
    if not existing:
        return incoming.encode("utf-8") if isinstance(incoming, str) else bytes(incoming)
    if not incoming:
        return existing.encode("utf-8") if isinstance(existing, str) else bytes(existing)

    merged = _load_object(existing, "existing")
    for key, value in _load_object(incoming, "incoming").items():
        if key not in merged:
            merged[key] = value
    return dump_metadata(merged)
