"""Decoding of raw token_metadata big-map values.

A big-map value maps a token id to a TZIP-12 ``token_info`` mapping whose
values are usually hex-encoded bytes. The empty-string key holds the
hex-encoded off-chain link to the full metadata document.
"""

import json
import re
from dataclasses import dataclass, field
from typing import Any

from tokenmeta.services.exceptions import DecodeError

LINK_KEY = ""
MAX_TOKEN_ID = 2**64 - 1

_DIGITS = re.compile(r"[0-9]+")
_HEX = re.compile(r"(?:[0-9a-fA-F]{2})*")
_SCHEME = re.compile(r"([A-Za-z0-9+.\-]*):")
_BAD_ESCAPE = re.compile(r"%(?![0-9a-fA-F]{2})")
_USERINFO = re.compile(r"[A-Za-z0-9\-._:~!$&'()*+,;=%@]*")
# Non-ASCII characters are accepted in host names
_HOST = re.compile(r"[A-Za-z0-9\-._~!$&'()*+,;=:\[\]<>\"%\u0080-\U0010FFFF]*")
_PORT = re.compile(r"(?::[0-9]*)?")
# A \u0000 escape not preceded by an escaped backslash
_NUL_ESCAPE = re.compile(r"(?<!\\)((?:\\\\)*)\\u0000")


@dataclass
class TokenInfo:
    """Decoded big-map value."""

    token_id: int
    token_info: dict[str, str] = field(default_factory=dict)
    link: str = ""


def decode_hex(value: str) -> tuple[str, bool]:
    """Decode a hex string into UTF-8 text.

    Returns:
        (decoded text, True) on success, (original value, False) when the value
        is not strict hex or the bytes are not valid UTF-8
    """
    if not _HEX.fullmatch(value):
        return value, False
    try:
        return bytes.fromhex(value).decode("utf-8"), True
    except (ValueError, UnicodeDecodeError):
        return value, False


def parse_token_id(raw: Any) -> int:
    """Parse an unsigned 64-bit decimal token id.

    Raises:
        DecodeError: If raw is not a decimal string in the uint64 range
    """
    if not isinstance(raw, str) or not _DIGITS.fullmatch(raw):
        raise DecodeError(f"invalid token id: {raw!r}")
    token_id = int(raw)
    if token_id > MAX_TOKEN_ID:
        raise DecodeError(f"token id out of uint64 range: {raw}")
    return token_id


def _load_payload(payload: Any) -> dict:
    if isinstance(payload, (bytes, bytearray, str)):
        try:
            payload = json.loads(payload)
        except ValueError as e:
            raise DecodeError(f"invalid big-map value: {e}") from e
    if not isinstance(payload, dict):
        raise DecodeError(f"big-map value must be an object, got {type(payload).__name__}")
    return payload


def _split_payload(payload: dict) -> tuple[Any, Any]:
    """Return (raw token id, raw token info) for both supported value shapes."""
    if "token_id" in payload:
        return payload["token_id"], payload.get("token_info") or {}
    if len(payload) != 1:
        raise DecodeError(f"big-map value must hold exactly one token, got {len(payload)} keys")
    raw_id, raw_info = next(iter(payload.items()))
    return raw_id, raw_info if raw_info is not None else {}


def decode_token_info(payload: Any) -> TokenInfo:
    """Decode a raw big-map value into TokenInfo.

    Accepts JSON text/bytes or an already parsed mapping in either shape:
    ``{"<id>": {...}}`` or ``{"token_id": "<id>", "token_info": {...}}``.

    Raises:
        DecodeError: Malformed payload, bad token id or malformed link hex
    """
    raw_id, raw_info = _split_payload(_load_payload(payload))

    token_id = parse_token_id(raw_id)

    if not isinstance(raw_info, dict):
        raise DecodeError(f"token_info must be an object, got {type(raw_info).__name__}")
    for key, value in raw_info.items():
        if not isinstance(value, str):
            raise DecodeError(f"token_info value for {key!r} must be a string")

    token_info = dict(raw_info)
    link = ""

    if LINK_KEY in token_info:
        raw_link = token_info.pop(LINK_KEY)
        if not _HEX.fullmatch(raw_link):
            raise DecodeError(f"link is not valid hex: {raw_link!r}")
        decoded, ok = decode_hex(raw_link)
        if ok:
            link = decoded

    for key, value in token_info.items():
        decoded, ok = decode_hex(value)
        if ok:
            token_info[key] = decoded

    return TokenInfo(token_id=token_id, token_info=token_info, link=link)


def dump_metadata(document: dict) -> bytes:
    """Serialize a metadata mapping as canonical JSON bytes."""
    return json.dumps(document, ensure_ascii=False, sort_keys=True, separators=(",", ":")).encode(
        "utf-8"
    )


def escape(data: bytes | str) -> str:
    """Make a JSON document storable in a PostgreSQL text column.

    NUL characters, raw or as JSON ``\\u0000`` escapes, are rejected by
    PostgreSQL and are stripped. A literal backslash followed by ``u0000``
    (``\\\\u0000`` in JSON) is text, not a NUL, and is kept.
    """
    text = data.decode("utf-8") if isinstance(data, (bytes, bytearray)) else data
    return _NUL_ESCAPE.sub(r"\1", text).replace("\x00", "")


def _split_scheme(link: str) -> tuple[str, str] | None:
    """Split "scheme:rest"; None when the link starts with a colon."""
    match = _SCHEME.match(link)
    if match is None:
        return "", link
    scheme = match.group(1)
    if not scheme:
        return None
    if not scheme[0].isalpha():
        return "", link
    return scheme, link[match.end() :]


def _valid_authority(authority: str) -> bool:
    userinfo, at, host = authority.rpartition("@")
    if at and (not _USERINFO.fullmatch(userinfo) or _BAD_ESCAPE.search(userinfo)):
        return False

    if host.startswith("["):
        end = host.find("]")
        if end < 0:
            return False
        port = host[end + 1 :]
    else:
        colon = host.rfind(":")
        port = host[colon:] if colon >= 0 else ""

    return (
        bool(_PORT.fullmatch(port))
        and bool(_HOST.fullmatch(host))
        and not _BAD_ESCAPE.search(host)
    )


def is_valid_link(link: str) -> bool:
    """Check that link is an absolute URI or an absolute path.

    Mirrors request-URI parsing:
    - empty strings and control characters are rejected
    - a scheme must be well formed when present
    - scheme-less references must start with "/"
    - host names may not contain spaces or other reserved characters
    - percent-escapes in the host and path must be two hex digits

    Spaces are allowed in the path, e.g. ``https://example.com/my token.json``.
    """
    if not link or any(ord(ch) < 0x20 or ord(ch) == 0x7F for ch in link):
        return False
    if link == "*":
        return True

    split = _split_scheme(link)
    if split is None:
        return False
    scheme, rest = split

    # Query strings are not validated
    rest = rest.split("?", 1)[0]

    if not rest.startswith("/"):
        # Opaque form such as tezos-storage:key
        return bool(scheme)

    if scheme and rest.startswith("//"):
        authority, slash, path = rest[2:].partition("/")
        if not _valid_authority(authority):
            return False
        rest = slash + path

    return not _BAD_ESCAPE.search(rest)
