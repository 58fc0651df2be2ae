"""Metadata merge tests.

Existing keys are authoritative; incoming documents only fill gaps.
"""

import json

import pytest

from tokenmeta.services.exceptions import MergeError
from tokenmeta.services.merge import merge_metadata


def test_empty_existing_returns_incoming_verbatim():
    incoming = b'{"name": "Token", "decimals": 0}'

    assert merge_metadata("", incoming) == incoming
    assert merge_metadata(b"", incoming) == incoming


def test_empty_incoming_returns_existing():
    existing = '{"name":"Token"}'

    assert merge_metadata(existing, b"") == existing.encode("utf-8")


def test_incoming_fills_gaps_only():
    existing = '{"name":"On-chain name","symbol":"TKN"}'
    incoming = b'{"name":"Off-chain name","description":"From IPFS","image":"ipfs://Qm"}'

    merged = json.loads(merge_metadata(existing, incoming))

    assert merged == {
        "name": "On-chain name",
        "symbol": "TKN",
        "description": "From IPFS",
        "image": "ipfs://Qm",
    }


def test_merge_is_idempotent():
    """Re-merging the same incoming document changes nothing."""
    existing = '{"name":"Token"}'
    incoming = b'{"name":"Other","attributes":[{"trait_type":"color","value":"red"}]}'

    once = merge_metadata(existing, incoming)
    twice = merge_metadata(once, incoming)

    assert once == twice


def test_nested_values_are_kept_whole():
    existing = '{"formats":[{"uri":"ipfs://a"}]}'
    incoming = b'{"formats":[{"uri":"ipfs://b"}],"creators":["tz1"]}'

    merged = json.loads(merge_metadata(existing, incoming))

    assert merged["formats"] == [{"uri": "ipfs://a"}]
    assert merged["creators"] == ["tz1"]


@pytest.mark.parametrize(
    "existing, incoming",
    [
        ('{"name":"Token"}', b"not json"),
        ('{"name":"Token"}', b"[1, 2, 3]"),
        ("not json", b'{"name":"Token"}'),
        ('"text"', b'{"name":"Token"}'),
    ],
)
def test_malformed_side_raises_merge_error(existing, incoming):
    with pytest.raises(MergeError):
        merge_metadata(existing, incoming)


def test_invalid_utf8_incoming_is_replaced_not_rejected():
    """Undecodable bytes inside a JSON object become U+FFFD."""
    merged = json.loads(merge_metadata('{"name":"Token"}', b'{"description":"bad \xff byte"}'))

    assert merged["description"] == "bad � byte"
