"""State transition tests for TokenMetadata model.

Tests focus on validating the resolution state machine on the model:
- new → applied / failed
- retry counting up to the configured maximum
- Terminal states reject further transitions
"""

import pytest

from tokenmeta.models.token_metadata import InvalidStateTransition, MetadataStatus


def test_mark_applied_replaces_metadata(make_token):
    token = make_token()

    token.mark_applied('{"name":"Resolved"}')

    assert token.status == MetadataStatus.APPLIED
    assert token.metadata_json == '{"name":"Resolved"}'
    assert token.is_terminal


def test_mark_failed_keeps_metadata(make_token):
    token = make_token()

    token.mark_failed()

    assert token.status == MetadataStatus.FAILED
    assert token.metadata_json == '{"name":"Token"}'
    assert token.retry_count == 0


def test_register_retry_until_exhausted(make_token):
    """With max_retry_count=3 the third transient failure is terminal."""
    token = make_token()

    assert token.register_retry(3) is True
    assert token.status == MetadataStatus.NEW
    assert token.register_retry(3) is True
    assert token.status == MetadataStatus.NEW
    assert token.register_retry(3) is False

    assert token.status == MetadataStatus.FAILED
    assert token.retry_count == 3


@pytest.mark.parametrize("status", [MetadataStatus.APPLIED, MetadataStatus.FAILED])
def test_cannot_transition_from_terminal_states(make_token, status):
    token = make_token(status=status)

    with pytest.raises(InvalidStateTransition) as exc_info:
        token.mark_applied("{}")
    assert status.value in str(exc_info.value)

    with pytest.raises(InvalidStateTransition):
        token.mark_failed()

    with pytest.raises(InvalidStateTransition):
        token.register_retry(3)


def test_identity(make_token):
    token = make_token(token_id=9)

    assert token.identity == ("mainnet", token.contract, 9)
    assert token.identity.token_id == 9
