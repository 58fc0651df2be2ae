"""Unit of Work pattern tests.

Tests focus on transaction management:
- Successful commits persist changes
- Exceptions trigger rollback and propagate
"""

import pytest

from tokenmeta.models.token_metadata import MetadataStatus


@pytest.mark.asyncio
async def test_uow_commits_on_successful_exit(uow_factory, make_token):
    token = make_token(token_id=11)

    async with await uow_factory() as uow:
        await uow.token_metadata.add(token)

    async with await uow_factory() as uow:
        found = await uow.token_metadata.get_by_identity(token.identity)

    assert found is not None
    assert found.status == MetadataStatus.NEW


@pytest.mark.asyncio
async def test_uow_rollback_on_exception(uow_factory, make_token):
    token = make_token(token_id=12)

    with pytest.raises(RuntimeError, match="simulated failure"):
        async with await uow_factory() as uow:
            await uow.token_metadata.add(token)
            raise RuntimeError("simulated failure")

    async with await uow_factory() as uow:
        found = await uow.token_metadata.get_by_identity(token.identity)

    assert found is None
