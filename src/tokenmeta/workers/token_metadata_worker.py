"""Token metadata resolution worker.

Polls for records with status='new', resolves their links through the
configured resolver and writes the outcome back as a partial update.

Each record gets its own unit of work so one failing write never rolls back
the others. A record is never in flight twice within this process: a batch
finishes before the next one is fetched.
"""

import asyncio
import time
from typing import Callable, NamedTuple

import structlog

from tokenmeta.core.config import Settings
from tokenmeta.models.token_metadata import TokenIdentity, TokenMetadata
from tokenmeta.services.resolution import TokenMetadataResolution

logger = structlog.get_logger(__name__)


class BatchResult(NamedTuple):
    """Outcome of one process_batch call."""

    fetched: int
    completed: int


def partial_update_fields(token: TokenMetadata) -> dict:
    """Fields written back after a resolution attempt."""
    return {
        "status": token.status,
        "metadata": token.metadata_json,
        "retry_count": token.retry_count,
        "update_id": token.update_id,
    }


async def process_single_token(
    token: TokenMetadata,
    resolution: TokenMetadataResolution,
    uow_factory: Callable,
) -> TokenMetadata:
    """Run one resolution attempt for a record and persist the result.

    Workflow:
    1. Resolve link (bounded by the resolution timeout)
    2. Apply state machine and merge (mutates the detached token)
    3. Write status, metadata, retry_count and update_id in one transaction

    Args:
        token: Detached record to resolve
        resolution: Resolution state machine bound to resolver and counters
        uow_factory: Factory creating UnitOfWork instances

    Returns:
        The updated record

    Raises:
        MergeError: Malformed JSON during merge, nothing is written
        RecordNotFoundError: Record disappeared before the write
    """
    start_time = time.time()

    await resolution.resolve(token)

    async with await uow_factory() as uow:
        await uow.token_metadata.update_partial(token.identity, partial_update_fields(token))

    logger.info(
        "metadata.token.updated",
        contract=token.contract,
        token_id=token.token_id,
        status=token.status.value,
        retry_count=token.retry_count,
        update_id=token.update_id,
        duration_seconds=time.time() - start_time,
    )
    return token


async def process_batch(
    uow_factory: Callable,
    resolution: TokenMetadataResolution,
    batch_size: int,
    deferred: set[TokenIdentity] | None = None,
) -> BatchResult:
    """Resolve a batch of unresolved records concurrently.

    Uses a temporary unit of work to lock records via FOR UPDATE SKIP LOCKED,
    then processes each record with its own unit of work.

    Records whose attempt raised (e.g. MergeError) keep their update_id and
    would head every following batch. Their identities are added to
    `deferred`, and deferred records are left out of the fetch.

    Args:
        uow_factory: Factory creating UnitOfWork instances
        resolution: Resolution state machine
        batch_size: Maximum number of records to fetch
        deferred: Identities to skip; updated in place with failed attempts

    Returns:
        Records fetched and records whose attempt completed
    """
    if deferred is None:
        deferred = set()

    async with await uow_factory() as uow:
        tokens = await uow.token_metadata.get_unresolved(limit=batch_size, exclude=deferred)

    if not tokens:
        return BatchResult(fetched=0, completed=0)

    tasks = [process_single_token(token, resolution, uow_factory) for token in tokens]
    results = await asyncio.gather(*tasks, return_exceptions=True)

    # Log errors (successes are logged in process_single_token)
    completed = 0
    for token, result in zip(tokens, results):
        if isinstance(result, asyncio.CancelledError):
            raise result
        if isinstance(result, Exception):
            deferred.add(token.identity)
            logger.error(
                "metadata.token.update_failed",
                contract=token.contract,
                token_id=token.token_id,
                link=token.link,
                error=str(result),
                error_type=type(result).__name__,
                deferred=len(deferred),
            )
        else:
            completed += 1

    return BatchResult(fetched=len(tokens), completed=completed)


async def run_token_metadata_worker(
    uow_factory: Callable,
    resolution: TokenMetadataResolution,
    settings: Settings,
) -> None:
    """Main worker loop for metadata resolution.

    Polls at POLL_INTERVAL_SECONDS, processes batches, and handles graceful shutdown.
    Deferred records get another attempt once no other record is pending.

    Args:
        uow_factory: Factory creating UnitOfWork instances
        resolution: Resolution state machine
        settings: Application settings (poll interval, batch size)
    """
    logger.info(
        "worker.started",
        worker_type="token_metadata",
        poll_interval=settings.poll_interval_seconds,
        batch_size=settings.worker_batch_size,
    )

    deferred: set[TokenIdentity] = set()

    try:
        while True:
            try:
                batch = await process_batch(
                    uow_factory, resolution, settings.worker_batch_size, deferred
                )

                if batch.fetched == 0 and deferred:
                    logger.info("worker.deferred_released", count=len(deferred))
                    deferred.clear()

                # A fully completed batch means more work is probably waiting
                if batch.completed < settings.worker_batch_size:
                    await asyncio.sleep(settings.poll_interval_seconds)

            except asyncio.CancelledError:
                raise

            except Exception as e:
                logger.error(
                    "worker.error",
                    worker_type="token_metadata",
                    error_type=type(e).__name__,
                    error_message=str(e),
                    exc_info=True,
                )
                # Back off 5 seconds before retrying
                await asyncio.sleep(5)

    except asyncio.CancelledError:
        logger.info("worker.stopped", worker_type="token_metadata")
        raise
