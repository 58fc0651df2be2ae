"""Construction of token metadata records from big-map updates."""

from dataclasses import dataclass
from typing import Any, Iterable

import structlog

from tokenmeta.core.counter import UpdateIDCounter
from tokenmeta.core.metrics import Metrics
from tokenmeta.models.token_metadata import MetadataStatus, TokenMetadata
from tokenmeta.services.codec import decode_token_info, dump_metadata, escape, is_valid_link
from tokenmeta.services.exceptions import DecodeError
from tokenmeta.services.resolution import RECORD_KIND
from tokenmeta.uow import UnitOfWork

logger = structlog.get_logger(__name__)


@dataclass
class BigMapContent:
    """Key and value of a big-map update (value is JSON text or parsed JSON)."""

    key: Any
    value: Any


@dataclass
class BigMapUpdate:
    """Big-map change delivered by the event source."""

    contract: str
    content: BigMapContent | None = None


def build_token_metadata(
    update: BigMapUpdate,
    network: str,
    counter: UpdateIDCounter,
    metrics: Metrics,
) -> TokenMetadata | None:
    """Build the initial record for a token_metadata big-map update.

    Records without a valid link are complete at creation (status=applied).

    Args:
        update: Big-map update from the event source
        network: Network name stored on the record
        counter: Shared update-id sequence
        metrics: Status counters

    Returns:
        New TokenMetadata, or None for updates without content

    Raises:
        DecodeError: If the update value cannot be decoded
    """
    if update.content is None:
        return None

    token_info = decode_token_info(update.content.value)

    token = TokenMetadata(
        network=network,
        contract=update.contract,
        token_id=token_info.token_id,
        status=MetadataStatus.NEW,
        metadata_json=escape(dump_metadata(token_info.token_info)),
        update_id=counter.increment(),
    )

    if is_valid_link(token_info.link):
        token.link = token_info.link
    else:
        token.status = MetadataStatus.APPLIED

    metrics.record_status(RECORD_KIND, token.status)
    return token


async def ingest_updates(
    updates: Iterable[BigMapUpdate],
    uow: UnitOfWork,
    network: str,
    counter: UpdateIDCounter,
    metrics: Metrics,
) -> int:
    """Decode updates and store the resulting records.

    Undecodable updates are logged and dropped; they never create a record.

    Returns:
        Number of records stored
    """
    stored = 0
    for update in updates:
        try:
            token = build_token_metadata(update, network, counter, metrics)
        except DecodeError as e:
            logger.warning(
                "metadata.decode_failed",
                contract=update.contract,
                key=update.content.key if update.content else None,
                error=str(e),
            )
            continue

        if token is None:
            continue

        await uow.token_metadata.save(token)
        logger.info(
            "metadata.token.stored",
            contract=token.contract,
            token_id=token.token_id,
            link=token.link,
            status=token.status.value,
        )
        stored += 1

    return stored
