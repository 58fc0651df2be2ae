"""CLI command for running one metadata resolution batch.

Usage:
    python -m tokenmeta.cli.resolve_tokens [OPTIONS]

Examples:
    # Resolve up to WORKER_BATCH_SIZE pending tokens
    python -m tokenmeta.cli.resolve_tokens

    # Resolve up to 100 tokens
    python -m tokenmeta.cli.resolve_tokens --limit 100

    # Dry run (resolve but do not write results)
    python -m tokenmeta.cli.resolve_tokens --dry-run

    # Verbose logging
    python -m tokenmeta.cli.resolve_tokens -v
"""

import asyncio
import sys
from argparse import ArgumentParser, Namespace
from collections import Counter

import structlog

from tokenmeta.core.config import Settings, configure_logging
from tokenmeta.core.counter import UpdateIDCounter
from tokenmeta.core.database import setup_db_session
from tokenmeta.core.metrics import Metrics
from tokenmeta.services.exceptions import ServiceError
from tokenmeta.services.resolution import TokenMetadataResolution
from tokenmeta.services.resolver import MetadataResolver
from tokenmeta.uow import create_uow_factory
from tokenmeta.workers.token_metadata_worker import process_single_token

logger = structlog.get_logger()


def parse_args(argv: list[str] | None = None) -> Namespace:
    """Parse command-line arguments."""
    parser = ArgumentParser(
        description="Resolve pending token metadata links",
        epilog="Processes records with status 'new' once and exits",
    )

    parser.add_argument(
        "--limit",
        type=int,
        help="Maximum number of tokens to resolve (default: WORKER_BATCH_SIZE)",
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Resolve links without database writes",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging (DEBUG level)",
    )

    return parser.parse_args(argv)


async def async_main(argv: list[str] | None = None) -> int:
    """Main CLI entry point (async).

    Returns:
        Exit code: 0 (success), 1 (error), 2 (some tokens could not be processed)
    """
    args = parse_args(argv)

    settings = Settings()  # type: ignore[call-arg]
    if args.verbose:
        settings.log_level = "DEBUG"
    configure_logging(settings)

    limit = args.limit or settings.worker_batch_size
    logger.info("cli.started", limit=limit, dry_run=args.dry_run, network=settings.network)

    session_factory = setup_db_session(settings.database_url, settings.db_pool_size)
    uow_factory = create_uow_factory(session_factory)

    try:
        async with await uow_factory() as uow:
            counter = UpdateIDCounter(start=await uow.token_metadata.get_max_update_id())
            tokens = await uow.token_metadata.get_unresolved(limit=limit)

        resolution = TokenMetadataResolution(
            resolver=MetadataResolver.from_settings(settings),
            counter=counter,
            metrics=Metrics(),
            max_retry_count=settings.max_retry_count_on_error,
            timeout_seconds=settings.resolve_timeout_seconds,
        )

        if args.dry_run:
            tasks = [resolution.resolve(token) for token in tokens]
        else:
            tasks = [process_single_token(token, resolution, uow_factory) for token in tokens]
        results = await asyncio.gather(*tasks, return_exceptions=True)

        statuses: Counter = Counter()
        errors = []
        for token, result in zip(tokens, results):
            if isinstance(result, Exception):
                errors.append(f"{token.contract}/{token.token_id}: {result}")
            else:
                statuses[token.status.value] += 1

        print("\n" + "=" * 60)
        print("Token Metadata Resolution Summary")
        print("=" * 60)
        print(f"Tokens fetched: {len(tokens)}")
        for status_name in ("new", "applied", "failed"):
            print(f"  {status_name}: {statuses[status_name]}")

        if errors:
            print(f"\nErrors encountered: {len(errors)}")
            for error in errors[:5]:  # Show first 5 errors
                print(f"  - {error}")
            if len(errors) > 5:
                print(f"  ... and {len(errors) - 5} more errors")

        if args.dry_run:
            print("\n[DRY RUN] No changes were persisted to database")

        print("=" * 60 + "\n")

        if errors:
            logger.warning("cli.partial_success", errors=len(errors))
            return 2
        logger.info("cli.success", processed=len(tokens))
        return 0

    except ServiceError as e:
        logger.error("cli.service_error", error=str(e), error_type=type(e).__name__)
        print(f"\nError: {e}", file=sys.stderr)
        return 1

    except KeyboardInterrupt:
        logger.info("cli.interrupted")
        print("\nResolution interrupted by user", file=sys.stderr)
        return 130  # Standard exit code for SIGINT

    except Exception as e:
        logger.error("cli.unexpected_error", error=str(e), error_type=type(e).__name__)
        print(f"\nUnexpected error: {e}", file=sys.stderr)
        return 1

    finally:
        # Close pooled connections before the event loop shuts down
        await session_factory.kw["bind"].dispose()


def main() -> None:
    """Synchronous entry point for CLI."""
    sys.exit(asyncio.run(async_main()))


if __name__ == "__main__":
    main()
