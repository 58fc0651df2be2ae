"""Background workers for async processing tasks."""

from tokenmeta.workers.token_metadata_worker import (
    BatchResult,
    process_batch,
    process_single_token,
    run_token_metadata_worker,
)

__all__ = [
    "BatchResult",
    "run_token_metadata_worker",
    "process_batch",
    "process_single_token",
]
