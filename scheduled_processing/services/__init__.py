"""Services for the scheduled processing job."""

from .github_client import GithubApiClient
from .move_processor import MoveProcessor, ProcessingBatch
from .scheduled_moves_store import BATCH_WRITE_LIMIT, ScheduledMovesStore, chunk_item_ids

__all__ = [
    "GithubApiClient",
    "MoveProcessor",
    "ProcessingBatch",
    "ScheduledMovesStore",
    "BATCH_WRITE_LIMIT",
    "chunk_item_ids",
]
