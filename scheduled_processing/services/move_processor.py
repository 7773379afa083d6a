"""
Move Processor: apply due status changes to GitHub Project items.

For each due move, in the order returned by the store:
1. Validate the record (invalid records are skipped and stay pending)
2. Optionally take a processing lease
3. Update the item's single-select field via GraphQL
4. Post a notification comment
5. Record the item ID as processed, ready for cleanup
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

from ..core.config import RemoteFailurePolicy
from ..core.exceptions import (
    CommentPostFailedError,
    GithubApiError,
    RecordInvalidError,
    RemoteCallFailedError,
    RemoteMutationFailedError,
)
from ..schemas import (
    UPDATE_PROJECT_ITEM_FIELD_MUTATION,
    PendingMove,
    UpdateProjectItemFieldInput,
)
from .github_client import GithubApiClient
from .scheduled_moves_store import ScheduledMovesStore

logger = logging.getLogger(__name__)


@dataclass
class ProcessingBatch:
    """Outcome of processing one invocation's due moves."""

    processed_item_ids: list[str] = field(default_factory=list)
    skipped_item_ids: list[str] = field(default_factory=list)
    failed_item_ids: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


class MoveProcessor:
    """
    Applies pending moves one at a time.

    GitHub failures are routed through `_handle_remote_failure`, the single
    place where the failure policy is decided:
    - ABORT: stop the loop and raise; moves processed so far are attached
      in the batch so they can still be cleaned up
    - SKIP: log, leave the move pending and continue with the next one
    """

    def __init__(
        self,
        github_client: GithubApiClient,
        store: ScheduledMovesStore | None = None,
        failure_policy: RemoteFailurePolicy = RemoteFailurePolicy.ABORT,
        claim_lease_seconds: int = 0,
    ):
        self._github = github_client
        self._store = store
        self._failure_policy = RemoteFailurePolicy(failure_policy)
        self._claim_lease_seconds = claim_lease_seconds

        if claim_lease_seconds > 0 and store is None:
            raise ValueError("Claiming moves requires a store")

    async def process_moves(
        self,
        items: Iterable[dict[str, Any]],
        batch: ProcessingBatch | None = None,
    ) -> ProcessingBatch:
        """
        Process raw due items sequentially.

        Outcomes are recorded in `batch` as each move completes, so a caller
        that passes its own batch still sees which moves were applied when
        this raises.

        Raises:
            RemoteMutationFailedError, CommentPostFailedError: under the ABORT
                policy
            Any store error raised while claiming a move
        """
        if batch is None:
            batch = ProcessingBatch()

        for item in items:
            try:
                move = PendingMove.from_dynamodb_item(item)
            except RecordInvalidError as e:
                if e.item_id is None:
                    logger.error(
                        f"No value for required attribute '{e.attribute}' "
                        f"(this should be impossible, it's the partition key)"
                    )
                else:
                    logger.error(f"Skipping item {e.item_id}: {e}")
                    batch.skipped_item_ids.append(e.item_id)
                batch.errors.append(str(e))
                continue

            if self._claim_lease_seconds > 0:
                claimed = await self._store.claim_move(move.item_id, self._claim_lease_seconds)
                if not claimed:
                    batch.skipped_item_ids.append(move.item_id)
                    continue

            logger.info(f"Processing item: {move.item_id}")
            try:
                await self.apply_move(move)
            except RemoteCallFailedError as e:
                self._handle_remote_failure(e, batch)
                continue

            batch.processed_item_ids.append(move.item_id)
            logger.info(f"Successfully processed item: {move.item_id}")

        logger.info(
            f"Successfully processed all items with count: {len(batch.processed_item_ids)}"
        )
        return batch

    async def apply_move(self, move: PendingMove) -> None:
        """Update the item's field, then notify the user who scheduled the move."""
        mutation_input = UpdateProjectItemFieldInput.for_move(move)
        try:
            await self._github.graphql_query(
                UPDATE_PROJECT_ITEM_FIELD_MUTATION,
                mutation_input.to_variables(),
                move.installation_id,
            )
        except GithubApiError as e:
            raise RemoteMutationFailedError(move.item_id, e) from e

        try:
            await self._github.create_issue_comment(
                move.comments_url,
                move.notification_body,
                move.installation_id,
            )
        except GithubApiError as e:
            raise CommentPostFailedError(move.item_id, e) from e

    def _handle_remote_failure(self, error: RemoteCallFailedError, batch: ProcessingBatch) -> None:
        batch.failed_item_ids.append(error.item_id)
        batch.errors.append(str(error))

        if self._failure_policy == RemoteFailurePolicy.SKIP:
            logger.warning(f"{error}; leaving it pending and continuing")
            return

        logger.error(f"{error}; aborting remaining items")
        raise error
