"""
Scheduled Moves Store: DynamoDB access for pending status changes.

The table is keyed by `itemId`, with a secondary index on
(`projectId`, `scheduledDate`) used to find moves that are due.
boto3 is synchronous, so every call runs in a worker thread.
"""

import asyncio
import logging
from datetime import date, datetime, timezone
from typing import Any, Iterator, Sequence

from botocore.exceptions import BotoCoreError, ClientError

from ..core.exceptions import CleanupFailedError, QueryAnomalyError

logger = logging.getLogger(__name__)


# DynamoDB BatchWriteItem accepts at most 25 requests per call
BATCH_WRITE_LIMIT = 25

DUE_MOVES_KEY_CONDITION = "projectId = :project AND scheduledDate <= :today"

LEASE_ATTRIBUTE = "leaseExpiresAt"


def chunk_item_ids(item_ids: Sequence[str], size: int = BATCH_WRITE_LIMIT) -> Iterator[list[str]]:
    """Split item IDs into consecutive chunks of at most `size`, preserving order."""
    if size < 1:
        raise ValueError("Chunk size must be at least 1")
    for start in range(0, len(item_ids), size):
        yield list(item_ids[start:start + size])


class ScheduledMovesStore:
    """Reads due moves from, and removes processed moves from, the scheduled moves table."""

    def __init__(
        self,
        client: Any,
        table_name: str,
        index_name: str,
        delete_retry_attempts: int = 3,
        retry_delay_seconds: float = 0.2,
    ):
        self._client = client
        self.table_name = table_name
        self.index_name = index_name
        self._delete_retry_attempts = delete_retry_attempts
        self._retry_delay_seconds = retry_delay_seconds

    # =========================================================================
    # SELECTION
    # =========================================================================

    async def query_due_moves(self, project_id: str, today: date) -> list[dict[str, Any]]:
        """
        Query all moves for `project_id` scheduled on or before `today`.

        Follows pagination until the index is exhausted. Returns raw
        low-level items; validation happens per record during processing.

        Raises:
            QueryAnomalyError: a page came back without an `Items` list
        """
        logger.info(
            f"Querying DynamoDB on the following index specifier: "
            f"{self.table_name}/{self.index_name}"
        )

        params: dict[str, Any] = {
            "TableName": self.table_name,
            "IndexName": self.index_name,
            "KeyConditionExpression": DUE_MOVES_KEY_CONDITION,
            "ExpressionAttributeValues": {
                ":project": {"S": project_id},
                ":today": {"S": today.isoformat()},
            },
        }

        items: list[dict[str, Any]] = []
        while True:
            response = await asyncio.to_thread(self._client.query, **params)

            page = response.get("Items")
            if page is None:
                logger.error("Query items returned `None` (not empty)")
                raise QueryAnomalyError(
                    f"Query on {self.table_name}/{self.index_name} returned no item list"
                )
            items.extend(page)

            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                break
            params["ExclusiveStartKey"] = last_key

        logger.info(f"Received items from DynamoDB query with count: {len(items)}")
        return items

    # =========================================================================
    # CLAIMING
    # =========================================================================

    async def claim_move(
        self,
        item_id: str,
        lease_seconds: int,
        now: datetime | None = None,
    ) -> bool:
        """
        Take a processing lease on a move.

        Succeeds only when no other invocation holds an unexpired lease.
        Returns False when the lease is held elsewhere or the move is gone.
        """
        now = now or datetime.now(timezone.utc)
        now_epoch = int(now.timestamp())

        try:
            await asyncio.to_thread(
                self._client.update_item,
                TableName=self.table_name,
                Key={"itemId": {"S": item_id}},
                UpdateExpression=f"SET {LEASE_ATTRIBUTE} = :expires",
                ConditionExpression=(
                    f"attribute_exists(itemId) AND "
                    f"(attribute_not_exists({LEASE_ATTRIBUTE}) OR {LEASE_ATTRIBUTE} < :now)"
                ),
                ExpressionAttributeValues={
                    ":expires": {"N": str(now_epoch + lease_seconds)},
                    ":now": {"N": str(now_epoch)},
                },
            )
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException":
                logger.warning(f"Item {item_id} is leased by another invocation, skipping")
                return False
            raise

        return True

    # =========================================================================
    # CLEANUP
    # =========================================================================

    async def delete_moves(self, item_ids: Sequence[str]) -> int:
        """
        Delete processed moves in chunks of BATCH_WRITE_LIMIT.

        Chunks are deleted sequentially. Keys DynamoDB reports as
        unprocessed are re-sent with backoff. Returns the number of
        deleted moves.

        Raises:
            CleanupFailedError: a chunk could not be fully deleted; earlier
                chunks stay deleted and later chunks are not attempted
        """
        deleted_count = 0

        for chunk_index, chunk in enumerate(chunk_item_ids(item_ids)):
            logger.info(f"Deleting chunk of items with count: {len(chunk)}")
            try:
                await self._delete_chunk(chunk)
            except CleanupFailedError as e:
                e.chunk_index = chunk_index
                e.deleted_count = deleted_count
                raise
            except (BotoCoreError, ClientError) as e:
                logger.error(f"Failed to delete chunk {chunk_index}: {e}")
                raise CleanupFailedError(chunk_index, chunk, str(e), deleted_count) from e

            deleted_count += len(chunk)
            logger.info(f"Successfully deleted chunk of items with count: {len(chunk)}")

        logger.info(f"Successfully deleted all processed items with count: {deleted_count}")
        return deleted_count

    async def _delete_chunk(self, chunk: list[str]) -> None:
        requests = [
            {"DeleteRequest": {"Key": {"itemId": {"S": item_id}}}}
            for item_id in chunk
        ]

        attempt = 0
        while requests:
            response = await asyncio.to_thread(
                self._client.batch_write_item,
                RequestItems={self.table_name: requests},
            )

            requests = response.get("UnprocessedItems", {}).get(self.table_name, [])
            if not requests:
                return

            attempt += 1
            if attempt > self._delete_retry_attempts:
                remaining = [r["DeleteRequest"]["Key"]["itemId"]["S"] for r in requests]
                raise CleanupFailedError(
                    0,
                    chunk,
                    f"{len(remaining)} items still unprocessed after {attempt} attempts: {remaining}",
                )

            logger.warning(
                f"Retrying {len(requests)} unprocessed deletes (attempt {attempt})"
            )
            await asyncio.sleep(self._retry_delay_seconds * 2 ** (attempt - 1))
