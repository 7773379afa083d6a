"""
Scheduled Moves Cron Job: apply pending GitHub Project status changes.

This module runs as a scheduled job (an EventBridge-triggered Lambda, or
cron via the CLI entry point). Each invocation:
1. Queries the scheduled moves table for moves due today or earlier
2. Updates each item's status field and notifies the requester
3. Deletes the moves that were applied, in chunks of 25

Typical schedule: rate(1 hour)
"""

import argparse
import asyncio
import logging
import sys
import traceback
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any

import boto3
import httpx

from ..core.config import Settings, get_settings
from ..core.secrets import load_startup_configuration
from ..schemas import ProcessingResult
from ..services import GithubApiClient, MoveProcessor, ProcessingBatch, ScheduledMovesStore


logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


# =============================================================================
# PROCESS STATE
# =============================================================================


@dataclass
class JobRuntime:
    """
    Long-lived state created once per process (Lambda cold start).

    Holds the AWS and GitHub clients and the configured project; reused by
    every invocation handled by the process.
    """

    settings: Settings
    dynamodb_client: Any
    github_client: GithubApiClient
    github_project_id: str

    @classmethod
    async def create(
        cls,
        settings: Settings | None = None,
        session: boto3.session.Session | None = None,
    ) -> "JobRuntime":
        """
        Build clients and load both startup secrets.

        Raises:
            ConfigMissingError, SecretUnavailableError, SecretUndecodableError
        """
        settings = settings or get_settings()

        logger.info("Creating AWS service clients")
        session = session or boto3.session.Session(region_name=settings.region)
        dynamodb_client = session.client("dynamodb")
        secrets_client = session.client("secretsmanager")

        credentials, configuration = await load_startup_configuration(settings, secrets_client)

        logger.info("Creating underlying GitHub client")
        github_client = GithubApiClient.from_credentials(
            credentials,
            base_url=settings.github_api_url,
            timeout=settings.github_request_timeout_seconds,
        )

        return cls(
            settings=settings,
            dynamodb_client=dynamodb_client,
            github_client=github_client,
            github_project_id=configuration.github_project_id,
        )

    def build_store(self) -> ScheduledMovesStore:
        """Store for this invocation; fails if the table settings are absent."""
        return ScheduledMovesStore(
            self.dynamodb_client,
            table_name=self.settings.require("scheduled_moves_table_name"),
            index_name=self.settings.require("scheduled_moves_date_index_name"),
            delete_retry_attempts=self.settings.delete_retry_attempts,
        )

    def build_processor(self, store: ScheduledMovesStore) -> MoveProcessor:
        return MoveProcessor(
            self.github_client,
            store=store,
            failure_policy=self.settings.remote_failure_policy,
            claim_lease_seconds=self.settings.claim_lease_seconds,
        )


_runtime: JobRuntime | None = None


async def get_runtime() -> JobRuntime:
    """Get the process runtime, creating it on first use."""
    global _runtime

    if _runtime is None:
        _runtime = await JobRuntime.create()

    return _runtime


# =============================================================================
# ALERTING
# =============================================================================


async def send_alert(
    settings: Settings,
    title: str,
    message: str,
    details: dict | None = None,
) -> None:
    """
    Report a failed invocation.

    Always logs at CRITICAL; also posts to the Slack and generic webhooks
    when they are configured. Delivery failures are logged only.
    """
    log_message = f"[CRON ALERT] {title}: {message}"
    if details:
        log_message += f" | Details: {details}"
    logger.critical(log_message)

    timestamp = datetime.now(timezone.utc).isoformat()
    deliveries = []

    if settings.slack_alerts_webhook_url:
        lines = [f"*{title}*", message]
        lines.extend(f"• *{k}*: {v}" for k, v in (details or {}).items())
        lines.append(f"Time: {timestamp}")
        deliveries.append(("Slack", settings.slack_alerts_webhook_url, {"text": "\n".join(lines)}))

    if settings.alert_webhook_url:
        deliveries.append((
            "webhook",
            settings.alert_webhook_url,
            {
                "title": title,
                "message": message,
                "severity": "critical",
                "timestamp": timestamp,
                "source": "github-projects-scheduled-processing",
                "details": details or {},
            },
        ))

    for channel, url, payload in deliveries:
        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(url, json=payload, timeout=10)
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Failed to send {channel} alert: {e}")


# =============================================================================
# JOB
# =============================================================================


def _record_batch(result: ProcessingResult, batch: ProcessingBatch) -> None:
    result.processed_item_ids = list(batch.processed_item_ids)
    result.skipped_item_ids = list(batch.skipped_item_ids)
    result.failed_item_ids = list(batch.failed_item_ids)
    result.errors.extend(batch.errors)


async def run_scheduled_moves_job(
    runtime: JobRuntime,
    today: date | None = None,
) -> ProcessingResult:
    """
    Main entry point for one invocation.

    Args:
        runtime: process state created on cold start
        today: date to treat as today (defaults to the current UTC date)

    Returns:
        Invocation result summary

    Raises:
        Any fatal error, after moves applied before it have been cleaned up
        and an alert has been sent
    """
    started_at = datetime.now(timezone.utc)
    today = today or started_at.date()
    result = ProcessingResult(started_at=started_at, today=today)
    logger.info(f"Starting scheduled moves job at {started_at.isoformat()} for {today.isoformat()}")

    try:
        store = runtime.build_store()
        items = await store.query_due_moves(runtime.github_project_id, today)
        result.due_count = len(items)

        processor = runtime.build_processor(store)
        batch = ProcessingBatch()
        try:
            await processor.process_moves(items, batch)
        except Exception as e:
            _record_batch(result, batch)
            if str(e) not in batch.errors:
                result.errors.append(f"{type(e).__name__}: {e}")
            # Moves applied before the failure must not be applied again
            result.deleted_count = await store.delete_moves(batch.processed_item_ids)
            raise

        _record_batch(result, batch)
        result.deleted_count = await store.delete_moves(batch.processed_item_ids)

    except Exception as e:
        await send_alert(
            runtime.settings,
            title="Scheduled Moves Job Failed",
            message=f"{type(e).__name__}: {e}",
            details={
                "today": today.isoformat(),
                "due": result.due_count,
                "processed_before_failure": result.processed_count,
                "deleted_before_failure": result.deleted_count,
                "traceback": traceback.format_exc()[-500:],
            },
        )
        raise

    result.completed_at = datetime.now(timezone.utc)
    logger.info(
        f"Scheduled moves job completed in {result.duration_seconds:.2f}s: "
        f"{result.due_count} due, {result.processed_count} processed, "
        f"{len(result.skipped_item_ids)} skipped, {result.deleted_count} deleted"
    )
    return result


# =============================================================================
# ENTRY POINTS
# =============================================================================


def configure_logging(level: str = "INFO") -> None:
    """Configure logging once per process."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    # The Lambda runtime installs its own root handler, so basicConfig may be a no-op
    logging.getLogger().setLevel(level.upper())


async def _handle_invocation() -> ProcessingResult:
    runtime = await get_runtime()
    return await run_scheduled_moves_job(runtime)


def handler(event: dict, context: Any) -> dict:
    """AWS Lambda handler for EventBridge scheduled events. Empty in, empty out."""
    configure_logging(get_settings().log_level)
    asyncio.run(_handle_invocation())
    return {}


def main():
    """CLI entry point for the scheduled moves job."""
    parser = argparse.ArgumentParser(description="Apply due scheduled GitHub Project status changes")
    parser.add_argument(
        "--today",
        type=date.fromisoformat,
        default=None,
        help="Date to treat as today, YYYY-MM-DD (default: current UTC date)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (default: LOG_LEVEL or INFO)",
    )
    args = parser.parse_args()

    try:
        settings = get_settings()
    except Exception as e:
        print(f"Error: {e}")
        sys.exit(1)

    configure_logging(args.log_level or settings.log_level)

    async def run() -> ProcessingResult:
        runtime = await JobRuntime.create(settings)
        return await run_scheduled_moves_job(runtime, today=args.today)

    try:
        result = asyncio.run(run())
        print(f"Job completed: {result.model_dump(mode='json')}")
    except Exception as e:
        print(f"Job failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
