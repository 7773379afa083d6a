"""Exceptions raised by the scheduled processing job."""


class ScheduledProcessingError(Exception):
    """Base exception for the scheduled processing job."""
    pass


# =============================================================================
# STARTUP
# =============================================================================


class ConfigMissingError(ScheduledProcessingError):
    """A required environment variable was not set."""

    def __init__(self, variable: str):
        self.variable = variable
        super().__init__(f"Environment variable not found: {variable}")


class SecretUnavailableError(ScheduledProcessingError):
    """A required Secrets Manager secret had no value."""

    def __init__(self, description: str, arn: str):
        self.description = description
        self.arn = arn
        super().__init__(
            f"AWS Secrets Manager Secret for value '{description}' returned an empty value, "
            f"tried to access ARN: {arn}"
        )


class SecretUndecodableError(ScheduledProcessingError):
    """A required Secrets Manager secret could not be decoded into its expected shape."""

    def __init__(self, description: str, arn: str, reason: str):
        self.description = description
        self.arn = arn
        self.reason = reason
        super().__init__(
            f"AWS Secrets Manager Secret for value '{description}' could not be decoded "
            f"({reason}), tried to access ARN: {arn}"
        )


# =============================================================================
# INVOCATION
# =============================================================================


class QueryAnomalyError(ScheduledProcessingError):
    """The store returned no item list at all (not an empty one)."""
    pass


class RecordInvalidError(ScheduledProcessingError):
    """A pending move is missing an attribute or has one of the wrong type."""

    def __init__(self, item_id: str | None, attribute: str, reason: str):
        self.item_id = item_id
        self.attribute = attribute
        self.reason = reason
        super().__init__(f"Invalid attribute '{attribute}' on item {item_id}: {reason}")


class GithubApiError(ScheduledProcessingError):
    """A GitHub API call failed at the transport, HTTP or GraphQL level."""

    def __init__(self, message: str, status_code: int | None = None, detail: str | None = None):
        self.status_code = status_code
        self.detail = detail
        super().__init__(message)


class RemoteCallFailedError(ScheduledProcessingError):
    """Base for failures of the per-item GitHub calls."""

    action = "Remote call"

    def __init__(self, item_id: str, cause: Exception):
        self.item_id = item_id
        self.cause = cause
        super().__init__(f"{self.action} failed for item {item_id}: {cause}")


class RemoteMutationFailedError(RemoteCallFailedError):
    """The project item field update was rejected or did not complete."""

    action = "Project item field update"


class CommentPostFailedError(RemoteCallFailedError):
    """The notification comment could not be posted."""

    action = "Notification comment"


class CleanupFailedError(ScheduledProcessingError):
    """A batch delete chunk could not be completed."""

    def __init__(self, chunk_index: int, item_ids: list[str], reason: str, deleted_count: int = 0):
        self.chunk_index = chunk_index
        self.item_ids = item_ids
        self.reason = reason
        # Records removed by earlier chunks stay removed
        self.deleted_count = deleted_count
        super().__init__(
            f"Failed to delete chunk {chunk_index} ({len(item_ids)} items): {reason}"
        )
