"""Core job utilities."""

from .config import RemoteFailurePolicy, Settings, get_settings, load_settings
from .exceptions import (
    CleanupFailedError,
    CommentPostFailedError,
    ConfigMissingError,
    GithubApiError,
    QueryAnomalyError,
    RecordInvalidError,
    RemoteCallFailedError,
    RemoteMutationFailedError,
    ScheduledProcessingError,
    SecretUnavailableError,
    SecretUndecodableError,
)

__all__ = [
    # Config
    "Settings",
    "RemoteFailurePolicy",
    "get_settings",
    "load_settings",
    # Exceptions
    "ScheduledProcessingError",
    "ConfigMissingError",
    "SecretUnavailableError",
    "SecretUndecodableError",
    "QueryAnomalyError",
    "RecordInvalidError",
    "GithubApiError",
    "RemoteCallFailedError",
    "RemoteMutationFailedError",
    "CommentPostFailedError",
    "CleanupFailedError",
]
