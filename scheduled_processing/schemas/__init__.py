"""Schemas for the scheduled processing job.

- base: common model configuration
- configuration: values decoded from Secrets Manager
- moves: pending moves, the GitHub mutation input, invocation results
"""

from .base import JobBaseModel
from .configuration import GithubCredentials, JobConfiguration
from .moves import (
    UPDATE_PROJECT_ITEM_FIELD_MUTATION,
    PendingMove,
    ProcessingResult,
    UpdateProjectItemFieldInput,
)

__all__ = [
    "JobBaseModel",
    # Secrets
    "GithubCredentials",
    "JobConfiguration",
    # Moves
    "PendingMove",
    "UpdateProjectItemFieldInput",
    "UPDATE_PROJECT_ITEM_FIELD_MUTATION",
    "ProcessingResult",
]
