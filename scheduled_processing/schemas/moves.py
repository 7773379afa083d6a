"""
Pending Move Schemas: scheduled status changes and their processing results.

A pending move is written by the webhook receiver when an item is
scheduled to change status on a later date. This job reads them back
from DynamoDB in low-level attribute value form.
"""

import re
from datetime import date, datetime
from typing import Any

from pydantic import ConfigDict, Field

from ..core.exceptions import RecordInvalidError
from .base import JobBaseModel


# =============================================================================
# PENDING MOVE
# =============================================================================


# Plain decimal integers only; no whitespace, underscores or leading "+"
INTEGER_PATTERN = re.compile(r"-?[0-9]+")

STRING_ATTRIBUTES = (
    "projectId",
    "fieldId",
    "fieldValue",
    "fieldValueName",
    "commentsUrl",
    "username",
)


def _string_attribute(item: dict[str, Any], name: str, item_id: str | None) -> str:
    value = item.get(name)
    if not isinstance(value, dict) or "S" not in value:
        raise RecordInvalidError(item_id, name, "no string value")
    if not isinstance(value["S"], str):
        raise RecordInvalidError(item_id, name, "no string value")
    return value["S"]


class PendingMove(JobBaseModel):
    """One scheduled status change for a GitHub Project item."""

    item_id: str = Field(alias="itemId")
    project_id: str = Field(alias="projectId")
    scheduled_date: date = Field(alias="scheduledDate")
    field_id: str = Field(alias="fieldId")
    field_value: str = Field(alias="fieldValue")
    field_value_name: str = Field(alias="fieldValueName")
    installation_id: int = Field(alias="installationId")
    comments_url: str = Field(alias="commentsUrl")
    username: str

    @classmethod
    def from_dynamodb_item(cls, item: dict[str, Any]) -> "PendingMove":
        """
        Build a pending move from a low-level DynamoDB item.

        Every attribute is required. String attributes must be `S` values
        and `installationId` an `N` value holding an integer.

        Raises:
            RecordInvalidError: naming the first attribute that is missing
                or malformed
        """
        item_id = _string_attribute(item, "itemId", None)

        values = {name: _string_attribute(item, name, item_id) for name in STRING_ATTRIBUTES}

        raw_date = _string_attribute(item, "scheduledDate", item_id)
        try:
            scheduled_date = date.fromisoformat(raw_date)
        except ValueError:
            raise RecordInvalidError(item_id, "scheduledDate", f"not a date: {raw_date}")

        installation = item.get("installationId")
        if not isinstance(installation, dict) or "N" not in installation:
            raise RecordInvalidError(item_id, "installationId", "no number value")
        raw_installation = installation["N"]
        if not isinstance(raw_installation, str) or not INTEGER_PATTERN.fullmatch(raw_installation):
            raise RecordInvalidError(
                item_id,
                "installationId",
                f"could not be converted to integer: {raw_installation}",
            )
        installation_id = int(raw_installation)

        return cls(
            itemId=item_id,
            scheduledDate=scheduled_date,
            installationId=installation_id,
            **values,
        )

    @property
    def notification_body(self) -> str:
        """Comment text telling the user about the status change."""
        return f"@{self.username} this item has been moved to status `{self.field_value_name}`"


# =============================================================================
# GRAPHQL MUTATION
# =============================================================================


UPDATE_PROJECT_ITEM_FIELD_MUTATION = """
mutation($input: UpdateProjectV2ItemFieldValueInput!) {
    updateProjectV2ItemFieldValue(input: $input) {
        clientMutationId
    }
}
""".strip()


class UpdateProjectItemFieldInput(JobBaseModel):
    """Input of an `updateProjectV2ItemFieldValue` mutation for a single-select field."""

    project_id: str
    item_id: str
    field_id: str
    single_select_option_id: str

    @classmethod
    def for_move(cls, move: PendingMove) -> "UpdateProjectItemFieldInput":
        return cls(
            project_id=move.project_id,
            item_id=move.item_id,
            field_id=move.field_id,
            single_select_option_id=move.field_value,
        )

    def to_variables(self) -> dict[str, Any]:
        """GraphQL variables for UPDATE_PROJECT_ITEM_FIELD_MUTATION."""
        return {
            "input": {
                "projectId": self.project_id,
                "itemId": self.item_id,
                "fieldId": self.field_id,
                "value": {"singleSelectOptionId": self.single_select_option_id},
            }
        }


# =============================================================================
# RESULTS
# =============================================================================


class ProcessingResult(JobBaseModel):
    """Summary of one invocation of the job."""

    model_config = ConfigDict(frozen=False)

    started_at: datetime
    completed_at: datetime | None = None
    today: date
    due_count: int = 0
    processed_item_ids: list[str] = Field(default_factory=list)
    skipped_item_ids: list[str] = Field(default_factory=list)
    failed_item_ids: list[str] = Field(default_factory=list)
    deleted_count: int = 0
    errors: list[str] = Field(default_factory=list)

    @property
    def processed_count(self) -> int:
        return len(self.processed_item_ids)

    @property
    def duration_seconds(self) -> float | None:
        if self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds()
