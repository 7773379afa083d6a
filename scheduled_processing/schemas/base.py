"""Base schemas shared by the job's records."""

from pydantic import BaseModel, ConfigDict


class JobBaseModel(BaseModel):
    """Base model with common configuration."""

    model_config = ConfigDict(
        populate_by_name=True,
        frozen=True,
    )
