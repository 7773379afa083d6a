"""Schemas for values decoded from Secrets Manager."""

from pydantic import Field, SecretStr

from .base import JobBaseModel


class GithubCredentials(JobBaseModel):
    """GitHub App credentials used to authenticate to the GitHub API."""

    # GitHub App ID being used to authenticate
    app_id: str = Field(alias="appId", min_length=1)
    # PEM-encoded private key, used to sign app JWTs
    private_key: SecretStr = Field(alias="privateKey")


class JobConfiguration(JobBaseModel):
    """Job configuration stored alongside the credentials."""

    # GraphQL node ID of the GitHub Project this job processes
    github_project_id: str = Field(alias="githubProjectId", min_length=1)
