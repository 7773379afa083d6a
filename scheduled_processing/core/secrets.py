"""
Secrets: fetch and decode the job's Secrets Manager values.

Two secrets are loaded on cold start, both addressed by ARNs taken from
the environment:
1. GitHub App credentials ({"appId", "privateKey"})
2. Job configuration ({"githubProjectId"})
"""

import asyncio
import logging
from typing import Any, TypeVar

from botocore.exceptions import BotoCoreError, ClientError
from pydantic import BaseModel, ValidationError

from ..schemas import GithubCredentials, JobConfiguration
from .config import Settings
from .exceptions import SecretUnavailableError, SecretUndecodableError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

GITHUB_CREDENTIALS_DESCRIPTION = "Github credentials"
CONFIGURATION_DESCRIPTION = "Lambda configuration"


def fetch_secret_text(client: Any, arn: str, description: str) -> str:
    """
    Fetch a secret's text value.

    Binary secrets are accepted when their bytes are valid UTF-8.

    Raises:
        SecretUnavailableError: the secret could not be read or had no value
        SecretUndecodableError: the binary value was not UTF-8
    """
    logger.info(f"Fetching {description}")
    try:
        response = client.get_secret_value(SecretId=arn)
    except (BotoCoreError, ClientError) as e:
        logger.error(f"Failed to fetch secret '{description}' ({arn}): {e}")
        raise SecretUnavailableError(description, arn) from e

    secret_string = response.get("SecretString")
    if secret_string:
        return secret_string

    secret_binary = response.get("SecretBinary")
    if not secret_binary:
        raise SecretUnavailableError(description, arn)

    try:
        return bytes(secret_binary).decode("utf-8")
    except UnicodeDecodeError as e:
        raise SecretUndecodableError(description, arn, "not UTF-8") from e


def load_secret_model(
    client: Any,
    arn: str,
    description: str,
    model: type[ModelT],
) -> ModelT:
    """Fetch a JSON secret and validate it into `model`."""
    text = fetch_secret_text(client, arn, description)

    logger.info(f"Decoding {description}")
    try:
        return model.model_validate_json(text)
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) or "<root>" for err in e.errors())
        raise SecretUndecodableError(description, arn, f"invalid fields: {fields}") from e


async def load_startup_configuration(
    settings: Settings,
    client: Any,
) -> tuple[GithubCredentials, JobConfiguration]:
    """
    Load both startup secrets concurrently.

    Each fetch runs in a worker thread. If either fetch fails its named error propagates and startup aborts.
    """
    credentials, configuration = await asyncio.gather(
        asyncio.to_thread(
            load_secret_model,
            client,
            settings.github_credentials_secret_arn,
            GITHUB_CREDENTIALS_DESCRIPTION,
            GithubCredentials,
        ),
        asyncio.to_thread(
            load_secret_model,
            client,
            settings.configuration_secret_arn,
            CONFIGURATION_DESCRIPTION,
            JobConfiguration,
        ),
    )
    return credentials, configuration
