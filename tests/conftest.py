"""
Shared fixtures for the scheduled processing tests.

AWS clients are replaced by small in-memory fakes that speak the
low-level boto3 request/response shapes the job uses.
"""

from typing import Any

import pytest
from botocore.exceptions import ClientError
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from scheduled_processing.core.config import Settings
from scheduled_processing.core.exceptions import GithubApiError


def client_error(code: str, operation: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


# =============================================================================
# DYNAMODB
# =============================================================================


class FakeDynamoDbClient:
    """In-memory stand-in for the boto3 DynamoDB client."""

    def __init__(self, items: list[dict[str, Any]] | None = None):
        self.items: list[dict[str, Any]] = list(items or [])
        self.query_calls: list[dict[str, Any]] = []
        self.batch_write_calls: list[list[str]] = []
        self.update_calls: list[dict[str, Any]] = []

        # Behaviour switches
        self.page_size: int | None = None
        self.omit_items = False
        self.fail_batch_write_on_call: int | None = None
        self.unprocessed_responses: list[int] = []
        # item_id -> error code raised by update_item
        self.fail_update_for: dict[str, str] = {}

    def query(self, **params) -> dict[str, Any]:
        self.query_calls.append(params)
        if self.omit_items:
            return {"Count": 0}

        values = params["ExpressionAttributeValues"]
        project = values[":project"]["S"]
        today = values[":today"]["S"]
        matches = [
            item for item in self.items
            if item.get("projectId", {}).get("S") == project
            and item.get("scheduledDate", {}).get("S", "9999-12-31") <= today
        ]

        start = params.get("ExclusiveStartKey", {}).get("offset", {}).get("N")
        start = int(start) if start else 0
        if self.page_size is None:
            return {"Items": matches[start:], "Count": len(matches) - start}

        page = matches[start:start + self.page_size]
        response: dict[str, Any] = {"Items": page, "Count": len(page)}
        if start + self.page_size < len(matches):
            response["LastEvaluatedKey"] = {"offset": {"N": str(start + self.page_size)}}
        return response

    def batch_write_item(self, RequestItems: dict[str, list]) -> dict[str, Any]:
        (table_name, requests), = RequestItems.items()
        keys = [r["DeleteRequest"]["Key"]["itemId"]["S"] for r in requests]
        self.batch_write_calls.append(keys)

        if self.fail_batch_write_on_call == len(self.batch_write_calls):
            raise client_error("InternalServerError", "BatchWriteItem")

        unprocessed = []
        if self.unprocessed_responses:
            count = self.unprocessed_responses.pop(0)
            unprocessed = requests[len(requests) - count:]
            requests = requests[:len(requests) - count]

        deleted = {r["DeleteRequest"]["Key"]["itemId"]["S"] for r in requests}
        self.items = [i for i in self.items if i.get("itemId", {}).get("S") not in deleted]

        if unprocessed:
            return {"UnprocessedItems": {table_name: unprocessed}}
        return {"UnprocessedItems": {}}

    def update_item(self, **params) -> dict[str, Any]:
        self.update_calls.append(params)
        item_id = params["Key"]["itemId"]["S"]
        if item_id in self.fail_update_for:
            raise client_error(self.fail_update_for[item_id], "UpdateItem")
        now = int(params["ExpressionAttributeValues"][":now"]["N"])

        for item in self.items:
            if item.get("itemId", {}).get("S") != item_id:
                continue
            lease = item.get("leaseExpiresAt")
            if lease and int(lease["N"]) >= now:
                break
            item["leaseExpiresAt"] = params["ExpressionAttributeValues"][":expires"]
            return {}

        raise client_error("ConditionalCheckFailedException", "UpdateItem")

    def remaining_item_ids(self) -> list[str]:
        return [item["itemId"]["S"] for item in self.items]


# =============================================================================
# SECRETS MANAGER
# =============================================================================


class FakeSecretsClient:
    """In-memory stand-in for the boto3 Secrets Manager client."""

    def __init__(self, secrets: dict[str, Any]):
        self.secrets = secrets
        self.requested: list[str] = []

    def get_secret_value(self, SecretId: str) -> dict[str, Any]:
        self.requested.append(SecretId)
        value = self.secrets.get(SecretId)
        if value is None:
            raise client_error("ResourceNotFoundException", "GetSecretValue")
        if isinstance(value, Exception):
            raise value
        if isinstance(value, bytes):
            return {"ARN": SecretId, "SecretBinary": value}
        if isinstance(value, dict):
            return {"ARN": SecretId, **value}
        return {"ARN": SecretId, "SecretString": value}


class FakeSession:
    """Stand-in for boto3.session.Session handing out the fakes above."""

    def __init__(self, dynamodb: FakeDynamoDbClient, secrets: FakeSecretsClient):
        self._clients = {"dynamodb": dynamodb, "secretsmanager": secrets}

    def client(self, service_name: str):
        return self._clients[service_name]


# =============================================================================
# GITHUB
# =============================================================================


class FakeGithubClient:
    """Records GitHub calls; fails for chosen item IDs."""

    def __init__(self):
        self.mutations: list[dict[str, Any]] = []
        self.comments: list[dict[str, Any]] = []
        self.fail_mutation_for: set[str] = set()
        self.fail_comment_for: set[str] = set()

    async def graphql_query(self, query: str, variables: dict, installation_id: int) -> dict:
        item_id = variables["input"]["itemId"]
        if item_id in self.fail_mutation_for:
            raise GithubApiError("GraphQL request returned errors: Could not resolve to a node")
        self.mutations.append({
            "query": query,
            "variables": variables,
            "installation_id": installation_id,
        })
        return {"updateProjectV2ItemFieldValue": {"clientMutationId": None}}

    async def create_issue_comment(self, url: str, body: str, installation_id: int) -> dict:
        if any(url.endswith(f"/{item_id}/comments") for item_id in self.fail_comment_for):
            raise GithubApiError(f"POST {url} returned HTTP 403", status_code=403)
        self.comments.append({"url": url, "body": body, "installation_id": installation_id})
        return {"id": len(self.comments)}


# =============================================================================
# FIXTURES
# =============================================================================


def make_item(item_id: str = "I1", **overrides) -> dict[str, Any]:
    """Build a low-level DynamoDB pending move; pass None to drop an attribute."""
    item = {
        "itemId": {"S": item_id},
        "projectId": {"S": "P1"},
        "scheduledDate": {"S": "2024-01-01"},
        "fieldId": {"S": "F1"},
        "fieldValue": {"S": "V1"},
        "fieldValueName": {"S": "Done"},
        "installationId": {"N": "42"},
        "commentsUrl": {"S": f"https://x/{item_id}/comments"},
        "username": {"S": "alice"},
    }
    for name, value in overrides.items():
        if value is None:
            item.pop(name, None)
        else:
            item[name] = value
    return item


@pytest.fixture
def item_factory():
    return make_item


@pytest.fixture
def settings() -> Settings:
    return Settings(
        REGION="us-east-1",
        GITHUB_CREDENTIALS_SECRET_ARN="arn:aws:secretsmanager:us-east-1:123:secret:github",
        CONFIGURATION_SECRET_ARN="arn:aws:secretsmanager:us-east-1:123:secret:config",
        SCHEDULED_MOVES_TABLE_NAME="scheduled-moves",
        SCHEDULED_MOVES_DATE_INDEX_NAME="projectId-scheduledDate-index",
    )


@pytest.fixture
def dynamodb() -> FakeDynamoDbClient:
    return FakeDynamoDbClient()


@pytest.fixture
def github() -> FakeGithubClient:
    return FakeGithubClient()


@pytest.fixture(scope="session")
def private_key_pem() -> str:
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()
