"""
GitHub Client: GitHub App authentication and the API calls the job makes.

Handles:
- App JWT signing (RS256, PyJWT)
- Installation access token acquisition and caching
- GraphQL queries and mutations
- Issue / pull request comments
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx
import jwt

from ..core.exceptions import GithubApiError
from ..schemas import GithubCredentials

logger = logging.getLogger(__name__)


class GithubApiClient:
    """
    Client for the GitHub REST and GraphQL APIs, authenticated as a GitHub App.

    Every call is made on behalf of an installation of the app; the
    installation access token is cached until shortly before it expires.
    A fresh httpx.AsyncClient is opened per request, so one instance can
    be reused across event loops.
    """

    ACCEPT_HEADER = "application/vnd.github+json"
    API_VERSION = "2022-11-28"

    # GitHub rejects app JWTs valid for more than ten minutes
    JWT_LIFETIME = timedelta(minutes=10)
    # Allow for clock drift between this host and GitHub
    JWT_BACKDATE = timedelta(seconds=60)
    TOKEN_REFRESH_MARGIN = timedelta(minutes=5)

    def __init__(
        self,
        app_id: str,
        private_key: str,
        base_url: str = "https://api.github.com",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.app_id = app_id
        self._private_key = private_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        # installation_id -> (token, expires_at)
        self._installation_tokens: dict[int, tuple[str, datetime]] = {}

    @classmethod
    def from_credentials(cls, credentials: GithubCredentials, **kwargs) -> "GithubApiClient":
        return cls(
            app_id=credentials.app_id,
            private_key=credentials.private_key.get_secret_value(),
            **kwargs,
        )

    # =========================================================================
    # AUTHENTICATION
    # =========================================================================

    def create_app_jwt(self, now: datetime | None = None) -> str:
        """Sign a short-lived JWT identifying the GitHub App."""
        now = now or datetime.now(timezone.utc)
        payload = {
            "iat": now - self.JWT_BACKDATE,
            "exp": now + self.JWT_LIFETIME - self.JWT_BACKDATE,
            "iss": self.app_id,
        }
        return jwt.encode(payload, self._private_key, algorithm="RS256")

    async def get_installation_token(self, installation_id: int) -> str:
        """
        Get an installation access token.

        Caches the token and refreshes when it is close to expiry.
        """
        cached = self._installation_tokens.get(installation_id)
        if cached:
            token, expires_at = cached
            if datetime.now(timezone.utc) < expires_at - self.TOKEN_REFRESH_MARGIN:
                return token

        logger.info(f"Requesting access token for installation {installation_id}")
        data = await self._request(
            "POST",
            f"{self.base_url}/app/installations/{installation_id}/access_tokens",
            token=self.create_app_jwt(),
            expected_status=(201,),
        )

        token = data.get("token")
        if not token:
            raise GithubApiError(
                f"No access token returned for installation {installation_id}"
            )

        expires_at = _parse_timestamp(data.get("expires_at"))
        self._installation_tokens[installation_id] = (token, expires_at)
        return token

    # =========================================================================
    # API CALLS
    # =========================================================================

    async def graphql_query(
        self,
        query: str,
        variables: dict[str, Any],
        installation_id: int,
    ) -> dict[str, Any]:
        """
        Execute a GraphQL query or mutation.

        Returns the `data` object of the response.

        Raises:
            GithubApiError: on transport failure, HTTP error or GraphQL errors
        """
        token = await self.get_installation_token(installation_id)
        body = await self._request(
            "POST",
            f"{self.base_url}/graphql",
            token=token,
            json={"query": query, "variables": variables},
            expected_status=(200,),
        )

        errors = body.get("errors")
        if errors:
            messages = "; ".join(str(err.get("message", err)) for err in errors)
            raise GithubApiError(f"GraphQL request returned errors: {messages}", detail=str(errors))

        return body.get("data") or {}

    async def create_issue_comment(
        self,
        url: str,
        body: str,
        installation_id: int,
    ) -> dict[str, Any]:
        """Post a comment to an issue or pull request comments URL."""
        token = await self.get_installation_token(installation_id)
        return await self._request(
            "POST",
            url,
            token=token,
            json={"body": body},
            expected_status=(201,),
        )

    # =========================================================================
    # HELPERS
    # =========================================================================

    async def _request(
        self,
        method: str,
        url: str,
        token: str,
        expected_status: tuple[int, ...],
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        headers = {
            "Accept": self.ACCEPT_HEADER,
            "Authorization": f"Bearer {token}",
            "X-GitHub-Api-Version": self.API_VERSION,
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.request(method, url, headers=headers, json=json)
        except httpx.HTTPError as e:
            raise GithubApiError(f"{method} {url} failed: {e}") from e

        if response.status_code not in expected_status:
            logger.error(f"GitHub API {method} {url} returned {response.status_code}: {response.text}")
            raise GithubApiError(
                f"{method} {url} returned HTTP {response.status_code}",
                status_code=response.status_code,
                detail=response.text,
            )

        try:
            return response.json()
        except ValueError as e:
            raise GithubApiError(
                f"{method} {url} returned a non-JSON body",
                status_code=response.status_code,
                detail=response.text,
            ) from e


def _parse_timestamp(value: str | None) -> datetime:
    """Parse a GitHub ISO 8601 timestamp, defaulting to one hour from now."""
    if not value:
        return datetime.now(timezone.utc) + timedelta(hours=1)
    return datetime.fromisoformat(value.replace("Z", "+00:00"))
