"""GraphQL transport for the GitHub API."""
import logging
from typing import Any, Optional

import httpx

from src.core.errors import TransportError, DecodeError


logger = logging.getLogger(__name__)

USER_AGENT = "issueindex-crawler"

RATE_LIMIT_QUERY = """
query {
    rateLimit {
        limit
        remaining
        used
        resetAt
    }
}
"""


class GitHubAPIError(TransportError):
    """Non-success response or network failure talking to GitHub."""
    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class GitHubAuthError(GitHubAPIError):
    """Token missing, expired or revoked."""
    pass


class GitHubRateLimitError(GitHubAPIError):
    """Primary or secondary rate limit hit."""
    pass


class GitHubClient:
    """
    Thin wrapper over a shared httpx.AsyncClient.
    Query construction lives in github_search; this class only moves bytes.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        token: str,
        url: str = "https://api.github.com/graphql",
        timeout: float | None = None,
    ):
        self.http = http
        self.token = token
        self.url = url
        self.timeout = timeout

    def _headers(self) -> dict[str, str]:
        headers = {
            "User-Agent": USER_AGENT,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def post_graphql(
        self,
        query: str,
        variables: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        """
        Posts a GraphQL document and returns its `data` object.

        Raises:
            GitHubAuthError: 401
            GitHubRateLimitError: 429, or 403 with exhausted rate limit
            GitHubAPIError: any other non-2xx status or network failure
            DecodeError: body is not JSON or carries no data
        """
        body = {"query": query, "variables": variables or {}}
        request_kwargs: dict[str, Any] = {"json": body, "headers": self._headers()}
        if self.timeout is not None:
            request_kwargs["timeout"] = self.timeout

        try:
            response = await self.http.post(self.url, **request_kwargs)
        except httpx.HTTPError as e:
            logger.error("Error getting response from GitHub: %s", e)
            raise GitHubAPIError(f"GitHub request failed: {e}") from e

        if response.status_code == 401:
            raise GitHubAuthError("GitHub rejected the token", status_code=401)
        if response.status_code == 429 or (
            response.status_code == 403
            and response.headers.get("x-ratelimit-remaining") == "0"
        ):
            raise GitHubRateLimitError("GitHub rate limit exceeded", status_code=response.status_code)
        if not response.is_success:
            logger.error("GitHub http error %s", response.status_code)
            raise GitHubAPIError(
                f"GitHub http error {response.status_code}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise DecodeError(f"Failed to deserialize response: {e}") from e

        if not isinstance(payload, dict):
            raise DecodeError("GraphQL response is not an object")

        data = payload.get("data")
        errors = payload.get("errors")
        if errors:
            # Partial data is still usable; only fail when nothing came back
            logger.warning("GraphQL returned errors: %s", errors)
        if not isinstance(data, dict):
            raise DecodeError(f"GraphQL response carries no data: {errors or payload}")

        return data

    async def get_rate_limit(self) -> int:
        """Returns remaining GraphQL points for the current token."""
        data = await self.post_graphql(RATE_LIMIT_QUERY)
        rate_limit = data.get("rateLimit")
        if not isinstance(rate_limit, dict) or not isinstance(rate_limit.get("remaining"), int):
            raise DecodeError("Failed to get rate limit")
        return rate_limit["remaining"]
