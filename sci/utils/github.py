import hashlib
import hmac

import httpx
import structlog

from sci.config import settings

logger = structlog.get_logger(__name__)

STATUS_STATES = ("success", "failure")


class GitHubAPIError(Exception):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


def verify_signature(
    secret: str,
    body: bytes,
    signature_256: str | None,
    signature_1: str | None = None,
) -> bool:
    """Check a delivery against X-Hub-Signature-256, or the legacy sha1 header."""
    if signature_256:
        digest = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
        return hmac.compare_digest(f"sha256={digest}", signature_256)
    if signature_1:
        digest = hmac.new(secret.encode(), body, hashlib.sha1).hexdigest()
        return hmac.compare_digest(f"sha1={digest}", signature_1)
    return False


class GitHubAPIClient:
    """Async HTTP client for the few GitHub REST endpoints sci needs."""

    DEFAULT_TIMEOUT = 10.0

    def __init__(self, token: str, base_url: str | None = None):
        self.base_url = (base_url or settings.github_api_url).rstrip("/")
        self.headers = {
            "Accept": "application/vnd.github.v3+json",
            "Authorization": f"token {token}",
        }

    async def request(
        self,
        method: str,
        path: str,
        context: dict | None = None,
        **kwargs,
    ) -> httpx.Response:
        """Execute request, raising GitHubAPIError on any failure."""
        context = context or {}
        url = f"{self.base_url}{path}"
        kwargs.setdefault("timeout", self.DEFAULT_TIMEOUT)

        try:
            async with httpx.AsyncClient() as client:
                response = await getattr(client, method)(
                    url, headers=self.headers, **kwargs
                )
                response.raise_for_status()
                return response
        except httpx.RequestError as e:
            logger.error("Request error", url=url, error=str(e), **context)
            raise GitHubAPIError(f"{method.upper()} {url}: {e}") from e
        except httpx.HTTPStatusError as e:
            logger.error(
                "HTTP error",
                url=url,
                status_code=e.response.status_code,
                response_text=e.response.text,
                **context,
            )
            raise GitHubAPIError(
                f"{method.upper()} {url}: HTTP {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e

    async def is_collaborator(self, owner: str, repo: str, user: str) -> bool:
        url = f"{self.base_url}/repos/{owner}/{repo}/collaborators/{user}"

        try:
            async with httpx.AsyncClient() as client:
                response = await client.get(
                    url, headers=self.headers, timeout=self.DEFAULT_TIMEOUT
                )
        except httpx.RequestError as e:
            logger.error(
                "Error checking collaborator access",
                error=str(e),
                user=user,
                repo=f"{owner}/{repo}",
            )
            return False

        if response.status_code == 204:
            return True
        if response.status_code != 404:
            logger.warning(
                "Unexpected response checking collaborator access",
                status_code=response.status_code,
                user=user,
                repo=f"{owner}/{repo}",
            )
        return False

    async def create_gist(
        self, description: str, files: dict[str, str], public: bool = False
    ) -> str:
        """Create a gist and return its html_url."""
        response = await self.request(
            "post",
            "/gists",
            json={
                "description": description,
                "public": public,
                "files": {name: {"content": text} for name, text in files.items()},
            },
            context={"description": description},
        )
        try:
            html_url = response.json()["html_url"]
        except (ValueError, KeyError, TypeError) as e:
            raise GitHubAPIError(f"gist response without html_url: {e}") from e
        logger.info("Created gist", url=html_url)
        return html_url

    async def create_commit_status(
        self,
        owner: str,
        repo: str,
        sha: str,
        state: str,
        context: str,
        target_url: str | None = None,
        description: str | None = None,
    ) -> None:
        if state not in STATUS_STATES:
            raise ValueError(f"Invalid state '{state}'")

        payload = {"state": state, "context": context}
        if target_url:
            payload["target_url"] = target_url
        if description:
            payload["description"] = description

        await self.request(
            "post",
            f"/repos/{owner}/{repo}/statuses/{sha}",
            json=payload,
            context={"git_repo": f"{owner}/{repo}", "commit": sha},
        )
        logger.info(
            "Successfully updated GitHub status",
            git_repo=f"{owner}/{repo}",
            commit=sha,
            state=state,
        )
