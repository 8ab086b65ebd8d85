from typing import List, Optional

import httpx
from loguru import logger
from pydantic import TypeAdapter, ValidationError

from ..config import Settings, get_settings
from ..exceptions import GitHubTransportError, OwnerNotFoundError, RateLimitedError
from .base import HostingSource, Release, RepoDetail, RepoSummary, SearchPage

RATE_LIMIT_STATUSES = (403, 429)

_repo_list = TypeAdapter(List[RepoSummary])


class GitHubAdapter(HostingSource):
    """Read-only client for the handful of GitHub REST endpoints docshelf uses.

    Pass ``client`` to supply your own transport (tests hand in an
    ``httpx.AsyncClient`` over ``httpx.MockTransport``); otherwise one is built
    from settings. Requests are unauthenticated and never retried.
    """

    def __init__(self, settings: Settings | None = None, client: httpx.AsyncClient | None = None):
        self.settings = settings or get_settings()
        self.headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": "docshelf",
        }
        if client is None:
            client_kwargs = {
                "base_url": str(self.settings.github_base_url),
                "timeout": self.settings.http_timeout_seconds,
                "follow_redirects": True,
            }
            if self.settings.github_proxy:
                client_kwargs["proxy"] = self.settings.github_proxy
            client = httpx.AsyncClient(**client_kwargs)
        self.client = client

    async def aclose(self) -> None:
        await self.client.aclose()

    async def _get(self, path: str, params: dict | None = None, not_found_message: str | None = None) -> httpx.Response:
        try:
            resp = await self.client.get(path, params=params, headers=self.headers)
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            if status in RATE_LIMIT_STATUSES:
                raise RateLimitedError("GitHub API rate limit reached, try again later", status) from exc
            if status == 404 and not_found_message:
                raise OwnerNotFoundError(not_found_message, status) from exc
            raise GitHubTransportError(f"GitHub {status}: request to {path} failed", status) from exc
        except httpx.RequestError as exc:
            raise GitHubTransportError(f"GitHub request error: {type(exc).__name__} {exc!r}") from exc
        except httpx.InvalidURL as exc:
            raise GitHubTransportError(f"GitHub request to {path!r} has an invalid URL: {exc}") from exc
        return resp

    @staticmethod
    def _json(resp: httpx.Response):
        try:
            return resp.json()
        except ValueError as exc:
            raise GitHubTransportError(f"GitHub returned a malformed payload for {resp.request.url.path}") from exc

    async def list_owner_repositories(self, owner: str, per_page: int = 30) -> List[str]:
        owner = owner.strip()
        message = f"User {owner!r} does not exist"
        resp = await self._get(
            f"/users/{owner}/repos",
            params={"sort": "updated", "per_page": per_page},
            not_found_message=message,
        )
        data = self._json(resp)
        if isinstance(data, dict) and data.get("message") == "Not Found":
            raise OwnerNotFoundError(message, resp.status_code)
        try:
            repos = _repo_list.validate_python(data)
        except ValidationError as exc:
            raise GitHubTransportError(f"Unexpected repository listing for {owner!r}") from exc
        logger.debug(f"[github] listed {len(repos)} repos for {owner}")
        return [repo.name for repo in repos]

    async def search_owner_repositories(self, owner: str, term: str, per_page: int = 30) -> List[str]:
        owner = owner.strip()
        query = f"{term.strip()} user:{owner}"
        resp = await self._get(
            "/search/repositories",
            params={"q": query, "sort": "updated", "per_page": per_page},
        )
        try:
            page = SearchPage.model_validate(self._json(resp))
        except ValidationError as exc:
            raise GitHubTransportError(f"Unexpected search payload for {query!r}") from exc
        logger.debug(f"[github] search {query!r} matched {len(page.items)} repos")
        return [repo.name for repo in page.items]

    async def get_latest_release(self, owner: str, repo: str) -> Release:
        resp = await self._get(f"/repos/{owner}/{repo}/releases/latest")
        try:
            return Release.model_validate(self._json(resp))
        except ValidationError as exc:
            raise GitHubTransportError(f"Unexpected release payload for {owner}/{repo}") from exc

    async def get_repository(self, owner: str, repo: str) -> Optional[RepoDetail]:
        """Fetch description and topics for a repository; ``None`` on any failure."""
        try:
            resp = await self._get(f"/repos/{owner}/{repo}")
            return RepoDetail.model_validate(self._json(resp))
        except (GitHubTransportError, RateLimitedError, ValidationError) as exc:
            logger.warning(f"[github] failed to fetch repo info for {owner}/{repo}: {exc}")
            return None
