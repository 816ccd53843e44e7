"""Thin async client for the GitHub REST v3 endpoints the analytics need.

Each method performs exactly one request (or, for `fetch_review_data`, one
pair) and raises the dispatch-layer error taxonomy on failure. Retrying is
left to the batch engine, which calls these methods once per repository.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Collection, Dict, List, Optional

from foliorelay.domain.errors import InvalidResponse
from foliorelay.domain.interfaces.transport import Transport
from foliorelay.domain.models.github import (
    Commit,
    Contributor,
    Issue,
    PullRequest,
    RateLimitStatus,
    Repository,
)
from foliorelay.domain.models.transport import TransportRequest, TransportResponse
from foliorelay.infrastructure.resilience.classification import classify_response

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"
USER_AGENT = "foliorelay/0.1"
PER_PAGE = 50


@dataclass
class ReviewData:
    """Pull requests and issues of one repository."""
    pull_requests: List[PullRequest] = field(default_factory=list)
    issues: List[Issue] = field(default_factory=list)


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parses GitHub's ISO-8601 timestamps ('2024-01-05T10:00:00Z')."""
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _iso(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class GitHubClient:
    """GitHub REST client on top of the Transport port."""

    def __init__(
        self,
        transport: Transport,
        token: Optional[str] = None,
        base_url: str = GITHUB_API_URL,
        timeout_s: Optional[float] = 30.0,
    ):
        self.transport = transport
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        if not token:
            logger.warning("No GitHub token configured; unauthenticated requests are limited to 60 per hour.")

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": USER_AGENT,
        }
        if self.token:
            headers["Authorization"] = f"token {self.token}"
        return headers

    async def _get(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        not_found_statuses: Collection[int] = (404,),
    ) -> Any:
        request = TransportRequest(
            method="GET",
            url=f"{self.base_url}{path}",
            headers=self._headers(),
            params=params or {},
            timeout_s=self.timeout_s,
        )
        response: TransportResponse = await self.transport.send(request)
        error = classify_response(response, not_found_statuses=not_found_statuses)
        if error is not None:
            logger.debug(f"GET {path} failed: {error}")
            raise error
        return response.body

    async def _get_list(self, path: str, params: Optional[Dict[str, Any]] = None,
                        not_found_statuses: Collection[int] = (404,)) -> List[Dict[str, Any]]:
        body = await self._get(path, params, not_found_statuses)
        if not isinstance(body, list):
            raise InvalidResponse(f"Expected a JSON array from {path}, got {type(body).__name__}")
        return body

    # --- Endpoints ---

    async def list_repositories(self, username: str, limit: int = 100) -> List[Repository]:
        """Most recently updated repositories of `username`."""
        data = await self._get_list(f"/users/{username}/repos", {"per_page": limit, "sort": "updated"})
        return [
            Repository(
                name=item["name"],
                owner=(item.get("owner") or {}).get("login", username),
                full_name=item.get("full_name", ""),
                description=item.get("description"),
                language=item.get("language"),
                fork=bool(item.get("fork", False)),
                stargazers_count=item.get("stargazers_count", 0),
            )
            for item in data
        ]

    async def fetch_pull_requests(self, owner: str, repo: str) -> List[PullRequest]:
        data = await self._get_list(f"/repos/{owner}/{repo}/pulls", {"state": "all", "per_page": PER_PAGE})
        return [
            PullRequest(
                id=item["id"],
                title=item.get("title", ""),
                state=item.get("state", "open"),
                created_at=parse_timestamp(item["created_at"]),
                updated_at=parse_timestamp(item.get("updated_at") or item["created_at"]),
                merged_at=parse_timestamp(item.get("merged_at")),
                additions=item.get("additions") or 0,
                deletions=item.get("deletions") or 0,
                changed_files=item.get("changed_files") or 0,
                comments=item.get("comments") or 0,
                review_comments=item.get("review_comments") or 0,
                commits=item.get("commits") or 0,
                repository=repo,
            )
            for item in data
        ]

    async def fetch_issues(self, owner: str, repo: str) -> List[Issue]:
        """Issues only; the issues endpoint also lists pull requests, which are dropped."""
        # 410 Gone means issues are disabled for the repository
        data = await self._get_list(
            f"/repos/{owner}/{repo}/issues", {"state": "all", "per_page": PER_PAGE}, not_found_statuses=(404, 410)
        )
        return [
            Issue(
                id=item["id"],
                title=item.get("title", ""),
                state=item.get("state", "open"),
                created_at=parse_timestamp(item["created_at"]),
                updated_at=parse_timestamp(item.get("updated_at") or item["created_at"]),
                closed_at=parse_timestamp(item.get("closed_at")),
                comments=item.get("comments") or 0,
                labels=[label.get("name", "") for label in item.get("labels") or [] if isinstance(label, dict)],
                repository=repo,
            )
            for item in data
            if not item.get("pull_request")
        ]

    async def fetch_review_data(self, owner: str, repo: str) -> ReviewData:
        """Pull requests and issues of one repository, fetched concurrently.

        If either request fails the other is cancelled before the error propagates,
        so a retry of the repository never overlaps a request from the previous try.
        """
        pulls_task = asyncio.ensure_future(self.fetch_pull_requests(owner, repo))
        issues_task = asyncio.ensure_future(self.fetch_issues(owner, repo))
        tasks = (pulls_task, issues_task)
        try:
            await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
        finally:
            pending = [task for task in tasks if not task.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
        for task in tasks:
            if not task.cancelled() and task.exception() is not None:
                raise task.exception()
        return ReviewData(pull_requests=pulls_task.result(), issues=issues_task.result())

    async def fetch_commits(
        self,
        owner: str,
        repo: str,
        since: datetime,
        until: datetime,
        author: Optional[str] = None,
    ) -> List[Commit]:
        """Commits in [since, until]. An empty repository (409) counts as not found."""
        params: Dict[str, Any] = {"since": _iso(since), "until": _iso(until), "per_page": PER_PAGE}
        if author:
            params["author"] = author
        data = await self._get_list(f"/repos/{owner}/{repo}/commits", params, not_found_statuses=(404, 409))

        commits = []
        for item in data:
            details = item.get("commit") or {}
            author_info = details.get("author") or {}
            committer_info = details.get("committer") or {}
            login = (item.get("author") or {}).get("login")
            email = author_info.get("email")
            if author and login != author and author not in (email or ""):
                continue
            date = parse_timestamp(author_info.get("date") or committer_info.get("date"))
            if date is None:
                continue
            stats = item.get("stats") or {}
            files = item.get("files")
            commits.append(Commit(
                sha=item.get("sha", ""),
                date=date,
                author_login=login,
                author_email=email,
                message=details.get("message", ""),
                additions=stats.get("additions"),
                deletions=stats.get("deletions"),
                files_changed=len(files) if isinstance(files, list) else None,
                repository=repo,
            ))
        return commits

    async def fetch_contributors(self, owner: str, repo: str, limit: int = 10) -> List[Contributor]:
        # 204 No Content for empty repositories decodes to an empty body
        body = await self._get(f"/repos/{owner}/{repo}/contributors", {"per_page": limit}, (404, 409))
        if body in (None, ""):
            return []
        if not isinstance(body, list):
            raise InvalidResponse(f"Expected a JSON array of contributors for {owner}/{repo}")
        return [
            Contributor(
                login=item["login"],
                id=item.get("id", 0),
                contributions=item.get("contributions", 0),
                avatar_url=item.get("avatar_url"),
            )
            for item in body
            if item.get("login")
        ]

    async def fetch_rate_limit(self) -> RateLimitStatus:
        body = await self._get("/rate_limit")
        try:
            core = body["resources"]["core"] if "resources" in body else body["rate"]
            return RateLimitStatus(
                limit=int(core["limit"]),
                remaining=int(core["remaining"]),
                used=int(core.get("used", int(core["limit"]) - int(core["remaining"]))),
                reset_at=datetime.fromtimestamp(int(core["reset"]), tz=timezone.utc),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidResponse(f"Unexpected /rate_limit payload: {e}") from e
