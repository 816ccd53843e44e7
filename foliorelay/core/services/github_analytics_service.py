"""Core service for the GitHub analytics commands.

Lists a user's repositories, fans the per-repository fetches out through
the batch fetch engine and reduces the per-repository results with the
aggregation functions. A repository that fails or does not exist simply
contributes nothing to the totals.
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from foliorelay.core.services import aggregation
from foliorelay.domain.interfaces.user_interface import UserInterface
from foliorelay.domain.models.analysis import (
    CodeReviewReport,
    CollaboratorNetwork,
    DailyActivity,
    ProductivitySummary,
)
from foliorelay.domain.models.batch import BatchOptions, BatchProgress, ProgressCallback
from foliorelay.domain.models.github import RateLimitStatus, Repository
from foliorelay.infrastructure.github.github_client import GitHubClient, ReviewData
from foliorelay.infrastructure.resilience.batch_fetcher import BatchFetchEngine, make_items

logger = logging.getLogger(__name__)


@dataclass
class BatchSummary:
    """How the batch behind a report went."""
    repositories: int = 0
    failed: List[str] = field(default_factory=list)
    not_found: List[str] = field(default_factory=list)
    timed_out: bool = False


@dataclass
class ReviewAnalysis:
    report: CodeReviewReport
    batch: BatchSummary


@dataclass
class ProductivityAnalysis:
    daily: List[DailyActivity]
    summary: ProductivitySummary
    batch: BatchSummary


@dataclass
class CollaboratorAnalysis:
    network: CollaboratorNetwork
    batch: BatchSummary


class GitHubAnalyticsService:
    """Batch-fetches per-repository GitHub data and aggregates it."""

    def __init__(self, github_client: GitHubClient, batch_engine: BatchFetchEngine, ui: UserInterface):
        self.github_client = github_client
        self.batch_engine = batch_engine
        self.ui = ui

    async def _repositories(self, username: str) -> List[Repository]:
        repos = await self.github_client.list_repositories(username)
        logger.info(f"Found {len(repos)} repositories for '{username}'")
        return repos

    async def _run_batch(self, description: str, repos: List[Repository], fetch_one, options: BatchOptions):
        items = make_items(repos, key=lambda repo: repo.name)
        total = min(len(items), options.max_items)
        with self.ui.progress(description, total=total) as on_progress:
            chained = _chain(options.on_progress, on_progress)
            result = await self.batch_engine.fetch_all(items, fetch_one, replace(options, on_progress=chained))
        summary = BatchSummary(
            repositories=result.progress.total,
            failed=list(result.failed_keys),
            not_found=list(result.not_found_keys),
            timed_out=result.progress.timed_out,
        )
        return result, summary

    async def review(self, username: str, options: BatchOptions, now: Optional[datetime] = None) -> ReviewAnalysis:
        """Pull request and issue statistics across the user's repositories."""
        repos = await self._repositories(username)

        async def fetch_one(repo: Repository) -> ReviewData:
            return await self.github_client.fetch_review_data(repo.owner or username, repo.name)

        result, summary = await self._run_batch(
            "Fetching pull requests and issues", repos, fetch_one, replace(options, empty=ReviewData)
        )
        data: List[ReviewData] = result.ordered_values()
        prs = aggregation.merge(d.pull_requests for d in data)
        issues = aggregation.merge(d.issues for d in data)
        logger.info(f"Review data merged: {len(prs)} pull requests, {len(issues)} issues")
        return ReviewAnalysis(report=aggregation.build_review_report(prs, issues, now), batch=summary)

    async def productivity(
        self,
        username: str,
        options: BatchOptions,
        days: int = 30,
        now: Optional[datetime] = None,
    ) -> ProductivityAnalysis:
        """Daily commit activity of `username` over the last `days` days."""
        if days < 1:
            raise ValueError("days must be at least 1")
        until = now or datetime.now(timezone.utc)
        start_day = (until - timedelta(days=days - 1)).date()
        since = datetime(start_day.year, start_day.month, start_day.day, tzinfo=timezone.utc)
        repos = await self._repositories(username)

        async def fetch_one(repo: Repository):
            return await self.github_client.fetch_commits(
                repo.owner or username, repo.name, since=since, until=until, author=username
            )

        result, summary = await self._run_batch("Fetching commits", repos, fetch_one, options)
        commits = aggregation.merge(result.ordered_values())
        daily = aggregation.daily_commit_activity(commits, start_day, days)
        return ProductivityAnalysis(
            daily=daily,
            summary=aggregation.productivity_summary(daily, commits),
            batch=summary,
        )

    async def collaborators(self, username: str, options: BatchOptions) -> CollaboratorAnalysis:
        """Contributors across the user's repositories, linked by shared repositories."""
        repos = await self._repositories(username)

        async def fetch_one(repo: Repository):
            return await self.github_client.fetch_contributors(repo.owner or username, repo.name)

        result, summary = await self._run_batch("Fetching contributors", repos, fetch_one, options)
        per_repo: Dict[str, list] = {
            str(item.key): result.results[item.key] for item in result.items if item.key in result.results
        }
        network = aggregation.build_collaborator_network(per_repo, exclude_login=username)
        return CollaboratorAnalysis(network=network, batch=summary)

    async def rate_limit(self) -> RateLimitStatus:
        return await self.github_client.fetch_rate_limit()


def _chain(first: Optional[ProgressCallback], second: ProgressCallback) -> ProgressCallback:
    if first is None:
        return second

    def both(snapshot: BatchProgress) -> None:
        first(snapshot)
        second(snapshot)

    return both
