"""Command Handler: Orchestrates CLI command execution.

Receives commands from the main entry point (main.py), delegates the work
to the application services (CompletionService, ChatService,
GitHubAnalyticsService) and renders their results through the UI.
"""

import logging
from typing import Optional

from foliorelay.core.services.chat_service import ChatService
from foliorelay.core.services.completion_service import CompletionService
from foliorelay.core.services.github_analytics_service import BatchSummary, GitHubAnalyticsService
from foliorelay.domain.errors import DispatchError
from foliorelay.domain.interfaces.user_interface import UserInterface
from foliorelay.domain.models.ai import CompletionRequest
from foliorelay.domain.models.batch import BatchOptions

logger = logging.getLogger(__name__)


class CommandHandler:
    """Handles incoming commands and delegates to appropriate services."""

    def __init__(
        self,
        completion_service: CompletionService,
        chat_service: ChatService,
        analytics_service: GitHubAnalyticsService,
        ui: UserInterface,
    ):
        """Initializes the CommandHandler with required services."""
        self.completion_service = completion_service
        self.chat_service = chat_service
        self.analytics_service = analytics_service
        self.ui = ui

    # --- Completion ---

    async def handle_ask(self, request: CompletionRequest, primary: Optional[str] = None) -> bool:
        """Handles the 'ask' command. Returns whether an answer was produced."""
        logger.info(f"Handling 'ask' command (primary override: {primary or 'none'})")
        if primary and not self.completion_service.set_primary(primary):
            return False
        result = await self.completion_service.ask(request)
        return result.success

    def handle_status(self) -> None:
        self.completion_service.show_status()

    async def handle_chat(self) -> None:
        logger.info("Starting interactive chat session.")
        try:
            await self.chat_service.run_session()
        except Exception as e:
            logger.error(f"Chat session failed: {e}", exc_info=True)
            self.ui.display_error(f"Failed to run chat mode: {e}")

    # --- GitHub analytics ---

    def _report_batch(self, batch: BatchSummary) -> None:
        if batch.timed_out:
            self.ui.display_warning("Time limit reached; showing partial results.")
        if batch.failed:
            self.ui.display_warning(f"Gave up on {len(batch.failed)} repositories: {', '.join(batch.failed)}")
        if batch.not_found:
            logger.info(f"Not found or empty: {batch.not_found}")

    async def handle_review(self, username: str, options: BatchOptions) -> bool:
        logger.info(f"Handling 'review' command for '{username}'")
        try:
            analysis = await self.analytics_service.review(username, options)
        except DispatchError as e:
            logger.error(f"Review command failed: {e}")
            self.ui.display_error(f"Could not fetch review data for '{username}': {e}")
            return False

        report, stats = analysis.report, analysis.report.stats
        self.ui.display_table(
            f"Code review summary for {username} ({analysis.batch.repositories} repositories)",
            ("Metric", "Value"),
            [
                ("Pull requests", stats.total_prs),
                ("Merged", stats.merged_prs),
                ("Open", stats.open_prs),
                ("Closed without merge", stats.closed_prs),
                ("Issues", stats.total_issues),
                ("Open issues", stats.open_issues),
                ("Closed issues", stats.closed_issues),
                ("Average PR size (lines)", stats.average_pr_size),
                ("Average review time (days)", stats.average_review_time_days),
                ("Most active month", stats.most_active_month),
                ("Review efficiency", f"{stats.review_efficiency}%"),
                ("Review velocity (merged/month)", report.review_velocity),
                ("Issue resolution rate", f"{report.issue_resolution_rate}%"),
                ("Review comments", report.total_review_comments),
            ],
        )
        sizes, categories = report.pr_size_distribution, report.issue_categories
        self.ui.display_table(
            "Pull request sizes and issue categories",
            ("Bucket", "Value"),
            [
                ("Small PRs (<=50 lines)", f"{sizes.small}%"),
                ("Medium PRs (<=500 lines)", f"{sizes.medium}%"),
                ("Large PRs (>500 lines)", f"{sizes.large}%"),
                ("Bug issues", categories.bugs),
                ("Feature issues", categories.features),
                ("Enhancement issues", categories.enhancements),
            ],
        )
        self.ui.display_table(
            "Monthly activity",
            ("Month", "PRs", "Issues"),
            [(m.month, m.prs, m.issues) for m in report.monthly_activity],
        )
        self._report_batch(analysis.batch)
        return True

    async def handle_productivity(self, username: str, options: BatchOptions, days: int = 30) -> bool:
        logger.info(f"Handling 'productivity' command for '{username}' over {days} days")
        try:
            analysis = await self.analytics_service.productivity(username, options, days=days)
        except (DispatchError, ValueError) as e:
            logger.error(f"Productivity command failed: {e}")
            self.ui.display_error(f"Could not compute productivity for '{username}': {e}")
            return False

        summary = analysis.summary
        self.ui.display_table(
            f"Commit activity for {username} (last {days} days)",
            ("Metric", "Value"),
            [
                ("Commits", summary.total_commits),
                ("Active days", summary.active_days),
                ("Average commits per day", summary.average_commits_per_day),
                ("Most productive day", summary.most_productive_day),
                ("Current streak (days)", summary.current_streak),
                ("Longest streak (days)", summary.longest_streak),
            ],
        )
        if summary.commits_by_repository:
            rows = sorted(summary.commits_by_repository.items(), key=lambda kv: kv[1], reverse=True)
            self.ui.display_table("Commits by repository", ("Repository", "Commits"), rows)
        if summary.total_commits == 0:
            self.ui.display_info(f"No commits by '{username}' found in the last {days} days.")
        self._report_batch(analysis.batch)
        return True

    async def handle_collaborators(self, username: str, options: BatchOptions) -> bool:
        logger.info(f"Handling 'collaborators' command for '{username}'")
        try:
            analysis = await self.analytics_service.collaborators(username, options)
        except DispatchError as e:
            logger.error(f"Collaborators command failed: {e}")
            self.ui.display_error(f"Could not fetch collaborators for '{username}': {e}")
            return False

        network = analysis.network
        if not network.collaborators:
            self.ui.display_info(f"No collaborators found for '{username}'.")
        else:
            self.ui.display_table(
                f"Collaborators of {username}",
                ("Login", "Contributions", "Shared repositories"),
                [(c.login, c.contributions, ", ".join(c.repositories)) for c in network.collaborators],
            )
            if network.collaborations:
                strongest = sorted(network.collaborations, key=lambda c: c.weight, reverse=True)[:10]
                self.ui.display_table(
                    "Strongest connections",
                    ("Pair", "Shared repositories"),
                    [(f"{c.source} / {c.target}", c.weight) for c in strongest],
                )
        self._report_batch(analysis.batch)
        return True

    async def handle_rate_limit(self) -> bool:
        try:
            status = await self.analytics_service.rate_limit()
        except DispatchError as e:
            logger.error(f"Rate limit lookup failed: {e}")
            self.ui.display_error(f"Could not read the GitHub rate limit: {e}")
            return False
        self.ui.display_table(
            "GitHub API quota",
            ("Limit", "Used", "Remaining", "Resets at"),
            [(status.limit, status.used, status.remaining, status.reset_at.strftime("%Y-%m-%d %H:%M:%S %Z"))],
        )
        return True
