"""Pure aggregation over batch results.

Merges per-repository lists into flat collections and derives the summary
statistics shown by the review, productivity and collaborator commands.
Items that failed or were not found contribute empty lists, so partial
batches aggregate like smaller ones.
"""

import math
from collections import Counter
from datetime import date, datetime, timedelta, timezone
from itertools import combinations
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, TypeVar

from foliorelay.domain.models.analysis import (
    CodeReviewReport,
    CodeReviewStats,
    Collaboration,
    Collaborator,
    CollaboratorNetwork,
    DailyActivity,
    IssueCategories,
    MonthlyActivity,
    PRSizeDistribution,
    ProductivitySummary,
)
from foliorelay.domain.models.github import Commit, Contributor, Issue, PullRequest

T = TypeVar("T")

MONTHS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]
WEEKDAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]

SMALL_PR_MAX_LINES = 50
MEDIUM_PR_MAX_LINES = 500

BUG_KEYWORDS = ("bug", "fix", "error")
FEATURE_KEYWORDS = ("feature", "enhancement", "new")
ENHANCEMENT_KEYWORDS = ("improvement", "refactor", "optimization")


def _round(value: float, digits: int = 0) -> float:
    """Rounds half up, unlike the built-in round()."""
    scale = 10 ** digits
    return math.floor(value * scale + 0.5) / scale


def _percent(part: int, whole: int) -> int:
    return int(_round(part / whole * 100)) if whole else 0


def merge(per_item_results: Iterable[Sequence[T]]) -> List[T]:
    """Flattens per-item lists into one list, preserving item order."""
    merged: List[T] = []
    for records in per_item_results:
        merged.extend(records)
    return merged


# --- Code review ---

def calculate_review_stats(prs: Sequence[PullRequest], issues: Sequence[Issue]) -> CodeReviewStats:
    total_prs = len(prs)
    merged_prs = sum(1 for pr in prs if pr.merged_at)

    sizes = [pr.size for pr in prs if pr.size > 0]
    average_size = int(_round(sum(sizes) / len(sizes))) if sizes else 0

    review_times = []
    for pr in prs:
        if pr.merged_at:
            end = pr.merged_at
        elif pr.state == "closed":
            end = pr.updated_at
        else:
            continue
        days = (end - pr.created_at).total_seconds() / 86400
        if days > 0:
            review_times.append(days)
    average_review = _round(sum(review_times) / len(review_times), 1) if review_times else 0.0

    by_month = Counter(pr.created_at.strftime("%B %Y") for pr in prs)
    most_active = max(by_month, key=by_month.get) if by_month else "N/A"

    return CodeReviewStats(
        total_prs=total_prs,
        merged_prs=merged_prs,
        open_prs=sum(1 for pr in prs if pr.state == "open"),
        closed_prs=sum(1 for pr in prs if pr.state == "closed" and not pr.merged_at),
        total_issues=len(issues),
        open_issues=sum(1 for issue in issues if issue.state == "open"),
        closed_issues=sum(1 for issue in issues if issue.state == "closed"),
        average_pr_size=average_size,
        average_review_time_days=average_review,
        most_active_month=most_active,
        review_efficiency=_percent(merged_prs, total_prs),
    )


def monthly_activity(prs: Sequence[PullRequest], issues: Sequence[Issue]) -> List[MonthlyActivity]:
    """PR and issue counts by calendar month (all years folded together)."""
    months = [MonthlyActivity(month=name) for name in MONTHS]
    for pr in prs:
        months[pr.created_at.month - 1].prs += 1
    for issue in issues:
        months[issue.created_at.month - 1].issues += 1
    return months


def pr_size_distribution(prs: Sequence[PullRequest]) -> PRSizeDistribution:
    total = len(prs)
    small = sum(1 for pr in prs if pr.size <= SMALL_PR_MAX_LINES)
    medium = sum(1 for pr in prs if SMALL_PR_MAX_LINES < pr.size <= MEDIUM_PR_MAX_LINES)
    large = sum(1 for pr in prs if pr.size > MEDIUM_PR_MAX_LINES)
    return PRSizeDistribution(
        small=_percent(small, total),
        medium=_percent(medium, total),
        large=_percent(large, total),
    )


def _has_label(issue: Issue, keywords: Sequence[str]) -> bool:
    return any(keyword in label.lower() for label in issue.labels for keyword in keywords)


def issue_categories(issues: Sequence[Issue]) -> IssueCategories:
    """Counts issues per label keyword bucket. An issue may land in several buckets."""
    return IssueCategories(
        bugs=sum(1 for issue in issues if _has_label(issue, BUG_KEYWORDS)),
        features=sum(1 for issue in issues if _has_label(issue, FEATURE_KEYWORDS)),
        enhancements=sum(1 for issue in issues if _has_label(issue, ENHANCEMENT_KEYWORDS)),
    )


def review_velocity(prs: Sequence[PullRequest], now: Optional[datetime] = None) -> float:
    """Merged pull requests per month, averaged over the last three calendar months."""
    now = now or datetime.now(timezone.utc)
    month_index = now.year * 12 + (now.month - 1) - 3
    window_start = datetime(month_index // 12, month_index % 12 + 1, 1, tzinfo=now.tzinfo)
    recent = 0
    for pr in prs:
        if pr.merged_at is None:
            continue
        merged_at = pr.merged_at
        if merged_at.tzinfo is None and window_start.tzinfo is not None:
            merged_at = merged_at.replace(tzinfo=timezone.utc)
        if merged_at >= window_start:
            recent += 1
    return _round(recent / 3, 1)


def issue_resolution_rate(issues: Sequence[Issue]) -> int:
    return _percent(sum(1 for issue in issues if issue.state == "closed"), len(issues))


def total_review_comments(prs: Sequence[PullRequest]) -> int:
    return sum(pr.review_comments for pr in prs)


def build_review_report(
    prs: Sequence[PullRequest],
    issues: Sequence[Issue],
    now: Optional[datetime] = None,
) -> CodeReviewReport:
    return CodeReviewReport(
        stats=calculate_review_stats(prs, issues),
        monthly_activity=monthly_activity(prs, issues),
        pr_size_distribution=pr_size_distribution(prs),
        issue_categories=issue_categories(issues),
        total_review_comments=total_review_comments(prs),
        review_velocity=review_velocity(prs, now),
        issue_resolution_rate=issue_resolution_rate(issues),
    )


# --- Productivity ---

def daily_commit_activity(commits: Sequence[Commit], start: date, days: int) -> List[DailyActivity]:
    """One entry per day in [start, start + days), commits bucketed by UTC date.

    Line and file counts are only summed where the commit payload carried them.
    """
    buckets: Dict[date, List[Commit]] = {}
    for commit in commits:
        stamp = commit.date if commit.date.tzinfo is None else commit.date.astimezone(timezone.utc)
        buckets.setdefault(stamp.date(), []).append(commit)

    activity = []
    for offset in range(days):
        day = start + timedelta(days=offset)
        day_commits = buckets.get(day, [])
        activity.append(DailyActivity(
            date=day.isoformat(),
            commits=len(day_commits),
            lines_added=sum(c.additions or 0 for c in day_commits),
            lines_deleted=sum(c.deletions or 0 for c in day_commits),
            files_changed=sum(c.files_changed or 0 for c in day_commits),
        ))
    return activity


def productivity_summary(activity: Sequence[DailyActivity], commits: Sequence[Commit] = ()) -> ProductivitySummary:
    """Totals, weekday with most commits and commit streaks over a daily series.

    The current streak counts consecutive active days ending on the last day
    of the series; it is zero when that day had no commits.
    """
    total = sum(day.commits for day in activity)
    if not activity:
        return ProductivitySummary()

    current = 0
    for day in reversed(activity):
        if day.commits == 0:
            break
        current += 1

    longest = run = 0
    for day in activity:
        run = run + 1 if day.commits > 0 else 0
        longest = max(longest, run)

    by_weekday: Counter = Counter()
    for day in activity:
        if day.commits:
            by_weekday[WEEKDAYS[date.fromisoformat(day.date).weekday()]] += day.commits
    most_productive = max(by_weekday, key=by_weekday.get) if by_weekday else "N/A"

    return ProductivitySummary(
        total_commits=total,
        active_days=sum(1 for day in activity if day.commits > 0),
        average_commits_per_day=_round(total / len(activity), 1),
        most_productive_day=most_productive,
        current_streak=current,
        longest_streak=longest,
        commits_by_repository=dict(Counter(c.repository for c in commits if c.repository)),
    )


# --- Collaborators ---

def build_collaborator_network(
    per_repo_contributors: Mapping[str, Sequence[Contributor]],
    exclude_login: Optional[str] = None,
) -> CollaboratorNetwork:
    """Merges contributors across repositories and links those sharing repositories.

    Contributions are summed per login. Each pair of collaborators that
    share at least one repository gets an edge weighted by the number of
    shared repositories. `exclude_login` (the profile owner) is left out.
    """
    excluded = exclude_login.lower() if exclude_login else None
    merged: Dict[str, Collaborator] = {}
    for repo, contributors in per_repo_contributors.items():
        for contributor in contributors:
            if excluded and contributor.login.lower() == excluded:
                continue
            collaborator = merged.get(contributor.login)
            if collaborator is None:
                collaborator = Collaborator(
                    login=contributor.login,
                    id=contributor.id,
                    avatar_url=contributor.avatar_url or "",
                )
                merged[contributor.login] = collaborator
            collaborator.contributions += contributor.contributions
            if repo not in collaborator.repositories:
                collaborator.repositories.append(repo)

    collaborations = []
    for first, second in combinations(merged.values(), 2):
        shared = [repo for repo in first.repositories if repo in second.repositories]
        if shared:
            collaborations.append(Collaboration(
                source=first.login,
                target=second.login,
                weight=len(shared),
                repositories=shared,
            ))

    return CollaboratorNetwork(
        collaborators=sorted(merged.values(), key=lambda c: c.contributions, reverse=True),
        collaborations=collaborations,
    )
