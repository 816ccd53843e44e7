"""Domain models for the summary statistics derived from fetched data."""

from dataclasses import dataclass, field
from typing import Dict, List


@dataclass
class CodeReviewStats:
    total_prs: int = 0
    merged_prs: int = 0
    open_prs: int = 0
    closed_prs: int = 0  # closed without merge
    total_issues: int = 0
    open_issues: int = 0
    closed_issues: int = 0
    average_pr_size: int = 0
    average_review_time_days: float = 0.0
    most_active_month: str = "N/A"
    review_efficiency: int = 0  # merged / total, percent


@dataclass
class MonthlyActivity:
    month: str  # 'Jan' .. 'Dec'
    prs: int = 0
    issues: int = 0


@dataclass
class PRSizeDistribution:
    """Percentages of pull requests by changed lines (<=50, <=500, >500)."""
    small: int = 0
    medium: int = 0
    large: int = 0


@dataclass
class IssueCategories:
    bugs: int = 0
    features: int = 0
    enhancements: int = 0


@dataclass
class CodeReviewReport:
    """Everything the review summary shows, computed from one batch run."""
    stats: CodeReviewStats
    monthly_activity: List[MonthlyActivity] = field(default_factory=list)
    pr_size_distribution: PRSizeDistribution = field(default_factory=PRSizeDistribution)
    issue_categories: IssueCategories = field(default_factory=IssueCategories)
    total_review_comments: int = 0
    review_velocity: float = 0.0
    issue_resolution_rate: int = 0


@dataclass
class DailyActivity:
    date: str  # ISO date
    commits: int = 0
    lines_added: int = 0
    lines_deleted: int = 0
    files_changed: int = 0


@dataclass
class ProductivitySummary:
    total_commits: int = 0
    active_days: int = 0
    average_commits_per_day: float = 0.0
    most_productive_day: str = "N/A"
    current_streak: int = 0
    longest_streak: int = 0
    commits_by_repository: Dict[str, int] = field(default_factory=dict)


@dataclass
class Collaborator:
    login: str
    id: int
    contributions: int = 0
    repositories: List[str] = field(default_factory=list)
    avatar_url: str = ""


@dataclass
class Collaboration:
    source: str
    target: str
    weight: int
    repositories: List[str] = field(default_factory=list)


@dataclass
class CollaboratorNetwork:
    collaborators: List[Collaborator] = field(default_factory=list)
    collaborations: List[Collaboration] = field(default_factory=list)
