"""Domain models for GitHub resources fetched by the batch engine.

Only the fields the aggregator needs are kept; everything else in the
REST payloads is dropped at the client boundary.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional


@dataclass
class Repository:
    name: str
    owner: str
    full_name: str = ""
    description: Optional[str] = None
    language: Optional[str] = None
    fork: bool = False
    stargazers_count: int = 0


@dataclass
class PullRequest:
    id: int
    title: str
    state: str  # 'open' or 'closed'
    created_at: datetime
    updated_at: datetime
    merged_at: Optional[datetime] = None
    additions: int = 0
    deletions: int = 0
    changed_files: int = 0
    comments: int = 0
    review_comments: int = 0
    commits: int = 0
    repository: Optional[str] = None

    @property
    def size(self) -> int:
        return self.additions + self.deletions


@dataclass
class Issue:
    id: int
    title: str
    state: str
    created_at: datetime
    updated_at: datetime
    closed_at: Optional[datetime] = None
    comments: int = 0
    labels: List[str] = field(default_factory=list)
    repository: Optional[str] = None


@dataclass
class Commit:
    sha: str
    date: datetime
    author_login: Optional[str] = None
    author_email: Optional[str] = None
    message: str = ""
    additions: Optional[int] = None
    deletions: Optional[int] = None
    files_changed: Optional[int] = None
    repository: Optional[str] = None


@dataclass
class Contributor:
    login: str
    id: int
    contributions: int = 0
    avatar_url: Optional[str] = None


@dataclass
class RateLimitStatus:
    """Core quota snapshot from GET /rate_limit."""
    limit: int
    remaining: int
    used: int
    reset_at: datetime
