from datetime import date, datetime, timedelta, timezone

import pytest

from foliorelay.core.services import aggregation
from foliorelay.core.services.aggregation import (
    build_collaborator_network,
    build_review_report,
    calculate_review_stats,
    daily_commit_activity,
    issue_categories,
    merge,
    pr_size_distribution,
    productivity_summary,
    review_velocity,
)
from foliorelay.domain.models.github import Commit, Contributor, Issue, PullRequest


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


def make_pr(id_, created, merged=None, state="closed", additions=0, deletions=0, updated=None, review_comments=0):
    return PullRequest(
        id=id_, title=f"PR {id_}", state=state, created_at=created, updated_at=updated or created,
        merged_at=merged, additions=additions, deletions=deletions, review_comments=review_comments,
    )


def make_issue(id_, created, state="open", labels=()):
    return Issue(id=id_, title=f"Issue {id_}", state=state, created_at=created, updated_at=created, labels=list(labels))


def test_round_is_half_up():
    assert aggregation._round(2.5) == 3
    assert aggregation._round(0.25, 1) == 0.3
    assert aggregation._round(1 / 3, 1) == 0.3


def test_merge_keeps_item_order_and_skips_empty():
    assert merge([[1, 2], [], [3]]) == [1, 2, 3]
    assert merge([]) == []


def test_review_stats():
    prs = [
        make_pr(1, utc(2024, 3, 1), merged=utc(2024, 3, 3), additions=30, deletions=10),
        make_pr(2, utc(2024, 3, 5), state="closed", updated=utc(2024, 3, 6), additions=100),
        make_pr(3, utc(2024, 4, 1), state="open"),
    ]
    issues = [make_issue(1, utc(2024, 3, 2), state="closed"), make_issue(2, utc(2024, 3, 9))]

    stats = calculate_review_stats(prs, issues)

    assert (stats.total_prs, stats.merged_prs, stats.open_prs, stats.closed_prs) == (3, 1, 1, 1)
    assert (stats.total_issues, stats.open_issues, stats.closed_issues) == (2, 1, 1)
    # Zero-sized PRs are left out of the average
    assert stats.average_pr_size == 70
    assert stats.average_review_time_days == 1.5
    assert stats.most_active_month == "March 2024"
    assert stats.review_efficiency == 33


def test_review_stats_of_nothing():
    stats = calculate_review_stats([], [])

    assert stats.total_prs == 0
    assert stats.average_pr_size == 0
    assert stats.most_active_month == "N/A"
    assert stats.review_efficiency == 0


def test_pr_size_buckets_use_inclusive_limits():
    prs = [
        make_pr(1, utc(2024, 1, 1), additions=50),
        make_pr(2, utc(2024, 1, 1), additions=51),
        make_pr(3, utc(2024, 1, 1), additions=500),
        make_pr(4, utc(2024, 1, 1), additions=501),
    ]
    sizes = pr_size_distribution(prs)
    assert (sizes.small, sizes.medium, sizes.large) == (25, 50, 25)


def test_issue_categories_match_label_keywords():
    issues = [
        make_issue(1, utc(2024, 1, 1), labels=["Bug"]),
        make_issue(2, utc(2024, 1, 1), labels=["new feature"]),
        make_issue(3, utc(2024, 1, 1), labels=["refactor"]),
        make_issue(4, utc(2024, 1, 1), labels=["question"]),
    ]
    categories = issue_categories(issues)
    assert (categories.bugs, categories.features, categories.enhancements) == (1, 1, 1)


def test_review_velocity_counts_last_three_months():
    now = utc(2024, 5, 20)
    prs = [
        make_pr(1, utc(2024, 1, 1), merged=utc(2024, 2, 1)),
        make_pr(2, utc(2024, 2, 1), merged=utc(2024, 2, 29)),
        make_pr(3, utc(2024, 3, 1), merged=utc(2024, 3, 10)),
        make_pr(4, utc(2024, 5, 1), merged=utc(2024, 5, 2)),
        make_pr(5, utc(2024, 5, 1)),
    ]
    # Window starts 2024-02-01
    assert review_velocity(prs, now) == 1.3


def test_review_velocity_window_crosses_year_boundary():
    now = utc(2024, 1, 15)
    prs = [make_pr(1, utc(2023, 9, 1), merged=utc(2023, 10, 1)), make_pr(2, utc(2023, 9, 1), merged=utc(2023, 9, 30))]
    assert review_velocity(prs, now) == 0.3


def test_review_report_combines_everything():
    prs = [make_pr(1, utc(2024, 2, 1), merged=utc(2024, 2, 2), additions=10, review_comments=4)]
    issues = [make_issue(1, utc(2024, 2, 3), state="closed")]

    report = build_review_report(prs, issues, now=utc(2024, 3, 1))

    assert report.total_review_comments == 4
    assert report.issue_resolution_rate == 100
    assert report.monthly_activity[1].month == "Feb"
    assert (report.monthly_activity[1].prs, report.monthly_activity[1].issues) == (1, 1)
    assert len(report.monthly_activity) == 12


def commit_on(day: datetime, repo="alpha", additions=None):
    return Commit(sha=day.isoformat(), date=day, repository=repo, additions=additions)


def test_daily_activity_buckets_by_utc_day():
    start = date(2024, 3, 1)
    commits = [
        commit_on(utc(2024, 3, 1, 9), additions=5),
        commit_on(utc(2024, 3, 1, 23), additions=None),
        commit_on(datetime(2024, 3, 3, 1, tzinfo=timezone(timedelta(hours=2)))),
        commit_on(utc(2024, 2, 28)),
    ]

    activity = daily_commit_activity(commits, start, days=3)

    assert [d.date for d in activity] == ["2024-03-01", "2024-03-02", "2024-03-03"]
    assert [d.commits for d in activity] == [2, 1, 0]
    assert activity[0].lines_added == 5


def test_productivity_summary_streaks():
    start = date(2024, 3, 4)  # a Monday
    commits = [
        commit_on(utc(2024, 3, 4)), commit_on(utc(2024, 3, 5)), commit_on(utc(2024, 3, 5), repo="beta"),
        commit_on(utc(2024, 3, 6)), commit_on(utc(2024, 3, 9)), commit_on(utc(2024, 3, 10)),
    ]
    activity = daily_commit_activity(commits, start, days=7)

    summary = productivity_summary(activity, commits)

    assert summary.total_commits == 6
    assert summary.active_days == 5
    assert summary.longest_streak == 3
    assert summary.current_streak == 2
    assert summary.most_productive_day == "Tuesday"
    assert summary.average_commits_per_day == 0.9
    assert summary.commits_by_repository == {"alpha": 5, "beta": 1}


def test_current_streak_is_zero_after_idle_last_day():
    activity = daily_commit_activity([commit_on(utc(2024, 3, 1))], date(2024, 3, 1), days=2)
    assert productivity_summary(activity).current_streak == 0


def test_productivity_summary_of_empty_series():
    summary = productivity_summary([])
    assert summary.total_commits == 0
    assert summary.most_productive_day == "N/A"


def test_collaborator_network():
    per_repo = {
        "alpha": [Contributor("octo", 1, 50), Contributor("ana", 2, 10), Contributor("bo", 3, 4)],
        "beta": [Contributor("ana", 2, 5), Contributor("bo", 3, 30), Contributor("Octo", 1, 7)],
        "gamma": [Contributor("cy", 4, 1)],
        "delta": [],
    }

    network = build_collaborator_network(per_repo, exclude_login="OCTO")

    assert [(c.login, c.contributions) for c in network.collaborators] == [("bo", 34), ("ana", 15), ("cy", 1)]
    assert network.collaborators[1].repositories == ["alpha", "beta"]
    assert len(network.collaborations) == 1
    edge = network.collaborations[0]
    assert {edge.source, edge.target} == {"ana", "bo"}
    assert edge.weight == 2
    assert edge.repositories == ["alpha", "beta"]


@pytest.mark.parametrize("per_repo", [{}, {"alpha": []}])
def test_collaborator_network_empty(per_repo):
    network = build_collaborator_network(per_repo, exclude_login="octo")
    assert network.collaborators == [] and network.collaborations == []
