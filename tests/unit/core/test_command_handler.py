from datetime import datetime, timezone

import pytest
from unittest.mock import AsyncMock, MagicMock

from foliorelay.core.command_handler import CommandHandler
from foliorelay.core.services.chat_service import ChatService
from foliorelay.core.services.completion_service import CompletionService
from foliorelay.core.services.github_analytics_service import (
    BatchSummary,
    CollaboratorAnalysis,
    GitHubAnalyticsService,
    ProductivityAnalysis,
    ReviewAnalysis,
)
from foliorelay.domain.errors import ClientError, RateLimited
from foliorelay.domain.interfaces.user_interface import UserInterface
from foliorelay.domain.models.ai import CompletionRequest, DispatchResult
from foliorelay.domain.models.analysis import (
    CodeReviewReport,
    CodeReviewStats,
    Collaboration,
    Collaborator,
    CollaboratorNetwork,
    ProductivitySummary,
)
from foliorelay.domain.models.batch import BatchOptions
from foliorelay.domain.models.github import RateLimitStatus


@pytest.fixture
def mock_completion_service():
    service = MagicMock(spec=CompletionService)
    service.ask = AsyncMock(return_value=DispatchResult(success=True, provider_used="gemini"))
    return service


@pytest.fixture
def mock_chat_service():
    service = MagicMock(spec=ChatService)
    service.run_session = AsyncMock()
    return service


@pytest.fixture
def mock_analytics_service():
    service = MagicMock(spec=GitHubAnalyticsService)
    for name in ("review", "productivity", "collaborators", "rate_limit"):
        setattr(service, name, AsyncMock())
    return service


@pytest.fixture
def mock_ui():
    return MagicMock(spec=UserInterface)


@pytest.fixture
def command_handler(mock_completion_service, mock_chat_service, mock_analytics_service, mock_ui):
    """Fixture to create CommandHandler with mocked services."""
    return CommandHandler(
        completion_service=mock_completion_service,
        chat_service=mock_chat_service,
        analytics_service=mock_analytics_service,
        ui=mock_ui,
    )


@pytest.mark.asyncio
async def test_handle_ask(command_handler, mock_completion_service):
    request = CompletionRequest(prompt="hi")

    assert await command_handler.handle_ask(request) is True

    mock_completion_service.ask.assert_awaited_once_with(request)
    mock_completion_service.set_primary.assert_not_called()


@pytest.mark.asyncio
async def test_handle_ask_with_unusable_primary_stops(command_handler, mock_completion_service):
    mock_completion_service.set_primary.return_value = False

    assert await command_handler.handle_ask(CompletionRequest(prompt="hi"), primary="mystery") is False

    mock_completion_service.ask.assert_not_awaited()


@pytest.mark.asyncio
async def test_handle_ask_reports_outright_failure(command_handler, mock_completion_service):
    mock_completion_service.ask.return_value = DispatchResult(success=False, provider_used="all_failed")
    assert await command_handler.handle_ask(CompletionRequest(prompt="hi")) is False


def test_handle_status(command_handler, mock_completion_service):
    command_handler.handle_status()
    mock_completion_service.show_status.assert_called_once()


@pytest.mark.asyncio
async def test_handle_chat_error(command_handler, mock_chat_service, mock_ui):
    """Errors escaping the chat loop are displayed, not raised."""
    mock_chat_service.run_session.side_effect = Exception("Chat init failed")

    await command_handler.handle_chat()

    mock_ui.display_error.assert_called_once_with("Failed to run chat mode: Chat init failed")


@pytest.mark.asyncio
async def test_handle_review_renders_tables_and_partial_warning(command_handler, mock_analytics_service, mock_ui):
    report = CodeReviewReport(stats=CodeReviewStats(total_prs=4, merged_prs=3, review_efficiency=75))
    mock_analytics_service.review.return_value = ReviewAnalysis(
        report=report, batch=BatchSummary(repositories=5, failed=["flaky"], timed_out=True)
    )

    assert await command_handler.handle_review("octo", BatchOptions()) is True

    titles = [c.args[0] for c in mock_ui.display_table.call_args_list]
    assert titles[0] == "Code review summary for octo (5 repositories)"
    rows = mock_ui.display_table.call_args_list[0].args[2]
    assert ("Review efficiency", "75%") in rows
    warnings = [c.args[0] for c in mock_ui.display_warning.call_args_list]
    assert "Time limit reached; showing partial results." in warnings
    assert "Gave up on 1 repositories: flaky" in warnings


@pytest.mark.asyncio
async def test_handle_review_failure(command_handler, mock_analytics_service, mock_ui):
    mock_analytics_service.review.side_effect = RateLimited("quota", retry_after_ms=1000)

    assert await command_handler.handle_review("octo", BatchOptions()) is False

    assert "Could not fetch review data for 'octo'" in mock_ui.display_error.call_args.args[0]


@pytest.mark.asyncio
async def test_handle_productivity_without_commits(command_handler, mock_analytics_service, mock_ui):
    mock_analytics_service.productivity.return_value = ProductivityAnalysis(
        daily=[], summary=ProductivitySummary(), batch=BatchSummary(repositories=2)
    )

    assert await command_handler.handle_productivity("octo", BatchOptions(), days=14) is True

    mock_analytics_service.productivity.assert_awaited_once()
    mock_ui.display_info.assert_called_once_with("No commits by 'octo' found in the last 14 days.")
    mock_ui.display_warning.assert_not_called()


@pytest.mark.asyncio
async def test_handle_collaborators(command_handler, mock_analytics_service, mock_ui):
    network = CollaboratorNetwork(
        collaborators=[Collaborator("ana", 1, 5, ["alpha", "beta"]), Collaborator("bo", 2, 1, ["beta"])],
        collaborations=[Collaboration("ana", "bo", 1, ["beta"])],
    )
    mock_analytics_service.collaborators.return_value = CollaboratorAnalysis(network=network, batch=BatchSummary())

    assert await command_handler.handle_collaborators("octo", BatchOptions()) is True

    first_rows = mock_ui.display_table.call_args_list[0].args[2]
    assert first_rows[0] == ("ana", 5, "alpha, beta")
    second_rows = mock_ui.display_table.call_args_list[1].args[2]
    assert second_rows == [("ana / bo", 1)]


@pytest.mark.asyncio
async def test_handle_collaborators_empty(command_handler, mock_analytics_service, mock_ui):
    mock_analytics_service.collaborators.return_value = CollaboratorAnalysis(
        network=CollaboratorNetwork(), batch=BatchSummary()
    )

    assert await command_handler.handle_collaborators("octo", BatchOptions()) is True

    mock_ui.display_info.assert_called_once_with("No collaborators found for 'octo'.")
    mock_ui.display_table.assert_not_called()


@pytest.mark.asyncio
async def test_handle_rate_limit(command_handler, mock_analytics_service, mock_ui):
    reset = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
    mock_analytics_service.rate_limit.return_value = RateLimitStatus(limit=60, remaining=0, used=60, reset_at=reset)

    assert await command_handler.handle_rate_limit() is True

    rows = mock_ui.display_table.call_args.args[2]
    assert rows == [(60, 60, 0, "2024-01-01 12:00:00 UTC")]


@pytest.mark.asyncio
async def test_handle_rate_limit_failure(command_handler, mock_analytics_service, mock_ui):
    mock_analytics_service.rate_limit.side_effect = ClientError("HTTP 401: Bad credentials", status_code=401)

    assert await command_handler.handle_rate_limit() is False
    mock_ui.display_error.assert_called_once()
