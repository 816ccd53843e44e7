import pytest
from unittest.mock import AsyncMock, MagicMock

from foliorelay.core.services.chat_service import ChatService
from foliorelay.core.services.completion_service import CompletionService
from foliorelay.domain.interfaces.user_interface import UserInterface


@pytest.fixture
def mock_ui():
    ui = MagicMock(spec=UserInterface)
    ui.display_session_header = MagicMock()
    ui.display_session_footer = MagicMock()
    return ui


@pytest.fixture
def mock_completion_service():
    service = MagicMock(spec=CompletionService)
    service.ask = AsyncMock()
    service.registry = MagicMock()
    service.registry.current_primary.return_value = "openrouter"
    return service


@pytest.fixture
def chat_service(mock_completion_service, mock_ui):
    return ChatService(mock_completion_service, mock_ui, system_prompt="be brief")


@pytest.mark.asyncio
async def test_session_sends_prompts_until_exit(chat_service, mock_ui, mock_completion_service):
    mock_ui.get_prompt.side_effect = ["Hello", "  ", "What is Python?", "exit"]

    await chat_service.run_session()

    asked = [c.args[0] for c in mock_completion_service.ask.await_args_list]
    assert [r.prompt for r in asked] == ["Hello", "What is Python?"]
    assert all(r.system_prompt == "be brief" for r in asked)
    mock_ui.display_session_header.assert_called_once_with("openrouter")
    assert mock_ui.display_session_footer.call_args.args[0] == 2


@pytest.mark.asyncio
async def test_session_ends_on_eof(chat_service, mock_ui, mock_completion_service):
    mock_ui.get_prompt.side_effect = EOFError()

    await chat_service.run_session()

    mock_completion_service.ask.assert_not_awaited()
    mock_ui.display_session_footer.assert_called_once()


@pytest.mark.asyncio
async def test_slash_commands_are_not_sent_to_providers(chat_service, mock_ui, mock_completion_service):
    mock_ui.get_prompt.side_effect = ["/status", "/primary gemini", "/reset", "/bogus", "quit"]

    await chat_service.run_session()

    mock_completion_service.ask.assert_not_awaited()
    mock_completion_service.show_status.assert_called_once()
    mock_completion_service.set_primary.assert_called_once_with("gemini")
    mock_completion_service.reset_failures.assert_called_once_with(None)
    assert "Unknown command '/bogus'" in mock_ui.display_error.call_args.args[0]


def test_primary_command_requires_a_name(chat_service, mock_ui, mock_completion_service):
    assert chat_service.handle_command("/primary") is True
    mock_ui.display_error.assert_called_once_with("Usage: /primary NAME")
    mock_completion_service.set_primary.assert_not_called()


def test_non_command_is_not_handled(chat_service):
    assert chat_service.handle_command("/unknown thing") is False
