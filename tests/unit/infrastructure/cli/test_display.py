import pytest
from unittest.mock import MagicMock

from rich.console import Console
from rich.panel import Panel

from foliorelay.domain.models.batch import BatchProgress
from foliorelay.domain.models.common import ProcessedOutput, PromptText
from foliorelay.infrastructure.cli.display import ConsoleDisplay


@pytest.fixture
def mock_console():
    """Fixture to create a mock rich Console object."""
    return MagicMock(spec=Console)


@pytest.fixture
def console_display(mock_console: MagicMock):
    """ConsoleDisplay writing to the mocked console."""
    return ConsoleDisplay(console=mock_console)


@pytest.fixture
def recording_display():
    """ConsoleDisplay writing to a recording console, for checking rendered text."""
    return ConsoleDisplay(console=Console(record=True, width=100, color_system=None))


def test_display_output_renders_panel(console_display: ConsoleDisplay, mock_console: MagicMock):
    console_display.display_output(ProcessedOutput("Hello **World**"), title="AI", subtitle="via gemini")

    panels = [c.args[0] for c in mock_console.print.call_args_list if c.args and isinstance(c.args[0], Panel)]
    assert len(panels) == 1
    assert panels[0].border_style == "blue"
    assert panels[0].subtitle == "via gemini"
    assert panels[0].renderable.markup == "Hello **World**"


def test_degraded_output_uses_warning_border(console_display: ConsoleDisplay, mock_console: MagicMock):
    console_display.display_output(ProcessedOutput("fallback"), degraded=True)

    panel = mock_console.print.call_args_list[-1].args[0]
    assert panel.border_style == "yellow"


def test_get_prompt(console_display: ConsoleDisplay, mock_console: MagicMock):
    """get_prompt reads through console.input and wraps the answer."""
    mock_console.input.return_value = "user input"

    actual = console_display.get_prompt("You")

    mock_console.input.assert_called_once_with("[bold green] You [/bold green] ")
    assert actual == PromptText("user input")


def test_messages_are_rendered(recording_display: ConsoleDisplay):
    recording_display.display_error("Something went wrong")
    recording_display.display_warning("Careful")
    recording_display.display_info("Process completed")

    text = recording_display.console.export_text()
    assert "Error" in text and "Something went wrong" in text
    assert "Warning" in text and "Careful" in text
    assert "Info" in text and "Process completed" in text


def test_display_table_stringifies_cells(recording_display: ConsoleDisplay):
    recording_display.display_table("Provider status", ("Provider", "Failures"), [("gemini", 2), ("openai", 0)])

    text = recording_display.console.export_text()
    assert "Provider status" in text
    assert "gemini" in text and "2" in text


def test_progress_callback_updates_bar(recording_display: ConsoleDisplay):
    with recording_display.progress("Fetching", total=3) as update:
        update(BatchProgress(total=3, processed=1))
        update(BatchProgress(total=3, processed=3))


def test_session_header_and_footer(recording_display: ConsoleDisplay):
    recording_display.display_session_header(primary="openrouter")
    recording_display.display_session_footer(message_count=4, session_duration_secs=3725)

    text = recording_display.console.export_text()
    assert "openrouter" in text
    assert "Messages exchanged: 4" in text
    assert "1h 2m 5s" in text
