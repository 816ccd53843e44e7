"""Interface for interacting with the user (input/output).

Defines the contract for displaying information, errors, warnings,
tables and batch progress, and for getting input from the user, allowing
different UI implementations (e.g., console, test doubles).
"""

import abc
from typing import Any, ContextManager, List, Optional, Sequence

from foliorelay.domain.models.batch import ProgressCallback
from foliorelay.domain.models.common import PromptText, ProcessedOutput


class UserInterface(abc.ABC):
    """Abstract Base Class for user interaction."""

    @abc.abstractmethod
    def display_output(self, output: ProcessedOutput, **kwargs: Any) -> None:
        """Displays standard output to the user.

        Args:
            output: The processed output string to display.
            **kwargs: Additional arguments for formatting (e.g., title).
        """
        pass

    @abc.abstractmethod
    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message to the user."""
        pass

    @abc.abstractmethod
    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        """Displays a warning message to the user."""
        pass

    @abc.abstractmethod
    def display_info(self, info_message: str, **kwargs: Any) -> None:
        """Displays an informational message to the user."""
        pass

    @abc.abstractmethod
    def get_prompt(self, prompt_message: str = "Input: ") -> PromptText:
        """Gets input from the user synchronously.

        Note: For async contexts, the caller should wrap this in asyncio.to_thread.
        """
        pass

    @abc.abstractmethod
    def display_table(
        self,
        title: str,
        columns: Sequence[str],
        rows: List[Sequence[Any]],
        **kwargs: Any,
    ) -> None:
        """Displays tabular data, e.g. provider status or summary statistics."""
        pass

    @abc.abstractmethod
    def progress(self, description: str, total: Optional[int] = None) -> ContextManager[ProgressCallback]:
        """Opens a progress display for a batch run.

        The context manager yields a callback accepting BatchProgress
        snapshots; the display closes when the context exits.
        """
        pass
