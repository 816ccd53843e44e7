"""Core service for one-shot completions and provider administration.

Wraps the fallback dispatcher and the provider registry behind the
operations the CLI exposes: ask a question, show provider health, switch
the primary provider and reset failure counts.
"""

import logging
from typing import Any, List, Optional, Sequence

from foliorelay.domain.interfaces.user_interface import UserInterface
from foliorelay.domain.models.ai import CompletionRequest, DispatchResult
from foliorelay.domain.models.common import ProcessedOutput
from foliorelay.infrastructure.resilience.fallback_dispatcher import FallbackDispatcher
from foliorelay.infrastructure.resilience.provider_registry import ProviderRegistry

logger = logging.getLogger(__name__)

STATUS_COLUMNS = ("Provider", "Configured", "Primary", "Failures")


class CompletionService:
    """Dispatches prompts and renders the results and registry state."""

    def __init__(self, dispatcher: FallbackDispatcher, registry: ProviderRegistry, ui: UserInterface):
        self.dispatcher = dispatcher
        self.registry = registry
        self.ui = ui

    async def ask(self, request: CompletionRequest) -> DispatchResult:
        """Dispatches one request and displays the answer (or the failure)."""
        logger.info(f"Dispatching prompt of {len(request.prompt)} chars (primary='{self.registry.current_primary()}')")
        result = await self.dispatcher.dispatch(request)
        self.show_result(result)
        return result

    def show_result(self, result: DispatchResult) -> None:
        if not result.success:
            self.ui.display_error(result.error_detail or "All providers failed.")
            return
        subtitle = f"via {result.provider_used}"
        if result.payload is not None and result.payload.model_name:
            subtitle = f"{subtitle} ({result.payload.model_name})"
        self.ui.display_output(ProcessedOutput(result.text or ""), title="AI", subtitle=subtitle, degraded=result.degraded)
        if result.degraded:
            self.ui.display_warning(
                "Every configured provider failed; this is a static fallback answer. "
                "Run 'status' to see provider failure counts."
            )

    def status_rows(self) -> List[Sequence[Any]]:
        return [
            (name, "yes" if state["configured"] else "no", "*" if state["is_primary"] else "", state["failure_count"])
            for name, state in self.registry.status().items()
        ]

    def show_status(self) -> None:
        self.ui.display_table("Provider status", STATUS_COLUMNS, self.status_rows())
        if self.registry.current_primary() == "none":
            self.ui.display_warning(
                "No provider is configured. Set OPENROUTER_API_KEY, GEMINI_API_KEY or OPENAI_API_KEY."
            )

    def set_primary(self, name: str) -> bool:
        if self.registry.set_primary(name):
            self.ui.display_info(f"Primary provider is now '{name}'.")
            return True
        self.ui.display_error(f"Cannot make '{name}' primary: unknown or unconfigured provider.")
        return False

    def reset_failures(self, name: Optional[str] = None) -> None:
        if name is not None and self.registry.get(name) is None:
            self.ui.display_error(f"Unknown provider '{name}'.")
            return
        self.registry.reset_failures(name)
        self.ui.display_info(f"Failure counts reset for {name or 'all providers'}.")
