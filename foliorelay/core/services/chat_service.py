"""Core service for managing interactive chat sessions.

Runs the prompt loop: reads user input, handles the slash commands that
inspect or steer the provider registry, and sends everything else through
the completion service. Each turn is an independent dispatch.
"""

import asyncio
import logging
import time
from typing import Optional

from foliorelay.core.services.completion_service import CompletionService
from foliorelay.domain.interfaces.user_interface import UserInterface
from foliorelay.domain.models.ai import CompletionRequest
from foliorelay.domain.models.common import ProcessedOutput

logger = logging.getLogger(__name__)

EXIT_COMMANDS = ("exit", "quit")
HELP_TEXT = (
    "/status           show provider status\n"
    "/primary NAME     make NAME the primary provider\n"
    "/reset [NAME]     reset failure counts\n"
    "/help             show this help\n"
    "exit, quit        end the session"
)


class ChatService:
    """Orchestrates the interactive chat functionality."""

    def __init__(
        self,
        completion_service: CompletionService,
        ui: UserInterface,
        system_prompt: Optional[str] = None,
    ):
        self.completion_service = completion_service
        self.ui = ui
        self.system_prompt = system_prompt
        self.turns = 0

    def handle_command(self, text: str) -> bool:
        """Handles a slash command. Returns False when `text` is not one."""
        parts = text.split()
        command = parts[0].lower()
        if command == "/status":
            self.completion_service.show_status()
        elif command == "/primary":
            if len(parts) != 2:
                self.ui.display_error("Usage: /primary NAME")
            else:
                self.completion_service.set_primary(parts[1])
        elif command == "/reset":
            self.completion_service.reset_failures(parts[1] if len(parts) > 1 else None)
        elif command in ("/help", "/?"):
            self.ui.display_info(HELP_TEXT)
        else:
            return False
        return True

    async def run_session(self) -> None:
        """Runs the chat loop until the user exits or input ends."""
        start = time.time()
        display_header = getattr(self.ui, "display_session_header", None)
        if display_header is not None:
            display_header(self.completion_service.registry.current_primary())
        logger.info("Chat session started.")

        while True:
            try:
                text = (await asyncio.to_thread(self.ui.get_prompt, "You")).strip()
            except (EOFError, KeyboardInterrupt):
                logger.info("Chat input closed.")
                break
            if not text:
                continue
            if text.lower() in EXIT_COMMANDS:
                self.ui.display_info("Ending chat session.")
                break
            if text.startswith("/"):
                if not self.handle_command(text):
                    self.ui.display_error(f"Unknown command '{text.split()[0]}'. Type /help for the list.")
                continue

            self.turns += 1
            self.ui.display_output(ProcessedOutput(text), title="You")
            await self.completion_service.ask(CompletionRequest(prompt=text, system_prompt=self.system_prompt))

        display_footer = getattr(self.ui, "display_session_footer", None)
        if display_footer is not None:
            display_footer(self.turns, time.time() - start)
        logger.info(f"Chat session ended after {self.turns} turns.")
