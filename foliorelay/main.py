"""Main entry point for the foliorelay application.

Sets up the Typer CLI application, performs dependency injection (Composition Root),
defines CLI commands, and delegates execution to the CommandHandler.
"""

import asyncio
import logging
import sys
from typing import Any, Coroutine, Dict, List, Optional

import typer
from typing_extensions import Annotated

from foliorelay.core.command_handler import CommandHandler
from foliorelay.core.services.chat_service import ChatService
from foliorelay.core.services.completion_service import CompletionService
from foliorelay.core.services.github_analytics_service import GitHubAnalyticsService
from foliorelay.core.services.prompt_templates import PromptTemplate, render_template
from foliorelay.domain.interfaces.completion_provider import CompletionProvider
from foliorelay.domain.models.ai import CompletionRequest
from foliorelay.infrastructure.ai.chat_completions import OpenAIProvider, OpenRouterProvider
from foliorelay.infrastructure.ai.gemini_provider import GeminiProvider
from foliorelay.infrastructure.ai.static_fallback import StaticFallbackProvider
from foliorelay.infrastructure.cli.display import ConsoleDisplay
from foliorelay.infrastructure.config.settings import (
    get_config,
    get_default_model,
    get_default_provider,
    get_gemini_api_key,
    get_github_token,
    get_logging_settings,
    get_openai_api_key,
    get_openrouter_api_key,
    get_provider_order,
    load_batch_options,
    load_configuration,
    load_dispatch_settings,
)
from foliorelay.infrastructure.github.github_client import GitHubClient
from foliorelay.infrastructure.http.httpx_transport import HttpxTransport
from foliorelay.infrastructure.monitoring.logger_setup import setup_logging
from foliorelay.infrastructure.resilience.backoff import BackoffPolicy
from foliorelay.infrastructure.resilience.batch_fetcher import BatchFetchEngine
from foliorelay.infrastructure.resilience.fallback_dispatcher import FallbackDispatcher
from foliorelay.infrastructure.resilience.provider_registry import ProviderRegistry
from foliorelay.infrastructure.resilience.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

# --- Dependency Injection Container (Manual) ---

_options: Dict[str, Any] = {"verbose": False}
_dependencies: Optional[Dict[str, Any]] = None


def build_providers(timeout_s: float) -> List[CompletionProvider]:
    """Instantiates the completion providers in the configured declaration order."""
    factories = {
        "openrouter": lambda: OpenRouterProvider(
            api_key=get_openrouter_api_key(), model=get_default_model("openrouter"), timeout_s=timeout_s
        ),
        "gemini": lambda: GeminiProvider(
            api_key=get_gemini_api_key(), model=get_default_model("gemini"), timeout_s=timeout_s
        ),
        "openai": lambda: OpenAIProvider(
            api_key=get_openai_api_key(), model=get_default_model("openai"), timeout_s=timeout_s
        ),
    }
    return [factories[name]() for name in get_provider_order()]


def create_dependencies() -> Dict[str, Any]:
    """Creates and wires up all dependencies for the application.

    This acts as the Composition Root.
    """
    dependencies: Dict[str, Any] = {}
    try:
        # 1. Configuration and logging first
        load_configuration()
        log_settings = get_logging_settings()
        setup_logging(
            log_level="DEBUG" if _options["verbose"] else log_settings["level"],
            log_format=log_settings["format"],
            log_file=log_settings["file"],
        )
        logger.info("Initializing application dependencies...")
        dispatch_settings = load_dispatch_settings()

        # 2. Infrastructure adapters
        dependencies["ui"] = ConsoleDisplay()
        dependencies["transport"] = HttpxTransport(timeout_s=dispatch_settings["request_timeout_s"])

        # 3. Providers and resilience services
        providers = build_providers(dispatch_settings["request_timeout_s"])
        dependencies["registry"] = ProviderRegistry(providers, default_primary=get_default_provider())
        dependencies["dispatcher"] = FallbackDispatcher(
            registry=dependencies["registry"],
            transport=dependencies["transport"],
            backoff_policy=BackoffPolicy(
                max_attempts=dispatch_settings["max_attempts"],
                initial_wait_ms=dispatch_settings["initial_wait_ms"],
                factor=dispatch_settings["factor"],
                ceiling_ms=dispatch_settings["ceiling_ms"],
            ),
            static_fallback=StaticFallbackProvider(get_config("dispatch.static_message")),
            use_static_fallback=dispatch_settings["use_static_fallback"],
            rate_limiter=RateLimiter(
                max_requests=dispatch_settings["rate_limit_requests"],
                time_window=dispatch_settings["rate_limit_window_s"],
            ),
            deadline_s=dispatch_settings["deadline_s"],
        )
        dependencies["github_client"] = GitHubClient(dependencies["transport"], token=get_github_token())
        dependencies["batch_engine"] = BatchFetchEngine()

        # 4. Core services
        dependencies["completion_service"] = CompletionService(
            dependencies["dispatcher"], dependencies["registry"], dependencies["ui"]
        )
        dependencies["chat_service"] = ChatService(
            dependencies["completion_service"], dependencies["ui"], system_prompt=get_config("chat.system_prompt")
        )
        dependencies["analytics_service"] = GitHubAnalyticsService(
            dependencies["github_client"], dependencies["batch_engine"], dependencies["ui"]
        )

        # 5. Command handler
        dependencies["command_handler"] = CommandHandler(
            completion_service=dependencies["completion_service"],
            chat_service=dependencies["chat_service"],
            analytics_service=dependencies["analytics_service"],
            ui=dependencies["ui"],
        )
        logger.info("All dependencies initialized successfully.")
        return dependencies

    except Exception as e:
        logger.error(f"Fatal Error during application initialization: {e}", exc_info=True)
        if dependencies.get("ui") is not None:
            dependencies["ui"].display_error(f"Application Initialization Failed: {e}")
        else:
            print(f"FATAL ERROR during initialization: {e}", file=sys.stderr)
        raise typer.Exit(code=1)


def get_dependencies() -> Dict[str, Any]:
    """Returns the wired-up dependencies, creating them on first use."""
    global _dependencies
    if _dependencies is None:
        _dependencies = create_dependencies()
    return _dependencies


def reset_dependencies() -> None:
    """Drops the cached dependencies so the next command rebuilds them."""
    global _dependencies
    _dependencies = None


# --- Typer App Definition ---
app = typer.Typer(
    name="foliorelay",
    help="foliorelay: resilient AI completions with provider fallback, and rate-limit-aware GitHub analytics.",
    add_completion=False,
)


# --- Helper for Running Async Commands ---
def run_async(coro: Coroutine[Any, Any, Any]) -> Any:
    """Runs a coroutine from a sync Typer command, closing the transport afterwards."""
    dependencies = get_dependencies()

    async def runner() -> Any:
        try:
            return await coro
        finally:
            await dependencies["transport"].aclose()

    try:
        return asyncio.run(runner())
    except KeyboardInterrupt:
        logger.info("Interrupted by user.")
        raise typer.Exit(code=130)


def _exit_on_failure(ok: bool) -> None:
    if not ok:
        raise typer.Exit(code=1)


# --- CLI Commands ---

DEFAULT_MAX_TOKENS = 1000

UsernameArgument = Annotated[str, typer.Argument(help="GitHub username whose repositories are analysed.")]


@app.command()
def ask(
    prompt: Annotated[str, typer.Argument(help="The prompt to send, or the code/question/topic for --template.")],
    system: Annotated[Optional[str], typer.Option("--system", "-s", help="Optional system prompt.")] = None,
    max_tokens: Annotated[
        Optional[int], typer.Option("--max-tokens", min=1, help="Maximum tokens in the answer (default 1000, or the template's).")
    ] = None,
    temperature: Annotated[float, typer.Option("--temperature", min=0.0, max=2.0)] = 0.7,
    primary: Annotated[
        Optional[str], typer.Option("--primary", "-p", help="Make this provider primary before asking.")
    ] = None,
    template: Annotated[
        Optional[PromptTemplate], typer.Option("--template", "-t", help="Wrap the prompt in a canned instruction.")
    ] = None,
    language: Annotated[Optional[str], typer.Option("--language", "-l", help="Language for the explain/docs templates.")] = None,
    context: Annotated[Optional[str], typer.Option("--context", help="Extra background for the idea template.")] = None,
):
    """Send one prompt through the provider fallback chain."""
    handler: CommandHandler = get_dependencies()["command_handler"]
    if template is None:
        request = CompletionRequest(
            prompt=prompt, system_prompt=system, max_tokens=max_tokens or DEFAULT_MAX_TOKENS, temperature=temperature
        )
    else:
        request = render_template(template, prompt, language=language, context=context, system_prompt=system,
                                  max_tokens=max_tokens, temperature=temperature)
    _exit_on_failure(run_async(handler.handle_ask(request, primary)))


@app.command()
def status():
    """Show configured providers, the primary, and failure counts."""
    handler: CommandHandler = get_dependencies()["command_handler"]
    handler.handle_status()


@app.command()
def chat():
    """Start an interactive chat session (the default command)."""
    handler: CommandHandler = get_dependencies()["command_handler"]
    run_async(handler.handle_chat())


@app.command()
def review(
    username: UsernameArgument,
    max_repos: Annotated[Optional[int], typer.Option("--max-repos", min=1, help="Repositories to analyse (default 15).")] = None,
    batch_size: Annotated[Optional[int], typer.Option("--batch-size", min=1, help="Repositories fetched concurrently (default 3).")] = None,
    delay_ms: Annotated[Optional[int], typer.Option("--delay-ms", min=0, help="Pause between waves (default 800).")] = None,
    timeout: Annotated[Optional[float], typer.Option("--timeout", min=0.1, help="Overall time limit in seconds (default 30).")] = None,
):
    """Pull request and issue statistics across a user's repositories."""
    handler: CommandHandler = get_dependencies()["command_handler"]
    options = load_batch_options(
        "review", max_items=max_repos, batch_size=batch_size, inter_batch_delay_ms=delay_ms, timeout_s=timeout
    )
    _exit_on_failure(run_async(handler.handle_review(username, options)))


@app.command()
def productivity(
    username: UsernameArgument,
    days: Annotated[int, typer.Option("--days", "-d", min=1, max=365, help="Days of history to include.")] = 30,
    max_repos: Annotated[Optional[int], typer.Option("--max-repos", min=1, help="Repositories to scan (default 10).")] = None,
):
    """Daily commit activity and streaks of a user."""
    handler: CommandHandler = get_dependencies()["command_handler"]
    options = load_batch_options("productivity", max_items=max_repos)
    _exit_on_failure(run_async(handler.handle_productivity(username, options, days)))


@app.command()
def collaborators(
    username: UsernameArgument,
    max_repos: Annotated[Optional[int], typer.Option("--max-repos", min=1, help="Repositories to scan (default 10).")] = None,
):
    """Contributors across a user's repositories and how they connect."""
    handler: CommandHandler = get_dependencies()["command_handler"]
    options = load_batch_options("collaborators", max_items=max_repos)
    _exit_on_failure(run_async(handler.handle_collaborators(username, options)))


@app.command(name="rate-limit")
def rate_limit_command():
    """Show the remaining GitHub API quota."""
    handler: CommandHandler = get_dependencies()["command_handler"]
    _exit_on_failure(run_async(handler.handle_rate_limit()))


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Log at DEBUG level.")] = False,
):
    """Main entry point. Starts chat if no command is given."""
    _options["verbose"] = verbose
    if ctx.invoked_subcommand is None:
        logger.info("No command invoked, starting interactive chat mode.")
        handler: CommandHandler = get_dependencies()["command_handler"]
        run_async(handler.handle_chat())


# --- Main Execution Guard ---

def cli_entry_point():
    """Function to be called by the script entry point in pyproject.toml."""
    app()


if __name__ == "__main__":
    cli_entry_point()
