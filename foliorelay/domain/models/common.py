"""Defines common Value Objects used across different domain contexts.

These objects represent simple values like provider names, prompts and
fetch keys, keeping signatures readable across layers.
"""

from typing import NewType, TypedDict

# === Core Value Objects ===

# Using NewType for semantic clarity, although they are strings at runtime.
ProviderName = NewType("ProviderName", str)    # e.g. 'openrouter', 'gemini'
PromptText = NewType("PromptText", str)        # User's text prompt
ProcessedOutput = NewType("ProcessedOutput", str) # Text ready for display

# === Batch Fetch Context ===
ItemKey = NewType("ItemKey", str)              # Identifies one unit of work, e.g. a repository name

# Sentinel names reported by the registry and the dispatcher
NO_PROVIDER = ProviderName("none")
STATIC_FALLBACK_PROVIDER = ProviderName("fallback-static")
ALL_FAILED_PROVIDER = ProviderName("all_failed")


class TokenUsage(TypedDict, total=False):
    """Token usage information reported by a completion provider."""
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int
