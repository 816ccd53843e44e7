"""Completion provider adapters.

Each adapter implements the `CompletionProvider` interface from the domain
layer for one backend (OpenRouter, Gemini, OpenAI), plus the static
last-resort responder.
"""
