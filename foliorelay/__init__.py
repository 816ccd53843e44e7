"""foliorelay: resilient request dispatch for AI completions and GitHub analytics."""

__version__ = "0.1.0"
