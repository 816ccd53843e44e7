"""API Resilience Implementations.

Provider registry, fallback dispatcher, backoff policy, response
classification, client-side rate limiting and the batch fetch engine.
"""
