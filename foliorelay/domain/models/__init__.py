"""Domain models (dataclasses and value objects) for the dispatch and batch contexts."""
