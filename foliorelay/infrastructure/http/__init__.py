"""Transport implementations for the dispatch layer."""
