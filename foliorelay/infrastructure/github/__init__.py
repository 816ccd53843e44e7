"""GitHub REST client used as the per-item fetch function of batch runs."""
