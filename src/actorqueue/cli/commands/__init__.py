"""CLI command modules."""

from . import jobs, results, tokens

__all__ = [
    "jobs",
    "results",
    "tokens",
]
