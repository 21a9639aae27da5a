"""Apify API access: token pool, retry policy and the HTTP client."""

from .base import (
    TERMINAL_RUN_STATUSES,
    Dataset,
    ItemList,
    RunResult,
    ScrapingApiClient,
)
from .tokens import (
    CredentialRotator,
    CredentialStore,
    MemoryCredentialStore,
    TokenFileStore,
    preview,
)
from .retries import RetryConfig, call_with_rotation, is_exhaustion_error
from .apify import ApifyClient, actor_path

__all__ = [
    # Contract
    "TERMINAL_RUN_STATUSES",
    "Dataset",
    "ItemList",
    "RunResult",
    "ScrapingApiClient",
    # Tokens
    "CredentialRotator",
    "CredentialStore",
    "MemoryCredentialStore",
    "TokenFileStore",
    "preview",
    # Retries
    "RetryConfig",
    "call_with_rotation",
    "is_exhaustion_error",
    # Client
    "ApifyClient",
    "actor_path",
]
