"""Orchestrator - coordinates the scraping job lifecycle."""

from .service import ScrapingService
from .app import build_client, open_service

__all__ = [
    "ScrapingService",
    "build_client",
    "open_service",
]
