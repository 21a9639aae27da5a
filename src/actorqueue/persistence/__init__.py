"""Result persistence layer."""

from .db import Database
from .models import Base, ScrapeResultRecord
from .store import DatabaseResultStore, FileResultStore, ResultStore, create_result_store

__all__ = [
    "Database",
    "Base",
    "ScrapeResultRecord",
    "DatabaseResultStore",
    "FileResultStore",
    "ResultStore",
    "create_result_store",
]
