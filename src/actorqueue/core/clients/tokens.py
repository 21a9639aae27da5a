"""
Apify token pool with rotation on exhaustion.

Tokens live in a plain text file, one per line. Exhausted tokens are
removed permanently and the shortened list is written back before the
rotation returns, so a restart never replays a token that already failed.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol

from actorqueue.core.errors import NoCredentialsAvailable

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 20


def preview(token: str) -> str:
    """Shortened token for log output."""
    return token[:PREVIEW_LENGTH]


class CredentialStore(Protocol):
    """Storage for the ordered token list."""

    def load(self) -> list[str]:
        ...

    def persist(self, tokens: list[str]) -> None:
        ...


class TokenFileStore:
    """Token list stored in a text file.

    Blank lines and lines starting with ``#`` are ignored on load.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path)

    def load(self) -> list[str]:
        if not self.path.exists():
            return []

        content = self.path.read_text(encoding="utf-8")
        return [
            line.strip()
            for line in content.splitlines()
            if line.strip() and not line.strip().startswith("#")
        ]

    def persist(self, tokens: list[str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text("\n".join(tokens), encoding="utf-8")
        logger.debug("Saved %d tokens to %s", len(tokens), self.path)


class MemoryCredentialStore:
    """In-memory token list (tests, ad-hoc single token runs)."""

    def __init__(self, tokens: list[str] | None = None):
        self.tokens = list(tokens or [])
        self.persist_calls = 0

    def load(self) -> list[str]:
        return list(self.tokens)

    def persist(self, tokens: list[str]) -> None:
        self.tokens = list(tokens)
        self.persist_calls += 1


class CredentialRotator:
    """Ordered pool of API tokens with a current index.

    The index always points at a usable token, or the pool is empty.
    """

    def __init__(self, store: CredentialStore):
        self._store = store
        self._tokens: list[str] = []
        self._index = 0

    @property
    def count(self) -> int:
        return len(self._tokens)

    @property
    def tokens(self) -> list[str]:
        return list(self._tokens)

    def load(self) -> int:
        """Load tokens from the store and reset to the first one."""
        self._tokens = self._store.load()
        self._index = 0

        if self._tokens:
            logger.info(
                "Loaded %d tokens (first: %s)",
                len(self._tokens),
                preview(self._tokens[0]),
            )
        else:
            logger.warning("No tokens found in credential store")

        return len(self._tokens)

    def current(self) -> str:
        """Return the active token.

        Raises:
            NoCredentialsAvailable: If the pool is empty
        """
        if not self._tokens:
            raise NoCredentialsAvailable()
        return self._tokens[self._index]

    def rotate_on_exhaustion(self, exhausted: str | None = None) -> bool:
        """Drop the active token and move to the next one.

        Args:
            exhausted: The token the caller saw fail. If another caller
                already rotated it away, nothing is removed.

        Returns:
            True if a token remains, False if the pool is now empty
        """
        if not self._tokens:
            return False

        if exhausted is not None and self._tokens[self._index] != exhausted:
            logger.debug("Token %s already rotated out", preview(exhausted))
            return True

        removed = self._tokens.pop(self._index)
        logger.warning("Removing exhausted token %s", preview(removed))

        if self._index >= len(self._tokens):
            self._index = 0

        self.persist()

        if not self._tokens:
            logger.error("All tokens exhausted")
            return False

        logger.info(
            "Switched to token %d/%d (%s)",
            self._index + 1,
            len(self._tokens),
            preview(self._tokens[self._index]),
        )
        return True

    def persist(self) -> None:
        """Write the current pool back to the store."""
        self._store.persist(list(self._tokens))

    def add(self, token: str) -> int:
        """Append a token and persist the pool. Returns the new count."""
        token = token.strip()
        if not token:
            raise ValueError("Token must not be blank")

        self._tokens.append(token)
        self.persist()
        logger.info("Added new token, total tokens: %d", len(self._tokens))
        return len(self._tokens)
