from __future__ import annotations
import asyncio
import logging
from pathlib import Path
from typing import Optional
from urllib.parse import urlsplit, urlunsplit

import git
from git.exc import GitCommandError, GitCommandNotFound

from core.logging import redact
from scanner.errors import FetchError

logger = logging.getLogger(__name__)

DEFAULT_DEPTH = 50

# stderr fragments -> FetchError.reason, checked in order
_FAILURE_PATTERNS = (
    ("auth_failed", ("authentication failed", "could not read username", "could not read password",
                     "terminal prompts disabled", "permission denied", "403")),
    ("invalid_reference", ("remote branch", "couldn't find remote ref", "not a valid ref", "invalid refspec")),
    ("not_found", ("repository not found", "not found", "404", "does not appear to be a git repository")),
    ("network", ("could not resolve host", "unable to access", "failed to connect", "connection timed out",
                 "connection refused", "network is unreachable", "operation timed out", "early eof")),
)

# Clone must never block on a credential prompt.
_GIT_ENV = {"GIT_TERMINAL_PROMPT": "0", "GIT_ASKPASS": "echo"}


def classify_failure(stderr: str) -> str:
    text = (stderr or "").lower()
    for reason, fragments in _FAILURE_PATTERNS:
        if any(f in text for f in fragments):
            return reason
    return "unknown"


def with_token(url: str, token: Optional[str]) -> str:
    """Embed an access token in an https clone URL for private repositories."""
    if not token:
        return url
    parts = urlsplit(url)
    if parts.scheme != "https" or "@" in parts.netloc:
        return url
    return urlunsplit((parts.scheme, f"x-access-token:{token}@{parts.netloc}", parts.path, parts.query, parts.fragment))


class RepositoryFetcher:
    """Shallow clone of a remote repository into a workspace. One attempt, no retry."""

    def __init__(self, depth: int = DEFAULT_DEPTH, token: Optional[str] = None):
        self.depth = depth
        self._token = token

    def _redact(self, text: str) -> str:
        return redact(text, self._token).strip()

    def _clone(self, url: str, dest: Path) -> None:
        git.Repo.clone_from(
            with_token(url, self._token),
            str(dest),
            env=_GIT_ENV,
            depth=self.depth,
            single_branch=True,
            no_tags=True,
        )

    async def fetch(self, url: str, dest: Path) -> None:
        logger.info(f"Cloning repository (depth={self.depth})")
        try:
            await asyncio.to_thread(self._clone, url, dest)
        except GitCommandNotFound as e:
            raise FetchError("unknown", "git executable not found") from e
        except GitCommandError as e:
            stderr = self._redact(str(e.stderr or ""))
            reason = classify_failure(stderr)
            logger.warning(f"Clone failed ({reason}): {stderr}")
            # GitCommandError.__str__ carries the clone URL, token included
            raise FetchError(reason, stderr) from None
        logger.info("Repository cloned successfully")
