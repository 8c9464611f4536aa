from __future__ import annotations
import logging
import shutil
import tempfile
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

from scanner.errors import CleanupError, WorkspaceError

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "secretsniffer-"


def acquire(prefix: str = DEFAULT_PREFIX, root: Optional[str] = None) -> Path:
    """Create a fresh scratch directory owned by this request.

    mkdtemp creates the directory with mode 0700, so only the current
    user can read the cloned repository.
    """
    try:
        path = Path(tempfile.mkdtemp(prefix=prefix, dir=root))
    except OSError as e:
        raise WorkspaceError(f"Could not create workspace: {e}") from e
    logger.info(f"Created workspace {path.name}")
    return path


def _remove(path: Path) -> None:
    try:
        shutil.rmtree(path)
    except FileNotFoundError:
        return
    except OSError as e:
        raise CleanupError(f"Failed to remove workspace {path}: {e}") from e


def release(path: Path) -> None:
    """Delete the workspace and everything in it.

    Never raises: the response has already been decided by the time we get here.
    """
    try:
        _remove(path)
    except CleanupError as e:
        logger.warning(str(e), exc_info=True)
        return
    logger.info(f"Cleaned up workspace {path.name}")


@asynccontextmanager
async def workspace(prefix: str = DEFAULT_PREFIX, root: Optional[str] = None) -> AsyncIterator[Path]:
    path = acquire(prefix=prefix, root=root)
    try:
        yield path
    finally:
        release(path)
