from __future__ import annotations
import logging
import re
from enum import Enum
from typing import Optional
from urllib.parse import urlsplit

from models.contracts import ScanReport
from scanner.engine import DEFAULT_TIMEOUT, ScanEngine
from scanner.errors import ClientInputError
from scanner.fetcher import RepositoryFetcher
from scanner.normalizer import normalize
from scanner.workspace import DEFAULT_PREFIX, workspace

logger = logging.getLogger(__name__)

URL_REQUIRED = "Repository URL is required"
URL_INVALID = "Invalid repository URL"

# git@github.com:owner/repo(.git)
_SCP_URL = re.compile(r"^git@(?P<host>[^:/\s]+):(?P<path>[^/\s]+/[^/\s]+?)/?$")


class ScanStage(str, Enum):
    VALIDATING = "validating"
    FETCHING = "fetching"
    SCANNING = "scanning"
    NORMALIZING = "normalizing"
    RESPONDING = "responding"


def validate_repo_url(repo_url: Optional[str], forge_host: str = "github.com") -> str:
    """Return the cleaned URL or raise ClientInputError.

    Accepts http(s) URLs on `forge_host` (or its www. alias) that name at least
    an owner and a repository. A scheme-less `github.com/owner/repo` is read as https,
    and the ssh shorthand `git@github.com:owner/repo.git` is cloned over https instead.
    """
    url = (repo_url or "").strip()
    if not url:
        raise ClientInputError(URL_REQUIRED)

    scp = _SCP_URL.match(url)
    if scp:
        candidate = f"https://{scp.group('host')}/{scp.group('path')}"
    else:
        candidate = url if "://" in url else f"https://{url}"
    try:
        parts = urlsplit(candidate)
        host = (parts.hostname or "").lower()
    except ValueError:
        raise ClientInputError(URL_INVALID) from None

    forge = forge_host.lower()
    if parts.scheme not in ("http", "https") or host not in (forge, f"www.{forge}"):
        raise ClientInputError(URL_INVALID)
    if parts.username or parts.password:
        raise ClientInputError(URL_INVALID)
    if len([s for s in parts.path.split("/") if s]) < 2:
        raise ClientInputError(URL_INVALID)
    return candidate


class ScanOrchestrator:
    """validate -> clone -> scan -> normalize, with the workspace removed on every exit path."""

    def __init__(
        self,
        fetcher: RepositoryFetcher,
        engine: ScanEngine,
        timeout: float = DEFAULT_TIMEOUT,
        forge_host: str = "github.com",
        workspace_prefix: str = DEFAULT_PREFIX,
        workspace_root: Optional[str] = None,
    ):
        self.fetcher = fetcher
        self.engine = engine
        self.timeout = timeout
        self.forge_host = forge_host
        self.workspace_prefix = workspace_prefix
        self.workspace_root = workspace_root

    def _stage(self, stage: ScanStage, repo_url: Optional[str] = None) -> None:
        logger.info(f"Scan stage: {stage.value}", extra={"extra_fields": {"stage": stage.value, "repo_url": repo_url}})

    async def run(self, repo_url: Optional[str]) -> ScanReport:
        self._stage(ScanStage.VALIDATING)
        url = validate_repo_url(repo_url, self.forge_host)

        async with workspace(prefix=self.workspace_prefix, root=self.workspace_root) as path:
            self._stage(ScanStage.FETCHING, url)
            await self.fetcher.fetch(url, path)

            self._stage(ScanStage.SCANNING, url)
            raw_findings = await self.engine.scan(path, timeout=self.timeout)

            self._stage(ScanStage.NORMALIZING, url)
            report = normalize(
                raw_findings,
                url,
                engine_name=self.engine.name,
                engine_version=self.engine.version,
            )

        self._stage(ScanStage.RESPONDING, url)
        logger.info(f"Scan completed successfully. Found {report.total_secrets} secrets")
        return report
