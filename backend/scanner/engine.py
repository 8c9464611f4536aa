# Scan engine adapters.
# The orchestrator only sees ScanEngine; each implementation owns the
# process handling and exit-code dialect of the tool it wraps.

from __future__ import annotations
import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional

from core.config import Settings
from models.contracts import RawFinding
from scanner.errors import ScanError, ScanTimeoutError
from scanner.normalizer import parse_report

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60.0
MAX_STDERR_CHARS = 2000

# gitleaks exit codes
EXIT_NO_LEAKS = 0
EXIT_LEAKS_FOUND = 1


class ScanEngine(ABC):
    """Runs a secret-detection engine against a checked-out repository."""

    name: str = "unknown"
    version: str = "unknown"

    @abstractmethod
    async def scan(self, workspace: Path, timeout: float = DEFAULT_TIMEOUT) -> List[RawFinding]:
        """Return the engine's findings for `workspace`.

        Raises ScanTimeoutError when `timeout` seconds elapse first,
        ScanError when the engine fails, NormalizationError when its
        report can't be parsed.
        """


class GitleaksEngine(ScanEngine):
    """Runs a gitleaks binary installed on the host."""

    def __init__(self, binary: str = "gitleaks", name: str = "Gitleaks", version: str = "8.18.0"):
        self.binary = binary
        self.name = name
        self.version = version

    @staticmethod
    def gitleaks_args(source: str) -> List[str]:
        return [
            "detect",
            "--source", source,
            "--report-format", "json",
            "--report-path", "/dev/stdout",
            "--no-banner",
        ]

    def command(self, workspace: Path, run_id: str) -> List[str]:
        return [self.binary, *self.gitleaks_args(str(workspace))]

    async def terminate(self, proc: asyncio.subprocess.Process, run_id: str) -> None:
        """Kill the engine and wait until the process is reaped."""
        try:
            proc.kill()
        except ProcessLookupError:
            pass
        await proc.wait()

    async def scan(self, workspace: Path, timeout: float = DEFAULT_TIMEOUT) -> List[RawFinding]:
        run_id = uuid.uuid4().hex[:12]
        cmd = self.command(workspace, run_id)
        logger.info(f"Starting {self.name} scan", extra={"extra_fields": {"run_id": run_id, "timeout_s": timeout}})

        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except (FileNotFoundError, PermissionError) as e:
            raise ScanError(None, f"Failed to start {cmd[0]}: {e.strerror or e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"{self.name} scan timed out after {timeout:g}s", extra={"extra_fields": {"run_id": run_id}})
            await self.terminate(proc, run_id)
            raise ScanTimeoutError(timeout) from None
        except asyncio.CancelledError:
            await self.terminate(proc, run_id)
            raise

        code = proc.returncode
        logger.info(f"{self.name} process exited with code {code}", extra={"extra_fields": {"run_id": run_id}})

        if code == EXIT_NO_LEAKS:
            return []

        err = stderr.decode("utf-8", errors="replace").strip()[-MAX_STDERR_CHARS:]
        if code == EXIT_LEAKS_FOUND:
            findings = parse_report(stdout)
            # gitleaks also exits 1 on fatal errors, leaving no report behind
            if not findings:
                logger.error(f"{self.name} exited {code} without findings: {err}")
                raise ScanError(code, err or "exit code 1 with an empty report")
            return findings

        logger.error(f"{self.name} error output: {err}")
        raise ScanError(code, err)


class DockerGitleaksEngine(GitleaksEngine):
    """Runs gitleaks in a throwaway container that sees only the workspace, read-only."""

    CONTAINER_SOURCE = "/repo"

    def __init__(self, image: str = "zricethez/gitleaks:latest", docker_binary: str = "docker",
                 name: str = "Gitleaks", version: str = "8.18.0"):
        super().__init__(binary=docker_binary, name=name, version=version)
        self.image = image

    @staticmethod
    def container_name(run_id: str) -> str:
        return f"secretsniffer-{run_id}"

    def command(self, workspace: Path, run_id: str) -> List[str]:
        return [
            self.binary, "run",
            "--rm",
            "--name", self.container_name(run_id),
            "--network", "none",
            "-v", f"{workspace}:{self.CONTAINER_SOURCE}:ro",
            # the container user doesn't own the mounted checkout
            "-e", "GIT_CONFIG_COUNT=1",
            "-e", "GIT_CONFIG_KEY_0=safe.directory",
            "-e", f"GIT_CONFIG_VALUE_0={self.CONTAINER_SOURCE}",
            self.image,
            *self.gitleaks_args(self.CONTAINER_SOURCE),
        ]

    async def terminate(self, proc: asyncio.subprocess.Process, run_id: str) -> None:
        # Killing the docker client leaves the container running.
        await super().terminate(proc, run_id)
        await self._kill_container(run_id)

    async def _kill_container(self, run_id: str, timeout: float = 10.0) -> None:
        name = self.container_name(run_id)
        try:
            killer = await asyncio.create_subprocess_exec(
                self.binary, "kill", name,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as e:
            logger.warning(f"Could not run '{self.binary} kill {name}': {e}")
            return
        try:
            await asyncio.wait_for(killer.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            killer.kill()
            await killer.wait()
            logger.warning(f"Timed out killing container {name}")


def build_engine(settings: Settings, backend: Optional[str] = None) -> ScanEngine:
    backend = backend or settings.SCANNER_BACKEND
    if backend == "docker":
        return DockerGitleaksEngine(
            image=settings.GITLEAKS_IMAGE,
            docker_binary=settings.DOCKER_BINARY,
            name=settings.SCAN_ENGINE_NAME,
            version=settings.SCAN_ENGINE_VERSION,
        )
    if backend == "binary":
        return GitleaksEngine(
            binary=settings.GITLEAKS_BINARY,
            name=settings.SCAN_ENGINE_NAME,
            version=settings.SCAN_ENGINE_VERSION,
        )
    raise ValueError(f"Unknown scanner backend: {backend}")
