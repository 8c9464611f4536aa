# Exceptions used by the scan endpoint to determine HTTP response codes.
# Messages on these exceptions may contain internal detail (paths, stderr);
# the endpoint only exposes them when running in development.

from typing import Optional


class ScanServiceError(Exception):
    pass


class ClientInputError(ScanServiceError):
    """The caller sent something we can't scan. Maps to 400."""

    def __init__(self, error: str, message: str = "Please provide a valid GitHub repository URL"):
        super().__init__(error)
        self.error = error
        self.message = message


class WorkspaceError(ScanServiceError):
    pass


class CleanupError(ScanServiceError):
    """Workspace removal failed. Logged, never raised to the endpoint."""
    pass


class FetchError(ScanServiceError):
    def __init__(self, reason: str, detail: str = ""):
        msg = f"Failed to clone repository ({reason})"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)
        self.reason = reason
        self.detail = detail


class ScanError(ScanServiceError):
    def __init__(self, code: Optional[int], stderr: str = "", msg: Optional[str] = None):
        if msg is None:
            msg = f"Scan engine failed with code {code}"
            if stderr:
                msg = f"{msg}: {stderr}"
        super().__init__(msg)
        self.code = code
        self.stderr = stderr


class ScanTimeoutError(ScanError):
    def __init__(self, timeout: float):
        super().__init__(None, msg=f"Scan timed out after {timeout:g}s")
        self.timeout = timeout


class NormalizationError(ScanServiceError):
    pass
