#endpoint

import json
import logging
import traceback
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from core.config import Settings, get_settings
from models.contracts import ErrorResponse, ScanReport, ScanRequest
from scanner.engine import build_engine
from scanner.errors import ClientInputError, FetchError, ScanServiceError, ScanTimeoutError
from scanner.fetcher import RepositoryFetcher
from scanner.orchestrator import URL_INVALID, ScanOrchestrator

logger = logging.getLogger(__name__)

scan_router = APIRouter()

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}

SERVER_ERROR = "Internal server error"
GENERIC_FAILURE = "Failed to scan repository. Please try again later."
CLONE_FAILURE = "Failed to clone repository. Make sure it exists and is publicly accessible."
TIMEOUT_FAILURE = "Repository scan timed out. Please try again later."
INVALID_BODY = "Invalid request body"
BODY_HINT = "Request body must be JSON like {\"repoUrl\": \"https://github.com/owner/repo\"}"

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


def get_orchestrator(settings: Settings = Depends(get_settings)) -> ScanOrchestrator:
    return ScanOrchestrator(
        fetcher=RepositoryFetcher(depth=settings.CLONE_DEPTH, token=settings.GITHUB_TOKEN),
        engine=build_engine(settings),
        timeout=settings.SCAN_TIMEOUT_SECONDS,
        forge_host=settings.FORGE_HOST,
        workspace_prefix=settings.WORKSPACE_PREFIX,
        workspace_root=settings.WORKSPACE_ROOT,
    )


def _error(status_code: int, error: str, message: str, details: Optional[str] = None) -> JSONResponse:
    body = ErrorResponse(error=error, message=message, details=details)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True), headers=CORS_HEADERS)


def _server_error(exc: Exception, settings: Settings) -> JSONResponse:
    if isinstance(exc, ScanTimeoutError):
        message = TIMEOUT_FAILURE
    elif isinstance(exc, FetchError):
        message = CLONE_FAILURE
    else:
        message = GENERIC_FAILURE

    details = None
    if settings.is_development:
        details = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, SERVER_ERROR, message, details)


async def _run_scan(repo_url: Optional[str], response: Response, orchestrator: ScanOrchestrator, settings: Settings):
    try:
        report = await orchestrator.run(repo_url)
    except ClientInputError as e:
        logger.info(f"Rejected scan request: {e.error}")
        return _error(status.HTTP_400_BAD_REQUEST, e.error, e.message)
    except ScanServiceError as e:
        logger.warning(f"Scan failed: {type(e).__name__}")
        return _server_error(e, settings)
    except Exception as e:
        logger.error("Error during repository scan", exc_info=True)
        return _server_error(e, settings)

    response.headers.update(CORS_HEADERS)
    return report


@scan_router.options("/scan")
def scan_preflight():
    return Response(status_code=status.HTTP_200_OK, headers=CORS_HEADERS)


@scan_router.get("/scan", response_model=ScanReport, responses=ERROR_RESPONSES)
async def scan_repo_get(
    response: Response,
    repo_url: Optional[str] = Query(default=None, alias="repoUrl"),
    orchestrator: ScanOrchestrator = Depends(get_orchestrator),
    settings: Settings = Depends(get_settings),
):
    return await _run_scan(repo_url, response, orchestrator, settings)


@scan_router.post("/scan", response_model=ScanReport, responses=ERROR_RESPONSES)
async def scan_repo_post(
    request: Request,
    response: Response,
    orchestrator: ScanOrchestrator = Depends(get_orchestrator),
    settings: Settings = Depends(get_settings),
):
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return _error(status.HTTP_400_BAD_REQUEST, INVALID_BODY, BODY_HINT)

    if not isinstance(body, dict):
        return _error(status.HTTP_400_BAD_REQUEST, INVALID_BODY, BODY_HINT)

    try:
        scan_request = ScanRequest.model_validate(body)
    except ValidationError:
        return _error(status.HTTP_400_BAD_REQUEST, URL_INVALID, ClientInputError(URL_INVALID).message)

    return await _run_scan(scan_request.repo_url, response, orchestrator, settings)
