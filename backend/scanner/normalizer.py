"""Map gitleaks report entries onto the public ScanReport schema.

Everything here is pure: no I/O, no clock reads unless the caller leaves
`scan_date` unset.
"""
from __future__ import annotations
import json
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Iterable, List, Optional, Union
from urllib.parse import urlsplit

from pydantic import ValidationError

from models.contracts import NormalizedFinding, RawFinding, ScanReport, Severity
from scanner.errors import NormalizationError

UNKNOWN_SECRET = "Unknown Secret"
UNKNOWN_REPO = "unknown"
SHORT_COMMIT_LEN = 7

SECRET_TYPES = MappingProxyType({
    "generic-api-key": "API Key",
    "aws-access-token": "AWS Access Key",
    "github-pat": "GitHub Token",
    "slack-bot-token": "Slack Bot Token",
    "discord-bot-token": "Discord Bot Token",
    "database-password": "Database Password",
    "private-key": "Private Key",
    "jwt": "JWT Token",
})

HIGH_SEVERITY_PATTERNS = ("private-key", "aws-access-token", "database-password")
MEDIUM_SEVERITY_PATTERNS = ("api-key", "github-pat", "jwt")


def parse_report(payload: Union[str, bytes, None]) -> List[RawFinding]:
    """Parse the engine's JSON report. An empty payload means no findings."""
    if payload is None:
        return []
    if isinstance(payload, bytes):
        try:
            payload = payload.decode("utf-8")
        except UnicodeDecodeError as e:
            raise NormalizationError("Scan report is not valid UTF-8") from e
    if not payload.strip():
        return []

    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        raise NormalizationError(f"Scan report is not valid JSON: {e}") from e

    if data is None:
        return []
    if not isinstance(data, list):
        raise NormalizationError(f"Scan report must be a JSON array, got {type(data).__name__}")

    findings = []
    for i, entry in enumerate(data):
        if not isinstance(entry, dict):
            raise NormalizationError(f"Finding #{i} is not an object")
        try:
            findings.append(RawFinding.model_validate(entry))
        except ValidationError as e:
            raise NormalizationError(f"Finding #{i} is malformed: {e}") from e
    return findings


def map_secret_type(description: Optional[str], rule_id: Optional[str]) -> str:
    return SECRET_TYPES.get(rule_id or "") or description or UNKNOWN_SECRET


def determine_severity(description: Optional[str], rule_id: Optional[str]) -> Severity:
    haystack = f"{description or ''} {rule_id or ''}".lower()
    if any(p in haystack for p in HIGH_SEVERITY_PATTERNS):
        return "high"
    if any(p in haystack for p in MEDIUM_SEVERITY_PATTERNS):
        return "medium"
    return "low"


def short_commit(commit: Optional[str]) -> str:
    return (commit or "")[:SHORT_COMMIT_LEN]


def extract_repo_name(repo_url: Optional[str]) -> str:
    """`https://github.com/acme/app.git` -> `app`; `unknown` if there is no path."""
    if not repo_url or not repo_url.strip():
        return UNKNOWN_REPO
    url = repo_url.strip()
    if "://" not in url:
        url = f"https://{url}"
    try:
        path = urlsplit(url).path
    except ValueError:
        return UNKNOWN_REPO

    segments = [s for s in path.split("/") if s]
    if not segments:
        return UNKNOWN_REPO
    name = segments[-1]
    if name.endswith(".git"):
        name = name[:-len(".git")]
    return name or UNKNOWN_REPO


def normalize_finding(index: int, raw: RawFinding) -> NormalizedFinding:
    return NormalizedFinding(
        id=index,
        file=raw.file,
        commit=short_commit(raw.commit),
        secret_type=map_secret_type(raw.description, raw.rule_id),
        severity=determine_severity(raw.description, raw.rule_id),
        line_number=raw.start_line,
        snippet=raw.match,
        entropy=raw.entropy,
        author=raw.author,
        date=raw.date,
    )


def normalize(
    raw_findings: Iterable[RawFinding],
    repo_url: str,
    *,
    engine_name: str = "Gitleaks",
    engine_version: str = "8.18.0",
    scan_date: Optional[datetime] = None,
) -> ScanReport:
    findings = [normalize_finding(i, raw) for i, raw in enumerate(raw_findings, start=1)]
    when = scan_date or datetime.now(timezone.utc)
    return ScanReport(
        repo_name=extract_repo_name(repo_url),
        total_secrets=len(findings),
        scan_date=when.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        findings=findings,
        scan_engine=engine_name,
        version=engine_version,
    )
