# Shared contract between the scan API and the scanner pipeline
# DO NOT change public (camelCase) field names without updating the frontend

from typing import Optional, List, Literal
from pydantic import BaseModel, ConfigDict, Field


Severity = Literal["low", "medium", "high"]


class ScanRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    repo_url: Optional[str] = Field(default=None, alias="repoUrl")


class RawFinding(BaseModel):
    """One entry of a Gitleaks JSON report. Keys follow the engine's casing."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    description: Optional[str] = Field(default=None, alias="Description")
    rule_id: Optional[str] = Field(default=None, alias="RuleID")
    file: Optional[str] = Field(default=None, alias="File")
    start_line: Optional[int] = Field(default=None, alias="StartLine")
    end_line: Optional[int] = Field(default=None, alias="EndLine")
    start_column: Optional[int] = Field(default=None, alias="StartColumn")
    end_column: Optional[int] = Field(default=None, alias="EndColumn")
    match: Optional[str] = Field(default=None, alias="Match")
    secret: Optional[str] = Field(default=None, alias="Secret")
    commit: Optional[str] = Field(default=None, alias="Commit")
    author: Optional[str] = Field(default=None, alias="Author")
    email: Optional[str] = Field(default=None, alias="Email")
    date: Optional[str] = Field(default=None, alias="Date")
    entropy: Optional[float] = Field(default=None, alias="Entropy")
    message: Optional[str] = Field(default=None, alias="Message")
    fingerprint: Optional[str] = Field(default=None, alias="Fingerprint")
    tags: Optional[List[str]] = Field(default=None, alias="Tags")


class NormalizedFinding(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    file: Optional[str] = None
    commit: str
    secret_type: str = Field(alias="secretType")
    severity: Severity
    line_number: Optional[int] = Field(default=None, alias="lineNumber")
    snippet: Optional[str] = None
    entropy: Optional[float] = None
    author: Optional[str] = None
    date: Optional[str] = None


class ScanReport(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    repo_name: str = Field(alias="repoName")
    total_secrets: int = Field(alias="totalSecrets")
    scan_date: str = Field(alias="scanDate")
    findings: List[NormalizedFinding]
    scan_engine: str = Field(alias="scanEngine")
    version: str


class ErrorResponse(BaseModel):
    error: str
    message: str
    details: Optional[str] = None


class HealthResponse(BaseModel):
    status: Literal["healthy"] = "healthy"
    timestamp: str
    service: str
    version: str
