"""Public result models for schemadrift."""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from schemadrift.codes import IssueKind, Severity


class DriftIssue(BaseModel):
    """One divergence between the two schema sources."""
    severity: Severity
    kind: IssueKind
    path: str  # Dotted location, e.g. "updates.NewSession.sid"
    message: str
    details: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(frozen=True)


class Summary(BaseModel):
    errors: int = 0
    warnings: int = 0
    info: int = 0
    passed: bool = True  # errors == 0; warnings and info never block


class DetectionResult(BaseModel):
    """Outcome of a breaking-change detector run."""
    issues: List[DriftIssue] = Field(default_factory=list)
    skipped: bool = False
    reason: Optional[str] = None  # Why the detector was skipped


class ComparisonResult(BaseModel):
    """Output of one drift check."""
    timestamp: str
    source_version_a: str
    source_version_b: str
    issues: List[DriftIssue]  # Discovery order
    summary: Summary
    breaking_check: Literal["not_run", "completed", "skipped"] = "not_run"
