"""Breaking-change detection through an external structural-diff tool.

The detector is a convenience, not a correctness requirement: any failure to
run the tool degrades to a skipped detection and never aborts the primary
comparison.
"""

import json
import logging
import os
import shutil
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional

from schemadrift.codes import IssueKind, Severity
from schemadrift.contracts import DetectionResult, DriftIssue
from schemadrift.kernel.tree import SchemaDriftError

logger = logging.getLogger(__name__)


class ExternalToolUnavailable(SchemaDriftError):
    """Raised when the diff tool cannot produce a result; converted to a skip by detect()."""
    pass


class BreakingChangeDetector(ABC):
    """Capability: compare a baseline spec with the current one."""

    @abstractmethod
    def detect(self, baseline: Path, current: Path) -> DetectionResult:
        """Return breaking changes, or a skipped result when detection is impossible."""


class DisabledDetector(BreakingChangeDetector):
    def detect(self, baseline: Path, current: Path) -> DetectionResult:
        return DetectionResult(skipped=True, reason="disabled")


_NUMERIC_LEVELS = {3: Severity.ERROR, 2: Severity.WARNING, 1: Severity.INFO}
_NAMED_LEVELS = {
    "error": Severity.ERROR,
    "err": Severity.ERROR,
    "warning": Severity.WARNING,
    "warn": Severity.WARNING,
    "info": Severity.INFO,
}


def level_to_severity(level: Any) -> Severity:
    """Map the tool's own level to a severity; unlabelled changes are breaking."""
    if isinstance(level, int) and not isinstance(level, bool):
        return _NUMERIC_LEVELS.get(level, Severity.ERROR)
    if isinstance(level, str):
        return _NAMED_LEVELS.get(level.strip().lower(), Severity.ERROR)
    return Severity.ERROR


def parse_changes(output: str) -> List[Dict[str, Any]]:
    """Parse the tool's JSON output: a list of changes or ``{"breaking": [...]}``."""
    text = output.strip()
    if not text:
        return []
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ExternalToolUnavailable(f"could not parse diff tool output: {e.msg}") from e
    if isinstance(data, dict):
        data = data.get("breaking") or []
    if not isinstance(data, list):
        raise ExternalToolUnavailable("unexpected diff tool output shape")
    return [change for change in data if isinstance(change, dict)]


def change_to_issue(change: Dict[str, Any]) -> DriftIssue:
    """Translate one reported change 1:1, keeping the tool's severity."""
    path = change.get("path") or "unknown"
    operation = change.get("operation")
    if operation and path != "unknown":
        path = f"{operation} {path}"
    return DriftIssue(
        severity=level_to_severity(change.get("level")),
        kind=IssueKind.BREAKING,
        path=path,
        message=change.get("text") or change.get("message") or "Breaking change detected",
        details=dict(change),
    )


class OasdiffDetector(BreakingChangeDetector):
    """Runs ``oasdiff breaking <baseline> <current> --format json``.

    Args:
        binary: Executable name (looked up on PATH) or path
        timeout: Seconds before the invocation is abandoned
        retries: Extra attempts on process-spawn failure only
    """

    # 1 is what oasdiff returns when --fail-on matches; both mean the diff ran
    RESULT_EXIT_CODES = (0, 1)

    def __init__(self, binary: str = "oasdiff", timeout: float = 60.0, retries: int = 1):
        self.binary = binary
        self.timeout = timeout
        self.retries = retries

    def detect(self, baseline: Path, current: Path) -> DetectionResult:
        try:
            output = self._run(baseline, current)
            changes = parse_changes(output)
        except ExternalToolUnavailable as e:
            logger.warning("Breaking-change detection skipped: %s", e)
            return DetectionResult(skipped=True, reason=str(e))
        return DetectionResult(issues=[change_to_issue(change) for change in changes])

    def resolve_binary(self) -> str:
        if os.sep in self.binary or (os.altsep and os.altsep in self.binary):
            candidate = Path(self.binary)
            if candidate.is_file() and os.access(candidate, os.X_OK):
                return str(candidate)
            raise ExternalToolUnavailable(f"{self.binary} not found")
        found = shutil.which(self.binary)
        if found is None:
            raise ExternalToolUnavailable(f"{self.binary} not installed")
        return found

    def _run(self, baseline: Path, current: Path) -> str:
        command = [self.resolve_binary(), "breaking", str(baseline), str(current), "--format", "json"]
        last_error: Optional[OSError] = None
        for attempt in range(self.retries + 1):
            try:
                completed = subprocess.run(
                    command,
                    capture_output=True,
                    text=True,
                    timeout=self.timeout,
                    check=False,
                )
            except subprocess.TimeoutExpired as e:
                raise ExternalToolUnavailable(f"{self.binary} timed out after {self.timeout}s") from e
            except OSError as e:
                last_error = e
                logger.info("Starting %s failed (attempt %d): %s", self.binary, attempt + 1, e)
                continue

            if completed.returncode not in self.RESULT_EXIT_CODES:
                stderr = (completed.stderr or "").strip()
                raise ExternalToolUnavailable(f"{self.binary} exited with status {completed.returncode}: {stderr}")
            return completed.stdout
        raise ExternalToolUnavailable(f"could not start {self.binary}: {last_error}")
