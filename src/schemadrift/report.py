"""Report formatter: summary, ordering and renderings of a drift check."""

import json
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from schemadrift._internal.canonical_json import canonical_dumps
from schemadrift._internal.report_contract import (
    CANONICALIZATION_POLICY_ID,
    REPORT_SCHEMA_VERSION,
    SEVERITY_ICONS,
)
from schemadrift.codes import SEVERITY_ORDER, IssueKind, Severity
from schemadrift.contracts import ComparisonResult, DriftIssue, Summary

DEFAULT_SOURCE_TITLES = ("Schema Library", "Generated Spec")
_CONTRACT_KEYS = ("report_schema_version", "canonicalization_policy_id")


def summarize(issues: Iterable[DriftIssue]) -> Summary:
    """Count issues by severity; the run passes when there are no errors."""
    counts = {severity: 0 for severity in Severity}
    for issue in issues:
        counts[issue.severity] += 1
    return Summary(
        errors=counts[Severity.ERROR],
        warnings=counts[Severity.WARNING],
        info=counts[Severity.INFO],
        passed=counts[Severity.ERROR] == 0,
    )


def build_result(
    issues: Iterable[DriftIssue],
    source_version_a: str,
    source_version_b: str,
    *,
    timestamp: Optional[str] = None,
    breaking_check: str = "not_run",
) -> ComparisonResult:
    issues = list(issues)
    return ComparisonResult(
        timestamp=timestamp or datetime.now(timezone.utc).isoformat(),
        source_version_a=source_version_a,
        source_version_b=source_version_b,
        issues=issues,
        summary=summarize(issues),
        breaking_check=breaking_check,
    )


def order_issues(issues: Iterable[DriftIssue]) -> List[DriftIssue]:
    """Errors, then warnings, then info; by path within a severity.

    The sort is stable, so issues sharing a path keep discovery order.
    """
    return sorted(issues, key=lambda issue: (issue.severity.rank, issue.path))


def group_issues(issues: Iterable[DriftIssue]) -> Dict[Severity, Dict[IssueKind, List[DriftIssue]]]:
    """Group ordered issues by severity, then by kind. Empty groups are absent."""
    grouped: Dict[Severity, Dict[IssueKind, List[DriftIssue]]] = {}
    for issue in order_issues(issues):
        grouped.setdefault(issue.severity, {}).setdefault(issue.kind, []).append(issue)
    return {severity: grouped[severity] for severity in SEVERITY_ORDER if severity in grouped}


def _title(value: str) -> str:
    return value.replace("_", " ").title()


def render_markdown(
    result: ComparisonResult,
    titles: Tuple[str, str] = DEFAULT_SOURCE_TITLES,
    include_details: bool = True,
) -> str:
    """Render the result as a markdown report (suitable for CI step summaries)."""
    summary = result.summary
    lines = [
        "# Schema Drift Detection Report",
        "",
        f"**Generated:** {result.timestamp}",
        f"**{titles[0]} Version:** {result.source_version_a}",
        f"**{titles[1]} Version:** {result.source_version_b}",
    ]
    if result.breaking_check != "not_run":
        lines.append(f"**Breaking-Change Check:** {result.breaking_check}")
    lines.extend([
        "",
        "## Summary",
        "",
        "| Severity | Count |",
        "|----------|-------|",
        f"| {SEVERITY_ICONS['error']} Errors | {summary.errors} |",
        f"| {SEVERITY_ICONS['warning']} Warnings | {summary.warnings} |",
        f"| {SEVERITY_ICONS['info']} Info | {summary.info} |",
        "",
        "[OK] **No blocking issues detected**" if summary.passed else "[!] **Blocking issues detected**",
        "",
    ])

    grouped = group_issues(result.issues)
    if grouped:
        lines.append("## Issues")
        lines.append("")

    for severity, by_kind in grouped.items():
        count = sum(len(issues) for issues in by_kind.values())
        heading = "Info" if severity == Severity.INFO else f"{_title(severity.value)}s"
        lines.append(f"### {SEVERITY_ICONS[severity.value]} {heading} ({count})")
        lines.append("")
        for kind, issues in by_kind.items():
            lines.append(f"#### {_title(kind.value)} ({len(issues)})")
            lines.append("")
            for issue in issues:
                lines.append(f"- **{issue.path}**: {issue.message}")
                if include_details and issue.details:
                    dumped = json.dumps(issue.details, indent=2, sort_keys=True, ensure_ascii=False)
                    lines.append("  ```json")
                    lines.extend(f"  {line}" for line in dumped.splitlines())
                    lines.append("  ```")
            lines.append("")

    return "\n".join(lines)


def render_console(result: ComparisonResult) -> str:
    """One line per issue followed by the counts, for terminal output."""
    lines = [
        f"{SEVERITY_ICONS[issue.severity.value]} [{issue.kind.value}] {issue.path}: {issue.message}"
        for issue in order_issues(result.issues)
    ]
    summary = result.summary
    if lines:
        lines.append("")
    lines.append(f"Errors: {summary.errors}")
    lines.append(f"Warnings: {summary.warnings}")
    lines.append(f"Info: {summary.info}")
    lines.append("Schema drift check passed" if summary.passed else "Schema drift check failed")
    return "\n".join(lines)


def result_to_dict(result: ComparisonResult) -> Dict[str, Any]:
    payload = result.model_dump(mode="json")
    payload["report_schema_version"] = REPORT_SCHEMA_VERSION
    payload["canonicalization_policy_id"] = CANONICALIZATION_POLICY_ID
    return payload


def render_json(result: ComparisonResult) -> str:
    return canonical_dumps(result_to_dict(result))


def result_from_dict(data: Dict[str, Any]) -> ComparisonResult:
    """Inverse of result_to_dict; the summary is recomputed from the issues."""
    payload = {key: value for key, value in data.items() if key not in _CONTRACT_KEYS}
    result = ComparisonResult.model_validate(payload)
    return result.model_copy(update={"summary": summarize(result.issues)})
