"""Public API for schemadrift.

High-level functions that load both sources, run the diff engine and the
optional breaking-change detector, and return a complete ComparisonResult.
"""

import logging
import os
from pathlib import Path
from typing import List, Optional, Tuple, Union

from pydantic import ValidationError

from schemadrift._internal.breaking import BreakingChangeDetector, OasdiffDetector
from schemadrift._internal.loader import (
    DocumentSource,
    InputError,
    load_json_document,
    load_library,
    load_openapi,
)
from schemadrift.contracts import ComparisonResult, DetectionResult, DriftIssue
from schemadrift.kernel.compare import compare_collections
from schemadrift.kernel.policy import DriftPolicy
from schemadrift.report import build_result

logger = logging.getLogger(__name__)

DEFAULT_SIDES = ("library", "spec")


def _as_path(source) -> Optional[Path]:
    if isinstance(source, Path):
        return source
    if isinstance(source, (str, os.PathLike)):
        return Path(source)
    return None


def load_policy(path: Union[str, os.PathLike]) -> DriftPolicy:
    """Load a DriftPolicy from a JSON file of rule -> severity."""
    data = load_json_document(path)
    try:
        return DriftPolicy.model_validate(data)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in e.errors()
        )
        raise InputError(path, f"invalid policy: {problems}") from e


def detect_breaking(
    baseline: Union[str, os.PathLike],
    current: DocumentSource,
    detector: Optional[BreakingChangeDetector] = None,
) -> DetectionResult:
    """Run the breaking-change detector; never raises on tool problems."""
    baseline_path = _as_path(baseline)
    current_path = _as_path(current)
    if baseline_path is None or current_path is None:
        return DetectionResult(skipped=True, reason="breaking-change detection needs file paths")
    if not baseline_path.is_file():
        logger.warning("Baseline not found: %s", baseline_path)
        return DetectionResult(skipped=True, reason=f"baseline not found: {baseline_path}")

    detector = detector or OasdiffDetector()
    result = detector.detect(baseline_path, current_path)
    if not result.skipped:
        logger.info("Found %d breaking changes", len(result.issues))
    return result


def run_check(
    library: DocumentSource,
    spec: DocumentSource,
    *,
    baseline: Optional[Union[str, os.PathLike]] = None,
    detector: Optional[BreakingChangeDetector] = None,
    policy: Optional[DriftPolicy] = None,
    protocol_only: bool = False,
    breaking_only: bool = False,
    sides: Tuple[str, str] = DEFAULT_SIDES,
    timestamp: Optional[str] = None,
) -> ComparisonResult:
    """Compare the schema library with the generated spec.

    Args:
        library: Schema library export (path, parsed document or SchemaCollection)
        spec: Generated specification (path, parsed document or SchemaCollection)
        baseline: Previous generated specification; enables breaking-change detection
        detector: Breaking-change detector (defaults to OasdiffDetector)
        policy: Severity policy for the diff engine
        protocol_only: Skip breaking-change detection
        breaking_only: Skip the library/spec comparison
        sides: Labels for the two sources in issue messages
        timestamp: Override the result timestamp (ISO 8601)

    Returns:
        ComparisonResult with issues in discovery order

    Raises:
        InputError: If either document is missing or malformed
        InvariantViolation: If a schema node mixes shapes
    """
    if protocol_only and breaking_only:
        raise ValueError("protocol_only and breaking_only are mutually exclusive")

    collection_a = load_library(library)
    collection_b = load_openapi(spec)

    issues: List[DriftIssue] = []
    if not breaking_only:
        logger.info("Comparing %s schemas with %s schemas", sides[0], sides[1])
        issues.extend(compare_collections(collection_a, collection_b, policy=policy, sides=sides))

    breaking_check = "not_run"
    if not protocol_only and baseline is not None:
        logger.info("Checking for breaking changes against %s", baseline)
        detection = detect_breaking(baseline, spec, detector)
        issues.extend(detection.issues)
        breaking_check = "skipped" if detection.skipped else "completed"

    return build_result(
        issues,
        collection_a.version,
        collection_b.version,
        timestamp=timestamp,
        breaking_check=breaking_check,
    )
