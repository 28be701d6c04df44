"""Tests for the run_check orchestrator."""

import pytest

from schemadrift.api import detect_breaking, load_policy, run_check
from schemadrift.codes import IssueKind, Severity
from schemadrift.contracts import DetectionResult, DriftIssue
from schemadrift._internal.breaking import BreakingChangeDetector, OasdiffDetector
from schemadrift._internal.loader import InputError, load_library
from schemadrift.kernel.policy import DriftPolicy
from schemadrift.kernel.tree import InvariantViolation


class RecordingDetector(BreakingChangeDetector):
    """Returns a fixed result and remembers its arguments."""

    def __init__(self, result):
        self.result = result
        self.calls = []

    def detect(self, baseline, current):
        self.calls.append((baseline, current))
        return self.result


BREAKING = DriftIssue(
    severity=Severity.ERROR,
    kind=IssueKind.BREAKING,
    path="GET /sessions",
    message="removed the response property 'name'",
)


def test_clean_pass(session_library, session_spec):
    result = run_check(session_library, session_spec, timestamp="2026-01-01T00:00:00+00:00")
    assert result.summary.model_dump() == {"errors": 0, "warnings": 0, "info": 0, "passed": True}
    assert result.source_version_a == "1.2.0"
    assert result.source_version_b == "0.9.0"
    assert result.breaking_check == "not_run"
    assert result.timestamp == "2026-01-01T00:00:00+00:00"


def test_renamed_field_from_files(write_json, session_library, session_spec):
    session_library["schemas"]["common"]["Session"]["properties"]["sid"] = {"type": "string"}
    session_spec["components"]["schemas"]["Session"]["properties"]["expires"] = {"type": "string"}
    result = run_check(write_json("library.json", session_library), write_json("spec.json", session_spec))
    assert [(i.kind, i.path) for i in result.issues] == [
        (IssueKind.MISSING, "common.Session.sid"),
        (IssueKind.MISSING, "common.Session.expires"),
    ]
    assert result.issues[0].message == "Property exists in library but not in spec"
    assert result.summary.passed is True


def test_accepts_loaded_collections(session_library, session_spec):
    result = run_check(load_library(session_library), session_spec)
    assert result.issues == []


def test_missing_baseline_is_skipped(tmp_path, write_json, session_library, session_spec, caplog):
    detector = RecordingDetector(DetectionResult(issues=[BREAKING]))
    with caplog.at_level("WARNING"):
        result = run_check(
            session_library,
            write_json("spec.json", session_spec),
            baseline=tmp_path / "missing.json",
            detector=detector,
        )
    assert detector.calls == []
    assert result.breaking_check == "skipped"
    assert result.issues == []
    assert "Baseline not found" in caplog.text


def test_breaking_changes_are_appended(write_json, session_library, session_spec):
    spec_path = write_json("spec.json", session_spec)
    baseline_path = write_json("baseline.json", session_spec)
    detector = RecordingDetector(DetectionResult(issues=[BREAKING]))
    result = run_check(session_library, spec_path, baseline=baseline_path, detector=detector)
    assert detector.calls == [(baseline_path, spec_path)]
    assert result.issues == [BREAKING]
    assert result.breaking_check == "completed"
    assert result.summary.passed is False


def test_external_tool_absent_keeps_primary_result(tmp_path, write_json, session_library, session_spec):
    session_spec["components"]["schemas"]["Session"]["properties"]["name"] = {"type": "integer"}
    spec_path = write_json("spec.json", session_spec)
    baseline_path = write_json("baseline.json", session_spec)
    detector = OasdiffDetector(binary=str(tmp_path / "no-such-oasdiff"))
    result = run_check(session_library, spec_path, baseline=baseline_path, detector=detector)
    assert result.breaking_check == "skipped"
    assert [(i.kind, i.path) for i in result.issues] == [(IssueKind.TYPE_MISMATCH, "common.Session.name")]
    assert result.summary.errors == 1


def test_protocol_only_skips_detector(write_json, session_library, session_spec):
    detector = RecordingDetector(DetectionResult(issues=[BREAKING]))
    spec_path = write_json("spec.json", session_spec)
    result = run_check(session_library, spec_path, baseline=spec_path, detector=detector, protocol_only=True)
    assert detector.calls == []
    assert result.breaking_check == "not_run"


def test_breaking_only_skips_comparison(write_json, session_library, session_spec):
    session_spec["components"]["schemas"]["Session"]["properties"]["name"] = {"type": "integer"}
    spec_path = write_json("spec.json", session_spec)
    detector = RecordingDetector(DetectionResult())
    result = run_check(session_library, spec_path, baseline=spec_path, detector=detector, breaking_only=True)
    assert result.issues == []
    assert result.breaking_check == "completed"


def test_protocol_only_and_breaking_only_conflict(session_library, session_spec):
    with pytest.raises(ValueError):
        run_check(session_library, session_spec, protocol_only=True, breaking_only=True)


def test_detection_needs_paths(session_spec, write_json):
    result = detect_breaking(write_json("baseline.json", session_spec), session_spec)
    assert result.skipped is True


def test_policy_is_applied(write_json, session_library, session_spec):
    session_library["schemas"]["common"]["Session"]["properties"]["sid"] = {"type": "string"}
    policy = load_policy(write_json("policy.json", {"property_missing_from_b": "error"}))
    assert policy == DriftPolicy(property_missing_from_b=Severity.ERROR)
    result = run_check(session_library, session_spec, policy=policy)
    assert result.summary.passed is False


def test_invalid_policy_is_input_error(write_json):
    with pytest.raises(InputError) as exc_info:
        load_policy(write_json("policy.json", {"property_missing_from_b": "fatal"}))
    assert "property_missing_from_b" in str(exc_info.value)


def test_missing_document_is_input_error(tmp_path, session_spec):
    with pytest.raises(InputError):
        run_check(tmp_path / "missing.json", session_spec)


def test_mixed_shape_is_invariant_violation(session_library, session_spec):
    session_spec["components"]["schemas"]["Session"]["properties"]["name"] = {
        "type": "string", "items": {"type": "string"},
    }
    with pytest.raises(InvariantViolation):
        run_check(session_library, session_spec)
