"""Pytest configuration for tests.

Tests import the installed schemadrift package; documents are built inline
and written under tmp_path when a file is needed.
"""

import json
import os
import pytest
from pathlib import Path


def pytest_addoption(parser):
    """Add gated perf test option."""
    parser.addoption(
        "--run-perf",
        action="store_true",
        default=False,
        help="Run performance sentinel benchmarks (gated)."
    )


def pytest_collection_modifyitems(config, items):
    """Skip perf-marked tests unless --run-perf is set."""
    if config.getoption("--run-perf"):
        return
    skip_perf = pytest.mark.skip(reason="perf tests gated; pass --run-perf")
    for item in items:
        if "perf" in item.keywords:
            item.add_marker(skip_perf)


def pytest_sessionfinish(session, exitstatus):
    """Best-effort cleanup for basetemp on Windows, where fake tool scripts can stay locked."""
    if os.name != "nt":
        return
    basetemp = getattr(session.config.option, "basetemp", None)
    if not basetemp:
        return
    basetemp_path = Path(basetemp)
    if not basetemp_path.exists():
        return
    try:
        import shutil
        shutil.rmtree(basetemp_path)
    except (PermissionError, OSError):
        import warnings
        warnings.warn(f"Could not remove basetemp: {basetemp_path}")


@pytest.fixture
def write_json(tmp_path):
    """Write a dict as JSON under tmp_path and return the path."""
    def _write(name: str, data) -> Path:
        path = tmp_path / name
        path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        return path
    return _write


@pytest.fixture
def session_library():
    """Schema library export with one Session type in the "common" group."""
    return {
        "_metadata": {"packageVersion": "1.2.0"},
        "schemas": {
            "common": {
                "Session": {
                    "type": "object",
                    "properties": {
                        "id": {"type": "string"},
                        "name": {"type": "string"},
                    },
                    "required": ["id"],
                }
            }
        },
    }


@pytest.fixture
def session_spec():
    """Generated OpenAPI document declaring the same Session type."""
    return {
        "openapi": "3.0.3",
        "info": {"title": "Session API", "version": "0.9.0"},
        "paths": {"/sessions": {}},
        "components": {
            "schemas": {
                "Session": {
                    "type": "object",
                    "properties": {
                        "id": {"type": "string"},
                        "name": {"type": "string"},
                    },
                    "required": ["id"],
                }
            }
        },
    }
