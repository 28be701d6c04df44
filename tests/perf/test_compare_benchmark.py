"""Performance sentinels (gated)."""

from __future__ import annotations

import pytest

from schemadrift.api import run_check

MAX_WIDE_LIBRARY_MS = 2000.0
MAX_UNION_FANOUT_MS = 1000.0
MAX_REFERENCE_CHAIN_MS = 1000.0


def _library(schemas):
    return {"_metadata": {"packageVersion": "1"}, "schemas": {"common": schemas}}


def _spec(schemas):
    return {"info": {"version": "1"}, "components": {"schemas": schemas}}


def _wide_type(width: int, drift: bool = False):
    properties = {f"field_{i}": {"type": "string"} for i in range(width)}
    if drift:
        properties["field_0"] = {"type": "integer"}
    return {"type": "object", "properties": properties}


def _assert_budget(benchmark, max_ms: float) -> None:
    mean_ms = benchmark.stats.stats.mean * 1000.0
    assert mean_ms < max_ms, f"Mean {mean_ms:.2f} ms exceeded budget {max_ms:.2f} ms"


@pytest.mark.perf
def test_wide_library_sentinel(benchmark):
    library = _library({f"Type{i}": _wide_type(50) for i in range(200)})
    spec = _spec({f"Type{i}": _wide_type(50, drift=True) for i in range(200)})
    result = benchmark.pedantic(lambda: run_check(library, spec), rounds=3, iterations=1)

    assert result.summary.errors == 200
    _assert_budget(benchmark, MAX_WIDE_LIBRARY_MS)


@pytest.mark.perf
def test_union_fanout_sentinel(benchmark):
    branches = [{"type": "object", "properties": {"kind": {"const": f"k{i}"}}} for i in range(60)]
    library = _library({"Event": {"oneOf": branches}})
    spec = _spec({"Event": {"oneOf": list(reversed(branches))}})
    result = benchmark.pedantic(lambda: run_check(library, spec), rounds=3, iterations=1)

    # Branches differ only in enum values, so every pairing matches
    assert result.issues == []
    _assert_budget(benchmark, MAX_UNION_FANOUT_MS)


@pytest.mark.perf
def test_reference_chain_sentinel(benchmark):
    depth = 100
    library = _library({
        f"Node{i}": {"type": "object", "properties": {"next": {"$ref": f"#/definitions/Node{i + 1}"}}}
        for i in range(depth)
    })
    library["schemas"]["common"][f"Node{depth}"] = {"type": "object"}
    inline = {"type": "object"}
    for _ in range(depth):
        inline = {"type": "object", "properties": {"next": inline}}
    spec = _spec({"Node0": inline})
    result = benchmark.pedantic(lambda: run_check(library, spec), rounds=3, iterations=1)

    assert result.issues == []
    _assert_budget(benchmark, MAX_REFERENCE_CHAIN_MS)
