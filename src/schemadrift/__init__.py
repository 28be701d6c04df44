"""schemadrift: structural drift detection between a schema library and a generated API spec."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("schemadrift")
except PackageNotFoundError:
    __version__ = "dev"

# Public API exports
# Note: compare is exported from schemadrift.kernel.compare, not from root,
# so the name is not confused with the CLI's compare subcommand
from schemadrift.api import run_check, load_policy
from schemadrift.contracts import ComparisonResult, DetectionResult, DriftIssue, Summary
from schemadrift.codes import IssueKind, Severity
from schemadrift.kernel.collection import SchemaCollection
from schemadrift.kernel.policy import DriftPolicy
from schemadrift.kernel.tree import InvariantViolation, SchemaDriftError
from schemadrift._internal.loader import InputError
from schemadrift._internal.breaking import ExternalToolUnavailable

__all__ = [
    "__version__",
    "run_check",
    "load_policy",
    "ComparisonResult",
    "DetectionResult",
    "DriftIssue",
    "Summary",
    "IssueKind",
    "Severity",
    "SchemaCollection",
    "DriftPolicy",
    "SchemaDriftError",
    "InvariantViolation",
    "InputError",
    "ExternalToolUnavailable",
]
