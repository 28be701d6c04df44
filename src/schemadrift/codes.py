"""Issue classification constants for schemadrift.

These constants prevent stringly-typed severities and kinds and ensure
client code uses the values the report contract expects.
"""

from enum import Enum


class Severity(str, Enum):
    """Issue severity, ordered by blocking power."""

    # Blocking
    ERROR = "error"

    # Non-blocking
    WARNING = "warning"
    INFO = "info"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {Severity.ERROR: 0, Severity.WARNING: 1, Severity.INFO: 2}

SEVERITY_ORDER = (Severity.ERROR, Severity.WARNING, Severity.INFO)


class IssueKind(str, Enum):
    """What kind of divergence an issue describes."""

    MISSING = "missing"  # Declared on one side only
    TYPE_MISMATCH = "type_mismatch"  # Coarse types differ
    PROPERTY_DIFF = "property_diff"  # Metadata differs (nullable, required, additionalProperties)
    ENUM_DIFF = "enum_diff"  # Enumerated values differ
    BREAKING = "breaking"  # Reported by the external breaking-change detector


class UnionMode(str, Enum):
    """Union flavours; comparison semantics differ per mode."""

    EXACTLY_ONE = "exactly-one"  # oneOf
    ANY_OF = "any-of"  # anyOf
    ALL_OF = "all-of"  # allOf

    @property
    def keyword(self) -> str:
        return {"exactly-one": "oneOf", "any-of": "anyOf", "all-of": "allOf"}[self.value]
