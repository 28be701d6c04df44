"""Severity policy for the diff engine.

Every rule except type mismatch has a configurable severity; type
mismatches are always errors.
"""

from pydantic import BaseModel, ConfigDict

from schemadrift.codes import Severity


class DriftPolicy(BaseModel):
    """Severities assigned by the diff engine, one per rule."""
    property_missing_from_a: Severity = Severity.WARNING  # Declared by B only
    property_missing_from_b: Severity = Severity.WARNING  # Declared by A only
    missing_required: Severity = Severity.ERROR  # Missing property that a side requires
    enum_missing_from_a: Severity = Severity.INFO  # Values B documents and A does not
    enum_missing_from_b: Severity = Severity.WARNING  # Values A documents and B does not
    enum_one_sided: Severity = Severity.INFO  # Closed enum on one side, open type on the other
    nullability_mismatch: Severity = Severity.WARNING
    required_mismatch: Severity = Severity.WARNING
    additional_properties_mismatch: Severity = Severity.WARNING
    union_mode_mismatch: Severity = Severity.WARNING
    numeric_refinement: Severity = Severity.INFO  # integer vs number
    unresolved_reference: Severity = Severity.WARNING
    cycle_detected: Severity = Severity.INFO

    model_config = ConfigDict(extra="forbid", frozen=True)


DEFAULT_POLICY = DriftPolicy()
