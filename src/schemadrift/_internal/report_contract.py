"""Report contract constants for drift reports."""

REPORT_SCHEMA_VERSION = "1"
CANONICALIZATION_POLICY_ID = "schemadrift.canonical-json.v1"

# Markdown report file written by `schemadrift compare --ci` when no --report is given.
DEFAULT_REPORT_FILENAME = "schema-diff.md"

SEVERITY_ICONS = {
    "error": "[ERROR]",
    "warning": "[WARN]",
    "info": "[INFO]",
}
