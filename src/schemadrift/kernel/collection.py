"""Named collections of schema trees, one per source."""

from typing import Dict, Optional

from pydantic import BaseModel, Field

from .tree import SchemaTree


class SchemaCollection(BaseModel):
    """All top-level types of one source, keyed by type name.

    ``groups`` maps a type name to the logical group it was declared in
    (schema library exports are grouped, generated specs are not).
    ``definitions`` holds extra names that references may resolve to but
    that are never compared on their own (e.g. embedded ``$defs``).
    """
    version: str = "unknown"
    types: Dict[str, SchemaTree] = Field(default_factory=dict)
    groups: Dict[str, str] = Field(default_factory=dict)
    definitions: Dict[str, SchemaTree] = Field(default_factory=dict)

    def label(self, name: str) -> str:
        """Report path prefix for a top-level type."""
        group = self.groups.get(name)
        return f"{group}.{name}" if group else name

    def resolve(self, target: str) -> Optional[SchemaTree]:
        if target in self.types:
            return self.types[target]
        return self.definitions.get(target)

    def resolvable(self) -> Dict[str, SchemaTree]:
        """Every name a reference may point to; top-level types win."""
        merged = dict(self.definitions)
        merged.update(self.types)
        return merged
