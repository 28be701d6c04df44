"""Schema tree model: normalized JSON-Schema-like nodes as a tagged variant.

Each node shape (leaf, object, array, union, reference) is its own model and
carries only the fields relevant to it, so a node can never be both an enum
and a union. All shapes share ``nullable`` and ``description``.
"""

from __future__ import annotations

from typing import Annotated, Any, Dict, FrozenSet, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_serializer

from schemadrift.codes import UnionMode


class SchemaDriftError(Exception):
    """Base exception for schemadrift errors that stop a run."""
    pass


class InvariantViolation(SchemaDriftError):
    """Raised when a schema node cannot be represented by exactly one shape."""
    def __init__(self, pointer: str, reason: str, source: Optional[str] = None):
        self.pointer = pointer or "#"
        self.reason = reason
        self.source = source
        prefix = f"{source}: " if source else ""
        super().__init__(f"{prefix}Invalid schema node at {self.pointer}: {reason}")


LeafType = Literal["string", "number", "integer", "boolean", "null", "unknown"]


class LeafNode(BaseModel):
    """A scalar node, optionally a closed enumeration."""
    shape: Literal["leaf"] = "leaf"
    type: LeafType = "unknown"
    enum_values: Optional[Tuple[Any, ...]] = None  # Ordered as declared
    nullable: bool = False
    description: Optional[str] = None

    model_config = ConfigDict(extra="forbid", frozen=True)


class ObjectNode(BaseModel):
    """An object node with named properties.

    ``additional_properties`` is tri-state: ``False`` (forbidden), ``True``
    (unconstrained, also the JSON Schema default) or a nested tree (typed).
    """
    shape: Literal["object"] = "object"
    properties: Dict[str, SchemaTree] = Field(default_factory=dict)
    required: FrozenSet[str] = frozenset()
    additional_properties: Union[bool, SchemaTree] = True
    nullable: bool = False
    description: Optional[str] = None

    model_config = ConfigDict(extra="forbid", frozen=True)

    @field_serializer("required")
    def _serialize_required(self, required: FrozenSet[str]) -> List[str]:
        return sorted(required)


class ArrayNode(BaseModel):
    shape: Literal["array"] = "array"
    items: SchemaTree = Field(default_factory=LeafNode)
    nullable: bool = False
    description: Optional[str] = None

    model_config = ConfigDict(extra="forbid", frozen=True)


class UnionNode(BaseModel):
    """oneOf / anyOf / allOf alternatives."""
    shape: Literal["union"] = "union"
    mode: UnionMode
    branches: Tuple[SchemaTree, ...]
    nullable: bool = False
    description: Optional[str] = None

    model_config = ConfigDict(extra="forbid", frozen=True)


class ReferenceNode(BaseModel):
    """A by-name pointer to another top-level type."""
    shape: Literal["reference"] = "reference"
    target: str
    nullable: bool = False
    description: Optional[str] = None

    model_config = ConfigDict(extra="forbid", frozen=True)


SchemaTree = Annotated[
    Union[LeafNode, ObjectNode, ArrayNode, UnionNode, ReferenceNode],
    Field(discriminator="shape"),
]

for _model in (LeafNode, ObjectNode, ArrayNode, UnionNode, ReferenceNode):
    _model.model_rebuild()

SCHEMA_NODE_TYPES = (LeafNode, ObjectNode, ArrayNode, UnionNode, ReferenceNode)

schema_tree_adapter = TypeAdapter(SchemaTree)


def is_schema_node(obj: Any) -> bool:
    return isinstance(obj, SCHEMA_NODE_TYPES)


def coarse_type(node: SchemaTree) -> str:
    """Coarse type used for mismatch detection.

    Ignores nullability and enum refinement; ``integer`` folds into ``number``.
    """
    if isinstance(node, LeafNode):
        return "number" if node.type == "integer" else node.type
    if isinstance(node, ObjectNode):
        return "object"
    if isinstance(node, ArrayNode):
        return "array"
    if isinstance(node, UnionNode):
        return "union"
    if isinstance(node, ReferenceNode):
        return "reference"
    raise InvariantViolation("", f"not a schema tree node: {type(node).__name__}")


def additional_policy(node: ObjectNode) -> Literal["forbidden", "unconstrained", "typed"]:
    extra = node.additional_properties
    if extra is True:
        return "unconstrained"
    if extra is False:
        return "forbidden"
    return "typed"


def describe(node: SchemaTree) -> str:
    """Compact type string for messages and issue details."""
    if not is_schema_node(node):
        raise InvariantViolation("", f"not a schema tree node: {type(node).__name__}")
    suffix = "?" if node.nullable else ""
    if isinstance(node, ReferenceNode):
        return f"$ref:{node.target}{suffix}"
    if isinstance(node, UnionNode):
        joiner = "&" if node.mode == UnionMode.ALL_OF else "|"
        inner = joiner.join(describe(branch) for branch in node.branches)
        return f"{node.mode.keyword}[{inner}]{suffix}"
    if isinstance(node, ArrayNode):
        return f"array<{describe(node.items)}>{suffix}"
    if isinstance(node, ObjectNode):
        props = ",".join(node.properties)
        return (f"object{{{props}}}" if props else "object") + suffix
    if isinstance(node, LeafNode):
        if node.enum_values is not None:
            return f"enum[{','.join(str(v) for v in node.enum_values)}]{suffix}"
        return node.type + suffix
