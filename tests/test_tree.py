"""Tests for the schema tree model and its helpers."""

import pytest
from pydantic import ValidationError

from schemadrift.codes import UnionMode
from schemadrift.kernel.tree import (
    ArrayNode,
    InvariantViolation,
    LeafNode,
    ObjectNode,
    ReferenceNode,
    UnionNode,
    additional_policy,
    coarse_type,
    describe,
    schema_tree_adapter,
)


def test_coarse_type_folds_integer_into_number():
    assert coarse_type(LeafNode(type="integer")) == "number"
    assert coarse_type(LeafNode(type="number")) == "number"
    assert coarse_type(LeafNode(type="string", enum_values=("a",))) == "string"
    assert coarse_type(ObjectNode()) == "object"
    assert coarse_type(ArrayNode()) == "array"
    assert coarse_type(ReferenceNode(target="User")) == "reference"


def test_coarse_type_ignores_nullability():
    assert coarse_type(LeafNode(type="string", nullable=True)) == coarse_type(LeafNode(type="string"))


def test_coarse_type_rejects_non_nodes():
    with pytest.raises(InvariantViolation):
        coarse_type({"type": "string"})


def test_describe_is_compact():
    node = ObjectNode(properties={
        "tags": ArrayNode(items=LeafNode(type="string")),
        "owner": ReferenceNode(target="User", nullable=True),
    })
    assert describe(node) == "object{tags,owner}"
    assert describe(node.properties["tags"]) == "array<string>"
    assert describe(node.properties["owner"]) == "$ref:User?"
    assert describe(LeafNode(type="string", enum_values=("a", "b"))) == "enum[a,b]"
    union = UnionNode(mode=UnionMode.EXACTLY_ONE, branches=(LeafNode(type="string"), LeafNode(type="integer")))
    assert describe(union) == "oneOf[string|integer]"


def test_additional_policy_is_tri_state():
    assert additional_policy(ObjectNode()) == "unconstrained"
    assert additional_policy(ObjectNode(additional_properties=False)) == "forbidden"
    assert additional_policy(ObjectNode(additional_properties=LeafNode(type="string"))) == "typed"


def test_nodes_are_frozen():
    node = LeafNode(type="string")
    with pytest.raises(ValidationError):
        node.type = "number"


def test_shape_specific_fields_are_rejected():
    """A leaf cannot carry union branches: each shape only has its own fields."""
    with pytest.raises(ValidationError):
        LeafNode(type="string", branches=())


def test_adapter_dispatches_on_shape():
    tree = schema_tree_adapter.validate_python({
        "shape": "object",
        "properties": {
            "status": {"shape": "leaf", "type": "string", "enum_values": ["on", "off"]},
            "parent": {"shape": "reference", "target": "Node"},
        },
        "required": ["status"],
    })
    assert isinstance(tree, ObjectNode)
    assert isinstance(tree.properties["status"], LeafNode)
    assert tree.properties["status"].enum_values == ("on", "off")
    assert isinstance(tree.properties["parent"], ReferenceNode)
    assert tree.required == frozenset({"status"})


def test_required_serializes_sorted():
    node = ObjectNode(required=frozenset({"b", "a", "c"}))
    assert node.model_dump()["required"] == ["a", "b", "c"]


def test_invariant_violation_names_pointer_and_source():
    error = InvariantViolation("#/components/schemas/X", "mixes enum and union keywords", source="spec.json")
    assert "spec.json" in str(error)
    assert "#/components/schemas/X" in str(error)
    assert InvariantViolation("", "bad").pointer == "#"
