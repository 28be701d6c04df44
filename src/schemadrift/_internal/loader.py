"""Schema loader: read both sources and normalize them into schema trees.

The loader performs no semantic validation. It only deserializes and
normalizes source-specific quirks (reference prefixes, the three spellings of
nullability, ``const``, single-branch unions) so the diff engine never needs
to know which tool produced a tree.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from pydantic import ValidationError

from schemadrift.codes import UnionMode
from schemadrift.kernel.collection import SchemaCollection
from schemadrift.kernel.tree import (
    ArrayNode,
    InvariantViolation,
    LeafNode,
    ObjectNode,
    ReferenceNode,
    SchemaDriftError,
    SchemaTree,
    UnionNode,
    is_schema_node,
    schema_tree_adapter,
)

logger = logging.getLogger(__name__)


class InputError(SchemaDriftError):
    """Raised when a schema document is missing or malformed."""
    def __init__(self, source: Union[str, Path], reason: str):
        self.source = str(source)
        self.reason = reason
        super().__init__(f"{self.source}: {reason}")


DocumentSource = Union[str, os.PathLike, Mapping[str, Any], SchemaCollection]

_UNION_KEYWORDS = (
    ("oneOf", UnionMode.EXACTLY_ONE),
    ("anyOf", UnionMode.ANY_OF),
    ("allOf", UnionMode.ALL_OF),
)
_SCALAR_TYPES = {"string", "number", "integer", "boolean", "null"}
_OBJECT_KEYWORDS = ("properties", "additionalProperties")


def load_json_document(path: Union[str, os.PathLike]) -> Dict[str, Any]:
    """Load a JSON document whose top level is an object."""
    path = Path(path)
    if not path.is_file():
        raise InputError(path, "file not found")
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise InputError(path, f"invalid JSON: {e.msg} (line {e.lineno}, column {e.colno})") from e
    except (OSError, UnicodeDecodeError) as e:
        raise InputError(path, f"cannot read file: {e}") from e
    if not isinstance(data, dict):
        raise InputError(path, "expected a JSON object at the top level")
    return data


def _document(source: DocumentSource) -> Tuple[Mapping[str, Any], str]:
    if isinstance(source, (str, os.PathLike)):
        return load_json_document(source), str(source)
    if isinstance(source, Mapping):
        return source, "<document>"
    raise InputError("<document>", f"unsupported source type: {type(source).__name__}")


def _is_conversion_failure(raw: Any) -> bool:
    """Extractor placeholder for a schema it could not convert."""
    return isinstance(raw, Mapping) and set(raw) == {"error"}


def load_library(source: DocumentSource) -> SchemaCollection:
    """Load the schema library export (grouped type definitions).

    Expected shape::

        {"_metadata": {"packageVersion": "1.2.0"},
         "schemas": {"common": {"UserProfile": {...}}, "updates": {...}}}
    """
    if isinstance(source, SchemaCollection):
        return source
    doc, origin = _document(source)

    metadata = doc.get("_metadata") or {}
    version = str(metadata.get("packageVersion") or metadata.get("version") or "unknown")

    grouped = doc.get("schemas")
    if not isinstance(grouped, Mapping):
        raise InputError(origin, 'missing "schemas" mapping of groups')

    definitions: Dict[str, SchemaTree] = {}
    types: Dict[str, SchemaTree] = {}
    groups: Dict[str, str] = {}
    for group, entries in grouped.items():
        if not isinstance(entries, Mapping):
            raise InputError(origin, f'group "{group}" is not a mapping of type names')
        for name, raw in entries.items():
            if _is_conversion_failure(raw):
                logger.warning("Skipping %s.%s: %s", group, name, raw["error"])
                continue
            if name in types:
                raise InputError(origin, f'type "{name}" declared in both "{groups[name]}" and "{group}"')
            pointer = f"#/schemas/{_escape(group)}/{_escape(name)}"
            types[name] = _normalize_entry(raw, pointer, name, definitions, origin)
            groups[name] = group

    logger.info("Loaded %d library schemas in %d groups (version %s)", len(types), len(grouped), version)
    return SchemaCollection(version=version, types=types, groups=groups, definitions=definitions)


def load_openapi(source: DocumentSource) -> SchemaCollection:
    """Load the generated specification, isolating its schema section.

    Looks in ``components.schemas`` (OpenAPI 3), then ``definitions``
    (Swagger 2), then ``$defs``.
    """
    if isinstance(source, SchemaCollection):
        return source
    doc, origin = _document(source)

    info = doc.get("info") or {}
    version = str(info.get("version") or "unknown")

    section, schemas = "#/components/schemas", (doc.get("components") or {}).get("schemas")
    if schemas is None and "definitions" in doc:
        section, schemas = "#/definitions", doc["definitions"]
    if schemas is None and "$defs" in doc:
        section, schemas = "#/$defs", doc["$defs"]
    if schemas is None:
        logger.warning("No schema section found in %s", origin)
        schemas = {}
    if not isinstance(schemas, Mapping):
        raise InputError(origin, f"{section} is not a mapping of type names")

    definitions: Dict[str, SchemaTree] = {}
    types = {
        name: _normalize_entry(raw, f"{section}/{_escape(name)}", name, definitions, origin)
        for name, raw in schemas.items()
    }
    logger.info("Loaded %d spec schemas, %d paths (version %s)", len(types), len(doc.get("paths") or {}), version)
    return SchemaCollection(version=version, types=types, definitions=definitions)


def normalize_schema(
    raw: Any,
    pointer: str = "#",
    root: Optional[str] = None,
    definitions: Optional[Dict[str, SchemaTree]] = None,
) -> SchemaTree:
    """Normalize one serialized schema into a SchemaTree.

    Args:
        raw: JSON Schema dict, a dict already in model shape, or a SchemaTree
        pointer: JSON pointer of ``raw`` (used in error messages)
        root: Name of the enclosing top-level type (target of ``"$ref": "#"``)
        definitions: Receives embedded ``$defs`` / ``definitions`` found on the way,
            keyed ``Root#/$defs/Name`` after the type that declares them

    Raises:
        InvariantViolation: If a node mixes shapes
        InputError: If a node is not a JSON object
    """
    if is_schema_node(raw):
        return raw
    if isinstance(raw, Mapping) and "shape" in raw:
        try:
            return schema_tree_adapter.validate_python(raw)
        except ValidationError as e:
            raise InvariantViolation(pointer, f"invalid schema tree: {e.error_count()} validation error(s)") from e
    normalizer = _Normalizer(root, definitions if definitions is not None else {}, raw, pointer)
    return normalizer.node(raw, pointer)


def _normalize_entry(raw, pointer: str, name: str, definitions: Dict[str, SchemaTree], origin: str) -> SchemaTree:
    try:
        return normalize_schema(raw, pointer, root=name, definitions=definitions)
    except InvariantViolation as e:
        if e.source is not None:
            raise
        raise InvariantViolation(e.pointer, e.reason, source=origin) from e


def _escape(token: str) -> str:
    return str(token).replace("~", "~0").replace("/", "~1")


def _unescape(token: str) -> str:
    return token.replace("~1", "/").replace("~0", "~")


def _is_null_schema(raw: Any) -> bool:
    return (
        isinstance(raw, Mapping)
        and raw.get("type") == "null"
        and not any(key in raw for key in ("enum", "const", "properties", "items"))
    )


def _infer_enum_type(values: Tuple[Any, ...]) -> str:
    if values and all(isinstance(v, str) for v in values):
        return "string"
    if values and all(isinstance(v, bool) for v in values):
        return "boolean"
    if values and all(isinstance(v, int) and not isinstance(v, bool) for v in values):
        return "integer"
    if values and all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in values):
        return "number"
    return "unknown"


_DEFINITION_KEYS = ("$defs", "definitions")
_SCHEMA_MAP_KEYS = ("properties",) + _DEFINITION_KEYS
_SCHEMA_KEYS = ("items", "additionalProperties")
_SCHEMA_LIST_KEYS = ("oneOf", "anyOf", "allOf")


def _local_definitions(raw: Any, relative: str = "") -> List[str]:
    """Pointers (relative to ``raw``) of every embedded definition inside it."""
    if not isinstance(raw, Mapping):
        return []
    found: List[str] = []
    is_reference = "$ref" in raw
    for key in _DEFINITION_KEYS if is_reference else _SCHEMA_MAP_KEYS:
        entries = raw.get(key)
        if not isinstance(entries, Mapping):
            continue
        for name, sub in entries.items():
            sub_pointer = f"{relative}/{key}/{_escape(name)}"
            if key in _DEFINITION_KEYS:
                found.append(sub_pointer)
            found.extend(_local_definitions(sub, sub_pointer))
    if is_reference:
        return found
    for key in _SCHEMA_KEYS:
        found.extend(_local_definitions(raw.get(key), f"{relative}/{key}"))
    for key in _SCHEMA_LIST_KEYS:
        members = raw.get(key)
        if isinstance(members, list):
            for index, member in enumerate(members):
                found.extend(_local_definitions(member, f"{relative}/{key}/{index}"))
    return found


def _top_level_name(tokens: List[str]) -> Optional[str]:
    if len(tokens) == 3 and tokens[:2] == ["components", "schemas"]:
        return tokens[2]
    if len(tokens) == 2 and tokens[0] in _DEFINITION_KEYS:
        return tokens[1]
    if len(tokens) == 3 and tokens[0] == "schemas":
        return tokens[2]
    return None


class _Normalizer:
    def __init__(self, root: Optional[str], definitions: Dict[str, SchemaTree], raw: Any, pointer: str):
        self.root = root
        self.definitions = definitions
        self.root_pointer = pointer
        # Embedded definitions are scoped to the type that declares them
        self.local = set(_local_definitions(raw))

    def node(self, raw: Any, pointer: str) -> SchemaTree:
        if is_schema_node(raw):
            return raw
        if isinstance(raw, bool):
            # Boolean schemas accept anything (true) or nothing (false); neither has a type
            return LeafNode()
        if not isinstance(raw, Mapping):
            raise InputError(pointer, f"schema must be a JSON object, got {type(raw).__name__}")

        self._collect_definitions(raw, pointer)

        description = raw.get("description") if isinstance(raw.get("description"), str) else None
        nullable = raw.get("nullable") is True

        if "$ref" in raw:
            return ReferenceNode(target=self._ref_target(raw["$ref"], pointer), nullable=nullable, description=description)

        declared, type_nullable = self._declared_types(raw, pointer)
        nullable = nullable or type_nullable
        shapes = self._shapes(raw, pointer)

        if len(declared) > 1:
            if shapes == ["enum"]:
                return self._enum(raw, pointer, declared, nullable, description)
            if shapes:
                raise InvariantViolation(pointer, f"type list {declared} combined with {', '.join(shapes)} keywords")
            branches = tuple(self._bare(t, pointer) for t in declared)
            return UnionNode(mode=UnionMode.ANY_OF, branches=branches, nullable=nullable, description=description)

        type_name = declared[0] if declared else None
        shape = shapes[0] if shapes else None

        if shape == "union":
            return self._union(raw, pointer, nullable, description)
        if shape == "enum":
            return self._enum(raw, pointer, declared, nullable, description)
        if shape == "object" or type_name == "object":
            if type_name not in (None, "object"):
                raise InvariantViolation(pointer, f'"type": "{type_name}" combined with object keywords')
            return self._object(raw, pointer, nullable, description)
        if shape == "array" or type_name == "array":
            if type_name not in (None, "array"):
                raise InvariantViolation(pointer, f'"type": "{type_name}" combined with "items"')
            return self._array(raw, pointer, nullable, description)
        if type_name is None:
            return LeafNode(nullable=nullable, description=description)
        if type_name in _SCALAR_TYPES:
            return LeafNode(type=type_name, nullable=nullable, description=description)
        raise InvariantViolation(pointer, f'unknown type "{type_name}"')

    def _declared_types(self, raw: Mapping[str, Any], pointer: str) -> Tuple[List[str], bool]:
        raw_type = raw.get("type")
        if raw_type is None:
            return [], False
        if isinstance(raw_type, str):
            return [raw_type], False
        if isinstance(raw_type, list) and all(isinstance(t, str) for t in raw_type):
            declared = [t for t in raw_type if t != "null"]
            if not declared:
                return ["null"], False
            return declared, len(declared) < len(raw_type)
        raise InvariantViolation(pointer, '"type" must be a string or a list of strings')

    def _shapes(self, raw: Mapping[str, Any], pointer: str) -> List[str]:
        union_keys = [key for key, _ in _UNION_KEYWORDS if key in raw]
        if len(union_keys) > 1:
            raise InvariantViolation(pointer, f"mixes {' and '.join(union_keys)}")

        shapes = []
        if "enum" in raw or "const" in raw:
            shapes.append("enum")
        if any(key in raw for key in _OBJECT_KEYWORDS):
            shapes.append("object")
        if "items" in raw:
            shapes.append("array")
        if union_keys:
            shapes.append("union")

        # allOf next to object keywords is an intersection with the inline part
        if shapes == ["object", "union"] and union_keys == ["allOf"]:
            return ["union"]
        if len(shapes) > 1:
            raise InvariantViolation(pointer, f"mixes {', '.join(shapes)} keywords")
        return shapes

    def _bare(self, type_name: str, pointer: str) -> SchemaTree:
        if type_name == "object":
            return ObjectNode()
        if type_name == "array":
            return ArrayNode()
        if type_name in _SCALAR_TYPES:
            return LeafNode(type=type_name)
        raise InvariantViolation(pointer, f'unknown type "{type_name}"')

    def _qualified(self, relative: str) -> str:
        return f"{self.root or ''}#{relative}"

    def _ref_target(self, ref: Any, pointer: str) -> str:
        if not isinstance(ref, str) or not ref:
            raise InvariantViolation(pointer, '"$ref" must be a non-empty string')
        if ref == "#":
            if self.root is None:
                raise InvariantViolation(pointer, '"$ref": "#" outside a named type')
            return self.root
        if "#" not in ref:
            return _unescape(ref.rstrip("/").rsplit("/", 1)[-1])

        fragment = ref.split("#", 1)[1].rstrip("/")
        if fragment in self.local:
            return self._qualified(fragment)
        if fragment and not fragment.startswith("/"):
            # Plain-name anchor
            return fragment
        name = _top_level_name([_unescape(token) for token in fragment.split("/")[1:]])
        if name is None:
            logger.warning("Reference %s at %s does not name a top-level type", ref, pointer)
            return ref
        return name

    def _collect_definitions(self, raw: Mapping[str, Any], pointer: str) -> None:
        relative = pointer[len(self.root_pointer):]
        for key in _DEFINITION_KEYS:
            embedded = raw.get(key)
            if not isinstance(embedded, Mapping):
                continue
            for name, sub in embedded.items():
                sub_relative = f"{relative}/{key}/{_escape(name)}"
                qualified = self._qualified(sub_relative)
                if qualified not in self.definitions:
                    self.definitions[qualified] = self.node(sub, self.root_pointer + sub_relative)

    def _union(self, raw, pointer, nullable, description) -> SchemaTree:
        key, mode = next((key, mode) for key, mode in _UNION_KEYWORDS if key in raw)
        members = raw[key]
        if not isinstance(members, list) or not members:
            raise InvariantViolation(pointer, f'"{key}" must be a non-empty list')

        branches: List[SchemaTree] = []
        for index, member in enumerate(members):
            if _is_null_schema(member):
                nullable = True
                continue
            branches.append(self.node(member, f"{pointer}/{key}/{index}"))

        if mode == UnionMode.ALL_OF and any(k in raw for k in _OBJECT_KEYWORDS):
            branches.append(self._object(raw, pointer, False, None))

        if not branches:
            return LeafNode(type="null", description=description)
        if len(branches) == 1:
            only = branches[0]
            updates: Dict[str, Any] = {}
            if nullable and not only.nullable:
                updates["nullable"] = True
            if description is not None and only.description is None:
                updates["description"] = description
            return only.model_copy(update=updates) if updates else only
        return UnionNode(mode=mode, branches=tuple(branches), nullable=nullable, description=description)

    def _enum(self, raw, pointer, declared, nullable, description) -> LeafNode:
        if "enum" in raw:
            if not isinstance(raw["enum"], list):
                raise InvariantViolation(pointer, '"enum" must be a list')
            values = tuple(raw["enum"])
        else:
            values = (raw["const"],)

        if None in values:
            nullable = True
            values = tuple(v for v in values if v is not None)

        inferred = _infer_enum_type(values)
        if len(declared) == 1:
            leaf_type = declared[0]
        elif not declared or inferred in declared:
            leaf_type = inferred
        else:
            leaf_type = "unknown"
        if leaf_type in ("object", "array"):
            # Compared by enum values only
            logger.debug('Enum on a "%s" node at %s treated as unknown', leaf_type, pointer)
            leaf_type = "unknown"
        elif leaf_type not in _SCALAR_TYPES and leaf_type != "unknown":
            raise InvariantViolation(pointer, f'unknown type "{leaf_type}"')
        return LeafNode(type=leaf_type, enum_values=values, nullable=nullable, description=description)

    def _object(self, raw, pointer, nullable, description) -> ObjectNode:
        raw_properties = raw.get("properties") or {}
        if not isinstance(raw_properties, Mapping):
            raise InvariantViolation(pointer, '"properties" must be a mapping')
        properties = {
            name: self.node(sub, f"{pointer}/properties/{_escape(name)}")
            for name, sub in raw_properties.items()
        }

        required = raw.get("required") or []
        if not isinstance(required, list) or not all(isinstance(r, str) for r in required):
            raise InvariantViolation(pointer, '"required" must be a list of property names')

        extra = raw.get("additionalProperties", True)
        if isinstance(extra, Mapping):
            # An empty schema constrains nothing
            extra = self.node(extra, f"{pointer}/additionalProperties") if extra else True
        elif not isinstance(extra, bool):
            raise InvariantViolation(pointer, '"additionalProperties" must be a boolean or a schema')

        return ObjectNode(
            properties=properties,
            required=frozenset(required),
            additional_properties=extra,
            nullable=nullable,
            description=description,
        )

    def _array(self, raw, pointer, nullable, description) -> ArrayNode:
        raw_items = raw.get("items")
        if raw_items is None:
            items: SchemaTree = LeafNode()
        elif isinstance(raw_items, list):
            logger.debug("Tuple-form items at %s compared as unknown", pointer)
            items = LeafNode()
        else:
            items = self.node(raw_items, f"{pointer}/items")
        return ArrayNode(items=items, nullable=nullable, description=description)
