"""Structural drift comparison between two schema trees.

Both trees are walked in lock-step. Every divergence becomes a DriftIssue;
the walk never stops at the first issue and never raises on drift. Each
recursive call returns its own list, which the caller concatenates.
"""

import logging
from typing import FrozenSet, List, Mapping, Optional, Tuple

from schemadrift._internal.canonical_json import canonical_dumps
from schemadrift.codes import IssueKind, Severity
from schemadrift.contracts import DriftIssue

from .collection import SchemaCollection
from .policy import DEFAULT_POLICY, DriftPolicy
from .tree import (
    ArrayNode,
    InvariantViolation,
    LeafNode,
    ObjectNode,
    ReferenceNode,
    SchemaTree,
    UnionNode,
    additional_policy,
    coarse_type,
    describe,
    is_schema_node,
)

logger = logging.getLogger(__name__)

# (type entered on side A, type entered on side B); an inline node keeps the
# type it was reached through
Context = Tuple[str, str]


def _join(path: str, name: str) -> str:
    return f"{path}.{name}" if path else name


class _Walker:
    """One comparison run: policy, reference resolution and side labels."""

    def __init__(
        self,
        policy: DriftPolicy,
        types_a: Mapping[str, SchemaTree],
        types_b: Mapping[str, SchemaTree],
        sides: Tuple[str, str],
    ):
        self.policy = policy
        self.types_a = types_a
        self.types_b = types_b
        self.side_a, self.side_b = sides

    def walk(
        self,
        a: SchemaTree,
        b: SchemaTree,
        path: str,
        context: Context,
        visited: FrozenSet[Context],
    ) -> List[DriftIssue]:
        for node in (a, b):
            if not is_schema_node(node):
                raise InvariantViolation(path, f"not a schema tree node: {type(node).__name__}")

        if isinstance(a, ReferenceNode) or isinstance(b, ReferenceNode):
            return self._walk_reference(a, b, path, context, visited)

        issues = self._compare_nullability(a, b, path)

        type_a = coarse_type(a)
        type_b = coarse_type(b)
        if "unknown" not in (type_a, type_b) and type_a != type_b:
            issues.append(DriftIssue(
                severity=Severity.ERROR,
                kind=IssueKind.TYPE_MISMATCH,
                path=path,
                message=f'Type mismatch: {self.side_a} has "{type_a}", {self.side_b} has "{type_b}"',
                details={"type_a": describe(a), "type_b": describe(b)},
            ))
            # Nothing below is meaningful across different shapes
            return issues

        if isinstance(a, LeafNode) and isinstance(b, LeafNode):
            issues.extend(self._compare_leaves(a, b, path))
        elif isinstance(a, ObjectNode) and isinstance(b, ObjectNode):
            issues.extend(self._compare_objects(a, b, path, context, visited))
        elif isinstance(a, ArrayNode) and isinstance(b, ArrayNode):
            issues.extend(self.walk(a.items, b.items, f"{path}[]", context, visited))
        elif isinstance(a, UnionNode) and isinstance(b, UnionNode):
            issues.extend(self._compare_unions(a, b, path, context, visited))
        return issues

    def _walk_reference(self, a, b, path, context, visited) -> List[DriftIssue]:
        if isinstance(a, ReferenceNode) and isinstance(b, ReferenceNode):
            issues = self._compare_nullability(a, b, path)
            if a.target != b.target:
                issues.append(DriftIssue(
                    severity=Severity.ERROR,
                    kind=IssueKind.TYPE_MISMATCH,
                    path=path,
                    message=(
                        f'Reference mismatch: {self.side_a} references "{a.target}", '
                        f'{self.side_b} references "{b.target}"'
                    ),
                    details={"type_a": describe(a), "type_b": describe(b)},
                ))
            return issues

        # One side inlines what the other references: resolve one level.
        # The key is the type entered on each side; a key is only visited once
        # it has been resolved, so the first hop always resolves.
        next_context = (
            a.target if isinstance(a, ReferenceNode) else context[0],
            b.target if isinstance(b, ReferenceNode) else context[1],
        )
        if next_context in visited:
            return [DriftIssue(
                severity=self.policy.cycle_detected,
                kind=IssueKind.PROPERTY_DIFF,
                path=path,
                message=(
                    f"Recursive reference ({next_context[0]} / {next_context[1]}) "
                    f"assumed equal; review manually"
                ),
                details={"type_a": describe(a), "type_b": describe(b)},
            )]

        resolved_a = self._resolve(a, self.types_a)
        resolved_b = self._resolve(b, self.types_b)
        for node, resolved, side in ((a, resolved_a, self.side_a), (b, resolved_b, self.side_b)):
            if resolved is None:
                return [DriftIssue(
                    severity=self.policy.unresolved_reference,
                    kind=IssueKind.MISSING,
                    path=path,
                    message=f'Reference target "{node.target}" not found in {side}',
                    details={"target": node.target, "side": side},
                )]
        return self.walk(resolved_a, resolved_b, path, next_context, visited | {next_context})

    @staticmethod
    def _resolve(node: SchemaTree, types: Mapping[str, SchemaTree]) -> Optional[SchemaTree]:
        if not isinstance(node, ReferenceNode):
            return node
        target = types.get(node.target)
        if target is None:
            return None
        if node.nullable and not target.nullable:
            return target.model_copy(update={"nullable": True})
        return target

    def _compare_nullability(self, a: SchemaTree, b: SchemaTree, path: str) -> List[DriftIssue]:
        if a.nullable == b.nullable:
            return []
        nullable_side, strict_side = (self.side_a, self.side_b) if a.nullable else (self.side_b, self.side_a)
        return [DriftIssue(
            severity=self.policy.nullability_mismatch,
            kind=IssueKind.PROPERTY_DIFF,
            path=path,
            message=f"Nullability differs: nullable in {nullable_side}, not nullable in {strict_side}",
            details={"nullable_a": a.nullable, "nullable_b": b.nullable},
        )]

    def _compare_leaves(self, a: LeafNode, b: LeafNode, path: str) -> List[DriftIssue]:
        issues: List[DriftIssue] = []

        if a.type != b.type and {a.type, b.type} == {"integer", "number"}:
            issues.append(DriftIssue(
                severity=self.policy.numeric_refinement,
                kind=IssueKind.PROPERTY_DIFF,
                path=path,
                message=f'Numeric refinement differs: {self.side_a} has "{a.type}", {self.side_b} has "{b.type}"',
                details={"type_a": a.type, "type_b": b.type},
            ))

        if a.enum_values is not None and b.enum_values is not None:
            issues.extend(self._compare_enums(a.enum_values, b.enum_values, path))
        elif a.enum_values is not None or b.enum_values is not None:
            closed_side, open_side = (self.side_a, self.side_b) if a.enum_values is not None else (self.side_b, self.side_a)
            issues.append(DriftIssue(
                severity=self.policy.enum_one_sided,
                kind=IssueKind.ENUM_DIFF,
                path=path,
                message=f"Enum is closed in {closed_side} but open in {open_side}",
                details={"type_a": describe(a), "type_b": describe(b)},
            ))
        return issues

    def _compare_enums(self, values_a, values_b, path: str) -> List[DriftIssue]:
        # Keyed by canonical JSON: object values are unhashable and 1 must not equal True
        keyed_a = {canonical_dumps(v): v for v in values_a}
        keyed_b = {canonical_dumps(v): v for v in values_b}
        only_a = [v for k, v in keyed_a.items() if k not in keyed_b]
        only_b = [v for k, v in keyed_b.items() if k not in keyed_a]

        issues: List[DriftIssue] = []
        if only_a:
            issues.append(DriftIssue(
                severity=self.policy.enum_missing_from_b,
                kind=IssueKind.ENUM_DIFF,
                path=path,
                message=(
                    f"Enum values in {self.side_a} missing from {self.side_b}: "
                    f"{', '.join(str(v) for v in only_a)}"
                ),
                details={"values": only_a, "present_in": self.side_a, "missing_from": self.side_b},
            ))
        if only_b:
            issues.append(DriftIssue(
                severity=self.policy.enum_missing_from_a,
                kind=IssueKind.ENUM_DIFF,
                path=path,
                message=(
                    f"Enum values in {self.side_b} missing from {self.side_a}: "
                    f"{', '.join(str(v) for v in only_b)}"
                ),
                details={"values": only_b, "present_in": self.side_b, "missing_from": self.side_a},
            ))
        return issues

    def _compare_objects(self, a: ObjectNode, b: ObjectNode, path, context, visited) -> List[DriftIssue]:
        issues: List[DriftIssue] = []

        # Union of names: A's declaration order, then names only B declares
        names = list(a.properties) + [name for name in b.properties if name not in a.properties]
        for name in names:
            child_path = _join(path, name)
            if name in a.properties and name in b.properties:
                issues.extend(self.walk(a.properties[name], b.properties[name], child_path, context, visited))
                issues.extend(self._compare_required(name, a, b, child_path))
            else:
                issues.append(self._missing_property(name, a, b, child_path))

        issues.extend(self._compare_additional(a, b, path, context, visited))
        return issues

    def _missing_property(self, name: str, a: ObjectNode, b: ObjectNode, path: str) -> DriftIssue:
        if name in a.properties:
            node, present, absent = a.properties[name], self.side_a, self.side_b
            severity = self.policy.property_missing_from_b
        else:
            node, present, absent = b.properties[name], self.side_b, self.side_a
            severity = self.policy.property_missing_from_a

        required = name in a.required or name in b.required
        if required:
            severity = self.policy.missing_required

        return DriftIssue(
            severity=severity,
            kind=IssueKind.MISSING,
            path=path,
            message=f"Property exists in {present} but not in {absent}" + (" (required)" if required else ""),
            details={"present_in": present, "missing_from": absent, "type": describe(node), "required": required},
        )

    def _compare_required(self, name: str, a: ObjectNode, b: ObjectNode, path: str) -> List[DriftIssue]:
        required_a = name in a.required
        required_b = name in b.required
        if required_a == required_b:
            return []
        strict_side, loose_side = (self.side_a, self.side_b) if required_a else (self.side_b, self.side_a)
        return [DriftIssue(
            severity=self.policy.required_mismatch,
            kind=IssueKind.PROPERTY_DIFF,
            path=path,
            message=f"Field is required in {strict_side} but optional in {loose_side}",
            details={"required_a": required_a, "required_b": required_b},
        )]

    def _compare_additional(self, a: ObjectNode, b: ObjectNode, path, context, visited) -> List[DriftIssue]:
        policy_a = additional_policy(a)
        policy_b = additional_policy(b)
        if policy_a == "typed" and policy_b == "typed":
            return self.walk(a.additional_properties, b.additional_properties, _join(path, "*"), context, visited)
        if policy_a != policy_b and "forbidden" in (policy_a, policy_b):
            return [DriftIssue(
                severity=self.policy.additional_properties_mismatch,
                kind=IssueKind.PROPERTY_DIFF,
                path=path,
                message=(
                    f"additionalProperties is {policy_a} in {self.side_a} "
                    f"but {policy_b} in {self.side_b}"
                ),
                details={"additional_properties_a": policy_a, "additional_properties_b": policy_b},
            )]
        return []

    def _compare_unions(self, a: UnionNode, b: UnionNode, path, context, visited) -> List[DriftIssue]:
        issues: List[DriftIssue] = []
        if a.mode != b.mode:
            issues.append(DriftIssue(
                severity=self.policy.union_mode_mismatch,
                kind=IssueKind.PROPERTY_DIFF,
                path=path,
                message=f"Union mode differs: {a.mode.keyword} in {self.side_a}, {b.mode.keyword} in {self.side_b}",
                details={"mode_a": a.mode.value, "mode_b": b.mode.value},
            ))

        # Order-independent: one error per unmatched branch, never per failed pairing
        for index, branch in enumerate(a.branches):
            if not any(self._branches_match(branch, candidate, path, context, visited) for candidate in b.branches):
                issues.append(self._unmatched_branch(index, branch, b, self.side_a, self.side_b, path))
        for index, branch in enumerate(b.branches):
            if not any(self._branches_match(candidate, branch, path, context, visited) for candidate in a.branches):
                issues.append(self._unmatched_branch(index, branch, a, self.side_b, self.side_a, path))
        return issues

    def _branches_match(self, a: SchemaTree, b: SchemaTree, path, context, visited) -> bool:
        return not any(issue.severity == Severity.ERROR for issue in self.walk(a, b, path, context, visited))

    @staticmethod
    def _unmatched_branch(index: int, branch: SchemaTree, other: UnionNode, present: str, absent: str, path: str) -> DriftIssue:
        return DriftIssue(
            severity=Severity.ERROR,
            kind=IssueKind.TYPE_MISMATCH,
            path=f"{path}|{index}",
            message=f"Union branch {describe(branch)} in {present} has no matching branch in {absent}",
            details={
                "branch": describe(branch),
                "present_in": present,
                "candidates": [describe(candidate) for candidate in other.branches],
            },
        )


def compare(
    name_a: str,
    tree_a: SchemaTree,
    name_b: str,
    tree_b: SchemaTree,
    path: str = "",
    *,
    policy: Optional[DriftPolicy] = None,
    types_a: Optional[Mapping[str, SchemaTree]] = None,
    types_b: Optional[Mapping[str, SchemaTree]] = None,
    sides: Tuple[str, str] = ("A", "B"),
) -> List[DriftIssue]:
    """Compare one top-level type across the two sources.

    Args:
        name_a: Type name on side A (starts the cycle-detection context)
        tree_a: Schema tree on side A
        name_b: Type name on side B
        tree_b: Schema tree on side B
        path: Report path of the type, extended for every nested node
        policy: Severity policy (defaults to DEFAULT_POLICY)
        types_a: Names references on side A may resolve to
        types_b: Names references on side B may resolve to
        sides: Labels used in issue messages

    Returns:
        Issues in discovery order (empty when the trees agree)

    Raises:
        InvariantViolation: If either tree contains something that is not a schema node
    """
    walker = _Walker(policy or DEFAULT_POLICY, types_a or {}, types_b or {}, sides)
    context = (name_a, name_b)
    return walker.walk(tree_a, tree_b, path, context, frozenset())


def compare_collections(
    collection_a: SchemaCollection,
    collection_b: SchemaCollection,
    *,
    policy: Optional[DriftPolicy] = None,
    sides: Tuple[str, str] = ("A", "B"),
) -> List[DriftIssue]:
    """Compare every top-level type name shared by both collections, in A's order."""
    types_a = collection_a.resolvable()
    types_b = collection_b.resolvable()
    issues: List[DriftIssue] = []
    for name, tree_a in collection_a.types.items():
        tree_b = collection_b.types.get(name)
        if tree_b is None:
            logger.debug("%s - not in %s", collection_a.label(name), sides[1])
            continue
        issues.extend(compare(
            name, tree_a, name, tree_b, collection_a.label(name),
            policy=policy, types_a=types_a, types_b=types_b, sides=sides,
        ))
    return issues
