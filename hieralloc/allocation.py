"""Core aggregation, baseline, variance and distribution utilities."""

from __future__ import annotations

from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from .models import ZERO_VARIANCE, Node, Tree, format_variance, round2

ZERO_TOTAL_KEEP = "keep-zero"
ZERO_TOTAL_EQUAL_SPLIT = "equal-split"
ZERO_TOTAL_POLICIES: frozenset[str] = frozenset({ZERO_TOTAL_KEEP, ZERO_TOTAL_EQUAL_SPLIT})
DEFAULT_ZERO_TOTAL_POLICY = ZERO_TOTAL_KEEP

ROLLUP_TOLERANCE = 0.001


@dataclass(slots=True)
class RollupDiscrepancy:
    path: str
    expected: float
    calculated: float
    difference: float


def check_zero_total_policy(policy: str) -> str:
    if policy not in ZERO_TOTAL_POLICIES:
        options = ", ".join(sorted(ZERO_TOTAL_POLICIES))
        raise ValueError(f"Unknown zero-total policy {policy!r}; expected one of: {options}")
    return policy


def _same_children(new: Sequence[Node], old: Sequence[Node]) -> bool:
    return all(a is b for a, b in zip(new, old))


def aggregate(tree: Iterable[Node]) -> Tree:
    """Return ``tree`` with every parent equal to the sum of its children.

    Nodes whose subtotal is already correct are reused as they are.
    """

    result: List[Node] = []
    for node in tree:
        if node.children:
            children = aggregate(node.children)
            subtotal = round2(sum(child.value for child in children))
            if subtotal == node.value and _same_children(children, node.children):
                result.append(node)
            else:
                result.append(replace(node, value=subtotal, children=children))
        else:
            result.append(node)
    return tuple(result)


def build_baseline(tree: Iterable[Node]) -> Mapping[str, float]:
    """Snapshot the aggregated value of every node, keyed by id.

    Leaves contribute their own value and parents the rounded sum of their
    children's baselines. The returned mapping is read-only.
    """

    baseline: Dict[str, float] = {}

    def visit(node: Node) -> float:
        if node.children:
            amount = round2(sum(visit(child) for child in node.children))
        else:
            amount = node.value
        baseline[node.id] = amount
        return amount

    for node in tree:
        visit(node)
    return MappingProxyType(baseline)


def variance_for(value: float, base: float) -> str:
    if base == 0:
        return ZERO_VARIANCE
    return format_variance((value - base) / base * 100)


def recalc_variance(tree: Iterable[Node], baseline: Mapping[str, float]) -> Tree:
    """Return ``tree`` with every variance derived from ``baseline``."""

    result: List[Node] = []
    for node in tree:
        variance = variance_for(node.value, baseline.get(node.id, 0.0))
        children = recalc_variance(node.children, baseline)
        if variance == node.variance and _same_children(children, node.children):
            result.append(node)
        else:
            result.append(replace(node, variance=variance, children=children))
    return tuple(result)


def distribute(node: Node, new_value: float, zero_total_policy: str = DEFAULT_ZERO_TOTAL_POLICY) -> Node:
    """Push ``new_value`` down through ``node`` keeping each child's share.

    Shares are taken from the values each level held before the edit. When
    the children of a node sum to zero the split depends on
    ``zero_total_policy``: ``keep-zero`` divides by one (children stay at
    zero), ``equal-split`` hands every child the same amount.
    """

    check_zero_total_policy(zero_total_policy)
    if not node.children:
        return replace(node, value=round2(new_value))

    prior_total = sum(child.value for child in node.children)
    if prior_total == 0 and zero_total_policy == ZERO_TOTAL_EQUAL_SPLIT:
        share = round2(new_value / len(node.children))
        targets = [share] * len(node.children)
    else:
        divisor = prior_total or 1
        targets = [round2(child.value / divisor * new_value) for child in node.children]

    children = tuple(
        distribute(child, target, zero_total_policy)
        for child, target in zip(node.children, targets)
    )
    return replace(node, value=round2(new_value), children=children)


def find_node(tree: Iterable[Node], node_id: str) -> Optional[Node]:
    for node in tree:
        if node.id == node_id:
            return node
        found = find_node(node.children, node_id)
        if found is not None:
            return found
    return None


def replace_node(tree: Sequence[Node], node_id: str, updated: Node) -> Tree:
    """Return ``tree`` with the node ``node_id`` swapped for ``updated``.

    Only the nodes on the path to the target are rebuilt; untouched subtrees
    are shared with the input tree.
    """

    result: List[Node] = []
    for node in tree:
        if node.id == node_id:
            result.append(updated)
        elif node.children:
            children = replace_node(node.children, node_id, updated)
            if _same_children(children, node.children):
                result.append(node)
            else:
                result.append(replace(node, children=children))
        else:
            result.append(node)
    return tuple(result)


def grand_total(tree: Iterable[Node]) -> float:
    return round2(sum(node.value for node in tree))


def check_rollups(
    tree: Iterable[Node], tolerance: float = ROLLUP_TOLERANCE, path: str = ""
) -> List[RollupDiscrepancy]:
    """Verify that each parent equals the sum of its children, recursively."""

    errors: List[RollupDiscrepancy] = []
    for node in tree:
        current_path = f"{path}/{node.label}"
        if node.children:
            children_sum = round2(sum(child.value for child in node.children))
            if abs(children_sum - node.value) > tolerance:
                errors.append(
                    RollupDiscrepancy(
                        path=current_path,
                        expected=node.value,
                        calculated=children_sum,
                        difference=round2(children_sum - node.value),
                    )
                )
            errors.extend(check_rollups(node.children, tolerance, current_path))
    return errors


__all__ = [
    "DEFAULT_ZERO_TOTAL_POLICY",
    "ZERO_TOTAL_EQUAL_SPLIT",
    "ZERO_TOTAL_KEEP",
    "ZERO_TOTAL_POLICIES",
    "RollupDiscrepancy",
    "aggregate",
    "build_baseline",
    "check_rollups",
    "check_zero_total_policy",
    "distribute",
    "find_node",
    "grand_total",
    "recalc_variance",
    "replace_node",
    "variance_for",
]
