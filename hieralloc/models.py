"""Data models for the hierarchical allocation engine."""
from __future__ import annotations

import math
from collections import Counter
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Context, Decimal
from typing import Iterable, Iterator, Mapping, Optional, Sequence

DECIMALS = 2
ZERO_VARIANCE = "0.00"

_CENT = Decimal(1).scaleb(-DECIMALS)
# Wide enough to quantize any finite float to cents.
_ROUNDING = Context(prec=400, rounding=ROUND_HALF_UP)

EDIT_PERCENT = "percent"
EDIT_ABSOLUTE = "absolute"

_EDIT_KIND_ALIASES: dict[str, str] = {
    "percent": EDIT_PERCENT,
    "percentage": EDIT_PERCENT,
    "pct": EDIT_PERCENT,
    "%": EDIT_PERCENT,
    "absolute": EDIT_ABSOLUTE,
    "value": EDIT_ABSOLUTE,
    "val": EDIT_ABSOLUTE,
    "amount": EDIT_ABSOLUTE,
}


class DuplicateNodeIdError(ValueError):
    """Raised when a tree definition reuses a node id."""

    def __init__(self, duplicates: Sequence[str]) -> None:
        self.duplicates = tuple(duplicates)
        listed = ", ".join(repr(node_id) for node_id in self.duplicates)
        super().__init__(f"Node ids must be unique across the tree; duplicated: {listed}")


@dataclass(frozen=True, slots=True)
class Node:
    """A single allocation category in the hierarchy."""

    id: str
    label: str
    value: float
    variance: str = ZERO_VARIANCE
    children: tuple["Node", ...] = ()

    @property
    def is_leaf(self) -> bool:
        return not self.children


Tree = tuple[Node, ...]


def _quantize(value: float) -> Decimal:
    return Decimal(value).quantize(_CENT, context=_ROUNDING)


def round2(value: float) -> float:
    """Round ``value`` to the precision stored on every node.

    Ties on the exact binary value round away from zero (0.125 becomes 0.13).
    """

    value = float(value)
    if not math.isfinite(value):
        return value
    return float(_quantize(value))


def format_variance(value: float) -> str:
    """Return a variance percentage with two decimals.

    Negative zero (``-0.00``) is reported as ``0.00`` so that tiny float
    residues below the baseline do not show up as a signed zero.
    """

    value = float(value)
    if not math.isfinite(value):
        return f"{value:.{DECIMALS}f}"
    text = str(_quantize(value))
    if text == f"-{ZERO_VARIANCE}":
        return ZERO_VARIANCE
    return text


def parse_amount(raw: object) -> Optional[float]:
    """Return ``raw`` as a finite float, or ``None`` when it is not one."""

    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        try:
            value = float(raw)
        except OverflowError:
            return None
    else:
        text = str(raw).strip()
        if not text:
            return None
        try:
            value = float(text)
        except ValueError:
            return None
    if not math.isfinite(value):
        return None
    return value


def normalize_edit_kind(kind: Optional[str]) -> Optional[str]:
    """Map user facing edit kinds onto ``percent`` or ``absolute``."""

    if kind is None:
        return None
    return _EDIT_KIND_ALIASES.get(str(kind).strip().lower())


def node_from_mapping(data: Mapping[str, object]) -> Node:
    """Build a :class:`Node` (and its subtree) from a nested mapping.

    The mapping follows the ``{"id", "label", "value", "children"}`` layout.
    ``label`` defaults to the id and ``children`` may be omitted for leaves.
    A :class:`ValueError` is raised for a missing id or a non-numeric value.
    """

    raw_id = data.get("id")
    if raw_id is None or not str(raw_id).strip():
        raise ValueError(f"Node definition is missing an id: {dict(data)!r}")
    node_id = str(raw_id).strip()

    value = parse_amount(data.get("value", 0.0))
    if value is None:
        raise ValueError(f"Node {node_id!r} has a non-numeric value: {data.get('value')!r}")

    label = data.get("label")
    children = data.get("children") or ()
    variance = data.get("variance")
    return Node(
        id=node_id,
        label=str(label) if label is not None else node_id,
        value=value,
        variance=str(variance) if variance else ZERO_VARIANCE,
        children=tuple(_coerce_node(child) for child in children),
    )


def _coerce_node(item: Node | Mapping[str, object]) -> Node:
    if isinstance(item, Node):
        return item
    return node_from_mapping(item)


def build_tree(definition: Iterable[Node | Mapping[str, object]]) -> Tree:
    """Return a tree from an iterable of nodes or node mappings."""

    return tuple(_coerce_node(item) for item in definition)


def node_to_mapping(node: Node) -> dict[str, object]:
    """Return the nested mapping representation of ``node``."""

    data: dict[str, object] = {
        "id": node.id,
        "label": node.label,
        "value": node.value,
        "variance": node.variance,
    }
    if node.children:
        data["children"] = [node_to_mapping(child) for child in node.children]
    return data


def iter_nodes(tree: Iterable[Node]) -> Iterator[Node]:
    """Yield every node of ``tree`` in pre-order."""

    for node in tree:
        yield node
        yield from iter_nodes(node.children)


def validate_unique_ids(tree: Iterable[Node]) -> None:
    counts = Counter(node.id for node in iter_nodes(tree))
    duplicates = [node_id for node_id, count in counts.items() if count > 1]
    if duplicates:
        raise DuplicateNodeIdError(duplicates)


__all__ = [
    "DECIMALS",
    "EDIT_ABSOLUTE",
    "EDIT_PERCENT",
    "ZERO_VARIANCE",
    "DuplicateNodeIdError",
    "Node",
    "Tree",
    "build_tree",
    "format_variance",
    "iter_nodes",
    "node_from_mapping",
    "node_to_mapping",
    "normalize_edit_kind",
    "parse_amount",
    "round2",
    "validate_unique_ids",
]
