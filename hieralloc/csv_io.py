"""CSV import and export of allocation trees."""
from __future__ import annotations

import csv
from dataclasses import replace
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from .models import Node, Tree, iter_nodes, parse_amount, validate_unique_ids

REQUIRED_COLUMNS: tuple[str, ...] = ("id", "parent_id", "label", "value")
EXPORT_COLUMNS: tuple[str, ...] = (*REQUIRED_COLUMNS, "variance")


def read_tree_csv(path: str | Path) -> Tree:
    """Load a tree definition from a flat ``id,parent_id,label,value`` file.

    Rows without an id are skipped. Rows whose parent is empty or unknown are
    treated as top-level nodes. Child order follows the order of the file.
    """

    records: List[tuple[str, Optional[str], str, float]] = []
    with open(path, "r", encoding="utf-8", newline="") as fh:
        reader = csv.DictReader(fh)
        fieldnames = reader.fieldnames or []
        missing = set(REQUIRED_COLUMNS).difference(fieldnames)
        if missing:
            raise ValueError(f"Missing columns in CSV: {', '.join(sorted(missing))}")
        for row in reader:
            node_id = (row["id"] or "").strip()
            if not node_id:
                continue
            raw_value = (row["value"] or "").strip()
            value = parse_amount(raw_value) if raw_value else 0.0
            if value is None:
                raise ValueError(f"Value for node {node_id!r} must be numeric, got {raw_value!r}.")
            parent_id = (row["parent_id"] or "").strip() or None
            label = (row["label"] or "").strip() or node_id
            records.append((node_id, parent_id, label, value))

    validate_unique_ids(Node(id=node_id, label=label, value=value) for node_id, _, label, value in records)

    known = {node_id for node_id, *_ in records}
    children_of: Dict[Optional[str], List[str]] = {}
    nodes: Dict[str, Node] = {}
    for node_id, parent_id, label, value in records:
        nodes[node_id] = Node(id=node_id, label=label, value=value)
        key = parent_id if parent_id in known and parent_id != node_id else None
        children_of.setdefault(key, []).append(node_id)

    def assemble(node_id: str) -> Node:
        children = tuple(assemble(child_id) for child_id in children_of.get(node_id, []))
        return replace(nodes[node_id], children=children)

    tree = tuple(assemble(node_id) for node_id in children_of.get(None, []))
    placed = sum(1 for _ in iter_nodes(tree))
    if placed != len(records):
        raise ValueError("CSV parent links form a cycle; some rows never reach a top-level node.")
    return tree


def _flatten(tree: Iterable[Node], parent_id: Optional[str] = None) -> Iterable[tuple[Node, Optional[str]]]:
    for node in tree:
        yield node, parent_id
        yield from _flatten(node.children, node.id)


def write_tree_csv(path: str | Path, tree: Iterable[Node]) -> int:
    """Write ``tree`` in pre-order and return the number of rows written."""

    count = 0
    with open(path, "w", encoding="utf-8", newline="") as fh:
        writer = csv.writer(fh)
        writer.writerow(EXPORT_COLUMNS)
        for node, parent_id in _flatten(tree):
            writer.writerow(
                [
                    node.id,
                    parent_id or "",
                    node.label,
                    f"{node.value:.2f}",
                    node.variance,
                ]
            )
            count += 1
    return count


__all__ = [
    "EXPORT_COLUMNS",
    "REQUIRED_COLUMNS",
    "read_tree_csv",
    "write_tree_csv",
]
