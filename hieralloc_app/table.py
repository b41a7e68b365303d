"""Presentation helpers for the allocation table (no Tk dependency)."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List

from hieralloc.models import Node

GRAND_TOTAL_LABEL = "Grand Total"


@dataclass(slots=True)
class DisplayRow:
    """A single row of the allocation table."""

    node_id: str
    depth: int
    label: str
    value: str
    variance: str
    is_parent: bool


def format_amount(value: float) -> str:
    """Return a human friendly amount string."""

    return f"{value:,.2f}"


def format_variance_label(variance: str) -> str:
    """Return the variance with a percent sign, as shown in the table."""

    return f"{variance or '0.00'}%"


def build_display_rows(tree: Iterable[Node], depth: int = 0) -> List[DisplayRow]:
    rows: List[DisplayRow] = []
    for node in tree:
        rows.append(
            DisplayRow(
                node_id=node.id,
                depth=depth,
                label=node.label,
                value=format_amount(node.value),
                variance=format_variance_label(node.variance),
                is_parent=bool(node.children),
            )
        )
        rows.extend(build_display_rows(node.children, depth + 1))
    return rows


def grand_total_row(total: float) -> tuple[str, str]:
    return GRAND_TOTAL_LABEL, format_amount(total)


__all__ = [
    "DisplayRow",
    "GRAND_TOTAL_LABEL",
    "build_display_rows",
    "format_amount",
    "format_variance_label",
    "grand_total_row",
]
