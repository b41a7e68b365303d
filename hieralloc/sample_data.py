"""Sample dataset used to populate the allocation table for the first time."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from .models import Node, Tree


@dataclass
class NodeSeed:
    id: str
    label: str
    value: float
    children: Iterable["NodeSeed"] | None = None

    def as_node(self) -> Node:
        return Node(
            id=self.id,
            label=self.label,
            value=self.value,
            children=tuple(child.as_node() for child in self.children or []),
        )


# Electronics starts out of step with its children (1400 vs 800 + 700); the
# first aggregation pass brings it to 1500.
SAMPLE_ALLOCATIONS: list[NodeSeed] = [
    NodeSeed(
        id="electronics",
        label="Electronics",
        value=1400,
        children=[
            NodeSeed(id="phones", label="Phones", value=800),
            NodeSeed(id="laptops", label="Laptops", value=700),
        ],
    ),
    NodeSeed(
        id="furniture",
        label="Furniture",
        value=1000,
        children=[
            NodeSeed(id="tables", label="Tables", value=300),
            NodeSeed(id="chairs", label="Chairs", value=700),
        ],
    ),
]


def sample_tree() -> Tree:
    """Return the sample allocation tree as fresh nodes."""

    return tuple(seed.as_node() for seed in SAMPLE_ALLOCATIONS)
