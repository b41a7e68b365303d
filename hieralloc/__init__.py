"""Hierarchical value allocation engine."""
from .allocation import (
    aggregate,
    build_baseline,
    check_rollups,
    distribute,
    find_node,
    grand_total,
    recalc_variance,
)
from .engine import AllocationEngine, EditOutcome, apply_edit, evaluate_edit
from .models import DuplicateNodeIdError, Node

__all__ = [
    "AllocationEngine",
    "DuplicateNodeIdError",
    "EditOutcome",
    "Node",
    "aggregate",
    "apply_edit",
    "build_baseline",
    "check_rollups",
    "distribute",
    "evaluate_edit",
    "find_node",
    "grand_total",
    "recalc_variance",
]
