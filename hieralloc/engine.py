"""Edit orchestration for the hierarchical allocation engine."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from typing import Iterable, Mapping, Optional

from .allocation import (
    DEFAULT_ZERO_TOTAL_POLICY,
    aggregate,
    build_baseline,
    check_rollups,
    check_zero_total_policy,
    distribute,
    find_node,
    grand_total,
    recalc_variance,
    replace_node,
)
from .models import (
    EDIT_PERCENT,
    Node,
    Tree,
    build_tree,
    normalize_edit_kind,
    parse_amount,
    round2,
    validate_unique_ids,
)

logger = logging.getLogger(__name__)

REASON_EMPTY_INPUT = "empty input"
REASON_NOT_A_NUMBER = "not a finite number"
REASON_UNKNOWN_KIND = "unknown edit kind"
REASON_UNKNOWN_NODE = "unknown node id"
REASON_NOT_FINITE_RESULT = "result is not a finite number"


@dataclass(frozen=True, slots=True)
class EditOutcome:
    """Result of a single edit cycle.

    ``tree`` is always the tree to publish: the recomputed tree when the edit
    was accepted, or the untouched input tree when it was rejected.
    """

    tree: Tree
    accepted: bool
    node_id: str
    reason: str = ""
    target_value: Optional[float] = None


def _is_blank(raw: object) -> bool:
    return raw is None or (isinstance(raw, str) and not raw.strip())


def evaluate_edit(
    tree: Tree,
    node_id: str,
    raw_input: object,
    edit_kind: str,
    baseline: Mapping[str, float],
    *,
    zero_total_policy: str = DEFAULT_ZERO_TOTAL_POLICY,
) -> EditOutcome:
    """Run one edit cycle and report whether it was applied.

    Rejected edits never raise; an unknown ``zero_total_policy`` is a
    configuration error and raises :class:`ValueError`.
    """

    check_zero_total_policy(zero_total_policy)
    if _is_blank(raw_input):
        return EditOutcome(tree=tree, accepted=False, node_id=node_id, reason=REASON_EMPTY_INPUT)
    parsed = parse_amount(raw_input)
    if parsed is None:
        return EditOutcome(tree=tree, accepted=False, node_id=node_id, reason=REASON_NOT_A_NUMBER)
    kind = normalize_edit_kind(edit_kind)
    if kind is None:
        return EditOutcome(tree=tree, accepted=False, node_id=node_id, reason=REASON_UNKNOWN_KIND)

    target = find_node(tree, node_id)
    if target is None:
        return EditOutcome(tree=tree, accepted=False, node_id=node_id, reason=REASON_UNKNOWN_NODE)

    if kind == EDIT_PERCENT:
        computed = target.value * (1 + parsed / 100)
    else:
        computed = parsed
    if not math.isfinite(computed):
        return EditOutcome(tree=tree, accepted=False, node_id=node_id, reason=REASON_NOT_FINITE_RESULT)

    if target.children:
        updated = distribute(target, computed, zero_total_policy)
    else:
        updated = replace(target, value=round2(computed))

    edited = replace_node(tree, node_id, updated)
    aggregated = aggregate(edited)
    if not all(math.isfinite(node.value) for node in aggregated):
        return EditOutcome(tree=tree, accepted=False, node_id=node_id, reason=REASON_NOT_FINITE_RESULT)
    published = recalc_variance(aggregated, baseline)
    return EditOutcome(
        tree=published,
        accepted=True,
        node_id=node_id,
        target_value=round2(computed),
    )


def apply_edit(
    tree: Tree,
    node_id: str,
    raw_input: object,
    edit_kind: str,
    baseline: Mapping[str, float],
    *,
    zero_total_policy: str = DEFAULT_ZERO_TOTAL_POLICY,
) -> Tree:
    """Apply an edit and return the tree to publish.

    Malformed input and unknown ids leave ``tree`` untouched; the very same
    tree object is returned.
    """

    return evaluate_edit(
        tree,
        node_id,
        raw_input,
        edit_kind,
        baseline,
        zero_total_policy=zero_total_policy,
    ).tree


class AllocationEngine:
    """Holds the published tree and its frozen baseline for one session."""

    def __init__(
        self,
        definition: Iterable[Node | Mapping[str, object]],
        *,
        zero_total_policy: str = DEFAULT_ZERO_TOTAL_POLICY,
    ) -> None:
        self.zero_total_policy = check_zero_total_policy(zero_total_policy)
        tree = build_tree(definition)
        validate_unique_ids(tree)
        aggregated = aggregate(tree)
        self._baseline = build_baseline(aggregated)
        self._tree = recalc_variance(aggregated, self._baseline)
        self._last_outcome: Optional[EditOutcome] = None
        logger.debug(
            "Initialised allocation tree with %d nodes, grand total %.2f",
            len(self._baseline),
            self.grand_total,
        )

    @property
    def tree(self) -> Tree:
        return self._tree

    @property
    def baseline(self) -> Mapping[str, float]:
        return self._baseline

    @property
    def grand_total(self) -> float:
        return grand_total(self._tree)

    @property
    def last_outcome(self) -> Optional[EditOutcome]:
        return self._last_outcome

    def find(self, node_id: str) -> Optional[Node]:
        return find_node(self._tree, node_id)

    def submit(self, node_id: str, raw_input: object, edit_kind: str) -> EditOutcome:
        """Apply an edit, publish the result and return the outcome."""

        outcome = evaluate_edit(
            self._tree,
            node_id,
            raw_input,
            edit_kind,
            self._baseline,
            zero_total_policy=self.zero_total_policy,
        )
        if outcome.accepted:
            logger.debug(
                "Applied %s edit %r to %s (target %.2f)",
                normalize_edit_kind(edit_kind),
                raw_input,
                node_id,
                outcome.target_value,
            )
        else:
            logger.info("Ignored edit %r for %s: %s", raw_input, node_id, outcome.reason)
        self._tree = outcome.tree
        self._last_outcome = outcome
        return outcome

    def edit(self, node_id: str, raw_input: object, edit_kind: str) -> Tree:
        return self.submit(node_id, raw_input, edit_kind).tree

    def is_consistent(self) -> bool:
        return not check_rollups(self._tree)


__all__ = [
    "AllocationEngine",
    "EditOutcome",
    "REASON_EMPTY_INPUT",
    "REASON_NOT_FINITE_RESULT",
    "REASON_NOT_A_NUMBER",
    "REASON_UNKNOWN_KIND",
    "REASON_UNKNOWN_NODE",
    "apply_edit",
    "evaluate_edit",
]
