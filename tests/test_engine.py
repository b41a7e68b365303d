import pathlib
import sys

import pytest

sys.path.insert(0, str(pathlib.Path(__file__).resolve().parents[1]))

from hieralloc.allocation import ZERO_TOTAL_EQUAL_SPLIT, check_rollups
from hieralloc.engine import (
    REASON_EMPTY_INPUT,
    REASON_NOT_A_NUMBER,
    REASON_NOT_FINITE_RESULT,
    REASON_UNKNOWN_KIND,
    REASON_UNKNOWN_NODE,
    AllocationEngine,
    apply_edit,
    evaluate_edit,
)
from hieralloc.models import DuplicateNodeIdError, format_variance, iter_nodes
from hieralloc.sample_data import sample_tree


@pytest.fixture
def engine():
    return AllocationEngine(sample_tree())


def _values(engine):
    return {node.id: node.value for node in iter_nodes(engine.tree)}


def _variances(engine):
    return {node.id: node.variance for node in iter_nodes(engine.tree)}


def _assert_variances_match_baseline(engine):
    for node in iter_nodes(engine.tree):
        base = engine.baseline[node.id]
        expected = "0.00" if base == 0 else format_variance((node.value - base) / base * 100)
        assert node.variance == expected


def test_initialisation_aggregates_and_freezes_baseline(engine):
    assert engine.find("electronics").value == 1500
    assert engine.baseline["electronics"] == 1500
    assert engine.baseline["furniture"] == 1000
    assert set(_variances(engine).values()) == {"0.00"}
    assert engine.grand_total == 2500
    assert engine.is_consistent()


def test_leaf_edit_updates_ancestors_and_variance(engine):
    engine.edit("phones", "1000", "absolute")

    values = _values(engine)
    variances = _variances(engine)
    assert values["phones"] == 1000
    assert values["electronics"] == 1700
    assert variances["phones"] == "25.00"
    assert variances["electronics"] == "13.33"
    assert variances["laptops"] == "0.00"
    assert variances["furniture"] == "0.00"
    assert engine.grand_total == 2700


def test_parent_edit_distributes_by_current_shares(engine):
    engine.edit("phones", "1000", "absolute")
    engine.edit("electronics", "2000", "absolute")

    values = _values(engine)
    variances = _variances(engine)
    assert values["phones"] == pytest.approx(1176.47)
    assert values["laptops"] == pytest.approx(823.53)
    assert values["electronics"] == pytest.approx(2000)
    assert variances["electronics"] == "33.33"
    assert variances["phones"] == "47.06"
    assert variances["laptops"] == "17.65"


def test_percent_edit_is_relative_to_current_value(engine):
    engine.edit("phones", "10", "percent")

    assert engine.find("phones").value == pytest.approx(880)
    assert engine.find("phones").variance == "10.00"
    assert engine.find("electronics").value == pytest.approx(1580)
    assert engine.find("electronics").variance == "5.33"

    engine.edit("phones", "10", "percent")

    assert engine.find("phones").value == pytest.approx(968)


def test_percent_edit_on_parent_distributes(engine):
    engine.edit("electronics", "-10", "percent")

    assert engine.find("electronics").value == pytest.approx(1350)
    assert engine.find("phones").value == pytest.approx(720)
    assert engine.find("laptops").value == pytest.approx(630)
    assert engine.find("electronics").variance == "-10.00"


def test_absolute_edit_ignores_prior_value(engine):
    engine.edit("phones", "10", "percent")
    engine.edit("phones", "500", "absolute")

    assert engine.find("phones").value == 500


@pytest.mark.parametrize(
    "raw, reason",
    [
        ("", REASON_EMPTY_INPUT),
        ("   ", REASON_EMPTY_INPUT),
        (None, REASON_EMPTY_INPUT),
        ("abc", REASON_NOT_A_NUMBER),
        ("nan", REASON_NOT_A_NUMBER),
        ("inf", REASON_NOT_A_NUMBER),
    ],
)
def test_malformed_input_is_a_no_op(engine, raw, reason):
    before = engine.tree

    outcome = engine.submit("phones", raw, "absolute")

    assert not outcome.accepted
    assert outcome.reason == reason
    assert engine.tree is before
    assert engine.last_outcome is outcome


def test_unknown_id_is_a_no_op(engine):
    before = engine.tree

    outcome = engine.submit("garden", "100", "absolute")

    assert outcome.reason == REASON_UNKNOWN_NODE
    assert engine.tree is before


def test_unknown_edit_kind_is_a_no_op(engine):
    before = engine.tree

    assert engine.edit("phones", "100", "multiply") is before
    assert engine.last_outcome.reason == REASON_UNKNOWN_KIND


def test_value_alias_and_numeric_input(engine):
    engine.edit("tables", 450, "value")

    assert engine.find("tables").value == 450
    assert engine.find("furniture").value == 1150
    assert engine.last_outcome.target_value == 450


def test_baseline_never_changes_after_edits(engine):
    snapshot = dict(engine.baseline)

    engine.edit("phones", "1000", "absolute")
    engine.edit("furniture", "25", "percent")
    engine.edit("electronics", "3000", "absolute")

    assert dict(engine.baseline) == snapshot


def test_edit_sequence_keeps_tree_consistent(engine):
    edits = [
        ("phones", "1000", "absolute"),
        ("electronics", "2000", "absolute"),
        ("chairs", "-35.5", "percent"),
        ("furniture", "1234.56", "absolute"),
        ("laptops", "0", "absolute"),
        ("electronics", "12.5", "percent"),
    ]
    for node_id, raw, kind in edits:
        engine.edit(node_id, raw, kind)
        assert check_rollups(engine.tree) == []
        _assert_variances_match_baseline(engine)


def test_apply_edit_leaves_input_tree_untouched(engine):
    tree = engine.tree

    updated = apply_edit(tree, "phones", "1000", "absolute", engine.baseline)

    assert updated is not tree
    assert tree[0].value == 1500
    assert updated[0].value == 1700
    assert updated[1] is tree[1]


def test_evaluate_edit_reports_target_value(engine):
    outcome = evaluate_edit(engine.tree, "phones", "10", "percent", engine.baseline)

    assert outcome.accepted
    assert outcome.target_value == pytest.approx(880)


def test_duplicate_ids_fail_fast():
    definition = [
        {"id": "a", "label": "A", "value": 1, "children": [{"id": "dup", "value": 1}]},
        {"id": "b", "label": "B", "value": 1, "children": [{"id": "dup", "value": 2}]},
    ]

    with pytest.raises(DuplicateNodeIdError) as excinfo:
        AllocationEngine(definition)

    assert excinfo.value.duplicates == ("dup",)


def test_engine_accepts_mapping_definitions():
    engine = AllocationEngine(
        [
            {
                "id": "ops",
                "label": "Operations",
                "value": 0,
                "children": [
                    {"id": "rent", "label": "Rent", "value": 1200},
                    {"id": "power", "label": "Power", "value": 300},
                ],
            }
        ]
    )

    assert engine.find("ops").value == 1500
    assert engine.baseline["ops"] == 1500


def test_zero_total_subtree_keeps_zero_by_default():
    definition = [{"id": "new", "value": 0, "children": [{"id": "x", "value": 0}, {"id": "y", "value": 0}]}]
    engine = AllocationEngine(definition)

    engine.edit("new", "100", "absolute")

    assert engine.find("new").value == 0
    assert engine.find("new").variance == "0.00"


def test_zero_total_subtree_equal_split_policy():
    definition = [{"id": "new", "value": 0, "children": [{"id": "x", "value": 0}, {"id": "y", "value": 0}]}]
    engine = AllocationEngine(definition, zero_total_policy=ZERO_TOTAL_EQUAL_SPLIT)

    engine.edit("new", "100", "absolute")

    assert engine.find("new").value == 100
    assert engine.find("x").value == 50
    assert engine.find("y").value == 50
    # Zero baseline means variance is pinned to zero.
    assert engine.find("x").variance == "0.00"


def test_unknown_zero_total_policy_rejected():
    with pytest.raises(ValueError):
        AllocationEngine(sample_tree(), zero_total_policy="spread")


def test_variance_ties_round_up(engine):
    engine.edit("phones", "801", "absolute")

    assert engine.find("phones").variance == "0.13"


def test_leaf_value_ties_round_up(engine):
    engine.edit("phones", "0.125", "absolute")

    assert engine.find("phones").value == 0.13
    assert engine.find("electronics").value == pytest.approx(700.13)


def test_huge_integer_input_is_a_no_op(engine):
    before = engine.tree

    outcome = engine.submit("phones", 10**400, "absolute")

    assert outcome.reason == REASON_NOT_A_NUMBER
    assert engine.tree is before


def test_overflowing_percent_edit_is_a_no_op(engine):
    engine.edit("phones", "1e308", "absolute")
    before = engine.tree

    outcome = engine.submit("phones", "100", "percent")

    assert not outcome.accepted
    assert outcome.reason == REASON_NOT_FINITE_RESULT
    assert engine.tree is before
    assert engine.find("phones").value == 1e308


def test_overflowing_subtotal_is_a_no_op(engine):
    engine.edit("phones", "1.7e308", "absolute")
    before = engine.tree

    outcome = engine.submit("laptops", "1.7e308", "absolute")

    assert outcome.reason == REASON_NOT_FINITE_RESULT
    assert engine.tree is before
    assert engine.is_consistent()


def test_apply_edit_rejects_unknown_zero_total_policy(engine):
    with pytest.raises(ValueError):
        apply_edit(engine.tree, "electronics", "100", "absolute", engine.baseline, zero_total_policy="spread")
