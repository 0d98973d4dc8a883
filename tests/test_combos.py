"""Combo definitions and per-branch opt-in."""

from app.services.catalog.combos import (
    build_combos,
    combo_view,
    index_branch_combos,
    resolve_branch_combos,
)
from app.services.catalog.tax import build_tax_resolver

COMBOS = [{"id": "cb-1", "restaurant_id": "r-1", "name": "Lunch", "base_price": 1000}]
GROUPS = [
    {"id": "cg-2", "combo_id": "cb-1", "name": "Drink", "display_order": 2},
    {"id": "cg-1", "combo_id": "cb-1", "name": "Main", "display_order": 1},
]
ITEMS = [{"id": "cgi-1", "combo_group_id": "cg-1", "item_type": "product", "product_id": "p-1"}]


def _setup(branch_rows, combos=COMBOS):
    built = build_combos(combos, GROUPS, ITEMS)
    by_id = {combo.id: combo for combo in built}
    return built, by_id, index_branch_combos(branch_rows, by_id)


def test_branch_without_opt_in_gets_no_combos():
    _, by_id, index = _setup([])
    resolver = build_tax_resolver()
    assert resolve_branch_combos(by_id, index.get("b-1"), "b-1", resolver) == []


def test_opted_in_combo_uses_override_price():
    rows = [{"id": "bc-1", "branch_id": "b-1", "combo_id": "cb-1", "base_price_override": 800}]
    _, by_id, index = _setup(rows)
    resolver = build_tax_resolver([], [{"branch_id": "b-1", "rate_percent": 10}])

    [entry] = resolve_branch_combos(by_id, index["b-1"], "b-1", resolver)
    assert entry["combo_id"] == "cb-1"
    assert entry["base_price"] == 800
    assert entry["price_with_tax"] == 880.0
    assert entry["tax_rate"] == 10
    assert entry["is_available"] is True


def test_opted_in_combo_without_override_uses_base_price():
    _, by_id, index = _setup([{"branch_id": "b-1", "combo_id": "cb-1"}])
    [entry] = resolve_branch_combos(by_id, index["b-1"], "b-1", build_tax_resolver())
    assert entry["base_price"] == 1000
    assert entry["price_with_tax"] == 1070.0


def test_inactive_combo_is_unavailable():
    combos = [{**COMBOS[0], "is_active": False}]
    _, by_id, index = _setup([{"branch_id": "b-1", "combo_id": "cb-1"}], combos)
    [entry] = resolve_branch_combos(by_id, index["b-1"], "b-1", build_tax_resolver())
    assert entry["is_available"] is False


def test_orphaned_branch_combo_is_dropped():
    _, _, index = _setup([{"branch_id": "b-1", "combo_id": "ghost"}])
    assert index == {}


def test_groups_in_display_order_with_items():
    [combo], _, _ = _setup([])
    assert [group.id for group in combo.groups] == ["cg-1", "cg-2"]
    assert combo.groups[0].items[0].product_id == "p-1"
    assert combo.groups[1].items == ()


def test_restaurant_level_view_lists_branch_assignments():
    rows = [
        {"id": "bc-1", "branch_id": "b-1", "combo_id": "cb-1"},
        {"id": "bc-2", "branch_id": "b-2", "combo_id": "cb-1", "display_order": 1},
    ]
    [combo], _, index = _setup(rows)
    entries = [entry for branch_entries in index.values() for entry in branch_entries]
    view = combo_view(combo, entries, build_tax_resolver())
    assert view["price_with_tax"] == 1070.0
    assert sorted(a["branch_id"] for a in view["branch_assignments"]) == ["b-1", "b-2"]
    assert [g["name"] for g in view["groups"]] == ["Main", "Drink"]
