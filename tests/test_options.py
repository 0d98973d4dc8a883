"""Branch option override resolution."""

from app.services.catalog.options import apply_overrides, build_option_groups


def _link(group_id="g-1", product_id="p-1", **extra):
    return {"id": f"link-{group_id}", "product_id": product_id, "group_id": group_id,
            "name": f"Group {group_id}", **extra}


def _item(item_id, group_id="g-1", price_delta=5000, display_order=None):
    return {"id": item_id, "group_id": group_id, "name": item_id,
            "price_delta": price_delta, "display_order": display_order}


def _resolve(links, items, overrides=(), branch_id="b-1", branch_product_id=None, restore=True):
    groups = build_option_groups(links, items, list(overrides)).get("p-1", [])
    return apply_overrides(
        groups,
        branch_id=branch_id,
        branch_product_id=branch_product_id,
        restore_empty_groups=restore,
    )


class TestItemOverrides:

    def test_null_override_delta_reverts_to_base(self):
        overrides = [{"branch_id": "b-1", "option_item_id": "i-1", "price_delta_override": None}]
        [group] = _resolve([_link()], [_item("i-1")], overrides)
        [item] = group["items"]
        assert item["effective_price_delta"] == 5000
        assert item["price_delta"] == 5000
        assert item["applied_branch_override"] is not None

    def test_override_delta_applies(self):
        overrides = [{"branch_id": "b-1", "option_item_id": "i-1", "price_delta_override": 7500}]
        [group] = _resolve([_link()], [_item("i-1")], overrides)
        assert group["items"][0]["effective_price_delta"] == 7500
        assert group["items"][0]["base_price_delta"] == 5000

    def test_zero_override_delta_is_kept(self):
        overrides = [{"branch_id": "b-1", "option_item_id": "i-1", "price_delta_override": 0}]
        [group] = _resolve([_link()], [_item("i-1")], overrides)
        assert group["items"][0]["effective_price_delta"] == 0

    def test_other_branch_override_is_not_applied(self):
        overrides = [{"branch_id": "b-2", "option_item_id": "i-1", "price_delta_override": 1}]
        [group] = _resolve([_link()], [_item("i-1")], overrides)
        assert group["items"][0]["effective_price_delta"] == 5000
        assert group["items"][0]["applied_branch_override"] is None

    def test_unavailable_item_is_dropped(self):
        overrides = [{"branch_id": "b-1", "option_item_id": "i-1", "is_available": False}]
        [group] = _resolve([_link()], [_item("i-1"), _item("i-2")], overrides)
        assert [item["id"] for item in group["items"]] == ["i-2"]

    def test_branch_product_override_beats_branch_override(self):
        overrides = [
            {"branch_id": "b-1", "option_item_id": "i-1", "price_delta_override": 1000},
            {"branch_product_id": "bp-1", "option_item_id": "i-1", "price_delta_override": 2000},
        ]
        [group] = _resolve([_link()], [_item("i-1")], overrides, branch_product_id="bp-1")
        assert group["items"][0]["effective_price_delta"] == 2000

        [group] = _resolve([_link()], [_item("i-1")], overrides, branch_product_id=None)
        assert group["items"][0]["effective_price_delta"] == 1000

    def test_items_keep_base_display_order(self):
        items = [_item("late", display_order=5), _item("early", display_order=1), _item("none")]
        [group] = _resolve([_link()], items)
        assert [item["id"] for item in group["items"]] == ["early", "late", "none"]

    def test_inactive_base_items_are_excluded(self):
        items = [_item("i-1"), {**_item("i-2"), "is_active": False}]
        [group] = _resolve([_link()], items)
        assert [item["id"] for item in group["items"]] == ["i-1"]


class TestGroupOverrides:

    def test_inactive_group_override_suppresses_group(self):
        overrides = [{"branch_id": "b-1", "option_group_id": "g-1", "is_active": False}]
        assert _resolve([_link()], [_item("i-1")], overrides) == []

    def test_suppression_is_branch_scoped(self):
        overrides = [{"branch_id": "b-1", "option_group_id": "g-1", "is_active": False}]
        assert len(_resolve([_link()], [_item("i-1")], overrides, branch_id="b-2")) == 1

    def test_inactive_group_definition_is_dropped(self):
        links = [_link(group_is_active=False)]
        assert _resolve(links, [_item("i-1")]) == []

    def test_limits_precedence(self):
        links = [_link(min_select=1, group_min_select=0, group_max_select=4, group_is_required=True)]
        [group] = _resolve(links, [_item("i-1")])
        assert group["min_select"] == 1
        assert group["max_select"] == 4
        assert group["is_required"] is True

        overrides = [{"branch_id": "b-1", "option_group_id": "g-1", "min_select": 2, "is_required": False}]
        [group] = _resolve(links, [_item("i-1")], overrides)
        assert group["min_select"] == 2
        assert group["is_required"] is False
        assert group["applied_branch_override"]["min_select"] == 2

    def test_defaults_without_limits(self):
        [group] = _resolve([_link()], [_item("i-1")])
        assert group["min_select"] == 0
        assert group["max_select"] is None
        assert group["is_required"] is False

    def test_groups_sorted_by_effective_display_order(self):
        links = [_link("g-a", display_order=2), _link("g-b", display_order=1)]
        items = [_item("a-1", "g-a"), _item("b-1", "g-b")]
        assert [g["id"] for g in _resolve(links, items)] == ["g-b", "g-a"]

        overrides = [{"branch_id": "b-1", "option_group_id": "g-a", "display_order": 0}]
        assert [g["id"] for g in _resolve(links, items, overrides)] == ["g-a", "g-b"]


class TestEmptyGroups:

    OVERRIDES = [
        {"branch_id": "b-1", "option_item_id": "i-1", "is_visible": False, "price_delta_override": 1},
        {"branch_id": "b-1", "option_item_id": "i-2", "is_available": False},
    ]

    def test_restores_base_items_when_all_hidden(self):
        [group] = _resolve([_link()], [_item("i-1"), _item("i-2", price_delta=300)], self.OVERRIDES)
        assert [item["id"] for item in group["items"]] == ["i-1", "i-2"]
        assert [item["effective_price_delta"] for item in group["items"]] == [5000, 300]
        assert all(item["applied_branch_override"] is None for item in group["items"])

    def test_restore_can_be_disabled(self):
        [group] = _resolve([_link()], [_item("i-1"), _item("i-2")], self.OVERRIDES, restore=False)
        assert group["items"] == []

    def test_group_without_base_items_stays_empty(self):
        [group] = _resolve([_link()], [])
        assert group["items"] == []


class TestRobustness:

    def test_orphaned_overrides_are_ignored(self):
        overrides = [
            {"branch_id": "b-1", "option_item_id": "ghost", "price_delta_override": 1},
            {"branch_id": "b-1", "option_group_id": "ghost", "is_active": False},
        ]
        [group] = _resolve([_link()], [_item("i-1")], overrides)
        assert group["items"][0]["effective_price_delta"] == 5000

    def test_override_for_another_product_is_ignored(self):
        overrides = [{"branch_id": "b-1", "product_id": "p-2", "option_group_id": "g-1", "is_active": False}]
        assert len(_resolve([_link()], [_item("i-1")], overrides)) == 1

    def test_override_without_scope_is_ignored(self):
        overrides = [{"option_group_id": "g-1", "is_active": False}]
        assert len(_resolve([_link()], [_item("i-1")], overrides)) == 1

    def test_no_groups(self):
        assert apply_overrides(None) == []
        assert apply_overrides([]) == []

    def test_base_view_ignores_overrides(self):
        overrides = [{"branch_id": "b-1", "option_group_id": "g-1", "is_active": False}]
        assert len(_resolve([_link()], [_item("i-1")], overrides, branch_id=None)) == 1
