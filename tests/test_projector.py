"""Branch product projection: inheritance, price overrides and availability."""

import pytest

from app.services.catalog.models import (
    BranchProductAssignment,
    InventorySnapshot,
    PriceMode,
    Product,
)
from app.services.catalog.options import build_option_groups
from app.services.catalog.projector import BranchProductProjector
from app.services.catalog.tax import build_tax_resolver


@pytest.fixture
def projector():
    resolver = build_tax_resolver([{"restaurant_id": "r-1", "rate_percent": 7}])
    return BranchProductProjector(resolver)


@pytest.fixture
def product():
    return Product(id="p-1", restaurant_id="r-1", title="Plate", base_price=100000)


def _assignment(**overrides):
    fields = {"id": "bp-1", "branch_id": "b-1", "product_id": "p-1"}
    fields.update(overrides)
    return BranchProductAssignment(**fields)


class TestInheritance:

    def test_product_without_assignment_is_inherited(self, projector, product):
        view = projector.project(product, None, "b-1")
        assert view["price_mode"] == "inherit"
        assert view["branch_product_id"] is None
        assert view["base_price"] == 100000
        assert view["price_with_tax"] == 107000.0
        assert view["tax_rate"] == 7
        assert view["available"] is True

    def test_synthetic_assignment_has_full_shape(self, projector, product):
        view = projector.project(product, None, "b-1")
        record = view["branch_assignment"]
        assert record["id"] is None
        assert record["branch_id"] == "b-1"
        assert record["product_id"] == "p-1"
        assert record["price_mode"] == "inherit"
        for key in ("quantity", "reserved_qty", "min_stock", "daily_limit", "daily_sold"):
            assert key in record
        assert view["inventory_summary"] == {
            "branch_id": "b-1",
            "quantity": None,
            "reserved_qty": None,
            "daily_limit": None,
        }

    def test_options_always_a_list(self, projector, product):
        assert projector.project(product, None, "b-1")["options"] == []


class TestPricing:

    def test_override_price(self, projector, product):
        view = projector.project(
            product, _assignment(price_mode=PriceMode.OVERRIDE, base_price_override=90000), "b-1"
        )
        assert view["base_price"] == 90000
        assert view["price_with_tax"] == 96300.0
        assert view["branch_product_id"] == "bp-1"

    def test_override_mode_without_price_uses_base(self, projector, product):
        view = projector.project(product, _assignment(price_mode=PriceMode.OVERRIDE), "b-1")
        assert view["base_price"] == 100000

    def test_inherit_mode_ignores_override_price(self, projector, product):
        view = projector.project(product, _assignment(base_price_override=1), "b-1")
        assert view["base_price"] == 100000
        assert view["base_price_override"] == 1

    def test_zero_override_price_is_honoured(self, projector, product):
        view = projector.project(
            product, _assignment(price_mode=PriceMode.OVERRIDE, base_price_override=0), "b-1"
        )
        assert view["base_price"] == 0
        assert view["price_with_tax"] == 0.0


class TestAvailability:

    @pytest.mark.parametrize("product_flag, assignment_flag, expected", [
        (True, None, True),
        (True, True, True),
        (True, False, False),
        (False, True, False),
        (False, None, False),
    ])
    def test_available_is_conjunction(self, projector, product_flag, assignment_flag, expected):
        product = Product(id="p-1", base_price=10, available=product_flag)
        view = projector.project(product, _assignment(is_available=assignment_flag), "b-1")
        assert view["available"] is expected

    def test_visibility(self, projector, product):
        view = projector.project(product, _assignment(is_visible=False), "b-1")
        assert view["is_visible"] is False

    def test_inventory_carried_verbatim(self, projector, product):
        inventory = InventorySnapshot(quantity=12, reserved_qty=2, min_stock=1, daily_limit=50, daily_sold=3)
        view = projector.project(product, _assignment(inventory=inventory), "b-1")
        assert view["inventory_summary"]["quantity"] == 12
        assert view["inventory_summary"]["daily_limit"] == 50
        assert view["branch_assignment"]["daily_sold"] == 3


class TestOptions:

    def test_branch_product_overrides_reach_options(self, product):
        groups = build_option_groups(
            [{"product_id": "p-1", "group_id": "g-1", "name": "Extras"}],
            [{"id": "i-1", "group_id": "g-1", "price_delta": 5000}],
            [{"branch_product_id": "bp-1", "option_item_id": "i-1", "price_delta_override": 100}],
        )
        projector = BranchProductProjector(build_tax_resolver(), groups)

        view = projector.project(product, _assignment(), "b-1")
        assert view["options"][0]["items"][0]["effective_price_delta"] == 100

        inherited = projector.project(product, None, "b-1")
        assert inherited["options"][0]["items"][0]["effective_price_delta"] == 5000

    def test_base_view(self, product):
        projector = BranchProductProjector(build_tax_resolver([{"rate_percent": 10}]))
        view = projector.base_view(product, [_assignment()])
        assert view["price_with_tax"] == 110000.0
        assert view["tax_rate"] == 10
        assert [a["id"] for a in view["branch_assignments"]] == ["bp-1"]
        assert view["options"] == []
