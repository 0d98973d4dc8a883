"""Catalog assembly end to end over the in-memory source."""

import asyncio
import copy
from datetime import datetime, timezone

from app.services.catalog import CatalogAssembler, CatalogSnapshot, InMemoryCatalogSource, assemble_catalog


def _branch(catalog, branch_id):
    return next(branch for branch in catalog["branches"] if branch["id"] == branch_id)


def _product(entries, product_id):
    return next(entry for entry in entries if entry["id"] == product_id)


class TestEndToEnd:

    def test_single_product_restaurant_tax(self, single_product_tables):
        assembler = CatalogAssembler(InMemoryCatalogSource(single_product_tables))
        catalog = asyncio.run(assembler.get_restaurant_catalog("r-1"))

        [branch] = catalog["branches"]
        [product] = branch["products"]
        assert product["price_with_tax"] == 107000.0
        assert product["tax_rate"] == 7
        assert product["price_mode"] == "inherit"
        assert product["branch_product_id"] is None
        assert catalog["products"][0]["price_with_tax"] == 107000.0

    def test_huge_price_keeps_its_magnitude(self, single_product_tables):
        tables = copy.deepcopy(single_product_tables)
        tables["products"][0]["base_price"] = "1e26"
        assembler = CatalogAssembler(InMemoryCatalogSource(tables))
        catalog = asyncio.run(assembler.get_restaurant_catalog("r-1"))

        [product] = catalog["branches"][0]["products"]
        assert product["base_price"] == 1e26
        assert product["price_with_tax"] == 1.07e26

    def test_uncached_assembler_accepts_a_version(self, demo_assembler):
        assert asyncio.run(demo_assembler.cache_status()) == "disabled"
        catalog = asyncio.run(demo_assembler.get_restaurant_catalog("r-demo", version="v1"))
        assert catalog["restaurant"]["id"] == "r-demo"

    def test_missing_restaurant(self, demo_assembler):
        assert asyncio.run(demo_assembler.get_restaurant_catalog("nope")) is None

    def test_invalid_restaurant_id(self, demo_assembler):
        assert asyncio.run(demo_assembler.get_restaurant_catalog(None)) is None
        assert asyncio.run(demo_assembler.get_restaurant_catalog("   ")) is None

    def test_document_shape(self, demo_assembler):
        catalog = asyncio.run(demo_assembler.get_restaurant_catalog("r-demo"))
        assert set(catalog) == {"restaurant", "categories", "products", "combos", "branches"}
        assert catalog["restaurant"]["name"] == "Casa Demo"
        for branch in catalog["branches"]:
            for product in branch["products"]:
                assert isinstance(product["options"], list)
                assert "price_with_tax" in product and "tax_rate" in product


class TestDemoCatalog:

    def test_downtown_products(self, demo_assembler):
        catalog = asyncio.run(demo_assembler.get_restaurant_catalog("r-demo"))
        downtown = _branch(catalog, "b-downtown")
        assert [p["id"] for p in downtown["products"]] == ["p-burger", "p-cola", "p-salad"]

        burger = _product(downtown["products"], "p-burger")
        assert burger["base_price"] == 95000
        assert burger["price_with_tax"] == 101650.0
        assert burger["is_featured"] is True
        assert burger["inventory_summary"]["quantity"] == 40

        cola = _product(downtown["products"], "p-cola")
        assert cola["tax_rate"] == 5
        assert cola["price_with_tax"] == 26250.0

        salad = _product(downtown["products"], "p-salad")
        assert salad["branch_product_id"] is None
        assert salad["price_with_tax"] == 85600.0

    def test_downtown_options(self, demo_assembler):
        catalog = asyncio.run(demo_assembler.get_restaurant_catalog("r-demo"))
        burger = _product(_branch(catalog, "b-downtown")["products"], "p-burger")
        [extras] = burger["options"]
        deltas = {item["id"]: item["effective_price_delta"] for item in extras["items"]}
        assert deltas == {"oi-cheese": 5000, "oi-bacon": 10000}
        assert extras["max_select"] == 3

    def test_airport_branch(self, demo_assembler):
        catalog = asyncio.run(demo_assembler.get_restaurant_catalog("r-demo"))
        airport = _branch(catalog, "b-airport")
        assert [p["id"] for p in airport["products"]] == ["p-salad", "p-burger", "p-cola"]

        burger = _product(airport["products"], "p-burger")
        assert burger["tax_rate"] == 10
        assert burger["price_with_tax"] == 110000.0
        assert burger["options"] == []

        salad = _product(airport["products"], "p-salad")
        assert salad["available"] is False
        assert airport["combos"] == []
        assert [c["category_id"] for c in airport["categories"]] == ["c-mains"]

    def test_combos(self, demo_assembler):
        catalog = asyncio.run(demo_assembler.get_restaurant_catalog("r-demo"))
        [combo] = _branch(catalog, "b-downtown")["combos"]
        assert combo["base_price"] == 110000
        assert combo["price_with_tax"] == 117700.0

        [restaurant_combo] = catalog["combos"]
        assert restaurant_combo["price_with_tax"] == 128400.0
        assert [a["branch_id"] for a in restaurant_combo["branch_assignments"]] == ["b-downtown"]

    def test_branch_filter(self, demo_assembler):
        catalog = asyncio.run(demo_assembler.get_restaurant_catalog("r-demo", branch_id="b-airport"))
        assert [b["id"] for b in catalog["branches"]] == ["b-airport"]
        assert [c["id"] for c in catalog["categories"]] == ["c-mains"]
        assert all(
            a["branch_id"] == "b-airport"
            for c in catalog["categories"] for a in c["branch_assignments"]
        )

    def test_unknown_branch_filter(self, demo_assembler):
        catalog = asyncio.run(demo_assembler.get_restaurant_catalog("r-demo", branch_id="b-nowhere"))
        assert catalog["branches"] == []
        assert catalog["categories"] == []

    def test_search_and_category_filters(self, demo_assembler):
        catalog = asyncio.run(demo_assembler.get_restaurant_catalog("r-demo", search="BURGER"))
        assert [p["id"] for p in catalog["products"]] == ["p-burger"]

        catalog = asyncio.run(demo_assembler.get_restaurant_catalog("r-demo", category_id="c-drinks"))
        assert [p["id"] for p in catalog["products"]] == ["p-cola"]

    def test_as_of_honours_tax_windows(self, demo_tables):
        demo_tables["branch_tax_assignments"][0]["end_at"] = "2024-01-01T00:00:00Z"
        assembler = CatalogAssembler(InMemoryCatalogSource(demo_tables))
        as_of = datetime(2025, 1, 1, tzinfo=timezone.utc)
        catalog = asyncio.run(assembler.get_restaurant_catalog("r-demo", as_of=as_of))
        burger = _product(_branch(catalog, "b-airport")["products"], "p-burger")
        assert burger["tax_rate"] == 7


class TestPureAssembly:

    def test_idempotent(self, demo_assembler):
        snapshot = asyncio.run(demo_assembler.fetch_snapshot("r-demo"))
        frozen = copy.deepcopy(snapshot)
        first = assemble_catalog(snapshot, branch_id="b-downtown")
        second = assemble_catalog(snapshot, branch_id="b-downtown")
        assert first == second
        assert snapshot == frozen

    def test_unusable_restaurant_row(self):
        assert assemble_catalog(CatalogSnapshot(restaurant={"name": "no id"})) is None

    def test_empty_restaurant(self):
        catalog = assemble_catalog(CatalogSnapshot(restaurant={"id": "r-1"}))
        assert catalog["branches"] == []
        assert catalog["products"] == []

    def test_restore_flag_is_passed_through(self, demo_tables):
        demo_tables["branch_option_overrides"] = [
            {"branch_id": "b-downtown", "option_item_id": "oi-cheese", "is_available": False},
            {"branch_id": "b-downtown", "option_item_id": "oi-bacon", "is_available": False},
        ]
        snapshot = asyncio.run(CatalogAssembler(InMemoryCatalogSource(demo_tables)).fetch_snapshot("r-demo"))

        restored = assemble_catalog(snapshot, branch_id="b-downtown")
        burger = _product(restored["branches"][0]["products"], "p-burger")
        assert len(burger["options"][0]["items"]) == 2

        kept_empty = assemble_catalog(snapshot, branch_id="b-downtown", restore_empty_option_groups=False)
        burger = _product(kept_empty["branches"][0]["products"], "p-burger")
        assert burger["options"][0]["items"] == []

    def test_duplicate_assignments_keep_first(self, single_product_tables):
        single_product_tables["branch_products"] = [
            {"id": "bp-1", "branch_id": "b-1", "product_id": "p-1", "price_mode": "override", "base_price_override": 10},
            {"id": "bp-2", "branch_id": "b-1", "product_id": "p-1", "price_mode": "override", "base_price_override": 20},
        ]
        assembler = CatalogAssembler(InMemoryCatalogSource(single_product_tables))
        catalog = asyncio.run(assembler.get_restaurant_catalog("r-1"))
        assert catalog["branches"][0]["products"][0]["branch_product_id"] == "bp-1"


class TestListing:

    def test_lists_every_restaurant(self, demo_tables, single_product_tables):
        tables = copy.deepcopy(demo_tables)
        for name, rows in single_product_tables.items():
            tables.setdefault(name, []).extend(rows)
        assembler = CatalogAssembler(InMemoryCatalogSource(tables))

        listing = asyncio.run(assembler.list_restaurant_catalog())
        assert [c["restaurant"]["id"] for c in listing["restaurants"]] == ["r-demo", "r-1"]
        assert len(listing["products"]) == 4

    def test_empty_listing(self):
        listing = asyncio.run(CatalogAssembler(InMemoryCatalogSource()).list_restaurant_catalog())
        assert listing == {"restaurants": [], "products": []}
