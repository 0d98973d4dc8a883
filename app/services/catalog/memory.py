"""
In-Memory Catalog Source

Serves catalog rows from plain Python collections, optionally loaded from
a JSON fixture. Used in development mode (ENV_MODE=development) and by
the test-suite.

Fixture layout (every key optional, each a list of row objects):
    restaurants, branches, categories, products, branch_products,
    restaurant_tax_assignments, branch_tax_assignments,
    product_tax_overrides, branch_product_tax_overrides,
    option_groups, product_option_groups, option_items,
    branch_option_overrides, combos, combo_groups, combo_group_items,
    branch_combos

Category rows carry their ``branch_assignments`` inline. Product option
group links (``product_option_groups``) are joined with the group
definitions in ``option_groups`` the same way the SQL source joins them.
"""

import json
import logging
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any, Optional, Union

from app.services.catalog.base import BaseCatalogSource, ProductFilters, Row
from app.services.catalog.models import TaxScope, normalise_id

logger = logging.getLogger(__name__)

TAX_TABLES = {
    TaxScope.RESTAURANT: "restaurant_tax_assignments",
    TaxScope.BRANCH: "branch_tax_assignments",
    TaxScope.PRODUCT: "product_tax_overrides",
    TaxScope.BRANCH_PRODUCT: "branch_product_tax_overrides",
}

TAX_OWNER_KEYS = {
    TaxScope.RESTAURANT: ("restaurant_id", "restaurantId"),
    TaxScope.BRANCH: ("branch_id", "branchId"),
    TaxScope.PRODUCT: ("product_id", "productId"),
    TaxScope.BRANCH_PRODUCT: ("branch_id", "branchId"),
}


def _ref(row: Mapping, *keys: str) -> Optional[str]:
    refs = (normalise_id(row.get(key)) for key in keys)
    return next((ref for ref in refs if ref is not None), None)


class InMemoryCatalogSource(BaseCatalogSource):
    """
    In-memory implementation of the catalog source.

    Rows are returned as copies so callers can never alter the store.

    Example:
        >>> source = InMemoryCatalogSource({"restaurants": [{"id": "r-1"}]})
        >>> await source.get_restaurant("r-1")
        {'id': 'r-1'}
    """

    def __init__(self, data: Optional[Mapping[str, Sequence[Row]]] = None):
        """
        Initialize the source.

        Args:
            data: Mapping of table name to rows
        """
        self.tables: dict[str, list[dict[str, Any]]] = {
            name: [dict(row) for row in rows if isinstance(row, Mapping)]
            for name, rows in (data or {}).items()
            if isinstance(rows, (list, tuple))
        }
        logger.info(
            f"InMemoryCatalogSource initialized "
            f"({len(self._table('restaurants'))} restaurants, "
            f"{len(self._table('products'))} products)"
        )

    @classmethod
    def from_json_file(cls, path: Union[str, Path]) -> "InMemoryCatalogSource":
        """Load a fixture file; see the module docstring for its layout."""
        with open(path, encoding="utf-8") as handle:
            data = json.load(handle)
        if not isinstance(data, dict):
            raise ValueError(f"Catalog fixture {path} must contain a JSON object")
        return cls(data)

    @property
    def provider_name(self) -> str:
        """Return the provider name."""
        return "memory"

    def _table(self, name: str) -> list[dict[str, Any]]:
        return self.tables.get(name, [])

    def _select(self, name: str, keys: tuple[str, ...], ids: Sequence[str]) -> list[dict[str, Any]]:
        wanted = set(ids)
        return [dict(row) for row in self._table(name) if _ref(row, *keys) in wanted]

    async def get_restaurant(self, restaurant_id: str) -> Optional[Row]:
        for row in self._table("restaurants"):
            if _ref(row, "id") == restaurant_id:
                return dict(row)
        return None

    async def list_restaurants(self) -> list[Row]:
        return [dict(row) for row in self._table("restaurants")]

    async def list_branches(self, restaurant_id: str) -> list[Row]:
        return self._select("branches", ("restaurant_id", "restaurantId"), [restaurant_id])

    async def list_categories(self, restaurant_id: str) -> list[Row]:
        return self._select("categories", ("restaurant_id", "restaurantId"), [restaurant_id])

    async def list_products(
        self,
        restaurant_id: str,
        filters: Optional[ProductFilters] = None,
    ) -> list[Row]:
        rows = self._select("products", ("restaurant_id", "restaurantId"), [restaurant_id])
        filters = filters or ProductFilters()

        if filters.category_id:
            rows = [row for row in rows if _ref(row, "category_id", "categoryId") == filters.category_id]

        search = (filters.search or "").strip().lower()
        if search:
            rows = [
                row for row in rows
                if search in str(row.get("title") or row.get("name") or "").lower()
                or search in str(row.get("description") or "").lower()
            ]
        return rows

    async def list_branch_assignments(self, product_ids: Sequence[str]) -> list[Row]:
        return self._select("branch_products", ("product_id", "productId"), product_ids)

    async def list_tax_assignments(
        self,
        scope: TaxScope,
        ids: Sequence[str],
        product_ids: Optional[Sequence[str]] = None,
    ) -> list[Row]:
        rows = self._select(TAX_TABLES[scope], TAX_OWNER_KEYS[scope], ids)
        if scope is TaxScope.BRANCH_PRODUCT and product_ids is not None:
            wanted = set(product_ids)
            rows = [row for row in rows if _ref(row, "product_id", "productId") in wanted]
        return [row for row in rows if row.get("is_active", True) is not False]

    async def list_option_groups(self, product_ids: Sequence[str]) -> list[Row]:
        definitions = {
            _ref(row, "id"): row for row in self._table("option_groups")
        }
        links = self._select("product_option_groups", ("product_id", "productId"), product_ids)
        joined = []
        for link in links:
            definition = definitions.get(_ref(link, "group_id", "groupId", "option_group_id"), {})
            joined.append({
                "name": definition.get("name"),
                "description": definition.get("description"),
                "selection_type": definition.get("selection_type"),
                "group_min_select": definition.get("min_select"),
                "group_max_select": definition.get("max_select"),
                "group_is_required": definition.get("is_required"),
                "group_is_active": definition.get("is_active"),
                **link,
            })
        return joined

    async def list_option_items(self, group_ids: Sequence[str]) -> list[Row]:
        return self._select("option_items", ("group_id", "groupId", "option_group_id"), group_ids)

    async def list_branch_option_overrides(
        self,
        branch_ids: Sequence[str],
        product_ids: Sequence[str],
    ) -> list[Row]:
        branch_products = {
            _ref(row, "id"): (_ref(row, "branch_id", "branchId"), _ref(row, "product_id", "productId"))
            for row in self._table("branch_products")
        }
        wanted_branches, wanted_products = set(branch_ids), set(product_ids)

        rows = []
        for row in self._table("branch_option_overrides"):
            owner = branch_products.get(_ref(row, "branch_product_id", "branchProductId"), (None, None))
            branch_id = _ref(row, "branch_id", "branchId") or owner[0]
            product_id = _ref(row, "product_id", "productId") or owner[1]
            if branch_id in wanted_branches and (product_id is None or product_id in wanted_products):
                rows.append({**row, "branch_id": branch_id, "product_id": product_id})
        return rows

    async def list_combos(self, restaurant_id: str) -> list[Row]:
        return self._select("combos", ("restaurant_id", "restaurantId"), [restaurant_id])

    async def list_combo_groups(self, combo_ids: Sequence[str]) -> list[Row]:
        return self._select("combo_groups", ("combo_id", "comboId"), combo_ids)

    async def list_combo_group_items(self, group_ids: Sequence[str]) -> list[Row]:
        return self._select("combo_group_items", ("combo_group_id", "comboGroupId"), group_ids)

    async def list_branch_combos(self, branch_ids: Sequence[str]) -> list[Row]:
        return self._select("branch_combos", ("branch_id", "branchId"), branch_ids)

    async def health_check(self) -> bool:
        """Mock health check - always healthy."""
        return True
