"""
Catalog Assembler

Orchestrates the catalog resolution engine for one restaurant (or every
restaurant, for the listing view):

    1. Fetch the restaurant; a missing restaurant yields None.
    2. Fetch everything else through the catalog source, in dependency
       phases. Fetches within a phase are independent and issued
       concurrently (fan-out, then join).
    3. Resolve the fetched snapshot: tax, option overrides, combo
       overrides and branch product projection for every branch.

Step 3 is a pure function of the snapshot (``assemble_catalog``):
identical snapshots always produce deep-equal documents.

Output document:
    {
        "restaurant": {...},
        "categories": [...],
        "products": [...],            # restaurant-level, no branch applied
        "combos": [...],              # restaurant-level, with branch_assignments
        "branches": [
            {...branch, "categories": [...], "products": [...], "combos": [...]},
        ],
    }
"""

import asyncio
import logging
from collections import defaultdict
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from app.services.catalog.base import BaseCatalogSource, ProductFilters, Row
from app.services.catalog.combos import (
    build_combos,
    combo_view,
    index_branch_combos,
    resolve_branch_combos,
)
from app.services.catalog.models import (
    GLOBAL_DEFAULT_TAX_RATE,
    Branch,
    BranchProductAssignment,
    Category,
    TaxScope,
    display_key,
    normalise_id,
)
from app.services.catalog.normalize import (
    assignment_from_row,
    branch_from_row,
    category_from_row,
    normalise_rows,
    product_from_row,
    restaurant_from_row,
)
from app.services.catalog.options import build_option_groups
from app.services.catalog.projector import BranchProductProjector
from app.services.catalog.tax import build_tax_resolver

logger = logging.getLogger(__name__)


async def _no_rows() -> list:
    return []


def _ids(rows: list[Row], *keys: str) -> list[str]:
    """Distinct, normalised ids from ``rows`` in first-seen order."""
    seen: dict[str, None] = {}
    for row in rows:
        if not isinstance(row, Mapping):
            continue
        for key in keys:
            value = normalise_id(row.get(key))
            if value is not None:
                seen.setdefault(value, None)
                break
    return list(seen)


@dataclass
class CatalogSnapshot:
    """
    Every row the engine needs for one restaurant, as fetched.

    Attributes mirror the catalog source methods that produced them.
    """
    restaurant: Row
    branches: list[Row] = field(default_factory=list)
    categories: list[Row] = field(default_factory=list)
    products: list[Row] = field(default_factory=list)
    branch_assignments: list[Row] = field(default_factory=list)
    restaurant_taxes: list[Row] = field(default_factory=list)
    branch_taxes: list[Row] = field(default_factory=list)
    branch_product_taxes: list[Row] = field(default_factory=list)
    option_groups: list[Row] = field(default_factory=list)
    option_items: list[Row] = field(default_factory=list)
    option_overrides: list[Row] = field(default_factory=list)
    combos: list[Row] = field(default_factory=list)
    combo_groups: list[Row] = field(default_factory=list)
    combo_group_items: list[Row] = field(default_factory=list)
    branch_combos: list[Row] = field(default_factory=list)


# =============================================================================
# PURE ASSEMBLY
# =============================================================================

def _category_view(category: Category, branch_id: Optional[str]) -> dict[str, Any]:
    assignments = [
        a for a in category.branch_assignments
        if branch_id is None or (a.branch_id == branch_id and a.is_active and a.is_visible)
    ]
    return {
        **category.data,
        "id": category.id,
        "restaurant_id": category.restaurant_id,
        "name": category.name,
        "description": category.description,
        "is_active": category.is_active,
        "branch_assignments": [
            {
                "branch_id": a.branch_id,
                "is_visible": a.is_visible,
                "is_active": a.is_active,
                "display_order": a.display_order,
            }
            for a in assignments
        ],
    }


def _branch_categories(categories: list[Category], branch: Branch) -> list[dict[str, Any]]:
    entries = [
        {
            "category_id": category.id,
            "name": category.name,
            "is_visible": assignment.is_visible,
            "is_active": assignment.is_active,
            "display_order": assignment.display_order,
        }
        for category in categories
        for assignment in category.branch_assignments
        if assignment.branch_id == branch.id
    ]
    return sorted(entries, key=lambda entry: display_key(entry["display_order"]))


def assemble_catalog(
    snapshot: CatalogSnapshot,
    branch_id: Optional[str] = None,
    as_of: Optional[datetime] = None,
    default_tax_rate: float = GLOBAL_DEFAULT_TAX_RATE,
    restore_empty_option_groups: bool = True,
) -> Optional[dict[str, Any]]:
    """
    Resolve a fetched snapshot into the catalog document.

    Args:
        snapshot: Rows fetched for one restaurant
        branch_id: Only include this branch (and categories listed on it)
        as_of: Reference time for tax active windows
        default_tax_rate: Global fallback tax rate
        restore_empty_option_groups: See app.services.catalog.options

    Returns:
        The catalog document, or None when the restaurant row is unusable
    """
    restaurant = restaurant_from_row(snapshot.restaurant) if snapshot.restaurant else None
    if restaurant is None:
        return None

    branches = normalise_rows(snapshot.branches, branch_from_row)
    categories = normalise_rows(snapshot.categories, category_from_row)
    products = normalise_rows(snapshot.products, product_from_row)

    branch_ids = {branch.id for branch in branches}
    product_ids = {product.id for product in products}

    assignment_index: dict[tuple[str, str], BranchProductAssignment] = {}
    assignments_by_product: dict[str, list[BranchProductAssignment]] = defaultdict(list)
    for assignment in normalise_rows(snapshot.branch_assignments, assignment_from_row):
        if assignment.branch_id not in branch_ids or assignment.product_id not in product_ids:
            continue
        key = (assignment.branch_id, assignment.product_id)
        if key in assignment_index:
            continue
        assignment_index[key] = assignment
        assignments_by_product[assignment.product_id].append(assignment)

    tax_resolver = build_tax_resolver(
        snapshot.restaurant_taxes,
        snapshot.branch_taxes,
        snapshot.branch_product_taxes,
        as_of=as_of,
        default_rate=default_tax_rate,
    )
    projector = BranchProductProjector(
        tax_resolver,
        build_option_groups(snapshot.option_groups, snapshot.option_items, snapshot.option_overrides),
        restore_empty_groups=restore_empty_option_groups,
    )

    combos = build_combos(snapshot.combos, snapshot.combo_groups, snapshot.combo_group_items)
    combos_by_id = {combo.id: combo for combo in combos}
    branch_combos = {
        key: entries
        for key, entries in index_branch_combos(snapshot.branch_combos, combos_by_id).items()
        if key in branch_ids
    }
    all_branch_combos = [entry for branch in branches for entry in branch_combos.get(branch.id, ())]

    branch_views = []
    for branch in branches:
        if branch_id and branch.id != branch_id:
            continue
        branch_products = [
            projector.project(product, assignment_index.get((branch.id, product.id)), branch.id)
            for product in products
        ]
        branch_products.sort(key=lambda entry: display_key(entry["display_order"]))
        branch_views.append({
            **branch.data,
            "id": branch.id,
            "restaurant_id": branch.restaurant_id,
            "categories": _branch_categories(categories, branch),
            "products": branch_products,
            "combos": resolve_branch_combos(
                combos_by_id, branch_combos.get(branch.id), branch.id, tax_resolver
            ),
        })

    listed_categories = [
        category for category in categories
        if not branch_id or category.is_listed_on(branch_id)
    ]

    return {
        "restaurant": dict(restaurant.data),
        "categories": [_category_view(category, branch_id) for category in listed_categories],
        "products": [
            projector.base_view(product, assignments_by_product.get(product.id, ()))
            for product in products
        ],
        "combos": [combo_view(combo, all_branch_combos, tax_resolver) for combo in combos],
        "branches": branch_views,
    }


# =============================================================================
# ASSEMBLER
# =============================================================================

class CatalogAssembler:
    """
    Fetch and resolve restaurant catalogs.

    Attributes:
        source: Catalog collaborator the rows are read from
        default_tax_rate: Global fallback tax rate
        restore_empty_option_groups: See app.services.catalog.options

    Example:
        >>> assembler = CatalogAssembler(get_catalog_source())
        >>> catalog = await assembler.get_restaurant_catalog("r-1", branch_id="b-1")
        >>> catalog["branches"][0]["products"][0]["price_with_tax"]
        107000.0
    """

    def __init__(
        self,
        source: BaseCatalogSource,
        default_tax_rate: float = GLOBAL_DEFAULT_TAX_RATE,
        restore_empty_option_groups: bool = True,
    ):
        self.source = source
        self.default_tax_rate = default_tax_rate
        self.restore_empty_option_groups = restore_empty_option_groups

    async def cache_status(self) -> str:
        return "disabled"

    async def fetch_snapshot(
        self,
        restaurant_id: Optional[str],
        filters: Optional[ProductFilters] = None,
    ) -> Optional[CatalogSnapshot]:
        """
        Read every row needed for one restaurant.

        Returns:
            CatalogSnapshot, or None when the id is invalid or the
            restaurant does not exist
        """
        resolved_id = normalise_id(restaurant_id)
        if resolved_id is None:
            return None

        restaurant = await self.source.get_restaurant(resolved_id)
        if not restaurant:
            return None

        source = self.source
        branches, categories, products, restaurant_taxes, combos = await asyncio.gather(
            source.list_branches(resolved_id),
            source.list_categories(resolved_id),
            source.list_products(resolved_id, filters or ProductFilters()),
            source.list_tax_assignments(TaxScope.RESTAURANT, [resolved_id]),
            source.list_combos(resolved_id),
        )

        branch_ids = _ids(branches, "id", "branch_id")
        product_ids = _ids(products, "id", "product_id")
        combo_ids = _ids(combos, "id", "combo_id")

        (
            branch_taxes,
            branch_product_taxes,
            branch_assignments,
            option_groups,
            option_overrides,
            branch_combos,
            combo_groups,
        ) = await asyncio.gather(
            source.list_tax_assignments(TaxScope.BRANCH, branch_ids) if branch_ids else _no_rows(),
            (
                source.list_tax_assignments(TaxScope.BRANCH_PRODUCT, branch_ids, product_ids)
                if branch_ids and product_ids else _no_rows()
            ),
            source.list_branch_assignments(product_ids) if product_ids else _no_rows(),
            source.list_option_groups(product_ids) if product_ids else _no_rows(),
            (
                source.list_branch_option_overrides(branch_ids, product_ids)
                if branch_ids and product_ids else _no_rows()
            ),
            source.list_branch_combos(branch_ids) if branch_ids and combo_ids else _no_rows(),
            source.list_combo_groups(combo_ids) if combo_ids else _no_rows(),
        )

        option_group_ids = _ids(option_groups, "group_id", "groupId", "option_group_id")
        combo_group_ids = _ids(combo_groups, "id")

        option_items, combo_group_items = await asyncio.gather(
            source.list_option_items(option_group_ids) if option_group_ids else _no_rows(),
            source.list_combo_group_items(combo_group_ids) if combo_group_ids else _no_rows(),
        )

        return CatalogSnapshot(
            restaurant=restaurant,
            branches=list(branches),
            categories=list(categories),
            products=list(products),
            branch_assignments=list(branch_assignments),
            restaurant_taxes=list(restaurant_taxes),
            branch_taxes=list(branch_taxes),
            branch_product_taxes=list(branch_product_taxes),
            option_groups=list(option_groups),
            option_items=list(option_items),
            option_overrides=list(option_overrides),
            combos=list(combos),
            combo_groups=list(combo_groups),
            combo_group_items=list(combo_group_items),
            branch_combos=list(branch_combos),
        )

    async def get_restaurant_catalog(
        self,
        restaurant_id: Optional[str],
        branch_id: Optional[str] = None,
        search: Optional[str] = None,
        category_id: Optional[str] = None,
        as_of: Optional[datetime] = None,
        version: Optional[str] = None,
    ) -> Optional[dict[str, Any]]:
        """
        Build the catalog document of one restaurant.

        Args:
            restaurant_id: Restaurant to resolve
            branch_id: Only include this branch
            search: Product text filter (applied by the source)
            category_id: Product category filter (applied by the source)
            as_of: Reference time for tax active windows
            version: Catalog version; only meaningful to a caching wrapper

        Returns:
            The catalog document, or None when the restaurant is not found
        """
        filters = ProductFilters(search=search, category_id=normalise_id(category_id))
        snapshot = await self.fetch_snapshot(restaurant_id, filters)
        if snapshot is None:
            logger.info(f"Catalog requested for unknown restaurant: {restaurant_id!r}")
            return None

        catalog = assemble_catalog(
            snapshot,
            branch_id=normalise_id(branch_id),
            as_of=as_of,
            default_tax_rate=self.default_tax_rate,
            restore_empty_option_groups=self.restore_empty_option_groups,
        )
        if catalog is not None:
            logger.info(
                f"Catalog assembled for restaurant {restaurant_id}: "
                f"{len(catalog['branches'])} branch(es), "
                f"{len(catalog['products'])} product(s), "
                f"{len(catalog['combos'])} combo(s)"
            )
        return catalog

    async def list_restaurant_catalog(
        self,
        branch_id: Optional[str] = None,
        search: Optional[str] = None,
        category_id: Optional[str] = None,
        as_of: Optional[datetime] = None,
    ) -> dict[str, Any]:
        """
        Build the catalog of every restaurant concurrently.

        Returns:
            {"restaurants": [catalog, ...], "products": [product, ...]}
        """
        rows = await self.source.list_restaurants()
        restaurant_ids = _ids(rows, "id", "restaurant_id")
        if not restaurant_ids:
            return {"restaurants": [], "products": []}

        catalogs = await asyncio.gather(*(
            self.get_restaurant_catalog(
                restaurant_id,
                branch_id=branch_id,
                search=search,
                category_id=category_id,
                as_of=as_of,
            )
            for restaurant_id in restaurant_ids
        ))
        valid = [catalog for catalog in catalogs if catalog is not None]
        return {
            "restaurants": valid,
            "products": [product for catalog in valid for product in catalog["products"]],
        }


__all__ = [
    "CatalogAssembler",
    "CatalogSnapshot",
    "assemble_catalog",
]
