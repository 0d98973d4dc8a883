"""
SQL Catalog Source

Reads catalog rows from PostgreSQL through the SQLAlchemy async engine.
Used in staging and production (ENV_MODE=staging / production).

Every method opens its own AsyncSession, so the assembler can issue the
fetches of one phase concurrently without sharing a connection.

Rows are returned as plain dicts: datetimes as ISO-8601 strings and
Decimals as floats, ready for JSON encoding.
"""

import logging
from collections.abc import Sequence
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.models import (
    Branch,
    BranchCategory,
    BranchCombo,
    BranchOptionOverride,
    BranchProduct,
    BranchProductTaxOverride,
    BranchTaxAssignment,
    Category,
    Combo,
    ComboGroup,
    ComboGroupItem,
    OptionGroup,
    OptionItem,
    Product,
    ProductOptionGroup,
    ProductTaxOverride,
    Restaurant,
    RestaurantTaxAssignment,
    TaxTemplate,
)
from app.services.catalog.base import BaseCatalogSource, ProductFilters, Row
from app.services.catalog.models import TaxScope

logger = logging.getLogger(__name__)

TAX_MODELS = {
    TaxScope.RESTAURANT: (RestaurantTaxAssignment, "restaurant_id"),
    TaxScope.BRANCH: (BranchTaxAssignment, "branch_id"),
    TaxScope.PRODUCT: (ProductTaxOverride, "product_id"),
    TaxScope.BRANCH_PRODUCT: (BranchProductTaxOverride, "branch_id"),
}


def _plain(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def _row_to_dict(instance: Any) -> dict[str, Any]:
    """Convert a mapped instance into a JSON-ready dict of its columns."""
    return {
        column.key: _plain(getattr(instance, column.key))
        for column in instance.__table__.columns
    }


class SqlCatalogSource(BaseCatalogSource):
    """
    PostgreSQL implementation of the catalog source.

    Attributes:
        session_factory: async_sessionmaker producing AsyncSession objects
    """

    def __init__(self, session_factory: Optional[async_sessionmaker] = None):
        if session_factory is None:
            from app.database import async_session_maker
            session_factory = async_session_maker
        self.session_factory = session_factory
        logger.info("SqlCatalogSource initialized")

    @property
    def provider_name(self) -> str:
        return "postgres"

    async def _all(self, statement) -> list[dict[str, Any]]:
        async with self.session_factory() as session:
            result = await session.execute(statement)
            return [_row_to_dict(instance) for instance in result.scalars().all()]

    # =========================================================================
    # RESTAURANTS, BRANCHES, CATEGORIES
    # =========================================================================

    async def get_restaurant(self, restaurant_id: str) -> Optional[Row]:
        async with self.session_factory() as session:
            restaurant = await session.get(Restaurant, restaurant_id)
            return _row_to_dict(restaurant) if restaurant is not None else None

    async def list_restaurants(self) -> list[Row]:
        return await self._all(select(Restaurant).order_by(Restaurant.created_at))

    async def list_branches(self, restaurant_id: str) -> list[Row]:
        return await self._all(
            select(Branch)
            .where(Branch.restaurant_id == restaurant_id)
            .order_by(Branch.created_at)
        )

    async def list_categories(self, restaurant_id: str) -> list[Row]:
        async with self.session_factory() as session:
            categories = (await session.execute(
                select(Category)
                .where(Category.restaurant_id == restaurant_id)
                .order_by(Category.name)
            )).scalars().all()
            if not categories:
                return []

            links = (await session.execute(
                select(BranchCategory).where(
                    BranchCategory.category_id.in_([category.id for category in categories])
                )
            )).scalars().all()

        by_category: dict[str, list[dict[str, Any]]] = {}
        for link in links:
            by_category.setdefault(link.category_id, []).append({
                "branch_id": link.branch_id,
                "is_visible": link.is_visible,
                "is_active": link.is_active,
                "display_order": link.display_order,
            })

        return [
            {**_row_to_dict(category), "branch_assignments": by_category.get(category.id, [])}
            for category in categories
        ]

    # =========================================================================
    # PRODUCTS
    # =========================================================================

    async def list_products(
        self,
        restaurant_id: str,
        filters: Optional[ProductFilters] = None,
    ) -> list[Row]:
        filters = filters or ProductFilters()
        statement = (
            select(Product, Category.name)
            .outerjoin(Category, Product.category_id == Category.id)
            .where(Product.restaurant_id == restaurant_id)
            .order_by(Product.created_at)
        )
        if filters.category_id:
            statement = statement.where(Product.category_id == filters.category_id)
        search = (filters.search or "").strip()
        if search:
            pattern = f"%{search}%"
            statement = statement.where(
                or_(Product.title.ilike(pattern), Product.description.ilike(pattern))
            )

        async with self.session_factory() as session:
            result = await session.execute(statement)
            return [
                {**_row_to_dict(product), "category": category_name}
                for product, category_name in result.all()
            ]

    async def list_branch_assignments(self, product_ids: Sequence[str]) -> list[Row]:
        return await self._all(
            select(BranchProduct).where(BranchProduct.product_id.in_(list(product_ids)))
        )

    # =========================================================================
    # TAXES
    # =========================================================================

    async def list_tax_assignments(
        self,
        scope: TaxScope,
        ids: Sequence[str],
        product_ids: Optional[Sequence[str]] = None,
    ) -> list[Row]:
        model, owner_column = TAX_MODELS[scope]
        statement = (
            select(model, TaxTemplate.rate_percent)
            .join(TaxTemplate, model.tax_template_id == TaxTemplate.id)
            .where(
                getattr(model, owner_column).in_(list(ids)),
                model.is_active.is_(True),
                TaxTemplate.is_active.is_(True),
            )
            .order_by(model.priority.asc().nulls_last())
        )
        if scope is TaxScope.BRANCH_PRODUCT and product_ids is not None:
            statement = statement.where(model.product_id.in_(list(product_ids)))

        async with self.session_factory() as session:
            result = await session.execute(statement)
            return [
                {**_row_to_dict(assignment), "rate_percent": _plain(rate)}
                for assignment, rate in result.all()
            ]

    # =========================================================================
    # OPTIONS
    # =========================================================================

    async def list_option_groups(self, product_ids: Sequence[str]) -> list[Row]:
        statement = (
            select(ProductOptionGroup, OptionGroup)
            .join(OptionGroup, ProductOptionGroup.group_id == OptionGroup.id)
            .where(ProductOptionGroup.product_id.in_(list(product_ids)))
        )
        async with self.session_factory() as session:
            result = await session.execute(statement)
            return [
                {
                    **_row_to_dict(link),
                    "name": group.name,
                    "description": group.description,
                    "selection_type": group.selection_type,
                    "group_min_select": group.min_select,
                    "group_max_select": group.max_select,
                    "group_is_required": group.is_required,
                    "group_is_active": group.is_active,
                }
                for link, group in result.all()
            ]

    async def list_option_items(self, group_ids: Sequence[str]) -> list[Row]:
        return await self._all(
            select(OptionItem).where(OptionItem.group_id.in_(list(group_ids)))
        )

    async def list_branch_option_overrides(
        self,
        branch_ids: Sequence[str],
        product_ids: Sequence[str],
    ) -> list[Row]:
        branch_id = func.coalesce(BranchOptionOverride.branch_id, BranchProduct.branch_id)
        product_id = func.coalesce(BranchOptionOverride.product_id, BranchProduct.product_id)
        statement = (
            select(BranchOptionOverride, branch_id, product_id)
            .outerjoin(BranchProduct, BranchOptionOverride.branch_product_id == BranchProduct.id)
            .where(
                branch_id.in_(list(branch_ids)),
                or_(product_id.is_(None), product_id.in_(list(product_ids))),
            )
        )
        async with self.session_factory() as session:
            result = await session.execute(statement)
            return [
                {**_row_to_dict(override), "branch_id": resolved_branch, "product_id": resolved_product}
                for override, resolved_branch, resolved_product in result.all()
            ]

    # =========================================================================
    # COMBOS
    # =========================================================================

    async def list_combos(self, restaurant_id: str) -> list[Row]:
        return await self._all(select(Combo).where(Combo.restaurant_id == restaurant_id))

    async def list_combo_groups(self, combo_ids: Sequence[str]) -> list[Row]:
        return await self._all(select(ComboGroup).where(ComboGroup.combo_id.in_(list(combo_ids))))

    async def list_combo_group_items(self, group_ids: Sequence[str]) -> list[Row]:
        return await self._all(
            select(ComboGroupItem).where(ComboGroupItem.combo_group_id.in_(list(group_ids)))
        )

    async def list_branch_combos(self, branch_ids: Sequence[str]) -> list[Row]:
        return await self._all(select(BranchCombo).where(BranchCombo.branch_id.in_(list(branch_ids))))

    async def health_check(self) -> bool:
        """Run a trivial query against the database."""
        try:
            async with self.session_factory() as session:
                await session.execute(select(func.now()))
            return True
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return False
