"""
Catalog Source Abstract Base Class

Defines the interface contract for the collaborators the catalog
assembler reads from. Both InMemoryCatalogSource and SqlCatalogSource
must implement these methods.

Every method returns flat row mappings (or a single mapping / None) and
performs no joining or filtering beyond what its name states. The
assembler normalizes rows itself, so implementations may return rows in
whatever spelling their storage uses.

Use Cases:
    - Development and tests: rows held in memory or loaded from JSON
    - Staging/production: rows read from PostgreSQL
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Optional

from app.services.catalog.models import TaxScope

Row = Mapping[str, Any]


@dataclass
class ProductFilters:
    """
    Filters applied by the product-fetch collaborator.

    Attributes:
        search: Case-insensitive text matched against title/description
        category_id: Restrict to one category
    """
    search: Optional[str] = None
    category_id: Optional[str] = None


class BaseCatalogSource(ABC):
    """
    Abstract base class for catalog collaborators.

    Example:
        >>> source = get_catalog_source()
        >>> restaurant = await source.get_restaurant("r-1")
        >>> branches = await source.list_branches("r-1")
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """
        Return the name of the source.

        Returns:
            str: Provider name (e.g., "memory", "postgres")
        """
        pass

    @abstractmethod
    async def get_restaurant(self, restaurant_id: str) -> Optional[Row]:
        """Fetch one restaurant row, or None when it does not exist."""
        pass

    @abstractmethod
    async def list_restaurants(self) -> list[Row]:
        """List every restaurant row."""
        pass

    @abstractmethod
    async def list_branches(self, restaurant_id: str) -> list[Row]:
        """List the branches of a restaurant."""
        pass

    @abstractmethod
    async def list_categories(self, restaurant_id: str) -> list[Row]:
        """
        List a restaurant's categories.

        Each row carries a ``branch_assignments`` list of
        ``{branch_id, is_visible, is_active, display_order}``.
        """
        pass

    @abstractmethod
    async def list_products(
        self,
        restaurant_id: str,
        filters: Optional[ProductFilters] = None,
    ) -> list[Row]:
        """List a restaurant's products, applying ``filters``."""
        pass

    @abstractmethod
    async def list_branch_assignments(self, product_ids: Sequence[str]) -> list[Row]:
        """List branch-product assignment rows (with inventory) for products."""
        pass

    @abstractmethod
    async def list_tax_assignments(
        self,
        scope: TaxScope,
        ids: Sequence[str],
        product_ids: Optional[Sequence[str]] = None,
    ) -> list[Row]:
        """
        List active tax assignments of one scope.

        Args:
            scope: Scope to read
            ids: Restaurant ids (restaurant scope), branch ids (branch and
                branch_product scope) or product ids (product scope)
            product_ids: Product ids, for branch_product scope only

        Returns:
            Assignment rows ordered by ascending priority
        """
        pass

    @abstractmethod
    async def list_option_groups(self, product_ids: Sequence[str]) -> list[Row]:
        """List product/option-group link rows joined with group definitions."""
        pass

    @abstractmethod
    async def list_option_items(self, group_ids: Sequence[str]) -> list[Row]:
        """List option items of the given groups."""
        pass

    @abstractmethod
    async def list_branch_option_overrides(
        self,
        branch_ids: Sequence[str],
        product_ids: Sequence[str],
    ) -> list[Row]:
        """List group- and item-level branch option overrides."""
        pass

    @abstractmethod
    async def list_combos(self, restaurant_id: str) -> list[Row]:
        """List a restaurant's combos."""
        pass

    @abstractmethod
    async def list_combo_groups(self, combo_ids: Sequence[str]) -> list[Row]:
        """List the groups of the given combos."""
        pass

    @abstractmethod
    async def list_combo_group_items(self, group_ids: Sequence[str]) -> list[Row]:
        """List the items of the given combo groups."""
        pass

    @abstractmethod
    async def list_branch_combos(self, branch_ids: Sequence[str]) -> list[Row]:
        """List BranchCombo rows of the given branches."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Verify the source is reachable.

        Returns:
            bool: True if the source is operational
        """
        pass
