"""
Branch Product Projection

Combines a base product, the branch's assignment record (if any), the
resolved tax rate and the branch's option menu into one branch product
view.

With an assignment:
    - base price: the override price when price_mode is "override" and an
      override is set, else the product's base price
    - available / is_visible: the product's flag AND the assignment's flag
    - inventory counters carried verbatim
Without one:
    - the product is inherited unmodified (price_mode "inherit") and a
      synthetic assignment with a null id is emitted so every entry has
      the same shape
"""

from collections.abc import Mapping, Sequence
from typing import Any, Optional

from app.services.catalog.models import (
    BranchProductAssignment,
    OptionGroup,
    PriceMode,
    Product,
)
from app.services.catalog.options import apply_overrides
from app.services.catalog.tax import TaxResolver, price_with_tax


def assignment_view(assignment: BranchProductAssignment) -> dict[str, Any]:
    inventory = assignment.inventory
    return {
        "id": assignment.id,
        "branch_id": assignment.branch_id,
        "product_id": assignment.product_id,
        "is_available": assignment.is_available,
        "is_visible": assignment.is_visible,
        "is_featured": assignment.is_featured,
        "display_order": assignment.display_order,
        "price_mode": assignment.price_mode.value,
        "base_price_override": assignment.base_price_override,
        "local_name": assignment.local_name,
        "local_description": assignment.local_description,
        "available_from": assignment.available_from,
        "available_until": assignment.available_until,
        "dayparts": assignment.dayparts,
        "created_at": assignment.created_at,
        "updated_at": assignment.updated_at,
        "quantity": inventory.quantity,
        "reserved_qty": inventory.reserved_qty,
        "min_stock": inventory.min_stock,
        "daily_limit": inventory.daily_limit,
        "daily_sold": inventory.daily_sold,
    }


def inherited_assignment(product: Product, branch_id: str) -> BranchProductAssignment:
    """Synthetic assignment for a product the branch has no record for."""
    return BranchProductAssignment(
        id=None,
        branch_id=branch_id,
        product_id=product.id,
        price_mode=PriceMode.INHERIT,
        is_available=product.available,
        is_visible=product.is_visible,
    )


class BranchProductProjector:
    """
    Project restaurant products into branch views.

    Attributes:
        tax_resolver: Resolver for the restaurant's tax assignments
        option_groups: Canonical option groups keyed by product id
        restore_empty_groups: Passed through to option resolution
    """

    def __init__(
        self,
        tax_resolver: TaxResolver,
        option_groups: Optional[Mapping[str, Sequence[OptionGroup]]] = None,
        restore_empty_groups: bool = True,
    ):
        self.tax_resolver = tax_resolver
        self.option_groups = option_groups or {}
        self.restore_empty_groups = restore_empty_groups

    def _options(
        self,
        product_id: str,
        branch_id: Optional[str],
        branch_product_id: Optional[str],
    ) -> list[dict[str, Any]]:
        return apply_overrides(
            self.option_groups.get(product_id, ()),
            branch_id=branch_id,
            branch_product_id=branch_product_id,
            restore_empty_groups=self.restore_empty_groups,
        )

    def project(
        self,
        product: Product,
        assignment: Optional[BranchProductAssignment],
        branch_id: str,
    ) -> dict[str, Any]:
        """
        Build the branch product view for one (branch, product) pair.

        Args:
            product: Base product
            assignment: The branch's assignment record, or None to inherit
            branch_id: Branch being projected

        Returns:
            JSON-ready branch product dict
        """
        if assignment is None:
            record = inherited_assignment(product, branch_id)
            base_price = product.base_price
            available = product.available
            visible = product.is_visible
            inventory_source = None
        else:
            record = assignment
            if assignment.price_mode is PriceMode.OVERRIDE and assignment.base_price_override is not None:
                base_price = assignment.base_price_override
            else:
                base_price = product.base_price
            available = product.available and assignment.is_available is not False
            visible = product.is_visible and assignment.is_visible is not False
            inventory_source = assignment.inventory

        rate = self.tax_resolver.resolve(branch_id, product.id)

        return {
            "id": product.id,
            "restaurant_id": product.restaurant_id,
            "title": product.title,
            "description": product.description,
            "images": list(product.images),
            "type": product.type,
            "category_id": product.category_id,
            "category": product.category,
            "base_price": base_price,
            "price_mode": record.price_mode.value,
            "base_price_override": record.base_price_override,
            "price_with_tax": price_with_tax(base_price, rate),
            "tax_rate": rate,
            "popular": product.popular,
            "available": available,
            "is_visible": visible,
            "branch_product_id": record.id,
            "display_order": record.display_order,
            "is_featured": record.is_featured,
            "inventory_summary": {
                "branch_id": branch_id,
                "quantity": inventory_source.quantity if inventory_source else None,
                "reserved_qty": inventory_source.reserved_qty if inventory_source else None,
                "daily_limit": inventory_source.daily_limit if inventory_source else None,
            },
            "options": self._options(product.id, branch_id, record.id),
            "branch_assignment": assignment_view(record),
        }

    def base_view(
        self,
        product: Product,
        assignments: Sequence[BranchProductAssignment] = (),
    ) -> dict[str, Any]:
        """Restaurant-level product entry, resolved with no branch."""
        rate = self.tax_resolver.resolve(None, product.id)
        return {
            "id": product.id,
            "restaurant_id": product.restaurant_id,
            "title": product.title,
            "description": product.description,
            "images": list(product.images),
            "type": product.type,
            "category_id": product.category_id,
            "category": product.category,
            "base_price": product.base_price,
            "price_with_tax": price_with_tax(product.base_price, rate),
            "tax_rate": rate,
            "popular": product.popular,
            "available": product.available,
            "is_visible": product.is_visible,
            "is_active": product.available and product.is_visible,
            "created_at": product.created_at,
            "updated_at": product.updated_at,
            "options": self._options(product.id, None, None),
            "branch_assignments": [assignment_view(a) for a in assignments],
        }
