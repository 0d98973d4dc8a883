"""
Option Override Resolution

Merges a product's option groups and items with branch-scoped and
branch-product-scoped overrides into the option menu a branch shows.

Override selection (groups and items alike):
    1. An override keyed by the branch product being projected.
    2. Otherwise an override keyed by the branch.

Group rules:
    - Inactive at base level, or inactive per the applied override:
      the group is dropped.
    - min/max/required/display order: override value if set, else the
      product link's value, else the group definition's value, else
      min_select=0, max_select=None, is_required=False.

Item rules:
    - Override marks the item unavailable, invisible or inactive:
      the item is dropped.
    - Effective price delta: the override's delta when set, else the
      item's base delta. A null override delta reverts to base.

When every item of a group is filtered out but the group had items, the
group is emitted with its unmodified base items (``restore_empty_groups``).
"""

import logging
from collections import defaultdict
from collections.abc import Iterable, Sequence
from typing import Any, Optional

from app.services.catalog.models import (
    BranchOptionOverride,
    OptionGroup,
    OptionItem,
    OverrideTarget,
    display_key,
)
from app.services.catalog.normalize import (
    normalise_rows,
    option_group_from_row,
    option_item_from_row,
    option_override_from_row,
)

logger = logging.getLogger(__name__)


def _first_set(*values):
    return next((value for value in values if value is not None), None)


# =============================================================================
# BUILDING CANONICAL GROUPS FROM FLAT ROWS
# =============================================================================

def build_option_groups(
    link_rows: Optional[Iterable[Any]],
    item_rows: Optional[Iterable[Any]] = None,
    override_rows: Optional[Iterable[Any]] = None,
) -> dict[str, list[OptionGroup]]:
    """
    Assemble option groups per product from flat collaborator rows.

    Args:
        link_rows: Product/option-group link rows joined with group definitions
        item_rows: Option item rows (carry ``group_id``)
        override_rows: Branch option override rows, group- and item-level

    Returns:
        Mapping of product id to its option groups in display order.
        Overrides that point at unknown groups or items are ignored.
    """
    links: dict[tuple[str, str], OptionGroup] = {}
    for group in normalise_rows(link_rows, option_group_from_row):
        links.setdefault((group.product_id, group.id), group)

    items_by_group: dict[str, list[OptionItem]] = defaultdict(list)
    seen_items: set[tuple[str, str]] = set()
    for item in normalise_rows(item_rows, option_item_from_row):
        if (item.group_id, item.id) in seen_items:
            continue
        seen_items.add((item.group_id, item.id))
        items_by_group[item.group_id].append(item)

    group_overrides: dict[str, list[BranchOptionOverride]] = defaultdict(list)
    item_overrides: dict[str, list[BranchOptionOverride]] = defaultdict(list)
    for override in normalise_rows(override_rows, option_override_from_row):
        if override.target is OverrideTarget.GROUP:
            group_overrides[override.target_id].append(override)
        else:
            item_overrides[override.target_id].append(override)

    def for_product(overrides: Sequence[BranchOptionOverride], product_id: str):
        return tuple(o for o in overrides if o.product_id in (None, product_id))

    known_groups = {group_id for _, group_id in links}
    known_items = {item_id for _, item_id in seen_items}
    orphaned = sum(
        len(overrides) for key, overrides in group_overrides.items()
        if key not in known_groups
    ) + sum(
        len(overrides) for key, overrides in item_overrides.items()
        if key not in known_items
    )
    if orphaned:
        logger.debug(f"Ignoring {orphaned} option override(s) with no matching group or item")

    groups_by_product: dict[str, list[OptionGroup]] = defaultdict(list)
    for (product_id, group_id), link in links.items():
        items = tuple(
            item.model_copy(
                update={"overrides": for_product(item_overrides.get(item.id, ()), product_id)}
            )
            for item in sorted(
                items_by_group.get(group_id, ()),
                key=lambda item: display_key(item.display_order),
            )
        )
        groups_by_product[product_id].append(
            link.model_copy(update={
                "items": items,
                "overrides": for_product(group_overrides.get(group_id, ()), product_id),
            })
        )

    return {
        product_id: sorted(groups, key=lambda group: display_key(group.display_order))
        for product_id, groups in groups_by_product.items()
    }


# =============================================================================
# APPLYING BRANCH OVERRIDES
# =============================================================================

def select_override(
    overrides: Sequence[BranchOptionOverride],
    branch_id: Optional[str],
    branch_product_id: Optional[str],
) -> Optional[BranchOptionOverride]:
    """Pick the override keyed by the branch product, else the one keyed by the branch."""
    if branch_product_id:
        for override in overrides:
            if override.branch_product_id == branch_product_id:
                return override
    if branch_id:
        for override in overrides:
            if override.branch_id == branch_id:
                return override
    return None


def _hides_item(override: Optional[BranchOptionOverride]) -> bool:
    if override is None:
        return False
    return (
        override.is_available is False
        or override.is_visible is False
        or override.is_active is False
    )


def _item_view(item: OptionItem, override: Optional[BranchOptionOverride]) -> dict[str, Any]:
    override_delta = override.price_delta_override if override is not None else None
    effective = item.price_delta if override_delta is None else override_delta
    applied = None
    if override is not None:
        applied = {
            "branch_id": override.branch_id,
            "branch_product_id": override.branch_product_id,
            "price_delta": override_delta,
            "is_available": _first_set(override.is_available, override.is_active, True),
            "is_visible": _first_set(override.is_visible, override.is_active, True),
        }
    return {
        "id": item.id,
        "group_id": item.group_id,
        "name": item.name,
        "description": item.description,
        "display_order": item.display_order,
        "base_price_delta": item.price_delta,
        "price_delta": effective,
        "effective_price_delta": effective,
        "applied_branch_override": applied,
    }


def _group_override_view(override: BranchOptionOverride) -> dict[str, Any]:
    return {
        "branch_id": override.branch_id,
        "branch_product_id": override.branch_product_id,
        "min_select": override.min_select,
        "max_select": override.max_select,
        "is_required": override.is_required,
        "display_order": override.display_order,
        "is_active": override.is_active is not False,
    }


def apply_overrides(
    groups: Optional[Sequence[OptionGroup]],
    branch_id: Optional[str] = None,
    branch_product_id: Optional[str] = None,
    restore_empty_groups: bool = True,
) -> list[dict[str, Any]]:
    """
    Resolve the option menu of one product for one branch.

    Args:
        groups: The product's option groups (canonical, in display order)
        branch_id: Branch being projected, or None for the base view
        branch_product_id: Branch product being projected, if any
        restore_empty_groups: Re-inflate groups whose items were all hidden

    Returns:
        List of JSON-ready group dicts; never None.
    """
    if not groups:
        return []

    resolved = []
    for group in groups:
        if _first_set(group.is_active, group.group_is_active, True) is False:
            continue

        group_override = select_override(group.overrides, branch_id, branch_product_id)
        if group_override is not None and group_override.is_active is False:
            continue

        items = []
        for item in group.items:
            override = select_override(item.overrides, branch_id, branch_product_id)
            if _hides_item(override):
                continue
            items.append(_item_view(item, override))

        if not items and group.items and restore_empty_groups:
            logger.debug(
                f"Option group {group.id} of product {group.product_id} lost every item "
                f"on branch {branch_id}; restoring base items"
            )
            items = [_item_view(item, None) for item in group.items]

        override_min = group_override.min_select if group_override else None
        override_max = group_override.max_select if group_override else None
        override_required = group_override.is_required if group_override else None
        override_order = group_override.display_order if group_override else None

        resolved.append({
            "id": group.id,
            "product_id": group.product_id,
            "name": group.name,
            "description": group.description,
            "selection_type": group.selection_type,
            "min_select": _first_set(override_min, group.min_select, group.group_min_select, 0),
            "max_select": _first_set(override_max, group.max_select, group.group_max_select),
            "is_required": _first_set(
                override_required, group.is_required, group.group_is_required, False
            ),
            "display_order": _first_set(override_order, group.display_order),
            "is_active": True,
            "branch_id": branch_id,
            "branch_product_id": branch_product_id,
            "items": items,
            "applied_branch_override": (
                _group_override_view(group_override) if group_override else None
            ),
        })

    return sorted(resolved, key=lambda group: display_key(group["display_order"]))
