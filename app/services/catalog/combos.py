"""
Combo Override Resolution

Builds combo definitions (groups and group items) and resolves the combos a
branch offers. Unlike products, combos are opt-in: a combo appears on a
branch only when the branch has a BranchCombo row for it.

Effective branch price:
    base_price_override when set, else the combo's own base_price.
Tax:
    Resolved through the TaxResolver with the combo id in place of a
    product id.
"""

import logging
from collections import defaultdict
from collections.abc import Iterable, Mapping, Sequence
from typing import Any, Optional

from app.services.catalog.models import BranchCombo, Combo, ComboGroup, ComboGroupItem, display_key
from app.services.catalog.normalize import (
    branch_combo_from_row,
    combo_from_row,
    combo_group_from_row,
    combo_group_item_from_row,
    normalise_rows,
)
from app.services.catalog.tax import TaxResolver, price_with_tax

logger = logging.getLogger(__name__)


def build_combos(
    combo_rows: Optional[Iterable[Any]],
    group_rows: Optional[Iterable[Any]] = None,
    item_rows: Optional[Iterable[Any]] = None,
) -> list[Combo]:
    """Attach groups and group items to each combo, keeping combo input order."""
    items_by_group: dict[str, list[ComboGroupItem]] = defaultdict(list)
    for item in normalise_rows(item_rows, combo_group_item_from_row):
        items_by_group[item.combo_group_id].append(item)

    groups_by_combo: dict[str, list[ComboGroup]] = defaultdict(list)
    for group in normalise_rows(group_rows, combo_group_from_row):
        groups_by_combo[group.combo_id].append(
            group.model_copy(update={"items": tuple(items_by_group.get(group.id, ()))})
        )

    combos = []
    seen: set[str] = set()
    for combo in normalise_rows(combo_rows, combo_from_row):
        if combo.id in seen:
            continue
        seen.add(combo.id)
        groups = sorted(
            groups_by_combo.get(combo.id, ()),
            key=lambda group: display_key(group.display_order),
        )
        combos.append(combo.model_copy(update={"groups": tuple(groups)}))
    return combos


def index_branch_combos(
    rows: Optional[Iterable[Any]],
    combo_ids: Iterable[str],
) -> dict[str, list[BranchCombo]]:
    """
    Group BranchCombo rows by branch, in display order.

    Rows that point at a combo this restaurant does not offer are orphaned
    and dropped.
    """
    known = set(combo_ids)
    by_branch: dict[str, list[BranchCombo]] = defaultdict(list)
    orphaned = 0
    for branch_combo in normalise_rows(rows, branch_combo_from_row):
        if branch_combo.combo_id not in known:
            orphaned += 1
            continue
        by_branch[branch_combo.branch_id].append(branch_combo)
    if orphaned:
        logger.debug(f"Ignoring {orphaned} branch combo row(s) for unknown combos")
    return {
        branch_id: sorted(entries, key=lambda entry: display_key(entry.display_order))
        for branch_id, entries in by_branch.items()
    }


def _group_view(group: ComboGroup) -> dict[str, Any]:
    return {
        "id": group.id,
        "name": group.name,
        "min_select": group.min_select,
        "max_select": group.max_select,
        "required": group.required,
        "display_order": group.display_order,
        "items": [
            {
                "id": item.id,
                "item_type": item.item_type,
                "product_id": item.product_id,
                "category_id": item.category_id,
                "extra_price": item.extra_price,
            }
            for item in group.items
        ],
    }


def _branch_combo_view(branch_combo: BranchCombo) -> dict[str, Any]:
    return {
        "id": branch_combo.id,
        "branch_id": branch_combo.branch_id,
        "combo_id": branch_combo.combo_id,
        "is_available": branch_combo.is_available,
        "is_visible": branch_combo.is_visible,
        "base_price_override": branch_combo.base_price_override,
        "display_order": branch_combo.display_order,
    }


def combo_view(
    combo: Combo,
    branch_combos: Sequence[BranchCombo],
    tax_resolver: TaxResolver,
) -> dict[str, Any]:
    """Restaurant-level combo entry, priced without a branch."""
    rate = tax_resolver.resolve(None, combo.id)
    return {
        **combo.data,
        "id": combo.id,
        "restaurant_id": combo.restaurant_id,
        "name": combo.name,
        "description": combo.description,
        "images": list(combo.images),
        "is_active": combo.is_active,
        "base_price": combo.base_price,
        "price_with_tax": price_with_tax(combo.base_price, rate),
        "tax_rate": rate,
        "groups": [_group_view(group) for group in combo.groups],
        "branch_assignments": [
            _branch_combo_view(entry) for entry in branch_combos if entry.combo_id == combo.id
        ],
    }


def resolve_branch_combos(
    combos_by_id: Mapping[str, Combo],
    branch_combos: Optional[Sequence[BranchCombo]],
    branch_id: str,
    tax_resolver: TaxResolver,
) -> list[dict[str, Any]]:
    """
    Resolve the combos one branch offers.

    Args:
        combos_by_id: Restaurant combos keyed by id
        branch_combos: The branch's BranchCombo rows, in display order
        branch_id: Branch being projected
        tax_resolver: Resolver for the restaurant

    Returns:
        One entry per opted-in combo; empty when the branch opted into none.
    """
    resolved = []
    for branch_combo in branch_combos or ():
        combo = combos_by_id.get(branch_combo.combo_id)
        if combo is None:
            continue
        base_price = (
            combo.base_price
            if branch_combo.base_price_override is None
            else branch_combo.base_price_override
        )
        rate = tax_resolver.resolve(branch_id, combo.id)
        resolved.append({
            **_branch_combo_view(branch_combo),
            "name": combo.name,
            "description": combo.description,
            "images": list(combo.images),
            "is_available": combo.is_active and branch_combo.is_available,
            "groups": [_group_view(group) for group in combo.groups],
            "base_price": base_price,
            "price_with_tax": price_with_tax(base_price, rate),
            "tax_rate": rate,
        })
    return resolved
