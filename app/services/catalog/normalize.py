"""
Row Normalization Adapter

Validates raw collaborator rows (database rows, JSON fixtures, legacy
payloads) into the canonical catalog models. Field spellings and lenient
coercion live on the models themselves (see app.services.catalog.models);
this module decides what happens to rows that cannot be used.

Rows that are not mappings, or that fail validation (typically a missing
identifier), are skipped and logged at debug level. Nothing here raises on
shape mismatch.
"""

import logging
from collections.abc import Iterable, Mapping
from typing import Any, Callable, Optional, TypeVar

from pydantic import BaseModel, ValidationError

from app.services.catalog.models import (
    Branch,
    BranchCombo,
    BranchOptionOverride,
    BranchProductAssignment,
    Category,
    Combo,
    ComboGroup,
    ComboGroupItem,
    OptionGroup,
    OptionItem,
    Product,
    Restaurant,
    TaxAssignment,
    TaxScope,
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)
T = TypeVar("T")


def parse_row(model: type[M], row: Any) -> Optional[M]:
    """Validate one row into ``model``, or return None when it is unusable."""
    if not isinstance(row, Mapping):
        return None
    try:
        return model.model_validate(row)
    except ValidationError as e:
        logger.debug(f"Skipping {model.__name__} row: {e.error_count()} validation error(s)")
        return None


def normalise_rows(rows: Optional[Iterable[Any]], converter: Callable[[Any], Optional[T]]) -> list[T]:
    """Convert every row in ``rows``; anything unconvertible is dropped."""
    if not rows:
        return []
    converted = []
    for row in rows:
        value = converter(row)
        if value is not None:
            converted.append(value)
    return converted


def _with_row_data(model: type[M], row: Any, exclude: tuple[str, ...] = ()) -> Optional[M]:
    # the document echoes the source row, so keep it verbatim
    parsed = parse_row(model, row)
    if parsed is None:
        return None
    data = {key: value for key, value in row.items() if key not in exclude}
    return parsed.model_copy(update={"data": data})


# =============================================================================
# RESTAURANTS, BRANCHES, CATEGORIES
# =============================================================================

def restaurant_from_row(row: Any) -> Optional[Restaurant]:
    return _with_row_data(Restaurant, row)


def branch_from_row(row: Any) -> Optional[Branch]:
    return _with_row_data(Branch, row)


def category_from_row(row: Any) -> Optional[Category]:
    return _with_row_data(Category, row, exclude=("branch_assignments", "branchAssignments"))


# =============================================================================
# PRODUCTS & BRANCH ASSIGNMENTS
# =============================================================================

def product_from_row(row: Any) -> Optional[Product]:
    return parse_row(Product, row)


def assignment_from_row(row: Any) -> Optional[BranchProductAssignment]:
    return parse_row(BranchProductAssignment, row)


# =============================================================================
# TAXES
# =============================================================================

def tax_assignment_from_row(row: Any, scope: TaxScope) -> Optional[TaxAssignment]:
    if not isinstance(row, Mapping):
        return None
    return parse_row(TaxAssignment, {**row, "scope": scope})


def tax_assignments_from_rows(rows: Optional[Iterable[Any]], scope: TaxScope) -> list[TaxAssignment]:
    return normalise_rows(rows, lambda row: tax_assignment_from_row(row, scope))


# =============================================================================
# OPTIONS
# =============================================================================

def option_group_from_row(row: Any) -> Optional[OptionGroup]:
    """Read a product/option-group link row joined with its group definition."""
    return parse_row(OptionGroup, row)


def option_item_from_row(row: Any) -> Optional[OptionItem]:
    """Read an option item; items switched off at base level are dropped."""
    item = parse_row(OptionItem, row)
    if item is None or item.is_active is False:
        return None
    return item


def option_override_from_row(row: Any) -> Optional[BranchOptionOverride]:
    return parse_row(BranchOptionOverride, row)


# =============================================================================
# COMBOS
# =============================================================================

def combo_from_row(row: Any) -> Optional[Combo]:
    return _with_row_data(Combo, row)


def combo_group_from_row(row: Any) -> Optional[ComboGroup]:
    return parse_row(ComboGroup, row)


def combo_group_item_from_row(row: Any) -> Optional[ComboGroupItem]:
    return parse_row(ComboGroupItem, row)


def branch_combo_from_row(row: Any) -> Optional[BranchCombo]:
    return parse_row(BranchCombo, row)
