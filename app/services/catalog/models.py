"""
Canonical Catalog Schema

Pydantic models describing the already-fetched catalog configuration the
resolvers operate on. Raw collaborator rows (database rows, JSON fixtures,
legacy payloads) are validated into these types once, by
app.services.catalog.normalize, so that no resolver ever has to look up
alternate field spellings such as ``branch_id`` / ``branchId``.

Coercion rules (lenient, never raising for a usable row):
    - Numbers: non-numeric, non-finite or boolean values never become NaN;
      required prices fall back to 0, optional numbers to None.
    - Booleans: tri-state. None/missing means "inherit", anything else is
      read as a boolean. Unrecognised strings inherit.
    - Identifiers: stripped non-empty strings (ints and UUIDs stringified).
      A row whose required identifier is missing fails validation.
    - Null values count as missing, so a later alias spelling still applies.

Scopes & Priority:
    Tax assignments exist at four scopes. Within a scope, candidates are
    tried in ascending ``priority`` order (lower number first). Rows that
    carry no priority fall back to the scope default below; equal
    priorities keep their input order.

        restaurant       100
        branch           100
        product           50
        branch_product    40

Version: 2.0.0
"""

import math
from collections.abc import Mapping
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Optional
from uuid import UUID

from pydantic import (
    AliasChoices,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    model_validator,
)


GLOBAL_DEFAULT_TAX_RATE = 7.0

# Sort key for rows without a display order; keeps them after ordered rows.
UNORDERED = 32767


def display_key(display_order: Optional[int]) -> int:
    return UNORDERED if display_order is None else display_order


class TaxScope(str, Enum):
    """Level at which a tax assignment applies."""
    RESTAURANT = "restaurant"
    BRANCH = "branch"
    PRODUCT = "product"
    BRANCH_PRODUCT = "branch_product"

    @property
    def default_priority(self) -> int:
        """Priority used when a row of this scope carries none."""
        return DEFAULT_PRIORITIES[self]


DEFAULT_PRIORITIES: dict[TaxScope, int] = {
    TaxScope.RESTAURANT: 100,
    TaxScope.BRANCH: 100,
    TaxScope.PRODUCT: 50,
    TaxScope.BRANCH_PRODUCT: 40,
}


class PriceMode(str, Enum):
    """How a branch prices a product it has adopted."""
    INHERIT = "inherit"
    OVERRIDE = "override"


class OverrideTarget(str, Enum):
    """What a branch option override applies to."""
    GROUP = "group"
    ITEM = "item"


# =============================================================================
# LENIENT FIELD TYPES
# =============================================================================

_FLOAT = TypeAdapter(float)
_BOOL = TypeAdapter(bool)
_TIMESTAMP = TypeAdapter(datetime)
_JSON_LIST = TypeAdapter(list[Any])


def to_number(value: Any, fallback: Optional[float] = 0.0) -> Optional[float]:
    """Coerce to a finite float, or return ``fallback``."""
    if value is None or isinstance(value, bool):
        return fallback
    if isinstance(value, str):
        value = value.strip()
    try:
        number = _FLOAT.validate_python(value)
    except ValidationError:
        return fallback
    return number if math.isfinite(number) else fallback


def _optional_int(value: Any) -> Optional[int]:
    number = to_number(value, None)
    return int(number) if number is not None else None


def tri_state(value: Any) -> Optional[bool]:
    """
    Read a nullable boolean.

    Returns:
        None when the value is missing or unrecognised (inherit),
        otherwise a strict boolean. Numbers read as ``value != 0``.
    """
    if value is None:
        return None
    if isinstance(value, (int, float, Decimal)) and not isinstance(value, bool):
        return value != 0
    if isinstance(value, str):
        value = value.strip()
    try:
        return _BOOL.validate_python(value)
    except ValidationError:
        return None


def _flag(default: bool):
    def coerce(value: Any) -> bool:
        resolved = tri_state(value)
        return default if resolved is None else resolved
    return BeforeValidator(coerce)


def normalise_id(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, UUID)):
        return str(value)
    if isinstance(value, str):
        return value.strip() or None
    return None


def _timestamp(value: Any) -> Optional[datetime]:
    # naive values are taken as UTC
    if isinstance(value, date) and not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day)
    if not isinstance(value, (datetime, str)):
        return None
    try:
        parsed = _TIMESTAMP.validate_python(value)
    except ValidationError:
        return None
    return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=timezone.utc)


def as_list(value: Any) -> list:
    """Accept a list, a JSON-encoded list, or nothing."""
    if isinstance(value, (list, tuple)):
        return list(value)
    if isinstance(value, str) and value.strip():
        try:
            return _JSON_LIST.validate_json(value)
        except ValidationError:
            return []
    return []


def _non_negative_rate(value: Any) -> Optional[float]:
    rate = to_number(value, None)
    return rate if rate is not None and rate >= 0 else None


def _price_mode(value: Any) -> PriceMode:
    if isinstance(value, str) and value.strip().lower() == PriceMode.OVERRIDE.value:
        return PriceMode.OVERRIDE
    return PriceMode.INHERIT


def _override_target(value: Any) -> Any:
    return value.strip().lower() if isinstance(value, str) else value


def _text(value: Any) -> Optional[str]:
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float, Decimal)) and not isinstance(value, bool):
        return str(value)
    return None


def _row_dict(value: Any) -> dict[str, Any]:
    return dict(value) if isinstance(value, Mapping) else {}


Id = Annotated[str, BeforeValidator(normalise_id)]
OptionalId = Annotated[Optional[str], BeforeValidator(normalise_id)]
Price = Annotated[float, BeforeValidator(lambda value: to_number(value, 0.0))]
Text = Annotated[Optional[str], BeforeValidator(_text)]
OptionalNumber = Annotated[Optional[float], BeforeValidator(lambda value: to_number(value, None))]
OptionalInt = Annotated[Optional[int], BeforeValidator(_optional_int)]
TriState = Annotated[Optional[bool], BeforeValidator(tri_state)]
Timestamp = Annotated[Optional[datetime], BeforeValidator(_timestamp)]
JsonList = Annotated[tuple[Any, ...], BeforeValidator(as_list)]
RowData = Annotated[dict[str, Any], BeforeValidator(_row_dict)]


class CatalogModel(BaseModel):
    """Frozen base for canonical entities; null values count as missing."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        if isinstance(data, Mapping):
            return cls._prepare({key: value for key, value in data.items() if value is not None})
        return data

    @classmethod
    def _prepare(cls, row: dict[str, Any]) -> dict[str, Any]:
        return row


# =============================================================================
# TENANT & STOREFRONTS
# =============================================================================

class Restaurant(CatalogModel):
    id: Id = Field(validation_alias=AliasChoices("id", "restaurant_id", "restaurantId"))
    name: Text = None
    is_active: Annotated[bool, _flag(True)] = Field(
        True, validation_alias=AliasChoices("is_active", "isActive", "active")
    )
    data: RowData = Field(default_factory=dict)


class Branch(CatalogModel):
    id: Id = Field(validation_alias=AliasChoices("id", "branch_id", "branchId"))
    restaurant_id: OptionalId = Field(None, validation_alias=AliasChoices("restaurant_id", "restaurantId"))
    name: Text = None
    data: RowData = Field(default_factory=dict)


class CategoryBranchAssignment(CatalogModel):
    branch_id: Id = Field(validation_alias=AliasChoices("branch_id", "branchId", "branch"))
    is_visible: Annotated[bool, _flag(True)] = Field(True, validation_alias=AliasChoices("is_visible", "isVisible"))
    is_active: Annotated[bool, _flag(True)] = Field(True, validation_alias=AliasChoices("is_active", "isActive"))
    display_order: OptionalInt = Field(None, validation_alias=AliasChoices("display_order", "displayOrder"))


def _category_assignments(value: Any) -> tuple[CategoryBranchAssignment, ...]:
    assignments = []
    for row in as_list(value):
        if isinstance(row, CategoryBranchAssignment):
            assignments.append(row)
            continue
        try:
            assignments.append(CategoryBranchAssignment.model_validate(row))
        except ValidationError:
            continue
    return tuple(assignments)


class Category(CatalogModel):
    id: Id = Field(validation_alias=AliasChoices("id", "category_id", "categoryId"))
    restaurant_id: OptionalId = Field(None, validation_alias=AliasChoices("restaurant_id", "restaurantId"))
    name: Text = None
    description: Text = None
    is_active: Annotated[bool, _flag(True)] = Field(True, validation_alias=AliasChoices("is_active", "isActive"))
    branch_assignments: Annotated[
        tuple[CategoryBranchAssignment, ...], BeforeValidator(_category_assignments)
    ] = Field((), validation_alias=AliasChoices("branch_assignments", "branchAssignments"))
    data: RowData = Field(default_factory=dict)

    def is_listed_on(self, branch_id: str) -> bool:
        """True when the category has an active, visible assignment on the branch."""
        return any(
            assignment.branch_id == branch_id
            and assignment.is_active
            and assignment.is_visible
            for assignment in self.branch_assignments
        )


# =============================================================================
# PRODUCTS
# =============================================================================

class Product(CatalogModel):
    id: Id = Field(validation_alias=AliasChoices("id", "product_id", "productId"))
    restaurant_id: OptionalId = Field(None, validation_alias=AliasChoices("restaurant_id", "restaurantId"))
    category_id: OptionalId = Field(None, validation_alias=AliasChoices("category_id", "categoryId"))
    category: Text = Field(
        None, validation_alias=AliasChoices("category", "category_name", "categoryName")
    )
    title: Text = Field(None, validation_alias=AliasChoices("title", "name"))
    description: Text = None
    images: JsonList = ()
    type: Text = None
    base_price: Price = Field(0.0, validation_alias=AliasChoices("base_price", "basePrice", "price"))
    popular: Annotated[bool, _flag(False)] = False
    available: Annotated[bool, _flag(True)] = Field(
        True, validation_alias=AliasChoices("available", "is_available", "isAvailable")
    )
    is_visible: Annotated[bool, _flag(True)] = Field(
        True, validation_alias=AliasChoices("is_visible", "isVisible", "visible")
    )
    created_at: Any = Field(None, validation_alias=AliasChoices("created_at", "createdAt"))
    updated_at: Any = Field(None, validation_alias=AliasChoices("updated_at", "updatedAt"))


class InventorySnapshot(CatalogModel):
    """Branch stock counters, carried verbatim into the branch view."""
    quantity: OptionalNumber = Field(None, validation_alias=AliasChoices("quantity", "qty"))
    reserved_qty: OptionalNumber = Field(
        None, validation_alias=AliasChoices("reserved_qty", "reservedQty", "reserved")
    )
    min_stock: OptionalNumber = Field(None, validation_alias=AliasChoices("min_stock", "minStock"))
    daily_limit: OptionalNumber = Field(None, validation_alias=AliasChoices("daily_limit", "dailyLimit"))
    daily_sold: OptionalNumber = Field(None, validation_alias=AliasChoices("daily_sold", "dailySold"))


_INVENTORY_KEYS = ("inventory", "inventory_summary", "inventorySummary")


class BranchProductAssignment(CatalogModel):
    """
    A branch's adoption of a restaurant-level product.

    ``is_available`` / ``is_visible`` are tri-state: ``None`` means the
    assignment does not restrict the product. Inventory counters come from
    a nested ``inventory`` mapping when present, else from the row itself.
    """
    id: OptionalId = Field(None, validation_alias=AliasChoices("id", "branch_product_id", "branchProductId"))
    branch_id: Id = Field(validation_alias=AliasChoices("branch_id", "branchId"))
    product_id: Id = Field(validation_alias=AliasChoices("product_id", "productId"))
    price_mode: Annotated[PriceMode, BeforeValidator(_price_mode)] = Field(
        PriceMode.INHERIT, validation_alias=AliasChoices("price_mode", "priceMode")
    )
    base_price_override: OptionalNumber = Field(
        None, validation_alias=AliasChoices("base_price_override", "basePriceOverride", "price_override")
    )
    is_available: TriState = Field(
        None, validation_alias=AliasChoices("is_available", "isAvailable", "available")
    )
    is_visible: TriState = Field(None, validation_alias=AliasChoices("is_visible", "isVisible", "visible"))
    is_featured: Annotated[bool, _flag(False)] = Field(
        False, validation_alias=AliasChoices("is_featured", "isFeatured")
    )
    display_order: OptionalInt = Field(None, validation_alias=AliasChoices("display_order", "displayOrder"))
    local_name: Text = Field(None, validation_alias=AliasChoices("local_name", "localName"))
    local_description: Text = Field(
        None, validation_alias=AliasChoices("local_description", "localDescription")
    )
    available_from: Any = Field(None, validation_alias=AliasChoices("available_from", "availableFrom"))
    available_until: Any = Field(None, validation_alias=AliasChoices("available_until", "availableUntil"))
    dayparts: Any = None
    created_at: Any = Field(None, validation_alias=AliasChoices("created_at", "createdAt"))
    updated_at: Any = Field(None, validation_alias=AliasChoices("updated_at", "updatedAt"))
    inventory: InventorySnapshot = Field(
        default_factory=InventorySnapshot, validation_alias=AliasChoices(*_INVENTORY_KEYS)
    )

    @classmethod
    def _prepare(cls, row: dict[str, Any]) -> dict[str, Any]:
        nested = next((row[key] for key in _INVENTORY_KEYS if key in row), None)
        if isinstance(nested, (Mapping, InventorySnapshot)):
            return row
        flat = {key: value for key, value in row.items() if key not in _INVENTORY_KEYS}
        return {**flat, "inventory": flat}


# =============================================================================
# TAXES
# =============================================================================

class TaxAssignment(CatalogModel):
    """
    One tax assignment at a given scope.

    Negative or unparseable rates read as "no rate"; a missing priority
    takes the scope default.
    """
    scope: TaxScope
    rate_percent: Annotated[Optional[float], BeforeValidator(_non_negative_rate)] = Field(
        None, validation_alias=AliasChoices("rate_percent", "ratePercent", "rate")
    )
    priority: OptionalInt = None
    is_default: Annotated[bool, _flag(False)] = Field(False, validation_alias=AliasChoices("is_default", "isDefault"))
    is_active: Annotated[bool, _flag(True)] = Field(True, validation_alias=AliasChoices("is_active", "isActive"))
    restaurant_id: OptionalId = Field(None, validation_alias=AliasChoices("restaurant_id", "restaurantId"))
    branch_id: OptionalId = Field(None, validation_alias=AliasChoices("branch_id", "branchId"))
    product_id: OptionalId = Field(None, validation_alias=AliasChoices("product_id", "productId"))
    tax_template_id: OptionalId = Field(
        None, validation_alias=AliasChoices("tax_template_id", "taxTemplateId")
    )
    start_at: Timestamp = Field(
        None, validation_alias=AliasChoices("start_at", "startAt", "effective_from", "effectiveFrom")
    )
    end_at: Timestamp = Field(
        None, validation_alias=AliasChoices("end_at", "endAt", "effective_to", "effectiveTo")
    )

    @classmethod
    def _prepare(cls, row: dict[str, Any]) -> dict[str, Any]:
        if _optional_int(row.get("priority")) is not None:
            return row
        try:
            scope = TaxScope(row.get("scope"))
        except ValueError:
            return row
        return {**row, "priority": scope.default_priority}

    def is_effective(self, as_of: Optional[datetime]) -> bool:
        """Check the active window; without a reference time every row is in effect."""
        if as_of is None:
            return True
        if self.start_at is not None and self.start_at > as_of:
            return False
        if self.end_at is not None and self.end_at <= as_of:
            return False
        return True


# =============================================================================
# OPTIONS
# =============================================================================

class BranchOptionOverride(CatalogModel):
    """
    Branch- or branch-product-scoped override of an option group or item.

    Every field except the keys is tri-state or nullable: ``None`` means
    "not overridden". ``price_delta_override=None`` reverts to the base
    delta; ``0.0`` is an explicit zero delta.

    The target comes from explicit ``target``/``target_id`` columns when
    both are present, else from whichever of the item or group keys is set
    (item keys win). Rows with no target, or keyed by neither a branch nor
    a branch product, fail validation.
    """
    target_type: Annotated[Optional[OverrideTarget], BeforeValidator(_override_target)] = Field(
        None, validation_alias=AliasChoices("target", "target_type", "targetType")
    )
    explicit_target_id: OptionalId = Field(None, validation_alias=AliasChoices("target_id", "targetId"))
    option_item_id: OptionalId = Field(
        None, validation_alias=AliasChoices("option_item_id", "optionItemId", "item_id", "itemId")
    )
    option_group_id: OptionalId = Field(
        None, validation_alias=AliasChoices("option_group_id", "optionGroupId", "group_id", "groupId")
    )
    product_id: OptionalId = Field(None, validation_alias=AliasChoices("product_id", "productId"))
    branch_id: OptionalId = Field(None, validation_alias=AliasChoices("branch_id", "branchId"))
    branch_product_id: OptionalId = Field(
        None, validation_alias=AliasChoices("branch_product_id", "branchProductId")
    )
    is_active: TriState = Field(None, validation_alias=AliasChoices("is_active", "isActive"))
    is_available: TriState = Field(None, validation_alias=AliasChoices("is_available", "isAvailable"))
    is_visible: TriState = Field(None, validation_alias=AliasChoices("is_visible", "isVisible"))
    price_delta_override: OptionalNumber = Field(
        None,
        validation_alias=AliasChoices(
            "price_delta_override", "priceDeltaOverride", "price_delta", "priceDelta"
        ),
    )
    min_select: OptionalInt = Field(None, validation_alias=AliasChoices("min_select", "minSelect"))
    max_select: OptionalInt = Field(None, validation_alias=AliasChoices("max_select", "maxSelect"))
    is_required: TriState = Field(None, validation_alias=AliasChoices("is_required", "isRequired"))
    display_order: OptionalInt = Field(None, validation_alias=AliasChoices("display_order", "displayOrder"))

    @model_validator(mode="after")
    def _check_keys(self) -> "BranchOptionOverride":
        if self.target is None:
            raise ValueError("override has no option group or item target")
        if self.branch_id is None and self.branch_product_id is None:
            raise ValueError("override is keyed by neither a branch nor a branch product")
        return self

    @property
    def target(self) -> Optional[OverrideTarget]:
        if self.target_type is not None and self.explicit_target_id is not None:
            return self.target_type
        if self.option_item_id is not None:
            return OverrideTarget.ITEM
        if self.option_group_id is not None:
            return OverrideTarget.GROUP
        return None

    @property
    def target_id(self) -> Optional[str]:
        if self.target_type is not None and self.explicit_target_id is not None:
            return self.explicit_target_id
        return self.option_item_id or self.option_group_id


class OptionItem(CatalogModel):
    id: Id = Field(validation_alias=AliasChoices("id", "option_item_id", "optionItemId"))
    group_id: Id = Field(
        validation_alias=AliasChoices("group_id", "groupId", "option_group_id", "optionGroupId")
    )
    name: Text = None
    description: Text = None
    price_delta: Price = Field(0.0, validation_alias=AliasChoices("price_delta", "priceDelta"))
    display_order: OptionalInt = Field(None, validation_alias=AliasChoices("display_order", "displayOrder"))
    is_active: TriState = Field(None, validation_alias=AliasChoices("is_active", "isActive"))
    overrides: tuple[BranchOptionOverride, ...] = ()


class OptionGroup(CatalogModel):
    """
    An option group as attached to one product.

    ``min_select`` / ``max_select`` / ``is_required`` / ``is_active`` come
    from the product link; the ``group_*`` fields come from the group
    definition and are used when the link leaves a value unset. Link rows
    carry their own ``id``, so the group id is read by alias only.
    """
    model_config = ConfigDict(populate_by_name=False)

    id: Id = Field(
        validation_alias=AliasChoices("group_id", "groupId", "option_group_id", "optionGroupId")
    )
    product_id: Id = Field(validation_alias=AliasChoices("product_id", "productId"))
    link_id: OptionalId = Field(None, validation_alias=AliasChoices("id", "link_id"))
    name: Text = None
    description: Text = None
    selection_type: Text = Field("multiple", validation_alias=AliasChoices("selection_type", "selectionType"))
    min_select: OptionalInt = Field(None, validation_alias=AliasChoices("min_select", "minSelect"))
    max_select: OptionalInt = Field(None, validation_alias=AliasChoices("max_select", "maxSelect"))
    is_required: TriState = Field(None, validation_alias=AliasChoices("is_required", "isRequired"))
    display_order: OptionalInt = Field(None, validation_alias=AliasChoices("display_order", "displayOrder"))
    is_active: TriState = Field(None, validation_alias=AliasChoices("is_active", "isActive"))
    group_min_select: OptionalInt = Field(
        None, validation_alias=AliasChoices("group_min_select", "groupMinSelect")
    )
    group_max_select: OptionalInt = Field(
        None, validation_alias=AliasChoices("group_max_select", "groupMaxSelect")
    )
    group_is_required: TriState = Field(
        None, validation_alias=AliasChoices("group_is_required", "groupIsRequired")
    )
    group_is_active: TriState = Field(None, validation_alias=AliasChoices("group_is_active", "groupIsActive"))
    items: tuple[OptionItem, ...] = ()
    overrides: tuple[BranchOptionOverride, ...] = ()


# =============================================================================
# COMBOS
# =============================================================================

class ComboGroupItem(CatalogModel):
    id: Id
    combo_group_id: Id = Field(validation_alias=AliasChoices("combo_group_id", "comboGroupId", "group_id"))
    item_type: Text = Field(None, validation_alias=AliasChoices("item_type", "itemType"))
    product_id: OptionalId = Field(None, validation_alias=AliasChoices("product_id", "productId"))
    category_id: OptionalId = Field(None, validation_alias=AliasChoices("category_id", "categoryId"))
    extra_price: Price = Field(0.0, validation_alias=AliasChoices("extra_price", "extraPrice"))


class ComboGroup(CatalogModel):
    id: Id
    combo_id: Id = Field(validation_alias=AliasChoices("combo_id", "comboId"))
    name: Text = None
    min_select: Annotated[float, BeforeValidator(lambda value: to_number(value, 1))] = Field(
        1, validation_alias=AliasChoices("min_select", "minSelect")
    )
    max_select: Annotated[float, BeforeValidator(lambda value: to_number(value, 1))] = Field(
        1, validation_alias=AliasChoices("max_select", "maxSelect")
    )
    required: Annotated[bool, _flag(True)] = Field(
        True, validation_alias=AliasChoices("required", "is_required", "isRequired")
    )
    display_order: OptionalInt = Field(None, validation_alias=AliasChoices("display_order", "displayOrder"))
    items: tuple[ComboGroupItem, ...] = ()


class Combo(CatalogModel):
    id: Id = Field(validation_alias=AliasChoices("id", "combo_id", "comboId"))
    restaurant_id: OptionalId = Field(None, validation_alias=AliasChoices("restaurant_id", "restaurantId"))
    name: Text = Field(None, validation_alias=AliasChoices("name", "title"))
    description: Text = None
    base_price: Price = Field(0.0, validation_alias=AliasChoices("base_price", "basePrice", "price"))
    images: JsonList = ()
    is_active: Annotated[bool, _flag(True)] = Field(True, validation_alias=AliasChoices("is_active", "isActive"))
    available_from: Any = Field(None, validation_alias=AliasChoices("available_from", "availableFrom"))
    available_until: Any = Field(None, validation_alias=AliasChoices("available_until", "availableUntil"))
    groups: tuple[ComboGroup, ...] = ()
    data: RowData = Field(default_factory=dict)


class BranchCombo(CatalogModel):
    id: OptionalId = None
    branch_id: Id = Field(validation_alias=AliasChoices("branch_id", "branchId"))
    combo_id: Id = Field(validation_alias=AliasChoices("combo_id", "comboId"))
    is_available: Annotated[bool, _flag(True)] = Field(
        True, validation_alias=AliasChoices("is_available", "isAvailable")
    )
    is_visible: Annotated[bool, _flag(True)] = Field(True, validation_alias=AliasChoices("is_visible", "isVisible"))
    base_price_override: OptionalNumber = Field(
        None, validation_alias=AliasChoices("base_price_override", "basePriceOverride")
    )
    display_order: OptionalInt = Field(None, validation_alias=AliasChoices("display_order", "displayOrder"))
