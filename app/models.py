"""
SQLAlchemy Database Models

Read model for the catalog resolution service:
- Restaurants, branches and branch-scoped category visibility
- Products and their per-branch assignments (with inventory counters)
- Tax templates and scoped tax assignments
- Option groups, option items and branch option overrides
- Combos, combo groups and branch combo opt-ins

Identifiers are stored as strings (UUIDs in practice).
"""

from sqlalchemy import Column, Integer, String, Numeric, DateTime, Text, Boolean, ForeignKey, JSON
from sqlalchemy.orm import declared_attr
from sqlalchemy.sql import func
from app.database import Base


def _id_column(**kwargs) -> Column:
    return Column(String(36), primary_key=True, **kwargs)


def _ref(target: str, nullable: bool = False) -> Column:
    return Column(String(36), ForeignKey(target, ondelete="CASCADE"), nullable=nullable, index=True)


# =========================================================================
# RESTAURANTS & BRANCHES
# =========================================================================

class Restaurant(Base):
    """A restaurant owning branches, products and combos."""
    __tablename__ = "restaurants"

    id = _id_column()
    name = Column(String(200), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<Restaurant {self.id} - {self.name}>"


class Branch(Base):
    """A physical location of a restaurant."""
    __tablename__ = "branches"

    id = _id_column()
    restaurant_id = _ref("restaurants.id")
    name = Column(String(200), nullable=False)
    address = Column(String(255), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<Branch {self.id} - {self.name}>"


# =========================================================================
# CATEGORIES
# =========================================================================

class Category(Base):
    __tablename__ = "categories"

    id = _id_column()
    restaurant_id = _ref("restaurants.id")
    name = Column(String(120), nullable=False)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class BranchCategory(Base):
    """Visibility and ordering of a category on one branch."""
    __tablename__ = "branch_categories"

    id = _id_column()
    category_id = _ref("categories.id")
    branch_id = _ref("branches.id")
    is_visible = Column(Boolean, default=True, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    display_order = Column(Integer, nullable=True)


# =========================================================================
# PRODUCTS
# =========================================================================

class Product(Base):
    __tablename__ = "products"

    id = _id_column()
    restaurant_id = _ref("restaurants.id")
    category_id = Column(String(36), ForeignKey("categories.id", ondelete="SET NULL"), nullable=True, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    images = Column(JSON, nullable=True)
    type = Column(String(50), nullable=True)
    base_price = Column(Numeric(12, 2), nullable=False, default=0)
    popular = Column(Boolean, default=False, nullable=False)
    available = Column(Boolean, default=True, nullable=False)
    is_visible = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<Product {self.id} - {self.title}>"


class BranchProduct(Base):
    """
    Per-branch assignment of a product.

    Nullable availability flags mean "inherit the product's flag".
    Inventory counters live on the same row.
    """
    __tablename__ = "branch_products"

    id = _id_column()
    branch_id = _ref("branches.id")
    product_id = _ref("products.id")

    # =========================================================================
    # PRICING & PRESENTATION
    # =========================================================================
    price_mode = Column(String(20), default="inherit", nullable=False)
    base_price_override = Column(Numeric(12, 2), nullable=True)
    is_available = Column(Boolean, nullable=True)
    is_visible = Column(Boolean, nullable=True)
    is_featured = Column(Boolean, default=False, nullable=False)
    display_order = Column(Integer, nullable=True)
    local_name = Column(String(200), nullable=True)
    local_description = Column(Text, nullable=True)
    available_from = Column(String(10), nullable=True)
    available_until = Column(String(10), nullable=True)
    dayparts = Column(JSON, nullable=True)

    # =========================================================================
    # INVENTORY
    # =========================================================================
    quantity = Column(Numeric(12, 2), nullable=True)
    reserved_qty = Column(Numeric(12, 2), nullable=True)
    min_stock = Column(Numeric(12, 2), nullable=True)
    daily_limit = Column(Numeric(12, 2), nullable=True)
    daily_sold = Column(Numeric(12, 2), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


# =========================================================================
# TAXES
# =========================================================================

class TaxTemplate(Base):
    """A named tax rate that assignments point at."""
    __tablename__ = "tax_templates"

    id = _id_column()
    restaurant_id = _ref("restaurants.id", nullable=True)
    name = Column(String(120), nullable=False)
    rate_percent = Column(Numeric(6, 3), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)


class _TaxAssignmentColumns:
    id = _id_column()
    priority = Column(Integer, nullable=True)
    is_default = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    start_at = Column(DateTime(timezone=True), nullable=True)
    end_at = Column(DateTime(timezone=True), nullable=True)

    @declared_attr
    def tax_template_id(cls):
        return Column(String(36), ForeignKey("tax_templates.id", ondelete="CASCADE"), nullable=False)


class RestaurantTaxAssignment(_TaxAssignmentColumns, Base):
    __tablename__ = "restaurant_tax_assignments"

    restaurant_id = _ref("restaurants.id")


class BranchTaxAssignment(_TaxAssignmentColumns, Base):
    __tablename__ = "branch_tax_assignments"

    branch_id = _ref("branches.id")


class ProductTaxOverride(_TaxAssignmentColumns, Base):
    """Stored for completeness; product-scope rows are not consulted when resolving."""
    __tablename__ = "product_tax_overrides"

    product_id = _ref("products.id")


class BranchProductTaxOverride(_TaxAssignmentColumns, Base):
    __tablename__ = "branch_product_tax_overrides"

    branch_id = _ref("branches.id")
    product_id = _ref("products.id")


# =========================================================================
# OPTIONS
# =========================================================================

class OptionGroup(Base):
    __tablename__ = "option_groups"

    id = _id_column()
    restaurant_id = _ref("restaurants.id")
    name = Column(String(120), nullable=False)
    description = Column(Text, nullable=True)
    selection_type = Column(String(20), default="multiple", nullable=False)
    min_select = Column(Integer, nullable=True)
    max_select = Column(Integer, nullable=True)
    is_required = Column(Boolean, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)


class ProductOptionGroup(Base):
    """Link of an option group to a product, with product-level limits."""
    __tablename__ = "product_option_groups"

    id = _id_column()
    product_id = _ref("products.id")
    group_id = _ref("option_groups.id")
    min_select = Column(Integer, nullable=True)
    max_select = Column(Integer, nullable=True)
    is_required = Column(Boolean, nullable=True)
    display_order = Column(Integer, nullable=True)
    is_active = Column(Boolean, nullable=True)


class OptionItem(Base):
    __tablename__ = "option_items"

    id = _id_column()
    group_id = _ref("option_groups.id")
    name = Column(String(120), nullable=False)
    description = Column(Text, nullable=True)
    price_delta = Column(Numeric(12, 2), default=0, nullable=False)
    display_order = Column(Integer, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)


class BranchOptionOverride(Base):
    """
    Branch-scoped override of an option group or item.

    Exactly one of option_group_id / option_item_id is set. The row is
    scoped by branch_id or, more specifically, by branch_product_id.
    """
    __tablename__ = "branch_option_overrides"

    id = _id_column()
    branch_id = _ref("branches.id", nullable=True)
    branch_product_id = _ref("branch_products.id", nullable=True)
    product_id = _ref("products.id", nullable=True)
    option_group_id = _ref("option_groups.id", nullable=True)
    option_item_id = _ref("option_items.id", nullable=True)
    is_active = Column(Boolean, nullable=True)
    is_available = Column(Boolean, nullable=True)
    is_visible = Column(Boolean, nullable=True)
    price_delta_override = Column(Numeric(12, 2), nullable=True)
    min_select = Column(Integer, nullable=True)
    max_select = Column(Integer, nullable=True)
    is_required = Column(Boolean, nullable=True)
    display_order = Column(Integer, nullable=True)


# =========================================================================
# COMBOS
# =========================================================================

class Combo(Base):
    __tablename__ = "combos"

    id = _id_column()
    restaurant_id = _ref("restaurants.id")
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    base_price = Column(Numeric(12, 2), nullable=False, default=0)
    images = Column(JSON, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    available_from = Column(String(10), nullable=True)
    available_until = Column(String(10), nullable=True)


class ComboGroup(Base):
    __tablename__ = "combo_groups"

    id = _id_column()
    combo_id = _ref("combos.id")
    name = Column(String(120), nullable=False)
    min_select = Column(Integer, default=1, nullable=False)
    max_select = Column(Integer, default=1, nullable=False)
    required = Column(Boolean, default=True, nullable=False)
    display_order = Column(Integer, nullable=True)


class ComboGroupItem(Base):
    """A product or a whole category offered inside a combo group."""
    __tablename__ = "combo_group_items"

    id = _id_column()
    combo_group_id = _ref("combo_groups.id")
    item_type = Column(String(20), default="product", nullable=False)
    product_id = _ref("products.id", nullable=True)
    category_id = _ref("categories.id", nullable=True)
    extra_price = Column(Numeric(12, 2), default=0, nullable=False)


class BranchCombo(Base):
    """Opt-in of a branch to a combo."""
    __tablename__ = "branch_combos"

    id = _id_column()
    branch_id = _ref("branches.id")
    combo_id = _ref("combos.id")
    is_available = Column(Boolean, default=True, nullable=False)
    is_visible = Column(Boolean, default=True, nullable=False)
    base_price_override = Column(Numeric(12, 2), nullable=True)
    display_order = Column(Integer, nullable=True)
