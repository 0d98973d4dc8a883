"""
Tax Resolution

Answers "which tax rate applies to (branch, product)" from the tax
assignments defined at restaurant, branch and branch-product scope, and
computes tax-inclusive prices.

Precedence for resolve(branch_id, product_id):
    1. Branch-product assignments: first entry with a rate.
    2. Branch assignments: the entry flagged default, else the first
       entry with a rate.
    3. Restaurant assignments: the entry flagged default, else the first
       entry with a rate.
    4. Global fallback rate (7%).

Every list is sorted by ascending priority before resolution, so "first"
means highest precedence within its scope. A scope whose chosen entry has
no rate falls through to the next scope; resolution never fails.

Usage:
    resolver = build_tax_resolver(restaurant_rows, branch_rows, branch_product_rows)
    rate = resolver.resolve(branch_id, product_id)
    price = price_with_tax(product.base_price, rate)
"""

import logging
import math
from collections import defaultdict
from collections.abc import Iterable, Sequence
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, localcontext
from typing import Any, Optional

from app.services.catalog.models import GLOBAL_DEFAULT_TAX_RATE, TaxAssignment, TaxScope, to_number
from app.services.catalog.normalize import tax_assignments_from_rows

logger = logging.getLogger(__name__)

_CENTS = Decimal("0.01")
_HUNDRED = Decimal(100)


def _to_decimal(value: Any) -> Decimal:
    # str() keeps the shortest decimal form of a float, so 1.005 stays 1.005
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return Decimal(0)
    return amount if amount.is_finite() else Decimal(0)


def round2(value: Any) -> float:
    """Round half-up to two decimal places, at any magnitude."""
    amount = _to_decimal(value)
    with localcontext() as context:
        # quantize needs room for every integer digit plus the cents
        context.prec = max(context.prec, amount.adjusted() + 4)
        return float(amount.quantize(_CENTS, rounding=ROUND_HALF_UP))


def price_with_tax(base_price: Any, rate_percent: Any) -> float:
    """
    Compute ``round2(base_price * (1 + rate/100))``.

    The arithmetic is done in Decimal on the decimal representation of the
    inputs so that e.g. 99999 at 8.5% gives 108498.92 rather than
    inheriting binary floating point error. Unparseable prices count as 0,
    unparseable rates as the global default. A total too large for a float
    falls back to the untaxed price.
    """
    price = _to_decimal(to_number(base_price, 0.0))
    rate = _to_decimal(to_number(rate_percent, GLOBAL_DEFAULT_TAX_RATE))
    total = round2(price * (1 + rate / _HUNDRED))
    if math.isinf(total):
        logger.warning(f"Taxed price overflows for base price {base_price} at {rate_percent}%")
        return round2(price)
    return total


def _by_priority(assignments: Iterable[TaxAssignment]) -> list[TaxAssignment]:
    # sorted() is stable: equal priorities keep their input order
    return sorted(assignments, key=lambda assignment: assignment.priority)


def _first_with_rate(assignments: Sequence[TaxAssignment]) -> Optional[TaxAssignment]:
    return next((a for a in assignments if a.rate_percent is not None), None)


def _default_or_first_with_rate(assignments: Sequence[TaxAssignment]) -> Optional[TaxAssignment]:
    flagged = next((a for a in assignments if a.is_default), None)
    return flagged or _first_with_rate(assignments)


class TaxResolver:
    """
    Resolve effective tax rates from pre-grouped, priority-sorted lists.

    Attributes:
        restaurant: Restaurant-scope assignments, sorted by priority
        by_branch: Branch-scope assignments keyed by branch id
        by_branch_product: Branch-product assignments keyed by "branch:product"
        default_rate: Rate used when no assignment applies
    """

    def __init__(
        self,
        restaurant: Sequence[TaxAssignment] = (),
        by_branch: Optional[dict[str, Sequence[TaxAssignment]]] = None,
        by_branch_product: Optional[dict[str, Sequence[TaxAssignment]]] = None,
        default_rate: float = GLOBAL_DEFAULT_TAX_RATE,
    ):
        self.restaurant = tuple(restaurant)
        self.by_branch = {key: tuple(value) for key, value in (by_branch or {}).items()}
        self.by_branch_product = {
            key: tuple(value) for key, value in (by_branch_product or {}).items()
        }
        fallback = to_number(default_rate, GLOBAL_DEFAULT_TAX_RATE)
        self.default_rate = fallback if fallback >= 0 else GLOBAL_DEFAULT_TAX_RATE
        self._restaurant_default = _default_or_first_with_rate(self.restaurant)

    @staticmethod
    def key(branch_id: Optional[str], product_id: Optional[str]) -> str:
        return f"{branch_id}:{product_id}"

    def resolve(self, branch_id: Optional[str], product_id: Optional[str]) -> float:
        """
        Return the effective rate (percent) for a branch/product pair.

        Either id may be None (e.g. restaurant-level listings resolve with
        no branch); the matching scopes are then simply skipped.
        """
        if branch_id is not None and product_id is not None:
            overrides = self.by_branch_product.get(self.key(branch_id, product_id))
            if overrides:
                candidate = _first_with_rate(overrides)
                if candidate is not None:
                    return self._rate(candidate)

        if branch_id is not None:
            branch_list = self.by_branch.get(branch_id)
            if branch_list:
                candidate = _default_or_first_with_rate(branch_list)
                if candidate is not None and candidate.rate_percent is not None:
                    return self._rate(candidate)

        candidate = self._restaurant_default
        if candidate is not None and candidate.rate_percent is not None:
            return self._rate(candidate)

        return self.default_rate

    def _rate(self, assignment: TaxAssignment) -> float:
        rate = assignment.rate_percent
        if rate is None or not math.isfinite(rate) or rate < 0:
            return self.default_rate
        return rate


def build_tax_resolver(
    restaurant_rows: Optional[Iterable[Any]] = None,
    branch_rows: Optional[Iterable[Any]] = None,
    branch_product_rows: Optional[Iterable[Any]] = None,
    as_of: Optional[datetime] = None,
    default_rate: float = GLOBAL_DEFAULT_TAX_RATE,
) -> TaxResolver:
    """
    Build a TaxResolver from raw assignment rows.

    Inactive rows are dropped. When ``as_of`` is given, rows whose active
    window does not contain it are dropped too; without it, windows are
    not consulted.

    Args:
        restaurant_rows: Restaurant-scope assignment rows
        branch_rows: Branch-scope assignment rows (carry ``branch_id``)
        branch_product_rows: Branch-product rows (carry ``branch_id`` and ``product_id``)
        as_of: Reference time for active windows
        default_rate: Global fallback rate

    Returns:
        TaxResolver: Ready-to-query resolver
    """
    if as_of is not None and as_of.tzinfo is None:
        as_of = as_of.replace(tzinfo=timezone.utc)

    def usable(rows, scope: TaxScope) -> list[TaxAssignment]:
        return [
            assignment
            for assignment in tax_assignments_from_rows(rows, scope)
            if assignment.is_active and assignment.is_effective(as_of)
        ]

    restaurant = _by_priority(usable(restaurant_rows, TaxScope.RESTAURANT))

    by_branch: dict[str, list[TaxAssignment]] = defaultdict(list)
    for assignment in usable(branch_rows, TaxScope.BRANCH):
        if assignment.branch_id is not None:
            by_branch[assignment.branch_id].append(assignment)

    by_branch_product: dict[str, list[TaxAssignment]] = defaultdict(list)
    for assignment in usable(branch_product_rows, TaxScope.BRANCH_PRODUCT):
        if assignment.branch_id is not None and assignment.product_id is not None:
            key = TaxResolver.key(assignment.branch_id, assignment.product_id)
            by_branch_product[key].append(assignment)

    return TaxResolver(
        restaurant=restaurant,
        by_branch={key: _by_priority(value) for key, value in by_branch.items()},
        by_branch_product={key: _by_priority(value) for key, value in by_branch_product.items()},
        default_rate=default_rate,
    )
