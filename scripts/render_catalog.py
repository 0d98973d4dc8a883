"""
Catalog Render Script

Loads a JSON fixture into the in-memory catalog source, assembles one
restaurant's catalog and prints it.
Run from project root: python scripts/render_catalog.py --branch <branch_id>
"""

import argparse
import asyncio
import json
import os
import sys
from typing import Any, Optional

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.services.catalog import CatalogAssembler, InMemoryCatalogSource

DEFAULT_FIXTURE = os.path.join("data", "demo_catalog.json")


def print_summary(catalog: dict[str, Any]) -> None:
    """Print a short per-branch overview of an assembled catalog."""
    restaurant = catalog["restaurant"]
    print("=" * 70)
    print(f"CATALOG: {restaurant.get('name')} ({restaurant.get('id')})")
    print("=" * 70)
    print(f"Categories: {len(catalog['categories'])}")
    print(f"Products:   {len(catalog['products'])}")
    print(f"Combos:     {len(catalog['combos'])}")

    for branch in catalog["branches"]:
        print("\n" + "-" * 70)
        print(f"BRANCH: {branch.get('name')} ({branch.get('id')})")
        print("-" * 70)
        for product in branch["products"]:
            marker = "" if product["available"] else "  [unavailable]"
            print(
                f"   {product['title']:<30} {product['base_price']:>10.2f} "
                f"-> {product['price_with_tax']:>10.2f} @ {product['tax_rate']}%{marker}"
            )
            for group in product["options"]:
                items = ", ".join(
                    f"{item['name']} (+{item['effective_price_delta']:.2f})" for item in group["items"]
                )
                print(f"      {group['name']}: {items}")
        for combo in branch["combos"]:
            print(
                f"   [combo] {combo['name']:<22} {combo['base_price']:>10.2f} "
                f"-> {combo['price_with_tax']:>10.2f} @ {combo['tax_rate']}%"
            )
    print("=" * 70)


async def render(
    fixture: str,
    restaurant_id: Optional[str],
    branch_id: Optional[str],
    search: Optional[str],
    category_id: Optional[str],
) -> Optional[dict[str, Any]]:
    source = InMemoryCatalogSource.from_json_file(fixture)
    assembler = CatalogAssembler(source)

    if restaurant_id is None:
        restaurants = await source.list_restaurants()
        if not restaurants:
            return None
        restaurant_id = restaurants[0].get("id")

    return await assembler.get_restaurant_catalog(
        restaurant_id,
        branch_id=branch_id,
        search=search,
        category_id=category_id,
    )


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Render a restaurant catalog from a JSON fixture")
    parser.add_argument("--fixture", default=DEFAULT_FIXTURE, help="Fixture file")
    parser.add_argument("--restaurant", default=None, help="Restaurant id (default: first in fixture)")
    parser.add_argument("--branch", default=None, help="Only include this branch")
    parser.add_argument("--search", default=None, help="Product text filter")
    parser.add_argument("--category", default=None, help="Product category filter")
    parser.add_argument("--summary", action="store_true", help="Print a summary instead of JSON")
    args = parser.parse_args()

    if not os.path.exists(args.fixture):
        print(f"Fixture not found: {args.fixture}")
        sys.exit(1)

    catalog = asyncio.run(render(args.fixture, args.restaurant, args.branch, args.search, args.category))
    if catalog is None:
        print("Restaurant not found")
        sys.exit(1)

    if args.summary:
        print_summary(catalog)
    else:
        print(json.dumps(catalog, indent=2, default=str))
