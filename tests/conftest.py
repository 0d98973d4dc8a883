"""Pytest configuration and fixtures."""

import json
import os
from pathlib import Path

import pytest

# Settings are cached on first use; pin development mode before any app import
os.environ["ENV_MODE"] = "development"
os.environ["CATALOG_CACHE_ENABLED"] = "false"
os.environ.pop("CATALOG_FIXTURE_PATH", None)

from app.services.catalog import CatalogAssembler, InMemoryCatalogSource  # noqa: E402

ROOT = Path(__file__).parent.parent
DEMO_FIXTURE = ROOT / "data" / "demo_catalog.json"


@pytest.fixture
def demo_tables():
    """Fresh copy of the demo fixture tables."""
    with open(DEMO_FIXTURE, encoding="utf-8") as handle:
        return json.load(handle)


@pytest.fixture
def demo_source(demo_tables):
    return InMemoryCatalogSource(demo_tables)


@pytest.fixture
def demo_assembler(demo_source):
    return CatalogAssembler(demo_source)


@pytest.fixture
def single_product_tables():
    """One restaurant, one branch, one product at 100000, restaurant tax 7%."""
    return {
        "restaurants": [{"id": "r-1", "name": "Solo"}],
        "branches": [{"id": "b-1", "restaurant_id": "r-1", "name": "Main"}],
        "products": [
            {"id": "p-1", "restaurant_id": "r-1", "title": "Plate", "base_price": 100000},
        ],
        "restaurant_tax_assignments": [
            {"id": "t-1", "restaurant_id": "r-1", "rate_percent": 7, "is_default": True},
        ],
    }
