"""HTTP surface."""

import pytest
from fastapi.testclient import TestClient

from app.main import app, get_catalog_service
from app.services.catalog import CatalogAssembler, InMemoryCatalogSource


class ExplodingSource(InMemoryCatalogSource):

    async def get_restaurant(self, restaurant_id):
        raise RuntimeError("database unavailable")


@pytest.fixture
def client(demo_assembler):
    app.dependency_overrides[get_catalog_service] = lambda: demo_assembler
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_root(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["catalog"] == "/api/catalog"


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "operational"
    assert body["provider"] == "memory"
    assert body["cache"] == "disabled"


def test_restaurant_catalog(client):
    response = client.get("/api/catalog/r-demo")
    assert response.status_code == 200
    body = response.json()
    assert body["restaurant"]["id"] == "r-demo"
    assert {branch["id"] for branch in body["branches"]} == {"b-downtown", "b-airport"}


def test_restaurant_catalog_with_branch(client):
    response = client.get("/api/catalog/r-demo", params={"branch_id": "b-downtown"})
    body = response.json()
    assert [branch["id"] for branch in body["branches"]] == ["b-downtown"]
    burger = next(p for p in body["branches"][0]["products"] if p["id"] == "p-burger")
    assert burger["price_with_tax"] == 101650.0


def test_blank_query_params_are_ignored(client):
    response = client.get("/api/catalog/r-demo", params={"branch_id": " ", "search": ""})
    assert len(response.json()["branches"]) == 2


def test_unknown_restaurant_is_404(client):
    response = client.get("/api/catalog/missing")
    assert response.status_code == 404
    assert response.json() == {"message": "Restaurant not found"}


def test_listing(client):
    response = client.get("/api/catalog", params={"search": "cola"})
    assert response.status_code == 200
    body = response.json()
    assert [c["restaurant"]["id"] for c in body["restaurants"]] == ["r-demo"]
    assert [p["id"] for p in body["products"]] == ["p-cola"]


def test_source_failure_is_500(demo_tables):
    app.dependency_overrides[get_catalog_service] = lambda: CatalogAssembler(ExplodingSource(demo_tables))
    try:
        response = TestClient(app, raise_server_exceptions=False).get("/api/catalog/r-demo")
    finally:
        app.dependency_overrides.clear()
    assert response.status_code == 500
    assert response.json()["error"] == "Internal Server Error"


def test_version_is_accepted_without_a_cache(client):
    response = client.get("/api/catalog/r-demo", params={"version": "v1"})
    assert response.status_code == 200
    assert response.json()["restaurant"]["id"] == "r-demo"
