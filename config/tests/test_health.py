import pytest
from rest_framework.test import APIClient


@pytest.mark.django_db
def test_health_is_public_and_checks_database():
    resp = APIClient().get("/health/")

    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "database": "ok"}


@pytest.mark.django_db
def test_schema_lists_order_routes():
    resp = APIClient().get("/api/schema/", HTTP_ACCEPT="application/vnd.oai.openapi+json")

    assert resp.status_code == 200
    paths = resp.json()["paths"]
    assert "/api/v1/orders/" in paths
    assert "/api/v1/orders/{order_id}/cancel/" in paths
    assert "/api/v1/cart/items/" in paths
