"""Health, metrics and promo validation endpoints."""

from datetime import datetime, timezone

from fastapi import status

from coffice.core.ulid_helper import generate_ulid
from coffice.middleware.prometheus_middleware import normalize_path


def test_health(client):
    response = client.get("/health")

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["status"] == "healthy"
    assert response.json()["service"] == "coffice"


def test_metrics_exposes_request_counters(client):
    client.get("/health")

    response = client.get("/metrics")

    assert response.status_code == status.HTTP_200_OK
    assert response.headers["content-type"].startswith("text/plain")
    assert "coffice_http_requests_total" in response.text


def test_normalize_path_collapses_ids():
    path = f"/api/v1/reservations/{generate_ulid()}/cancel"
    assert normalize_path(path) == "/api/v1/reservations/:id/cancel"


class TestPromoValidate:
    def test_valid_code(self, client, make_user, make_promo):
        member = make_user()
        make_promo(
            valid_from=datetime(2020, 1, 1, tzinfo=timezone.utc),
            valid_until=datetime(2099, 1, 1, tzinfo=timezone.utc),
        )

        response = client.post(
            "/api/v1/promo-codes/validate",
            json={"code": "save20", "order_amount": 3000},
            headers={"X-User-Id": member.id},
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {
            "code": "SAVE20",
            "discount_amount": 600,
            "amount_before": 3000,
            "amount_after": 2400,
        }

    def test_rejected_code(self, client, make_user, make_promo):
        member = make_user()
        make_promo(
            valid_from=datetime(2020, 1, 1, tzinfo=timezone.utc),
            valid_until=datetime(2099, 1, 1, tzinfo=timezone.utc),
        )

        response = client.post(
            "/api/v1/promo-codes/validate",
            json={"code": "SAVE20", "order_amount": 500},
            headers={"X-User-Id": member.id},
        )

        assert response.status_code == 422
        assert response.json()["detail"]["details"]["reason"] == "below_minimum"
