"""Reservation API tests against a real per-test database."""

from datetime import datetime

from fastapi import status
import pytest

from coffice.core.ulid_helper import generate_ulid

from clock_helpers import local

START = local(2026, 10, 20, 9)
END = local(2026, 10, 20, 17)


def _headers(user):
    return {"X-User-Id": user.id}


@pytest.fixture
def member(make_user):
    return make_user()


@pytest.fixture
def admin(make_user):
    return make_user(is_admin=True)


@pytest.fixture
def desk(make_resource):
    return make_resource()


def _create(client, user, resource, start=START, end=END, **extra):
    body = {"resource_id": resource.id, "start_at": start.isoformat(), "end_at": end.isoformat()}
    body.update(extra)
    return client.post("/api/v1/reservations", json=body, headers=_headers(user))


class TestAuth:
    def test_missing_header(self, client):
        assert client.get("/api/v1/reservations").status_code == status.HTTP_401_UNAUTHORIZED

    def test_unknown_user(self, client):
        response = client.get("/api/v1/reservations", headers={"X-User-Id": generate_ulid()})
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_malformed_user_id(self, client):
        response = client.get("/api/v1/reservations", headers={"X-User-Id": "not-a-ulid"})
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_admin_only_endpoints(self, client, member):
        response = client.post("/api/v1/reservations/sync-statuses", headers=_headers(member))
        assert response.status_code == status.HTTP_403_FORBIDDEN


class TestCreateReservation:
    def test_create_returns_pending_variant(self, client, member, desk):
        response = _create(client, member, desk, participant_count=2, notes="Team sync")

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()
        assert data["status"] == "pending"
        assert data["resource_id"] == desk.id
        assert data["user_id"] == member.id
        assert data["participant_count"] == 2
        assert data["base_price"] == 3000
        assert data["final_price"] == 3000
        assert data["pricing_tier"] == "daily"
        assert "confirmed_at" not in data
        assert "cancelled_at" not in data

    def test_overlap_is_a_conflict(self, client, member, make_user, desk):
        first = _create(client, member, desk).json()

        response = _create(client, make_user(), desk, start=local(2026, 10, 20, 12), end=local(2026, 10, 20, 18))

        assert response.status_code == status.HTTP_409_CONFLICT
        detail = response.json()["detail"]
        assert detail["code"] == "BOOKING_CONFLICT"
        assert detail["details"]["conflicting_reservation_id"] == first["id"]

    def test_back_to_back_is_allowed(self, client, member, desk):
        assert _create(client, member, desk, end=local(2026, 10, 20, 12)).status_code == 201
        assert _create(client, member, desk, start=local(2026, 10, 20, 12)).status_code == 201

    def test_invalid_interval_is_bad_request(self, client, member, desk):
        response = _create(client, member, desk, start=END, end=START)

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["detail"]["code"] == "INVALID_INTERVAL"

    def test_participant_count_out_of_range(self, client, member, desk):
        response = _create(client, member, desk, participant_count=0)

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["detail"]["code"] == "INVALID_PARTICIPANT_COUNT"

    def test_naive_datetimes_fail_schema_validation(self, client, member, desk):
        response = _create(
            client, member, desk, start=datetime(2026, 10, 20, 9), end=datetime(2026, 10, 20, 17)
        )
        assert response.status_code == 422

    def test_unknown_fields_fail_schema_validation(self, client, member, desk):
        assert _create(client, member, desk, final_price=0).status_code == 422

    def test_unknown_resource(self, client, member):
        body = {"resource_id": generate_ulid(), "start_at": START.isoformat(), "end_at": END.isoformat()}

        response = client.post("/api/v1/reservations", json=body, headers=_headers(member))

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_invalid_promo_reports_reason(self, client, member, desk):
        response = _create(client, member, desk, promo_code="NOPE")

        assert response.status_code == 422
        assert response.json()["detail"]["details"]["reason"] == "unknown"


class TestLifecycle:
    def test_confirm_then_cancel(self, client, member, admin, desk):
        created = _create(client, member, desk).json()

        confirmed = client.post(f"/api/v1/reservations/{created['id']}/confirm", headers=_headers(admin))
        assert confirmed.status_code == status.HTTP_200_OK
        assert confirmed.json()["status"] == "confirmed"
        assert confirmed.json()["confirmed_at"] is not None

        cancelled = client.post(
            f"/api/v1/reservations/{created['id']}/cancel",
            json={"reason": "Plans changed"},
            headers=_headers(member),
        )
        assert cancelled.status_code == status.HTTP_200_OK
        data = cancelled.json()
        assert data["status"] == "cancelled"
        assert data["cancellation_reason"] == "Plans changed"
        assert data["cancelled_by_id"] == member.id

    def test_cancel_without_body(self, client, member, desk):
        created = _create(client, member, desk).json()

        response = client.post(f"/api/v1/reservations/{created['id']}/cancel", headers=_headers(member))

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "cancelled"

    def test_cancel_twice_is_a_conflict(self, client, member, desk):
        created = _create(client, member, desk).json()
        client.post(f"/api/v1/reservations/{created['id']}/cancel", headers=_headers(member))

        response = client.post(f"/api/v1/reservations/{created['id']}/cancel", headers=_headers(member))

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json()["detail"]["details"]["current_status"] == "cancelled"

    def test_stranger_cannot_cancel(self, client, member, make_user, desk):
        created = _create(client, member, desk).json()

        response = client.post(f"/api/v1/reservations/{created['id']}/cancel", headers=_headers(make_user()))

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_start_before_start_time(self, client, member, admin, desk):
        created = _create(client, member, desk).json()
        client.post(f"/api/v1/reservations/{created['id']}/confirm", headers=_headers(admin))

        response = client.post(f"/api/v1/reservations/{created['id']}/start", headers=_headers(admin))

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["detail"]["code"] == "NOT_STARTED"

    def test_start_and_complete_as_time_passes(self, client, clock, member, admin, desk):
        created = _create(client, member, desk).json()
        path = f"/api/v1/reservations/{created['id']}"
        client.post(f"{path}/confirm", headers=_headers(admin))

        clock.set(local(2026, 10, 20, 9))
        started = client.post(f"{path}/start", headers=_headers(admin)).json()
        assert started["status"] == "in_progress"
        assert started["started_at"] is not None

        clock.set(local(2026, 10, 20, 17))
        completed = client.post(f"{path}/complete", headers=_headers(admin)).json()
        assert completed["status"] == "completed"

    def test_sync_statuses(self, client, clock, member, admin, desk):
        created = _create(client, member, desk).json()
        client.post(f"/api/v1/reservations/{created['id']}/confirm", headers=_headers(admin))
        clock.set(local(2026, 10, 20, 10))

        response = client.post("/api/v1/reservations/sync-statuses", headers=_headers(admin))

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["started"] == 1


class TestReadReservations:
    def test_owner_and_admin_can_read(self, client, member, admin, desk):
        created = _create(client, member, desk).json()

        assert client.get(f"/api/v1/reservations/{created['id']}", headers=_headers(member)).status_code == 200
        assert client.get(f"/api/v1/reservations/{created['id']}", headers=_headers(admin)).status_code == 200

    def test_other_users_reservations_are_hidden(self, client, member, make_user, desk):
        created = _create(client, member, desk).json()

        response = client.get(f"/api/v1/reservations/{created['id']}", headers=_headers(make_user()))

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_list_only_returns_own_reservations(self, client, member, make_user, desk):
        mine = _create(client, member, desk).json()
        _create(client, make_user(), desk, start=local(2026, 10, 21, 9), end=local(2026, 10, 21, 17))

        response = client.get("/api/v1/reservations", headers=_headers(member))

        assert [r["id"] for r in response.json()] == [mine["id"]]

    def test_quote(self, client, member, desk, make_enrollment):
        make_enrollment(member, hours=2)
        body = {"resource_id": desk.id, "start_at": START.isoformat(), "end_at": local(2026, 10, 20, 12).isoformat()}

        response = client.post("/api/v1/reservations/quote", json=body, headers=_headers(member))

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["base_price"] == 1500
        assert data["tier"] == "hourly"
        assert data["subscription_hours_used"] == 2
        assert data["final_price"] == 500
        assert len(data["segments"]) == 1
