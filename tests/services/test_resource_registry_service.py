"""Tests for the resource registry."""

import pytest

from coffice.core.exceptions import ConflictException, NotFoundException, ValidationException
from coffice.services.resource_registry_service import ResourceRegistryService

from clock_helpers import local


@pytest.fixture
def registry(db) -> ResourceRegistryService:
    return ResourceRegistryService(db)


def _desk(**overrides):
    data = {
        "name": "Phone booth",
        "resource_type": "booth",
        "capacity": 1,
        "hourly_rate": 400,
        "daily_rate": 2500,
    }
    data.update(overrides)
    return data


class TestCreate:
    def test_create_resource(self, registry):
        resource = registry.create_resource(**_desk(description="Soundproofed"))

        assert resource.id
        assert resource.is_active is True
        assert resource.available is True
        assert registry.get_resource(resource.id).name == "Phone booth"

    @pytest.mark.parametrize(
        "overrides,code",
        [
            ({"resource_type": "sofa"}, "INVALID_RESOURCE_TYPE"),
            ({"capacity": 0}, "INVALID_CAPACITY"),
            ({"hourly_rate": -1}, "INVALID_RATE"),
            ({"monthly_rate": -100}, "INVALID_RATE"),
            ({"hourly_rate": None}, "INVALID_RATE"),
        ],
    )
    def test_invalid_resource_is_rejected(self, registry, overrides, code):
        with pytest.raises(ValidationException) as exc_info:
            registry.create_resource(**_desk(**overrides))
        assert exc_info.value.code == code


class TestUpdate:
    def test_update_rates(self, registry, make_resource):
        desk = make_resource()

        updated = registry.update_resource(desk.id, hourly_rate=600, weekly_rate=14000)

        assert updated.hourly_rate == 600
        assert updated.weekly_rate == 14000

    def test_unknown_fields_are_refused(self, registry, make_resource):
        desk = make_resource()

        with pytest.raises(ValidationException) as exc_info:
            registry.update_resource(desk.id, colour="blue", is_active=False)

        assert exc_info.value.code == "UNKNOWN_FIELDS"
        assert exc_info.value.details["fields"] == ["colour", "is_active"]

    def test_update_missing_resource(self, registry):
        with pytest.raises(NotFoundException):
            registry.update_resource("01JAAAAAAAAAAAAAAAAAAAAAAA", capacity=2)


class TestListAndDeactivate:
    def test_list_filters_by_type_and_hides_inactive(self, registry, make_resource):
        desk = make_resource(name="Desk")
        room = make_resource(name="Room", resource_type="meeting_room", capacity=8)
        retired = make_resource(name="Old room", resource_type="meeting_room", is_active=False)

        assert [r.id for r in registry.list_resources()] == [desk.id, room.id]
        assert [r.id for r in registry.list_resources(resource_type="meeting_room")] == [room.id]
        assert retired.id in {r.id for r in registry.list_resources(include_inactive=True)}

    def test_deactivate_idle_resource(self, registry, make_resource):
        desk = make_resource()

        retired = registry.deactivate_resource(desk.id)

        assert retired.is_active is False
        assert retired.available is False
        assert retired.is_bookable is False

    def test_deactivate_refused_with_live_reservations(self, registry, make_resource, make_user, make_reservation):
        desk = make_resource()
        make_reservation(desk, make_user(), local(2026, 10, 20, 9), local(2026, 10, 20, 12), status="confirmed")

        with pytest.raises(ConflictException) as exc_info:
            registry.deactivate_resource(desk.id)

        assert exc_info.value.code == "RESOURCE_IN_USE"
        assert registry.get_resource(desk.id).is_active is True

    def test_closed_reservations_do_not_block_deactivation(self, registry, make_resource, make_user, make_reservation):
        desk = make_resource()
        make_reservation(desk, make_user(), local(2026, 10, 20, 9), local(2026, 10, 20, 12), status="cancelled")

        assert registry.deactivate_resource(desk.id).is_active is False
