"""Tests for the reservation status sync task and its beat schedule."""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

from coffice.models import Reservation
from coffice.tasks.celery_app import celery_app, get_beat_schedule


class TestSyncReservationStatuses:
    def test_sweeps_past_reservations(self, db, session_factory, make_user, make_resource, make_reservation):
        from coffice.tasks.reservation_tasks import sync_reservation_statuses

        desk, member = make_resource(), make_user()
        # Far enough in the past for any wall clock the suite runs under
        long_past = datetime(2020, 3, 2, 8, tzinfo=timezone.utc)
        confirmed = make_reservation(
            desk, member, long_past, long_past + timedelta(hours=3),
            status="confirmed", confirmed_at=long_past - timedelta(days=1),
        )
        pending = make_reservation(desk, member, long_past + timedelta(days=1), long_past + timedelta(days=1, hours=2))

        with patch("coffice.tasks.reservation_tasks.SessionLocal", session_factory):
            counts = sync_reservation_statuses.apply().get()

        assert counts == {"started": 1, "completed": 1, "expired": 1, "skipped": 0}
        db.expire_all()
        assert db.get(Reservation, confirmed.id).status == "completed"
        assert db.get(Reservation, pending.id).status == "cancelled"

    @patch("coffice.tasks.reservation_tasks.ReservationService")
    @patch("coffice.tasks.reservation_tasks.SessionLocal")
    def test_session_is_closed(self, mock_session_local, mock_service_cls):
        from coffice.tasks.reservation_tasks import sync_reservation_statuses

        mock_db = MagicMock()
        mock_session_local.return_value = mock_db
        mock_service_cls.return_value.sync_time_based_statuses.return_value = {
            "started": 0,
            "completed": 0,
            "expired": 0,
            "skipped": 0,
        }

        sync_reservation_statuses.apply().get()

        mock_service_cls.assert_called_once_with(mock_db)
        mock_db.close.assert_called_once()


class TestBeatSchedule:
    def test_status_sync_is_scheduled(self):
        schedule = get_beat_schedule()

        entry = schedule["sync-reservation-statuses"]
        assert entry["task"] == "coffice.tasks.reservation_tasks.sync_reservation_statuses"
        assert isinstance(entry["schedule"], timedelta)

    def test_task_is_registered(self):
        from coffice.tasks import reservation_tasks  # noqa: F401

        assert "coffice.tasks.reservation_tasks.sync_reservation_statuses" in celery_app.tasks
