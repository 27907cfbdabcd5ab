"""
Pruebas de consulta y gestión de notificaciones
"""
from datetime import timedelta

import pytest

from app.core.exceptions import NotFoundError, ValidationError
from app.models.notification import Notification, NotificationType
from app.services.notification_service import NotificationService


@pytest.fixture
def add_notification(db, at):
    def _add(medicine_id=None, notification_type=NotificationType.BUY_SOON, is_read=False, created_at=None):
        notification = Notification(
            medicine_id=medicine_id,
            type=notification_type,
            message="Mensaje de prueba",
            payload=None,
            is_read=is_read,
            created_at=created_at or at(9)
        )
        db.add(notification)
        db.commit()
        db.refresh(notification)
        return notification

    return _add


class TestQueries:

    def test_filters_by_type_and_read_state(self, db, make_medication, add_notification):
        medication = make_medication()
        add_notification(medication.id, NotificationType.BUY_SOON)
        add_notification(medication.id, NotificationType.DOSE_DUE, is_read=True)
        add_notification(medication.id, NotificationType.MISSED_DOSE)
        service = NotificationService(db)

        assert len(service.get_notifications(notification_type="DOSE_DUE")) == 1
        assert len(service.get_notifications(is_read=False)) == 2
        assert len(service.get_unread_notifications(medication.id)) == 2

    def test_invalid_type_and_sort_are_rejected(self, db):
        service = NotificationService(db)

        with pytest.raises(ValidationError):
            service.get_notifications(notification_type="urgent")
        with pytest.raises(ValidationError):
            service.get_notifications(sort_by="message")
        with pytest.raises(ValidationError):
            service.get_notifications(sort_direction="up")

    def test_newest_first_by_default(self, db, add_notification, at):
        older = add_notification(created_at=at(7))
        newer = add_notification(created_at=at(10))

        ids = [n.id for n in NotificationService(db).get_notifications()]

        assert ids == [newer.id, older.id]

    def test_missing_notification(self, db):
        with pytest.raises(NotFoundError):
            NotificationService(db).get_notification_by_id(12345)

    def test_stats_and_summary(self, db, make_medication, add_notification):
        medication = make_medication()
        add_notification(medication.id, NotificationType.BUY_SOON)
        add_notification(medication.id, NotificationType.BUY_SOON, is_read=True)
        add_notification(medication.id, NotificationType.MISSED_DOSE)
        service = NotificationService(db)

        stats = service.get_notification_stats()
        assert stats["total_notifications"] == 3
        assert stats["unread_count"] == 2
        assert stats["read_count"] == 1
        assert stats["buy_soon_count"] == 2
        assert stats["dose_due_count"] == 0

        summary = service.get_notification_summary()
        assert [s["type"] for s in summary] == ["BUY_SOON", "MISSED_DOSE"]
        assert summary[0]["total_count"] == 2
        assert summary[0]["unread_count"] == 1

    def test_stats_on_empty_table(self, db):
        stats = NotificationService(db).get_notification_stats()

        assert stats["total_notifications"] == 0
        assert stats["latest_notification"] is None


class TestManagement:

    def test_mark_as_read(self, db, add_notification):
        notification = add_notification()

        updated = NotificationService(db).mark_notification_as_read(notification.id)

        assert updated.is_read is True

    def test_mark_multiple_counts_only_unread(self, db, add_notification):
        first = add_notification()
        second = add_notification()
        already_read = add_notification(is_read=True)

        result = NotificationService(db).mark_multiple_notifications_as_read([first.id, second.id, already_read.id])

        assert result == {"updated_count": 2}

    @pytest.mark.parametrize("ids", [[], [0], ["x"], None])
    def test_mark_multiple_rejects_invalid_ids(self, db, ids):
        with pytest.raises(ValidationError):
            NotificationService(db).mark_multiple_notifications_as_read(ids)

    def test_mark_all_for_medication(self, db, make_medication, add_notification):
        medication = make_medication(name="Atorvastatina")
        other = make_medication(name="Levotiroxina")
        add_notification(medication.id)
        add_notification(medication.id, NotificationType.DOSE_DUE)
        add_notification(other.id)
        service = NotificationService(db)

        result = service.mark_all_notifications_as_read_for_medication(medication.id)

        assert result == {"medicine_id": medication.id, "updated_count": 2}
        assert len(service.get_unread_notifications()) == 1

    def test_mark_all_for_missing_medication(self, db):
        with pytest.raises(NotFoundError):
            NotificationService(db).mark_all_notifications_as_read_for_medication(999)

    def test_delete(self, db, add_notification):
        notification = add_notification()
        notification_id = notification.id
        service = NotificationService(db)

        assert service.delete_notification(notification_id) == {"deleted": True, "id": notification_id}
        with pytest.raises(NotFoundError):
            service.get_notification_by_id(notification_id)

    def test_cleanup_removes_only_old_notifications(self, db, add_notification, at):
        now = at(12)
        add_notification(created_at=now - timedelta(days=45))
        add_notification(created_at=now - timedelta(days=31))
        recent = add_notification(created_at=now - timedelta(days=2))
        service = NotificationService(db)

        result = service.cleanup_old_notifications(30, now=now)

        assert result["deleted_count"] == 2
        assert result["cleanup_date"] == now.isoformat()
        assert [n.id for n in service.get_notifications()] == [recent.id]

    @pytest.mark.parametrize("days_old", [0, 366, 7.5, "30"])
    def test_cleanup_range(self, db, days_old):
        with pytest.raises(ValidationError):
            NotificationService(db).cleanup_old_notifications(days_old)
