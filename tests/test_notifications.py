import uuid
from datetime import datetime, timedelta

import pytest

from verdepm.errors import NotFoundOrDenied, ValidationFailed
from verdepm.models.models import Notification
from verdepm.services import notifications as notification_service


def _add(db, user, title, minutes_ago, type="info", read=False):
    n = Notification(
        user_id=user.user_id,
        title=title,
        type=type,
        read=read,
        timestamp=datetime(2024, 6, 3, 12, 0) - timedelta(minutes=minutes_ago),
    )
    db.add(n)
    db.commit()
    return n


def test_list_is_newest_first_and_normalizes_type(db, make_member):
    user, _ = make_member()
    _add(db, user, "Old", 30)
    _add(db, user, "New", 1, type="alarm")

    rows = notification_service.list_user_notifications(db, user.user_id)

    assert [r["title"] for r in rows] == ["New", "Old"]
    assert rows[0]["type"] == "info"
    assert rows[0]["message"] == ""


def test_list_limit_and_unread_filter(db, make_member):
    user, _ = make_member()
    _add(db, user, "Read", 5, read=True)
    _add(db, user, "Unread", 10)

    assert [r["title"] for r in notification_service.list_user_notifications(db, user.user_id, limit=1)] == ["Read"]
    unread = notification_service.list_user_notifications(db, user.user_id, unread_only=True)
    assert [r["title"] for r in unread] == ["Unread"]


def test_create_requires_title(db, make_member):
    user, _ = make_member()
    with pytest.raises(ValidationFailed):
        notification_service.create_notification(db, user.user_id, "   ")

    created = notification_service.create_notification(db, user.user_id, "Target met", type="success")
    assert created["type"] == "success"
    assert created["read"] is False


def test_mark_read_is_scoped_to_owner(db, make_member):
    user, org = make_member()
    other, _ = make_member(email="crew@verdepm.io", role="member", organization=org)
    n = _add(db, user, "Log due", 1)

    with pytest.raises(NotFoundOrDenied):
        notification_service.mark_read(db, other.user_id, n.id)
    assert notification_service.mark_read(db, user.user_id, n.id)["read"] is True


def test_mark_all_read(db, make_member):
    user, _ = make_member()
    _add(db, user, "A", 1)
    _add(db, user, "B", 2)
    _add(db, user, "C", 3, read=True)

    assert notification_service.mark_all_read(db, user.user_id) == 2
    assert notification_service.list_user_notifications(db, user.user_id, unread_only=True) == []


def test_notification_routes(client, db, make_member, headers):
    user, _ = make_member()
    n = _add(db, user, "Delivery arrived", 1)

    listed = client.get("/notifications", headers=headers(user)).json()
    assert [r["id"] for r in listed] == [str(n.id)]

    assert client.post(f"/notifications/{n.id}/read", headers=headers(user)).json()["read"] is True
    assert client.post(f"/notifications/{uuid.uuid4()}/read", headers=headers(user)).status_code == 404
    assert client.post("/notifications/read-all", headers=headers(user)).json() == {"updated": 0}
