import logging

from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from lms_module.models import Notification, UserRole
from lms_module.notifications import admin_user_ids, notify


def test_notify_dedups_recipients(db, student, other_student):
    created = notify(db, [student.user.id, other_student.user.id, student.user.id], "Hello", "Welcome aboard")

    assert sorted(n.user_id for n in created) == sorted([student.user.id, other_student.user.id])
    assert db.scalar(select(func.count(Notification.id))) == 2


def test_notify_without_recipients_is_noop(db):
    assert notify(db, [], "Nobody", "Nothing") == []
    assert db.scalar(select(func.count(Notification.id))) == 0


def test_notify_failure_is_swallowed_and_logged(db, student, monkeypatch, caplog):
    def broken_commit():
        raise OperationalError("INSERT", {}, Exception("database is locked"))

    monkeypatch.setattr(db, "commit", broken_commit)
    with caplog.at_level(logging.ERROR, logger="lms_module.notifications"):
        assert notify(db, [student.user.id], "Hello", "Body") == []

    assert "Failed to dispatch notification" in caplog.text
    monkeypatch.undo()
    assert db.scalar(select(func.count(Notification.id))) == 0


def test_admin_user_ids(db, admin, make_account):
    second = make_account(UserRole.ADMIN)
    make_account(UserRole.STUDENT)
    assert sorted(admin_user_ids(db)) == sorted([admin.user.id, second.user.id])


def test_inbox_filters_and_marks_read(client, db, student, other_student):
    notify(db, [student.user.id], "Graded", "Your essay was graded", category="assignment")
    notify(db, [student.user.id], "Leave", "Approved", category="leave")
    notify(db, [other_student.user.id], "Someone else", "Not yours")

    res = client.get("/api/notifications", headers=student.headers)
    assert res.status_code == 200
    page = res.json()["data"]
    assert page["total"] == 2

    res = client.get("/api/notifications", params={"category": "assignment"}, headers=student.headers)
    items = res.json()["data"]["items"]
    assert [n["title"] for n in items] == ["Graded"]

    res = client.patch(f"/api/notifications/{items[0]['id']}", json={"is_read": True}, headers=student.headers)
    assert res.status_code == 200
    assert res.json()["data"]["is_read"] is True

    res = client.get("/api/notifications", params={"unread": "true"}, headers=student.headers)
    assert [n["title"] for n in res.json()["data"]["items"]] == ["Leave"]


def test_cannot_touch_someone_elses_notification(client, db, student, other_student):
    [notification] = notify(db, [other_student.user.id], "Private", "Hands off")

    res = client.delete(f"/api/notifications/{notification.id}", headers=student.headers)
    assert res.status_code == 403
    assert res.json() == {"success": False, "error": "Forbidden: notification belongs to another user"}


def test_broadcast_is_admin_only(client, admin, teacher, student):
    res = client.post("/api/notifications", json={"title": "Hi", "body": "All hands"}, headers=teacher.headers)
    assert res.status_code == 403

    res = client.post("/api/notifications", json={"title": "Hi", "body": "All hands"}, headers=admin.headers)
    assert res.status_code == 201
    assert res.json()["data"]["sent"] == 3

    res = client.post(
        "/api/notifications",
        json={"title": "Hi", "body": "Just you", "user_ids": [student.user.id]},
        headers=admin.headers,
    )
    assert res.json()["data"]["sent"] == 1

    res = client.post("/api/notifications", json={"title": "Hi", "body": "Ghost", "user_id": 999}, headers=admin.headers)
    assert res.status_code == 400
