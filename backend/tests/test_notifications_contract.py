import datetime as dt
import itertools

import pytest

from termin_manager.core.errors import NotFound, ValidationError
from termin_manager.crud import notification as notification_crud
from termin_manager.crud.appointment import create_appointment
from termin_manager.crud.change_log import current_seq
from termin_manager.crud.notification import (
    create_notification,
    delete_notification,
    get_notification,
    list_notifications,
    mark_read,
)

HINWEIS = {"title": "Hinweis", "message": "Bitte zurueckrufen"}


@pytest.fixture
def ticking_clock(monkeypatch):
    """Distinct, increasing created_at values for ordering tests."""
    start = dt.datetime(2025, 3, 1, 8, 0, tzinfo=dt.timezone.utc)
    ticks = itertools.count()
    monkeypatch.setattr(notification_crud, "utcnow", lambda: start + dt.timedelta(minutes=next(ticks)))


def test_create_defaults(make_team):
    ctx = make_team()
    n = create_notification(ctx, HINWEIS)
    assert n.team_id == ctx.team_id
    assert n.type == "custom"
    assert n.read is False
    assert n.termin_id is None


@pytest.mark.parametrize("kind", ["new_termin", "reminder", "custom"])
def test_type_accepts_defined_values(make_team, kind):
    ctx = make_team()
    assert create_notification(ctx, {**HINWEIS, "type": kind}).type == kind


@pytest.mark.parametrize("kind", ["alarm", "Custom", "", None])
def test_type_rejects_other_values(make_team, kind):
    ctx = make_team()
    with pytest.raises(ValidationError):
        create_notification(ctx, {**HINWEIS, "type": kind})


@pytest.mark.parametrize("override", [{"title": ""}, {"message": "  "}, {"title": None}])
def test_title_and_message_required(make_team, override):
    ctx = make_team()
    with pytest.raises(ValidationError):
        create_notification(ctx, {**HINWEIS, **override})


def test_link_to_own_appointment(make_team):
    ctx = make_team()
    a = create_appointment(ctx, {"name": "Acme Corp", "date": "2025-03-01", "time": "09:00"})
    n = create_notification(ctx, {**HINWEIS, "termin_id": str(a.id)})
    assert n.termin_id == a.id


def test_link_to_foreign_appointment_is_validation_error(make_team):
    ours = make_team()
    theirs = make_team()
    foreign = create_appointment(theirs, {"name": "Fremd GmbH", "date": "2025-03-01", "time": "09:00"})

    with pytest.raises(ValidationError):
        create_notification(ours, HINWEIS, termin_id=foreign.id)
    with pytest.raises(ValidationError):
        create_notification(ours, {**HINWEIS, "termin_id": str(foreign.id)})
    assert list_notifications(ours) == []


def test_link_to_missing_appointment_is_validation_error(make_team):
    ctx = make_team()
    with pytest.raises(ValidationError):
        create_notification(ctx, HINWEIS, termin_id="00000000-0000-0000-0000-000000000042")


def test_malformed_link_is_validation_error(make_team):
    ctx = make_team()
    with pytest.raises(ValidationError):
        create_notification(ctx, HINWEIS, termin_id="kein-termin")
    with pytest.raises(ValidationError):
        create_notification(ctx, {**HINWEIS, "termin_id": "kein-termin"})
    assert list_notifications(ctx) == []


def test_mark_read_is_idempotent(make_team):
    ctx = make_team()
    n = create_notification(ctx, HINWEIS)

    first = mark_read(ctx, n.id)
    assert first.read is True
    seq_after_first = current_seq(ctx)
    snapshot = (first.id, first.title, first.message, first.type, first.read, first.termin_id, first.created_at)

    second = mark_read(ctx, n.id)
    assert (second.id, second.title, second.message, second.type, second.read, second.termin_id, second.created_at) == snapshot
    # no-op: nothing new in the change log
    assert current_seq(ctx) == seq_after_first


def test_mark_read_missing_is_not_found(make_team):
    ctx = make_team()
    with pytest.raises(NotFound):
        mark_read(ctx, "00000000-0000-0000-0000-000000000001")


def test_list_newest_first_and_read_filter(make_team, ticking_clock):
    ctx = make_team()
    first = create_notification(ctx, {**HINWEIS, "title": "eins"})
    second = create_notification(ctx, {**HINWEIS, "title": "zwei"})
    third = create_notification(ctx, {**HINWEIS, "title": "drei"})
    mark_read(ctx, second.id)

    assert [n.title for n in list_notifications(ctx)] == ["drei", "zwei", "eins"]
    assert [n.title for n in list_notifications(ctx, read=False)] == ["drei", "eins"]
    assert [n.title for n in list_notifications(ctx, read=True)] == ["zwei"]
    assert {first.id, third.id} == {n.id for n in list_notifications(ctx, read=False)}


def test_delete(make_team):
    ctx = make_team()
    n = create_notification(ctx, HINWEIS)
    delete_notification(ctx, n.id)
    with pytest.raises(NotFound):
        get_notification(ctx, n.id)
    with pytest.raises(NotFound):
        delete_notification(ctx, n.id)


# -----------------------------
# HTTP contract
# -----------------------------

def test_api_patch_only_marks_read(client, login):
    _, headers = login()
    created = client.post("/notifications", json=HINWEIS, headers=headers)
    assert created.status_code == 201
    nid = created.json()["id"]

    assert client.patch(f"/notifications/{nid}", json={"read": False}, headers=headers).status_code == 400
    assert client.patch(f"/notifications/{nid}", json={"title": "neu"}, headers=headers).status_code == 400
    assert client.patch(f"/notifications/{nid}", json={"read": True, "title": "neu"}, headers=headers).status_code == 400

    r = client.patch(f"/notifications/{nid}", json={"read": True}, headers=headers)
    assert r.status_code == 200
    assert r.json()["read"] is True
    assert r.json()["title"] == "Hinweis"

    again = client.patch(f"/notifications/{nid}", json={"read": True}, headers=headers)
    assert again.status_code == 200
    assert again.json() == r.json()


def test_api_list_filter(client, login):
    _, headers = login()
    a = client.post("/notifications", json={**HINWEIS, "title": "a"}, headers=headers).json()
    client.post("/notifications", json={**HINWEIS, "title": "b"}, headers=headers)
    client.patch(f"/notifications/{a['id']}", json={"read": True}, headers=headers)

    unread = client.get("/notifications?read=false", headers=headers).json()
    assert [n["title"] for n in unread] == ["b"]
    read = client.get("/notifications?read=true", headers=headers).json()
    assert [n["title"] for n in read] == ["a"]


def test_api_type_validation(client, login):
    _, headers = login()
    assert client.post("/notifications", json={**HINWEIS, "type": "alarm"}, headers=headers).status_code == 400
    assert client.post("/notifications", json={**HINWEIS, "type": "reminder"}, headers=headers).status_code == 201
