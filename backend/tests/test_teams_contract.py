import threading
import uuid
from datetime import timedelta

import pytest
from sqlalchemy import select

from termin_manager.core.errors import Conflict, NotFound, ValidationError
from termin_manager.core.settings import settings
from termin_manager.crud import team as team_crud
from termin_manager.crud.appointment import create_appointment, list_appointments
from termin_manager.crud.notification import list_notifications
from termin_manager.models.team import Team, TeamSession, utcnow
from termin_manager.tenant_context import bind_team


def test_create_team_generates_code(client):
    r = client.post("/teams")
    assert r.status_code == 201

    data = r.json()
    assert data["id"]
    assert len(data["channel_code"]) == settings.CHANNEL_CODE_LENGTH
    assert set(data["channel_code"]) <= set(team_crud.CODE_ALPHABET)


def test_create_team_with_taken_code_is_conflict(client):
    assert client.post("/teams", json={"channel_code": "Buero-42"}).status_code == 201

    r = client.post("/teams", json={"channel_code": "Buero-42"})
    assert r.status_code == 409
    assert r.json()["detail"]["error_code"] == "CONFLICT"


def test_channel_code_with_whitespace_is_rejected(client):
    r = client.post("/teams", json={"channel_code": "mein team"})
    assert r.status_code == 400


def test_channel_code_is_case_sensitive(client):
    client.post("/teams", json={"channel_code": "Buero-42"})

    assert client.post("/sessions", json={"channel_code": "buero-42"}).status_code == 401
    # a different code, not a duplicate
    assert client.post("/teams", json={"channel_code": "buero-42"}).status_code == 201


def test_resolve_team_exact_match(db):
    team = team_crud.create_team(db, channel_code="Kanal-7")
    assert team_crud.resolve_team(db, "Kanal-7").id == team.id
    with pytest.raises(NotFound):
        team_crud.resolve_team(db, "KANAL-7")


def test_chosen_code_validated_in_store(db):
    with pytest.raises(ValidationError):
        team_crud.create_team(db, channel_code="ab")


def test_generated_code_collision_is_regenerated(db, monkeypatch):
    codes = iter(["SAMECODE", "SAMECODE", "OTHERCDE"])
    monkeypatch.setattr(team_crud, "generate_channel_code", lambda length=None: next(codes))

    t1 = team_crud.create_team(db)
    t2 = team_crud.create_team(db)

    assert t1.channel_code == "SAMECODE"
    assert t2.channel_code == "OTHERCDE"


def test_generated_code_gives_up_after_attempts(db, monkeypatch):
    monkeypatch.setattr(settings, "CHANNEL_CODE_ATTEMPTS", 3)
    monkeypatch.setattr(team_crud, "generate_channel_code", lambda length=None: "ALWAYS42")

    team_crud.create_team(db)
    with pytest.raises(Conflict):
        team_crud.create_team(db)


def test_concurrent_team_creation_never_duplicates_codes(session_factory, monkeypatch):
    # tiny code space so threads really collide
    monkeypatch.setattr(team_crud, "CODE_ALPHABET", "AB")
    monkeypatch.setattr(settings, "CHANNEL_CODE_LENGTH", 4)
    monkeypatch.setattr(settings, "CHANNEL_CODE_ATTEMPTS", 200)
    monkeypatch.setattr(settings, "DB_RETRY_ATTEMPTS", 10)

    codes = []
    errors = []
    lock = threading.Lock()

    def worker():
        s = session_factory()
        try:
            for _ in range(2):
                team = team_crud.create_team(s)
                with lock:
                    codes.append(team.channel_code)
        except Exception as exc:  # surfaced by the assert below
            with lock:
                errors.append(exc)
        finally:
            s.close()

    threads = [threading.Thread(target=worker) for _ in range(5)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert len(codes) == 10
    assert len(set(codes)) == 10

    s = session_factory()
    try:
        stored = list(s.scalars(select(Team.channel_code)))
    finally:
        s.close()
    assert sorted(stored) == sorted(codes)


def test_session_unknown_code_is_401(client):
    r = client.post("/sessions", json={"channel_code": "gibt-es-nicht"})
    assert r.status_code == 401


def test_requests_without_session_are_401(client):
    assert client.get("/appointments").status_code == 401
    assert client.get("/notifications").status_code == 401
    assert client.get("/appointments", headers={"Authorization": "Bearer nope"}).status_code == 401


def test_current_session_reports_team(client, login):
    team, headers = login()
    r = client.get("/sessions/current", headers=headers)
    assert r.status_code == 200
    assert r.json()["team_id"] == team["id"]


def test_logout_revokes_session(client, login):
    _, headers = login()
    assert client.get("/appointments", headers=headers).status_code == 200

    assert client.delete("/sessions/current", headers=headers).status_code == 204
    assert client.get("/appointments", headers=headers).status_code == 401


def test_expired_session_is_401(client, login, session_factory):
    _, headers = login()

    s = session_factory()
    try:
        row = s.scalars(select(TeamSession)).one()
        row.expires_at = utcnow() - timedelta(minutes=1)
        s.commit()
    finally:
        s.close()

    assert client.get("/appointments", headers=headers).status_code == 401


def test_team_teardown_cascades(client, login, session_factory, broker):
    team, headers = login()
    r = client.post(
        "/appointments",
        json={"name": "Acme Corp", "date": "2025-03-01", "time": "09:00"},
        headers=headers,
    )
    termin_id = r.json()["id"]
    client.post(
        "/notifications",
        json={"title": "Hinweis", "message": "Kunde ruft an", "termin_id": termin_id},
        headers=headers,
    )

    assert client.delete("/teams/current", headers=headers).status_code == 204

    # the session went with the team
    assert client.get("/appointments", headers=headers).status_code == 401

    s = session_factory()
    try:
        assert s.get(Team, uuid.UUID(team["id"])) is None
        ctx = bind_team(s, team["id"], broker)
        assert list_appointments(ctx) == []
        assert list_notifications(ctx) == []
    finally:
        s.close()


def test_delete_team_in_store(make_team):
    ctx = make_team()
    create_appointment(ctx, {"name": "Acme Corp", "date": "2025-03-01", "time": "09:00"})

    team_crud.delete_team(ctx)

    with pytest.raises(NotFound):
        team_crud.get_team(ctx.db, ctx.team_id)
