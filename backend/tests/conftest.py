import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from termin_manager.core.settings import settings
from termin_manager.crud import team as team_crud
from termin_manager.db import Base, get_db, get_session_factory, make_engine
from termin_manager.realtime.broker import ChangeBroker, get_broker
from termin_manager.tenant_context import bind_team


def _import_all_models():
    # registers every table on Base.metadata before create_all()
    import termin_manager.models.team  # noqa: F401
    import termin_manager.models.appointment  # noqa: F401
    import termin_manager.models.notification  # noqa: F401
    import termin_manager.models.change_log  # noqa: F401


@pytest.fixture(autouse=True)
def _fast_retries(monkeypatch):
    monkeypatch.setattr(settings, "DB_RETRY_BACKOFF_S", 0.0)


@pytest.fixture
def engine(tmp_path):
    # one SQLite file per test: nothing leaks between tests
    _import_all_models()
    eng = make_engine(f"sqlite:///{tmp_path / 'test.db'}")
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    s = session_factory()
    yield s
    s.close()


@pytest.fixture
def broker():
    return ChangeBroker(queue_size=16)


@pytest.fixture
def make_team(session_factory, broker):
    """Creates a team and returns a TeamContext on a session of its own."""
    opened = []

    def _make(channel_code=None):
        s = session_factory()
        opened.append(s)
        team = team_crud.create_team(s, channel_code=channel_code)
        return bind_team(s, team.id, broker)

    yield _make
    for s in opened:
        s.close()


@pytest.fixture
def client(session_factory, broker):
    from termin_manager.main import app

    def _get_db():
        s = session_factory()
        try:
            yield s
        finally:
            s.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_broker] = lambda: broker
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def login(client):
    """Creates a team over the API and opens a session; returns team json + auth header."""

    def _login(channel_code=None):
        body = {"channel_code": channel_code} if channel_code else None
        r = client.post("/teams", json=body)
        assert r.status_code == 201
        team = r.json()

        r = client.post("/sessions", json={"channel_code": team["channel_code"]})
        assert r.status_code == 201
        token = r.json()["access_token"]
        return team, {"Authorization": f"Bearer {token}"}

    return _login
