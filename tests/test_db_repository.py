import json

import pytest

from song_sim.config.settings import DBSettings
from song_sim.db.connection import DBClient
from song_sim.db.repository import SnapshotRepository
from song_sim.utils.types import ChronicleEvent


class FakeCursor:
    def __init__(self, conn) -> None:
        self.conn = conn
        self.closed = False

    def execute(self, sql, params=None) -> None:
        if self.conn.fail_on and self.conn.fail_on in sql:
            raise RuntimeError("boom")
        self.conn.executed.append((" ".join(sql.split()), params))

    def fetchone(self):
        return self.conn.rows.pop(0) if self.conn.rows else None

    def fetchall(self):
        rows, self.conn.rows = self.conn.rows, []
        return rows

    def close(self) -> None:
        self.closed = True


class FakeConnection:
    def __init__(self) -> None:
        self.executed: list = []
        self.rows: list = []
        self.commits = 0
        self.rollbacks = 0
        self.fail_on: str | None = None
        self.closed = False

    def cursor(self) -> FakeCursor:
        return FakeCursor(self)

    def commit(self) -> None:
        self.commits += 1

    def rollback(self) -> None:
        self.rollbacks += 1

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def conn():
    return FakeConnection()


@pytest.fixture
def repo(conn):
    client = DBClient(DBSettings(host="h", port=5432, name="song", user="u", password="p"))
    client._conn = conn
    return SnapshotRepository(client)


class TestDBClient:
    def test_dsn(self):
        settings = DBSettings(host="h", port=5433, name="song", user="u", password="p")
        assert settings.dsn == "dbname=song user=u password=p host=h port=5433"

    def test_rollback_on_error(self, repo, conn):
        conn.fail_on = "INSERT INTO world_snapshots"
        with pytest.raises(RuntimeError):
            repo.save("default", "{}")
        assert conn.rollbacks == 1
        assert conn.commits == 0

    def test_reconnects_when_closed(self, monkeypatch, conn):
        calls = []

        def fake_connect(dsn, **kwargs):
            calls.append((dsn, kwargs))
            return conn

        monkeypatch.setattr("song_sim.db.connection.psycopg2.connect", fake_connect)
        client = DBClient(DBSettings(host="h", port=5432, name="song", user="u", password="p"))
        stale = FakeConnection()
        stale.closed = True
        client._conn = stale
        assert client.conn is conn
        assert conn.autocommit is False
        assert calls[0][1]["application_name"] == "song-sim"

    def test_close(self, repo, conn):
        repo.db.close()
        assert conn.closed
        assert repo.db._conn is None


class TestSnapshotRepository:
    def test_ensure_schema(self, repo, conn):
        repo.ensure_schema()
        sql, _ = conn.executed[0]
        assert "CREATE TABLE IF NOT EXISTS world_snapshots" in sql
        assert "CREATE TABLE IF NOT EXISTS chronicle_events" in sql
        assert conn.commits == 1

    def test_save_upserts(self, repo, conn):
        repo.save("default", '{"turn": 1}')
        sql, params = conn.executed[0]
        assert "ON CONFLICT (slot)" in sql
        assert params == ("default", '{"turn": 1}')

    def test_load(self, repo, conn):
        conn.rows = [('{"turn": 1}',)]
        assert repo.load("default") == '{"turn": 1}'
        assert repo.load("default") is None

    def test_append_events(self, repo, conn):
        events = [
            ChronicleEvent(turn=3, kind="birth", message="Kyllikki is born.", subject="Kyllikki"),
            ChronicleEvent(turn=3, kind="verse_lost", message="Gone.", verse_id="flake"),
        ]
        repo.append_events("default", events)
        assert len(conn.executed) == 2
        sql, params = conn.executed[1]
        assert "%s::jsonb" in sql
        assert params[:6] == ("default", 3, "verse_lost", "Gone.", None, "flake")
        assert json.loads(params[6])["kind"] == "verse_lost"
        assert conn.commits == 1

    def test_append_nothing(self, repo, conn):
        repo.append_events("default", [])
        assert conn.executed == []

    def test_get_events(self, repo, conn):
        conn.rows = [(0, "season", "Spring.", None, None), (0, "birth", "Born.", "Ahti", None)]
        events = repo.get_events("default")
        assert [e["kind"] for e in events] == ["season", "birth"]
        assert events[1]["subject"] == "Ahti"
