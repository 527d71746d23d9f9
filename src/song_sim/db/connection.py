from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

import psycopg2
from psycopg2.extensions import connection as PgConnection

from song_sim.config.settings import DBSettings

logger = logging.getLogger("song_sim.db")

APPLICATION_NAME = "song-sim"


class DBClient:
    """One lazily opened Postgres connection shared by a simulator's store and chronicle."""

    def __init__(self, settings: DBSettings) -> None:
        self._settings = settings
        self._conn: PgConnection | None = None

    def connect(self) -> None:
        if self._conn is not None and not self._conn.closed:
            return
        if self._conn is not None:
            logger.warning("Postgres connection was closed; reconnecting to %s", self._settings.host)
        self._conn = psycopg2.connect(self._settings.dsn, application_name=APPLICATION_NAME)
        self._conn.autocommit = False
        logger.info("Connected to Postgres: host=%s db=%s", self._settings.host, self._settings.name)

    @property
    def conn(self) -> PgConnection:
        self.connect()
        assert self._conn is not None
        return self._conn

    @contextmanager
    def cursor(self) -> Iterator:
        """A cursor whose work is committed on exit and rolled back on any error."""
        conn = self.conn
        cur = conn.cursor()
        try:
            yield cur
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            cur.close()

    def close(self) -> None:
        if self._conn is not None:
            if not self._conn.closed:
                self._conn.close()
            self._conn = None
