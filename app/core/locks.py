from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError


logger = logging.getLogger(__name__)


class PgAdvisoryLock:
    """Session-level pg_advisory_lock held on a dedicated connection.

    The lock lives as long as the connection, so `held` is just whether we
    still own one. Dialects other than PostgreSQL never acquire it.
    """

    def __init__(self, engine: Engine, key: int) -> None:
        self.engine = engine
        self.key = key
        self._conn: Optional[Connection] = None

    @property
    def held(self) -> bool:
        return self._conn is not None

    def acquire(self) -> bool:
        if self.held:
            return True
        if self.engine.dialect.name != "postgresql":
            logger.info("advisory lock %s unavailable on %s", self.key, self.engine.dialect.name)
            return False

        conn = self.engine.connect()
        try:
            granted = conn.execute(text("SELECT pg_try_advisory_lock(:key)"), {"key": self.key}).scalar()
            conn.commit()
        except SQLAlchemyError:
            logger.exception("advisory lock %s: try_lock failed", self.key)
            conn.close()
            return False

        if not granted:
            conn.close()
            logger.info("advisory lock %s is held by another process", self.key)
            return False

        self._conn = conn
        logger.info("advisory lock %s acquired", self.key)
        return True

    def release(self) -> None:
        conn, self._conn = self._conn, None
        if conn is None:
            return
        try:
            conn.execute(text("SELECT pg_advisory_unlock(:key)"), {"key": self.key})
            conn.commit()
        except SQLAlchemyError:
            logger.exception("advisory lock %s: unlock failed, dropping the connection instead", self.key)
        finally:
            conn.close()
        logger.info("advisory lock %s released", self.key)
