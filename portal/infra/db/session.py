from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from portal.common.config import Settings

logger = logging.getLogger("portal.db")


def _build_connect_args(settings: Settings) -> dict[str, Any]:
    if settings.DB_URL.lower().startswith("postgresql"):
        return {
            "connect_timeout": settings.DB_CONNECT_TIMEOUT,
            "sslmode": settings.DB_SSLMODE,
        }
    return {}


def build_engine(settings: Settings) -> Engine:
    """Create the bounded connection pool described by ``settings``.

    ``max_overflow=0`` caps open connections at ``DB_POOL_SIZE``; callers wait
    up to ``DB_POOL_TIMEOUT`` seconds for a free one.
    """
    return create_engine(
        settings.DB_URL,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=0,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=settings.DB_POOL_RECYCLE,
        pool_pre_ping=True,
        future=True,
        connect_args=_build_connect_args(settings),
    )


class DatabasePool:
    """Handle on the shared database pool.

    Built once at start-up and passed to whatever needs a connection. Every
    connection handed out is returned to the pool on both success and
    failure.
    """

    def __init__(self, settings: Settings, *, engine: Engine | None = None) -> None:
        self._settings = settings
        self._engine = engine or build_engine(settings)
        self._session_factory = sessionmaker(
            bind=self._engine,
            autoflush=False,
            autocommit=False,
            expire_on_commit=False,
        )

    @property
    def engine(self) -> Engine:
        return self._engine

    @contextmanager
    def connection(self) -> Iterator[Connection]:
        """Acquire a pooled connection inside a transaction.

        The transaction commits when the block exits cleanly and rolls back
        when it raises; the connection goes back to the pool either way.
        """
        with self._engine.connect() as conn:
            try:
                yield conn
                conn.commit()
            except Exception:
                conn.rollback()
                raise

    @contextmanager
    def session(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def check(self) -> bool:
        """Run ``SELECT 1`` on a pooled connection."""
        try:
            with self._engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            logger.error("db_check_failed error=%s", exc)
            return False
        return True

    def status(self) -> dict[str, Any]:
        pool = self._engine.pool
        payload: dict[str, Any] = {"pool": pool.status()}
        for name in ("size", "checkedin", "checkedout", "overflow"):
            probe = getattr(pool, name, None)
            if callable(probe):
                payload[name] = probe()
        return payload

    def dispose(self) -> None:
        self._engine.dispose()
