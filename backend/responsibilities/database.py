"""Database engine, session factory and transaction scope."""

# purpose: own the SQLAlchemy engine and the single-transaction boundary used by every write
# status: active
# depends_on: sqlalchemy

from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from .errors import RevisionConflict, StorageFailure, VersioningError

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./responsibilities.db")


def _connect_args(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"check_same_thread": False, "timeout": 30}
    return {}


def make_engine(url: str = DATABASE_URL) -> Engine:
    return create_engine(url, connect_args=_connect_args(url))


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    if dbapi_connection.__class__.__module__.startswith("sqlite3"):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


engine = make_engine()
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def _is_single_current_violation(exc: IntegrityError) -> bool:
    # postgres names the partial index, sqlite names the column
    message = str(exc.orig).lower()
    if "uq_" in message and "_entry_current" in message:
        return True
    return "unique" in message and ".entry" in message


@contextmanager
def transaction(db: Session) -> Iterator[Session]:
    """Run a unit of work as one transaction.

    Commits when the block exits cleanly. Any exception rolls the session
    back; storage-level errors are surfaced as :class:`StorageFailure` (or
    :class:`RevisionConflict` when the single-current index rejected the
    write), domain errors propagate unchanged.
    """

    try:
        yield db
        db.commit()
    except VersioningError:
        db.rollback()
        raise
    except IntegrityError as exc:
        db.rollback()
        if _is_single_current_violation(exc):
            raise RevisionConflict(
                "another revision of this entry committed first"
            ) from exc
        raise StorageFailure(f"transaction rejected by storage engine: {exc.orig}") from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.warning("transaction rolled back: %s", exc)
        raise StorageFailure(f"transaction could not commit: {exc}") from exc
    except BaseException:
        db.rollback()
        raise
