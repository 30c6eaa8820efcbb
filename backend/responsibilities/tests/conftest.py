import os
os.environ.setdefault("DATABASE_URL", "sqlite:///./test_responsibilities.db")
from datetime import date

import pytest
import sqlalchemy as sa
from sqlalchemy.orm import sessionmaker

from responsibilities import models, store
from responsibilities.kinds import get_kind
from responsibilities.database import Base, make_engine
from responsibilities.services import revisions

SQLALCHEMY_DATABASE_URL = "sqlite:///./test_responsibilities.db"
engine = make_engine(SQLALCHEMY_DATABASE_URL)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

ACTOR = 1
JAN_1 = date(2024, 1, 1)


@pytest.fixture(autouse=True)
def fresh_schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


class Seeder:
    """Creates records through the revision protocol so every seed is audited."""

    def __init__(self, db, actor: int = ACTOR):
        self.db = db
        self.actor = actor

    def _create(self, kind, start, end, **attrs):
        attrs.update(start_date=start, end_date=end)
        return revisions.create(self.db, kind, attrs, self.actor)

    def worker(self, display_name, start=JAN_1, end=None, **attrs):
        return self._create("workers", start, end, display_name=display_name, **attrs)

    def activity_type(self, name="Operations", start=JAN_1, end=None):
        return self._create("activity_types", start, end, name=name)

    def activity(self, name, activity_type=None, start=JAN_1, end=None, **attrs):
        if activity_type is None:
            activity_type = self.activity_type()
        return self._create(
            "activities", start, end, name=name, activity_type=activity_type, **attrs
        )

    def task(self, activity, name, start=JAN_1, end=None):
        return self._create("activity_tasks", start, end, activity=activity, name=name)

    def responsible(self, activity, user, start=JAN_1, end=None):
        return self._create("responsible_for", start, end, activity=activity, user=user)

    def assignment(self, task, user, start=JAN_1, end=None):
        return self._create("assigned_to", start, end, task=task, user=user)


@pytest.fixture
def seed(db):
    return Seeder(db)


@pytest.fixture
def duplicate_current(db):
    """Force a second current version onto an entry, bypassing the protocol.

    The single-current partial index is dropped first so the broken state
    can reach the table at all.
    """

    def _duplicate(kind: str, entry: int):
        db.execute(sa.text(f"DROP INDEX uq_{kind}_entry_current"))
        current = db.query(get_kind(kind).model).filter_by(
            entry=entry, status=models.VersionStatus.CURRENT.value
        ).one()
        row = store.insert_version(db, kind, entry, current.attributes(), actor=ACTOR)
        db.commit()
        return row.version

    return _duplicate


@pytest.fixture
def session_factory():
    return TestingSessionLocal
