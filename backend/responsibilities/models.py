"""SQLAlchemy models for versioned responsibility records."""

# purpose: persist every governed kind as an append-only table of versions plus the audit ledger
# status: active
# depends_on: sqlalchemy, backend.responsibilities.database

from __future__ import annotations

import enum
from datetime import datetime, timezone

import sqlalchemy as sa
from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import declared_attr

from .database import Base
from .errors import InvariantViolation


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class VersionStatus(str, enum.Enum):
    CURRENT = "current"
    DEPRECATED = "deprecated"
    DELETED = "deleted"


class AuditOperation(str, enum.Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


# Only the protocol's three transitions are legal; everything else is a bug.
STATUS_TRANSITIONS: dict[VersionStatus, frozenset[VersionStatus]] = {
    VersionStatus.CURRENT: frozenset({VersionStatus.DEPRECATED, VersionStatus.DELETED}),
    VersionStatus.DEPRECATED: frozenset(),
    VersionStatus.DELETED: frozenset(),
}

SYSTEM_COLUMNS = frozenset({"version", "entry", "status", "created_by", "created_at"})


def entry_reference(kind: str, *, nullable: bool = False) -> Column:
    """Column holding the ``entry`` of a record in another governed kind.

    ``entry`` is not unique, so the link is logical rather than a database
    foreign key; the referenced kind is kept in ``Column.info`` and checked
    by the revision protocol.
    """

    return Column(Integer, nullable=nullable, index=True, info={"references": kind})


class VersionedMixin:
    # purpose: shared columns and constraints for every bitemporal versioned kind
    # status: active
    version = Column(Integer, primary_key=True, autoincrement=True)
    status = Column(String(16), nullable=False, default=VersionStatus.CURRENT.value)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    created_by = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    @declared_attr
    def entry(cls):
        # null only between insert and back-fill inside the create transaction
        return Column(Integer, ForeignKey(f"{cls.__tablename__}.version"), nullable=True)

    @declared_attr
    def __table_args__(cls):
        table = cls.__tablename__
        current_only = sa.text("status = 'current'")
        return (
            Index(f"ix_{table}_entry_status", "entry", "status"),
            Index(f"ix_{table}_status_window", "status", "start_date", "end_date"),
            Index(
                f"uq_{table}_entry_current",
                "entry",
                unique=True,
                postgresql_where=current_only,
                sqlite_where=current_only,
            ),
            CheckConstraint(
                "end_date IS NULL OR end_date >= start_date",
                name=f"ck_{table}_validity_window",
            ),
            CheckConstraint(
                "status IN ('current', 'deprecated', 'deleted')",
                name=f"ck_{table}_status",
            ),
        )

    def attributes(self) -> dict:
        """Kind-specific attributes plus the validity window."""

        return {
            column.key: getattr(self, column.key)
            for column in self.__table__.columns
            if column.key not in SYSTEM_COLUMNS
        }

    def __repr__(self) -> str:
        return (
            f"<{type(self).__name__} entry={self.entry} version={self.version} "
            f"status={self.status}>"
        )


class Worker(VersionedMixin, Base):
    __tablename__ = "workers"

    display_name = Column(String(120), nullable=False)
    first_name = Column(String(80))
    last_name = Column(String(80))
    initials = Column(String(8))
    email = Column(String(255))


class ActivityType(VersionedMixin, Base):
    __tablename__ = "activity_types"

    name = Column(String(50), nullable=False)
    description = Column(Text)


class Activity(VersionedMixin, Base):
    __tablename__ = "activities"

    name = Column(String(200), nullable=False)
    description = Column(Text)
    icon = Column(String(10))
    activity_type = entry_reference("activity_types")


class ActivityTask(VersionedMixin, Base):
    __tablename__ = "activity_tasks"

    activity = entry_reference("activities")
    name = Column(String(200), nullable=False)
    description = Column(Text)


class ResponsibleFor(VersionedMixin, Base):
    __tablename__ = "responsible_for"

    activity = entry_reference("activities")
    user = entry_reference("workers")


class AssignedTo(VersionedMixin, Base):
    __tablename__ = "assigned_to"

    task = entry_reference("activity_tasks")
    user = entry_reference("workers")


class AuditLog(Base):
    __tablename__ = "audit_log"

    # purpose: append-only ledger of every create, update and delete on versioned kinds
    # status: active
    id = Column(Integer, primary_key=True, autoincrement=True)
    kind = Column(String(64), nullable=False)
    entry = Column(Integer, nullable=False)
    operation = Column(String(16), nullable=False)
    actor = Column(Integer, nullable=False)
    before = Column(JSON(none_as_null=True), nullable=True)
    after = Column(JSON(none_as_null=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        Index("ix_audit_log_kind_entry", "kind", "entry"),
        Index("ix_audit_log_created_at", "created_at"),
        CheckConstraint(
            "operation IN ('create', 'update', 'delete')",
            name="ck_audit_log_operation",
        ),
    )


def _primary_key(target):
    # identity key avoids refreshing expired attributes in the middle of a flush
    identity = sa.inspect(target).identity
    return identity[0] if identity else None


@sa.event.listens_for(VersionedMixin, "before_update", propagate=True)
def _guard_version_immutability(mapper, connection, target) -> None:
    state = sa.inspect(target)
    version = _primary_key(target)
    for attr in mapper.column_attrs:
        history = state.attrs[attr.key].history
        if not history.has_changes() or attr.key == "status":
            continue
        if (
            attr.key == "entry"
            and list(history.added) == [version]
            and all(value is None for value in history.deleted)
        ):
            continue
        raise InvariantViolation(
            f"{mapper.local_table.name} version {version}: column {attr.key!r} is immutable"
        )


@sa.event.listens_for(VersionedMixin, "before_delete", propagate=True)
def _forbid_version_delete(mapper, connection, target) -> None:
    raise InvariantViolation(
        f"{mapper.local_table.name} version {_primary_key(target)}: history is never erased"
    )


@sa.event.listens_for(AuditLog, "before_update")
def _forbid_audit_update(mapper, connection, target) -> None:
    raise InvariantViolation(f"audit row {_primary_key(target)} is append-only")


@sa.event.listens_for(AuditLog, "before_delete")
def _forbid_audit_delete(mapper, connection, target) -> None:
    raise InvariantViolation(f"audit row {_primary_key(target)} is append-only")
