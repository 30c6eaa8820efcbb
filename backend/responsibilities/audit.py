from datetime import date, datetime, timezone
from typing import Any

from sqlalchemy import func
from sqlalchemy.orm import Session

from . import models


def _jsonable(value: Any) -> Any:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


def snapshot(row: models.VersionedMixin | None) -> dict | None:
    """Every column of a version as a JSON-ready dict."""
    if row is None:
        return None
    return {
        column.key: _jsonable(getattr(row, column.key))
        for column in row.__table__.columns
    }


def log_mutation(
    db: Session,
    actor: int,
    operation: models.AuditOperation | str,
    kind: str,
    entry: int,
    before: dict | None = None,
    after: dict | None = None,
):
    log = models.AuditLog(
        kind=kind,
        entry=entry,
        operation=models.AuditOperation(operation).value,
        actor=actor,
        before=before,
        after=after,
        created_at=datetime.now(timezone.utc),
    )
    db.add(log)
    db.flush()
    return log


def history_of(db: Session, kind: str, entry: int) -> list[models.AuditLog]:
    return (
        db.query(models.AuditLog)
        .filter(models.AuditLog.kind == kind, models.AuditLog.entry == entry)
        .order_by(models.AuditLog.created_at.desc(), models.AuditLog.id.desc())
        .all()
    )


def generate_report(
    db: Session,
    start: datetime,
    end: datetime,
    actor: int | None = None,
):
    query = db.query(models.AuditLog).filter(
        models.AuditLog.created_at >= start,
        models.AuditLog.created_at <= end,
    )
    if actor is not None:
        query = query.filter(models.AuditLog.actor == actor)
    rows = (
        query.with_entities(models.AuditLog.operation, func.count(models.AuditLog.id))
        .group_by(models.AuditLog.operation)
        .order_by(models.AuditLog.operation)
        .all()
    )
    return [{"operation": r[0], "count": r[1]} for r in rows]
