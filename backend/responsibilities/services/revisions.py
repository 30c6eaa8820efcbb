"""Create, revise and retire versioned records."""

# purpose: the only writer of versioned kinds; each operation is one transaction with its audit row
# status: active
# depends_on: backend.responsibilities.store, backend.responsibilities.temporal, backend.responsibilities.audit

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Mapping

from sqlalchemy.orm import Session

from .. import audit, models, store, temporal
from ..database import transaction
from ..errors import NotFound, RevisionConflict, ValidationError
from ..kinds import KindDescriptor, get_kind
from ..monitoring import record_mutation
from ..schemas import RecordOut

logger = logging.getLogger(__name__)


def _check_actor(actor: Any) -> None:
    if isinstance(actor, bool) or not isinstance(actor, int) or actor <= 0:
        raise ValidationError({"actor": "must be a positive integer"})


def _check_references(db: Session, descriptor: KindDescriptor, values: Mapping[str, Any]) -> None:
    errors: dict[str, str] = {}
    for attribute, referenced_kind in descriptor.references.items():
        value = values.get(attribute)
        if value is None:
            continue
        if temporal.current_version(db, referenced_kind, value) is None:
            errors[attribute] = f"unknown {referenced_kind} entry {value}"
    if errors:
        raise ValidationError(errors)


def _lock_current(
    db: Session,
    descriptor: KindDescriptor,
    entry: int,
    expected_version: int | None,
) -> models.VersionedMixin:
    current = temporal.current_version(db, descriptor, entry, for_update=True)
    if current is None:
        raise NotFound(descriptor.name, entry)
    if expected_version is not None and current.version != expected_version:
        raise RevisionConflict(
            f"{descriptor.name} entry {entry} is at version {current.version}, "
            f"not {expected_version}"
        )
    return current


def create(
    db: Session,
    kind: str | KindDescriptor,
    attrs: Mapping[str, Any],
    actor: int,
) -> int:
    """Start a new record and return its ``entry``."""

    descriptor = get_kind(kind)
    _check_actor(actor)
    with transaction(db):
        values = descriptor.validate(dict(attrs))
        _check_references(db, descriptor, values)
        row = store.insert_version(db, descriptor, None, values, actor=actor)
        entry, version = row.entry, row.version
        audit.log_mutation(
            db,
            actor,
            models.AuditOperation.CREATE,
            descriptor.name,
            entry,
            after=audit.snapshot(row),
        )
    record_mutation(descriptor.name, models.AuditOperation.CREATE.value)
    logger.info("created %s entry=%s version=%s actor=%s", descriptor.name, entry, version, actor)
    return entry


def revise(
    db: Session,
    kind: str | KindDescriptor,
    entry: int,
    attrs: Mapping[str, Any],
    actor: int,
    *,
    expected_version: int | None = None,
) -> int:
    """Supersede the current version of ``entry`` and return the new ``version``.

    ``attrs`` is a partial update merged over the current attributes; pass
    ``None`` explicitly to clear an optional attribute such as ``end_date``.
    When ``expected_version`` is given the revision only applies if that
    version is still current.
    """

    descriptor = get_kind(kind)
    _check_actor(actor)
    with transaction(db):
        current = _lock_current(db, descriptor, entry, expected_version)
        previous = current.attributes()
        values = descriptor.validate({**previous, **attrs})
        # unchanged links may point at entries retired since they were written
        changed = {key: value for key, value in values.items() if previous.get(key) != value}
        _check_references(db, descriptor, changed)
        before = audit.snapshot(current)
        store.mark_status(db, descriptor, current.version, models.VersionStatus.DEPRECATED)
        row = store.insert_version(db, descriptor, entry, values, actor=actor)
        version = row.version
        audit.log_mutation(
            db,
            actor,
            models.AuditOperation.UPDATE,
            descriptor.name,
            entry,
            before=before,
            after=audit.snapshot(row),
        )
    record_mutation(descriptor.name, models.AuditOperation.UPDATE.value)
    logger.info("revised %s entry=%s version=%s actor=%s", descriptor.name, entry, version, actor)
    return version


def retire(
    db: Session,
    kind: str | KindDescriptor,
    entry: int,
    actor: int,
    *,
    expected_version: int | None = None,
) -> None:
    """Mark the current version ``deleted``; the entry has no current version afterwards."""

    descriptor = get_kind(kind)
    _check_actor(actor)
    with transaction(db):
        current = _lock_current(db, descriptor, entry, expected_version)
        before = audit.snapshot(current)
        store.mark_status(db, descriptor, current.version, models.VersionStatus.DELETED)
        audit.log_mutation(
            db,
            actor,
            models.AuditOperation.DELETE,
            descriptor.name,
            entry,
            before=before,
        )
    record_mutation(descriptor.name, models.AuditOperation.DELETE.value)
    logger.info("retired %s entry=%s actor=%s", descriptor.name, entry, actor)


def get(db: Session, kind: str | KindDescriptor, entry: int, as_of: date) -> RecordOut:
    descriptor = get_kind(kind)
    row = temporal.valid_at(db, descriptor, entry, as_of)
    if row is None:
        raise NotFound(
            descriptor.name,
            entry,
            f"{descriptor.name} entry {entry} is not valid on {as_of.isoformat()}",
        )
    return RecordOut.from_version(descriptor.name, row)


def history(db: Session, kind: str | KindDescriptor, entry: int) -> list[RecordOut]:
    descriptor = get_kind(kind)
    rows = temporal.history(db, descriptor, entry)
    if not rows:
        raise NotFound(descriptor.name, entry, f"{descriptor.name} entry {entry} does not exist")
    return [RecordOut.from_version(descriptor.name, row) for row in rows]
