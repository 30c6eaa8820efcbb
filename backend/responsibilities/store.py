"""Append-only storage of record versions."""

# purpose: write version rows and drive the per-version status state machine
# status: active
# depends_on: backend.responsibilities.models, backend.responsibilities.kinds

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from . import models
from .errors import InvariantViolation
from .kinds import KindDescriptor, get_kind

logger = logging.getLogger(__name__)


def insert_version(
    db: Session,
    kind: str | KindDescriptor,
    entry: int | None,
    attributes: dict,
    *,
    actor: int,
) -> models.VersionedMixin:
    """Insert a ``current`` version and flush it.

    With ``entry=None`` the row starts a new record and its ``entry`` is
    back-filled with the version number the engine assigned. The caller owns
    the transaction and is responsible for deprecating any previous current
    version first.
    """

    descriptor = get_kind(kind)
    row = descriptor.model(
        **attributes,
        entry=entry,
        status=models.VersionStatus.CURRENT.value,
        created_by=actor,
    )
    db.add(row)
    db.flush()
    if entry is None:
        row.entry = row.version
        db.flush()
    logger.debug(
        "inserted %s version %s for entry %s", descriptor.name, row.version, row.entry
    )
    return row


def mark_status(
    db: Session,
    kind: str | KindDescriptor,
    version: int,
    status: models.VersionStatus | str,
) -> models.VersionedMixin:
    descriptor = get_kind(kind)
    row = db.get(descriptor.model, version)
    if row is None:
        raise InvariantViolation(f"{descriptor.name} version {version} does not exist")
    target = models.VersionStatus(status)
    source = models.VersionStatus(row.status)
    if target not in models.STATUS_TRANSITIONS[source]:
        raise InvariantViolation(
            f"{descriptor.name} version {version}: illegal transition "
            f"{source.value} -> {target.value}"
        )
    row.status = target.value
    db.flush()
    return row
