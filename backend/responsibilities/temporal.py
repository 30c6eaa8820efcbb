"""As-of queries over versioned kinds."""

# purpose: answer "which version of this record holds at date D" without ever looking past the current version
# status: active
# depends_on: backend.responsibilities.models, backend.responsibilities.kinds

from __future__ import annotations

import logging
from datetime import date
from typing import Iterable, Sequence

import sqlalchemy as sa
from sqlalchemy.orm import Session

from . import models
from .errors import InvariantViolation
from .kinds import KindDescriptor, get_kind
from .monitoring import report_invariant_violation

logger = logging.getLogger(__name__)

_CURRENT = models.VersionStatus.CURRENT.value


def validity_clause(model, as_of: date):
    """Closed-closed window test; a null ``end_date`` is open-ended."""

    return sa.and_(
        model.start_date <= as_of,
        sa.or_(model.end_date.is_(None), model.end_date >= as_of),
    )


def _violation(message: str) -> InvariantViolation:
    exc = InvariantViolation(message)
    report_invariant_violation(logger, exc)
    return exc


def _single(
    descriptor: KindDescriptor, entry: int, rows: Sequence[models.VersionedMixin]
) -> models.VersionedMixin | None:
    if len(rows) > 1:
        versions = ", ".join(str(row.version) for row in rows)
        raise _violation(
            f"{descriptor.name} entry {entry} has {len(rows)} current versions ({versions})"
        )
    return rows[0] if rows else None


def ensure_unique_entries(
    descriptor: KindDescriptor, rows: Iterable[models.VersionedMixin]
) -> list[models.VersionedMixin]:
    seen: dict[int, int] = {}
    result = []
    for row in rows:
        if row.entry is None:
            raise _violation(f"{descriptor.name} version {row.version} has no entry")
        if row.entry in seen:
            raise _violation(
                f"{descriptor.name} entry {row.entry} matched by versions "
                f"{seen[row.entry]} and {row.version}"
            )
        seen[row.entry] = row.version
        result.append(row)
    return result


def current_version(
    db: Session,
    kind: str | KindDescriptor,
    entry: int,
    *,
    for_update: bool = False,
) -> models.VersionedMixin | None:
    """The ``current`` version of ``entry``, or ``None`` if retired or unknown.

    ``for_update`` takes a row lock for the rest of the transaction on engines
    that support ``SELECT ... FOR UPDATE``.
    """

    descriptor = get_kind(kind)
    model = descriptor.model
    query = db.query(model).filter(model.entry == entry, model.status == _CURRENT)
    if for_update:
        query = query.with_for_update()
    return _single(descriptor, entry, query.all())


def valid_at(
    db: Session, kind: str | KindDescriptor, entry: int, as_of: date
) -> models.VersionedMixin | None:
    descriptor = get_kind(kind)
    model = descriptor.model
    rows = (
        db.query(model)
        .filter(
            model.entry == entry,
            model.status == _CURRENT,
            validity_clause(model, as_of),
        )
        .all()
    )
    row = _single(descriptor, entry, rows)
    if row is None:
        logger.debug("%s entry %s not valid at %s", descriptor.name, entry, as_of)
    return row


def history(
    db: Session, kind: str | KindDescriptor, entry: int
) -> list[models.VersionedMixin]:
    """Every version ever written for ``entry``, newest first."""

    model = get_kind(kind).model
    return (
        db.query(model)
        .filter(model.entry == entry)
        .order_by(model.version.desc())
        .all()
    )


def list_valid(
    db: Session,
    kind: str | KindDescriptor,
    as_of: date,
    *criteria,
    order_by: Sequence | None = None,
) -> list[models.VersionedMixin]:
    """All current versions of a kind valid at ``as_of`` matching ``criteria``."""

    descriptor = get_kind(kind)
    model = descriptor.model
    if order_by is None:
        order_by = (getattr(model, descriptor.sort_attribute), model.entry)
    rows = (
        db.query(model)
        .filter(model.status == _CURRENT, validity_clause(model, as_of), *criteria)
        .order_by(*order_by)
        .all()
    )
    return ensure_unique_entries(descriptor, rows)


def valid_by_entry(
    db: Session,
    kind: str | KindDescriptor,
    entries: Iterable[int],
    as_of: date,
) -> dict[int, models.VersionedMixin]:
    """Map each of ``entries`` that is valid at ``as_of`` to its version."""

    wanted = set(entries)
    if not wanted:
        return {}
    model = get_kind(kind).model
    rows = list_valid(db, kind, as_of, model.entry.in_(wanted))
    return {row.entry: row for row in rows}
