"""Kind descriptors binding each governed table to its attribute schema."""

# purpose: let the store, query engine and protocol run once over every kind instead of per-table copies
# status: active
# depends_on: backend.responsibilities.models, backend.responsibilities.schemas

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Type

from pydantic import ValidationError as PydanticValidationError

from . import models, schemas
from .errors import ValidationError


@dataclass(frozen=True)
class KindDescriptor:
    name: str
    model: Type[models.VersionedMixin]
    schema: Type[schemas.VersionedAttributes]
    sort_attribute: str
    references: dict[str, str] = field(default_factory=dict)

    def validate(self, attrs: dict) -> dict:
        """Return attributes normalised by the kind schema or raise ``ValidationError``."""

        try:
            parsed = self.schema.model_validate(attrs)
        except PydanticValidationError as exc:
            raise ValidationError(_flatten_errors(exc)) from exc
        return parsed.model_dump(mode="python")


def _flatten_errors(exc: PydanticValidationError) -> dict[str, str]:
    errors: dict[str, str] = {}
    for error in exc.errors():
        field_name = ".".join(str(part) for part in error["loc"]) or "__root__"
        errors.setdefault(field_name, error["msg"])
    return errors


def _references(model: Type[models.VersionedMixin]) -> dict[str, str]:
    return {
        column.key: column.info["references"]
        for column in model.__table__.columns
        if "references" in column.info
    }


def _descriptor(model, schema, sort_attribute: str) -> KindDescriptor:
    return KindDescriptor(
        name=model.__tablename__,
        model=model,
        schema=schema,
        sort_attribute=sort_attribute,
        references=_references(model),
    )


WORKERS = _descriptor(models.Worker, schemas.WorkerAttributes, "display_name")
ACTIVITY_TYPES = _descriptor(models.ActivityType, schemas.ActivityTypeAttributes, "name")
ACTIVITIES = _descriptor(models.Activity, schemas.ActivityAttributes, "name")
ACTIVITY_TASKS = _descriptor(models.ActivityTask, schemas.ActivityTaskAttributes, "name")
RESPONSIBLE_FOR = _descriptor(models.ResponsibleFor, schemas.ResponsibleForAttributes, "start_date")
ASSIGNED_TO = _descriptor(models.AssignedTo, schemas.AssignedToAttributes, "start_date")

KINDS: dict[str, KindDescriptor] = {
    descriptor.name: descriptor
    for descriptor in (
        WORKERS,
        ACTIVITY_TYPES,
        ACTIVITIES,
        ACTIVITY_TASKS,
        RESPONSIBLE_FOR,
        ASSIGNED_TO,
    )
}


def get_kind(kind: str | KindDescriptor) -> KindDescriptor:
    if isinstance(kind, KindDescriptor):
        return kind
    try:
        return KINDS[kind]
    except KeyError:
        raise ValidationError({"kind": f"unknown kind {kind!r}"}) from None
