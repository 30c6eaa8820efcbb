"""Cross-kind reads: who and what is active for an activity, task or worker on a date."""

# purpose: compose as-of queries across activities, tasks, workers and their links
# status: active
# depends_on: backend.responsibilities.temporal, backend.responsibilities.kinds

from __future__ import annotations

from collections import defaultdict
from datetime import date
from typing import Iterable

import sqlalchemy as sa
from sqlalchemy.orm import Session

from .. import models, temporal
from ..kinds import (
    ACTIVITIES,
    ACTIVITY_TASKS,
    ACTIVITY_TYPES,
    ASSIGNED_TO,
    RESPONSIBLE_FOR,
    WORKERS,
    KindDescriptor,
)
from ..schemas import ActivityOverview, RecordOut, ResolvedAssignment, TaskOverview


def _records(descriptor: KindDescriptor, rows: Iterable[models.VersionedMixin]) -> list[RecordOut]:
    return [RecordOut.from_version(descriptor.name, row) for row in rows]


def _resolve_links(
    descriptor: KindDescriptor,
    links: Iterable[models.VersionedMixin],
    workers: dict[int, models.Worker],
) -> list[ResolvedAssignment]:
    # links whose worker has no valid version on the date are dropped, not nulled
    resolved = [
        ResolvedAssignment(
            link=RecordOut.from_version(descriptor.name, link),
            worker=RecordOut.from_version(WORKERS.name, workers[link.user]),
        )
        for link in links
        if link.user in workers
    ]
    resolved.sort(
        key=lambda item: (item.worker.attributes["display_name"].casefold(), item.link.entry)
    )
    return resolved


def _join_workers(
    db: Session,
    descriptor: KindDescriptor,
    links: list[models.VersionedMixin],
    as_of: date,
) -> list[ResolvedAssignment]:
    workers = temporal.valid_by_entry(db, WORKERS, (link.user for link in links), as_of)
    return _resolve_links(descriptor, links, workers)


def responsibles_of(db: Session, activity_entry: int, as_of: date) -> list[ResolvedAssignment]:
    """Responsible workers of an activity on ``as_of``; empty when the activity is not valid then."""

    if temporal.valid_at(db, ACTIVITIES, activity_entry, as_of) is None:
        return []
    links = temporal.list_valid(
        db, RESPONSIBLE_FOR, as_of, models.ResponsibleFor.activity == activity_entry
    )
    return _join_workers(db, RESPONSIBLE_FOR, links, as_of)


def tasks_of(db: Session, activity_entry: int, as_of: date) -> list[RecordOut]:
    if temporal.valid_at(db, ACTIVITIES, activity_entry, as_of) is None:
        return []
    rows = temporal.list_valid(
        db, ACTIVITY_TASKS, as_of, models.ActivityTask.activity == activity_entry
    )
    return _records(ACTIVITY_TASKS, rows)


def assignees_of(db: Session, task_entry: int, as_of: date) -> list[ResolvedAssignment]:
    if temporal.valid_at(db, ACTIVITY_TASKS, task_entry, as_of) is None:
        return []
    links = temporal.list_valid(db, ASSIGNED_TO, as_of, models.AssignedTo.task == task_entry)
    return _join_workers(db, ASSIGNED_TO, links, as_of)


def _responsible_activity_entries(db: Session, worker_entry: int, as_of: date) -> set[int]:
    links = temporal.list_valid(
        db, RESPONSIBLE_FOR, as_of, models.ResponsibleFor.user == worker_entry
    )
    return {link.activity for link in links}


def _assigned_tasks(db: Session, worker_entry: int, as_of: date) -> list[models.ActivityTask]:
    assignments = temporal.list_valid(
        db, ASSIGNED_TO, as_of, models.AssignedTo.user == worker_entry
    )
    task_entries = {assignment.task for assignment in assignments}
    if not task_entries:
        return []
    return temporal.list_valid(
        db, ACTIVITY_TASKS, as_of, models.ActivityTask.entry.in_(task_entries)
    )


def activities_of(
    db: Session,
    worker_entry: int,
    as_of: date,
    responsible: bool = True,
) -> list[RecordOut]:
    """Activities a worker is involved in on ``as_of``.

    With ``responsible=True`` these are the activities the worker is
    responsible for; otherwise the activities reached only through task
    assignments, leaving out those the worker is also responsible for.
    """

    if temporal.valid_at(db, WORKERS, worker_entry, as_of) is None:
        return []
    responsible_entries = _responsible_activity_entries(db, worker_entry, as_of)
    if responsible:
        activity_entries = responsible_entries
    else:
        tasks = _assigned_tasks(db, worker_entry, as_of)
        activity_entries = {task.activity for task in tasks} - responsible_entries
    if not activity_entries:
        return []
    rows = temporal.list_valid(
        db, ACTIVITIES, as_of, models.Activity.entry.in_(activity_entries)
    )
    return _records(ACTIVITIES, rows)


def worker_tasks(
    db: Session,
    worker_entry: int,
    as_of: date,
    activity: int | None = None,
) -> list[RecordOut]:
    """Tasks assigned to a worker on ``as_of`` whose activity is also valid then."""

    if temporal.valid_at(db, WORKERS, worker_entry, as_of) is None:
        return []
    tasks = _assigned_tasks(db, worker_entry, as_of)
    if activity is not None:
        tasks = [task for task in tasks if task.activity == activity]
    activities = temporal.valid_by_entry(db, ACTIVITIES, (task.activity for task in tasks), as_of)
    return _records(ACTIVITY_TASKS, (task for task in tasks if task.activity in activities))


def workers_at(db: Session, as_of: date) -> list[RecordOut]:
    return _records(WORKERS, temporal.list_valid(db, WORKERS, as_of))


def _valid_activities(
    db: Session,
    as_of: date,
    activity_type: str | None = None,
    search: str | None = None,
) -> list[models.Activity]:
    criteria = []
    if activity_type is not None:
        types = temporal.list_valid(
            db, ACTIVITY_TYPES, as_of, models.ActivityType.name == activity_type
        )
        if not types:
            return []
        criteria.append(models.Activity.activity_type.in_([t.entry for t in types]))
    if search:
        needle = search.strip().lower()
        for char in ("\\", "%", "_"):
            needle = needle.replace(char, "\\" + char)
        pattern = f"%{needle}%"
        criteria.append(
            sa.or_(
                sa.func.lower(models.Activity.name).like(pattern, escape="\\"),
                sa.func.lower(sa.func.coalesce(models.Activity.description, "")).like(
                    pattern, escape="\\"
                ),
            )
        )
    return temporal.list_valid(db, ACTIVITIES, as_of, *criteria)


def list_activities(
    db: Session,
    as_of: date,
    activity_type: str | None = None,
    search: str | None = None,
) -> list[RecordOut]:
    return _records(ACTIVITIES, _valid_activities(db, as_of, activity_type, search))


def overview(
    db: Session,
    as_of: date,
    activity_type: str | None = None,
) -> list[ActivityOverview]:
    """Every activity valid on ``as_of`` with its responsibles, tasks and assignees."""

    activities = _valid_activities(db, as_of, activity_type)
    if not activities:
        return []
    activity_entries = [activity.entry for activity in activities]

    links = temporal.list_valid(
        db, RESPONSIBLE_FOR, as_of, models.ResponsibleFor.activity.in_(activity_entries)
    )
    tasks = temporal.list_valid(
        db, ACTIVITY_TASKS, as_of, models.ActivityTask.activity.in_(activity_entries)
    )
    assignments = []
    if tasks:
        assignments = temporal.list_valid(
            db, ASSIGNED_TO, as_of, models.AssignedTo.task.in_([task.entry for task in tasks])
        )
    workers = temporal.valid_by_entry(
        db,
        WORKERS,
        {link.user for link in links} | {assignment.user for assignment in assignments},
        as_of,
    )

    links_by_activity: dict[int, list] = defaultdict(list)
    for link in links:
        links_by_activity[link.activity].append(link)
    tasks_by_activity: dict[int, list] = defaultdict(list)
    for task in tasks:
        tasks_by_activity[task.activity].append(task)
    assignments_by_task: dict[int, list] = defaultdict(list)
    for assignment in assignments:
        assignments_by_task[assignment.task].append(assignment)

    return [
        ActivityOverview(
            activity=RecordOut.from_version(ACTIVITIES.name, activity),
            responsibles=_resolve_links(RESPONSIBLE_FOR, links_by_activity[activity.entry], workers),
            tasks=[
                TaskOverview(
                    task=RecordOut.from_version(ACTIVITY_TASKS.name, task),
                    assignees=_resolve_links(ASSIGNED_TO, assignments_by_task[task.entry], workers),
                )
                for task in tasks_by_activity[activity.entry]
            ],
        )
        for activity in activities
    ]
