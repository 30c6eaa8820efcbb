from datetime import date

import pytest

from responsibilities.errors import InvariantViolation
from responsibilities.services import resolver, revisions


def _names(assignments):
    return [item.worker.attributes["display_name"] for item in assignments]


def test_responsible_for_window_bounds_resolution(db, seed):
    worker = seed.worker("Ada")
    activity = seed.activity("Sample intake")
    seed.responsible(activity, worker, start=date(2024, 1, 1), end=date(2024, 6, 30))

    assert _names(resolver.responsibles_of(db, activity, date(2024, 3, 1))) == ["Ada"]
    assert resolver.responsibles_of(db, activity, date(2024, 7, 1)) == []


def test_adjacent_windows_resolve_without_overlap(db, seed):
    first = seed.worker("Ada")
    second = seed.worker("Grace")
    activity = seed.activity("Sample intake")
    seed.responsible(activity, first, start=date(2024, 1, 1), end=date(2024, 6, 30))
    seed.responsible(activity, second, start=date(2024, 7, 1))

    assert _names(resolver.responsibles_of(db, activity, date(2024, 6, 30))) == ["Ada"]
    assert _names(resolver.responsibles_of(db, activity, date(2024, 7, 1))) == ["Grace"]


def test_retired_activity_has_no_responsibles(db, seed):
    worker = seed.worker("Ada")
    activity = seed.activity("Sample intake")
    seed.responsible(activity, worker)

    revisions.retire(db, "activities", activity, actor=1)

    assert resolver.responsibles_of(db, activity, date(2024, 6, 1)) == []
    assert resolver.tasks_of(db, activity, date(2024, 6, 1)) == []


def test_links_to_workers_without_a_valid_version_are_dropped(db, seed):
    present = seed.worker("Ada")
    departed = seed.worker("Grace", end=date(2024, 2, 1))
    retired = seed.worker("Margaret")
    activity = seed.activity("Sample intake")
    for worker in (present, departed, retired):
        seed.responsible(activity, worker)
    revisions.retire(db, "workers", retired, actor=1)

    assert _names(resolver.responsibles_of(db, activity, date(2024, 6, 1))) == ["Ada"]


def test_responsibles_are_sorted_by_display_name(db, seed):
    activity = seed.activity("Sample intake")
    for name in ("margaret", "Ada", "Grace"):
        seed.responsible(activity, seed.worker(name))

    resolved = resolver.responsibles_of(db, activity, date(2024, 6, 1))
    assert _names(resolved) == ["Ada", "Grace", "margaret"]
    assert all(item.link.kind == "responsible_for" for item in resolved)
    assert all(item.link.attributes["activity"] == activity for item in resolved)


def test_tasks_and_assignees_of(db, seed):
    worker = seed.worker("Ada")
    activity = seed.activity("Sample intake")
    labelling = seed.task(activity, "Labelling")
    seed.task(activity, "Archiving", start=date(2025, 1, 1))
    seed.assignment(labelling, worker, end=date(2024, 3, 31))

    tasks = resolver.tasks_of(db, activity, date(2024, 2, 1))
    assert [task.attributes["name"] for task in tasks] == ["Labelling"]
    assert _names(resolver.assignees_of(db, labelling, date(2024, 2, 1))) == ["Ada"]
    assert resolver.assignees_of(db, labelling, date(2024, 4, 1)) == []
    assert resolver.assignees_of(db, 9999, date(2024, 2, 1)) == []


def test_activities_of_separates_responsibility_from_assignment(db, seed):
    worker = seed.worker("Ada")
    owned = seed.activity("Owned")
    helped = seed.activity("Helped")
    both = seed.activity("Both")
    seed.responsible(owned, worker)
    seed.responsible(both, worker)
    seed.assignment(seed.task(helped, "Help out"), worker)
    seed.assignment(seed.task(both, "Also here"), worker)

    responsible = resolver.activities_of(db, worker, date(2024, 6, 1))
    assert [record.attributes["name"] for record in responsible] == ["Both", "Owned"]

    assigned = resolver.activities_of(db, worker, date(2024, 6, 1), responsible=False)
    assert [record.entry for record in assigned] == [helped]


def test_activities_of_unknown_or_invalid_worker_is_empty(db, seed):
    worker = seed.worker("Ada", start=date(2025, 1, 1))
    activity = seed.activity("Owned")
    seed.responsible(activity, worker)

    assert resolver.activities_of(db, worker, date(2024, 6, 1)) == []
    assert resolver.activities_of(db, 9999, date(2024, 6, 1)) == []


def test_worker_tasks_filters_by_activity_and_validity(db, seed):
    worker = seed.worker("Ada")
    first = seed.activity("First")
    second = seed.activity("Second", end=date(2024, 3, 31))
    seed.assignment(seed.task(first, "Alpha"), worker)
    seed.assignment(seed.task(second, "Beta"), worker)

    names = lambda records: [record.attributes["name"] for record in records]  # noqa: E731
    assert names(resolver.worker_tasks(db, worker, date(2024, 2, 1))) == ["Alpha", "Beta"]
    assert names(resolver.worker_tasks(db, worker, date(2024, 6, 1))) == ["Alpha"]
    assert names(resolver.worker_tasks(db, worker, date(2024, 2, 1), activity=second)) == ["Beta"]


def test_workers_at(db, seed):
    seed.worker("Grace")
    seed.worker("Ada")
    seed.worker("Katherine", start=date(2025, 1, 1))

    records = resolver.workers_at(db, date(2024, 6, 1))
    assert [record.attributes["display_name"] for record in records] == ["Ada", "Grace"]


def test_list_activities_filters_by_type_and_search(db, seed):
    lab = seed.activity_type("Laboratory")
    office = seed.activity_type("Office")
    seed.activity("Sample intake", activity_type=lab, description="Receive tubes")
    seed.activity("Pipette calibration", activity_type=lab)
    seed.activity("Invoicing", activity_type=office, description="Monthly sample billing")

    def names(**filters):
        return [
            record.attributes["name"]
            for record in resolver.list_activities(db, date(2024, 6, 1), **filters)
        ]

    assert names() == ["Invoicing", "Pipette calibration", "Sample intake"]
    assert names(activity_type="Laboratory") == ["Pipette calibration", "Sample intake"]
    assert names(search="SAMPLE") == ["Invoicing", "Sample intake"]
    assert names(activity_type="Office", search="tubes") == []
    assert names(activity_type="Unknown") == []


def test_list_activities_search_treats_wildcards_literally(db, seed):
    seed.activity("Plain")
    seed.activity("Discount 50% off")
    seed.activity("snake_case review")

    def names(search):
        return [
            record.attributes["name"]
            for record in resolver.list_activities(db, date(2024, 6, 1), search=search)
        ]

    assert names("_") == ["snake_case review"]
    assert names("%") == ["Discount 50% off"]
    assert names("50% OFF") == ["Discount 50% off"]
    assert names("\\") == []


def test_overview_groups_responsibles_tasks_and_assignees(db, seed):
    ada = seed.worker("Ada")
    grace = seed.worker("Grace")
    lab = seed.activity_type("Laboratory")
    intake = seed.activity("Sample intake", activity_type=lab)
    seed.activity("Idle", activity_type=seed.activity_type("Office"))
    seed.responsible(intake, ada)
    labelling = seed.task(intake, "Labelling")
    seed.assignment(labelling, grace)
    seed.assignment(labelling, ada, end=date(2024, 2, 1))

    result = resolver.overview(db, date(2024, 6, 1))
    assert [item.activity.attributes["name"] for item in result] == ["Idle", "Sample intake"]

    idle, sample = result
    assert idle.responsibles == [] and idle.tasks == []
    assert _names(sample.responsibles) == ["Ada"]
    assert [task.task.entry for task in sample.tasks] == [labelling]
    assert _names(sample.tasks[0].assignees) == ["Grace"]

    filtered = resolver.overview(db, date(2024, 6, 1), activity_type="Laboratory")
    assert [item.activity.entry for item in filtered] == [intake]
    assert resolver.overview(db, date(2023, 6, 1)) == []


def test_duplicate_current_links_are_reported(db, seed, duplicate_current):
    worker = seed.worker("Ada")
    activity = seed.activity("Sample intake")
    link = seed.responsible(activity, worker)
    duplicate_current("responsible_for", link)

    with pytest.raises(InvariantViolation):
        resolver.responsibles_of(db, activity, date(2024, 6, 1))
