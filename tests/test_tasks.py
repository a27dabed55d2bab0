from datetime import date, datetime, time, timedelta
from itertools import count

import pytest
from sqlalchemy.orm import Session

import taskflow.models as models
from taskflow.errors import Forbidden, InvalidReference, NotFound, NotFoundOrForbidden, ValidationError
from taskflow.services import TaskEngine, TaskFilters

from .conftest import identity_for, make_user
from .fakes import FakeNotifier


def _notifications(session: Session, user_id: int, type_: models.NotificationType):
    return (
        session.query(models.Notification)
        .filter(models.Notification.user_id == user_id, models.Notification.type == type_)
        .all()
    )


def _create(engine: TaskEngine, admin: models.User, assignee: models.User, **fields) -> int:
    fields.setdefault("title", "Write report")
    return engine.create(identity_for(admin), {"assigned_to": assignee.id, **fields})


def test_create_normalizes_priority_and_notifies_assignee(
    db_session: Session, task_engine: TaskEngine, notifier: FakeNotifier, admin, alice
):
    task_id = task_engine.create(
        identity_for(admin),
        {"title": "Design homepage", "assigned_to": alice.id, "priority": "urgent"},
    )

    task = db_session.get(models.Task, task_id)
    assert task.title == "Design homepage"
    assert task.priority == models.TaskPriority.MEDIUM
    assert task.status == models.TaskStatus.PENDING
    assert task.created_by == admin.id
    assert task.assigned_to == alice.id

    assigned = _notifications(db_session, alice.id, models.NotificationType.TASK_ASSIGNED)
    assert len(assigned) == 1
    assert assigned[0].message == "You have been assigned a new task: Design homepage"
    assert assigned[0].delivery_attempted is True
    assert notifier.assignments == [(task_id, alice.id, admin.id)]


def test_create_defaults_and_optional_fields(db_session: Session, task_engine: TaskEngine, admin, alice):
    project = models.Project(name="Work Projects")
    db_session.add(project)
    db_session.commit()

    task_id = _create(
        task_engine,
        admin,
        alice,
        title="  Review code  ",
        priority="HIGH",
        due_date="2025-01-14",
        due_time="10:00",
        project_id=project.id,
        tags="development, review, ",
    )

    task = db_session.get(models.Task, task_id)
    assert task.title == "Review code"
    assert task.priority == models.TaskPriority.HIGH
    assert task.due_date == date(2025, 1, 14)
    assert task.due_time == time(10, 0)
    assert task.project_id == project.id
    assert task.tags == ["development", "review"]


def test_create_without_priority_is_medium(db_session: Session, task_engine: TaskEngine, admin, alice):
    task = db_session.get(models.Task, _create(task_engine, admin, alice))
    assert task.priority == models.TaskPriority.MEDIUM


def test_regular_user_cannot_create(db_session: Session, task_engine: TaskEngine, notifier, alice, bob):
    with pytest.raises(Forbidden):
        task_engine.create(identity_for(alice), {"title": "Sneaky", "assigned_to": bob.id})
    assert db_session.query(models.Task).count() == 0
    assert notifier.assignments == []


@pytest.mark.parametrize("title", [None, "", "   "])
def test_create_requires_title(db_session: Session, task_engine: TaskEngine, admin, alice, title):
    with pytest.raises(ValidationError):
        task_engine.create(identity_for(admin), {"title": title, "assigned_to": alice.id})
    assert db_session.query(models.Task).count() == 0


def test_create_requires_assignee(task_engine: TaskEngine, admin):
    with pytest.raises(ValidationError):
        task_engine.create(identity_for(admin), {"title": "Orphan"})


def test_create_rejects_unknown_or_inactive_assignee(db_session: Session, task_engine: TaskEngine, admin):
    dormant = make_user(db_session, "dormant", status="inactive")

    with pytest.raises(InvalidReference):
        task_engine.create(identity_for(admin), {"title": "Ghost", "assigned_to": 9999})
    with pytest.raises(InvalidReference):
        task_engine.create(identity_for(admin), {"title": "Nap", "assigned_to": dormant.id})

    assert db_session.query(models.Task).count() == 0
    assert db_session.query(models.Notification).count() == 0


def test_create_rejects_unknown_project(db_session: Session, task_engine: TaskEngine, admin, alice):
    with pytest.raises(InvalidReference):
        _create(task_engine, admin, alice, project_id=42)
    assert db_session.query(models.Task).count() == 0


def test_status_only_update_by_assignee(
    db_session: Session, task_engine: TaskEngine, notifier: FakeNotifier, admin, alice
):
    task_id = _create(task_engine, admin, alice)

    task_engine.update(identity_for(alice), task_id, {"task_id": task_id, "status": "completed"})

    task = db_session.get(models.Task, task_id)
    assert task.status == models.TaskStatus.COMPLETED
    updated = _notifications(db_session, alice.id, models.NotificationType.TASK_UPDATED)
    assert len(updated) == 1
    assert "completed" in updated[0].message
    assert notifier.status_changes == [(task_id, alice.id, "completed")]


def test_full_update_by_assignee_is_forbidden(db_session: Session, task_engine: TaskEngine, admin, alice):
    task_id = _create(task_engine, admin, alice)

    with pytest.raises(Forbidden):
        task_engine.update(
            identity_for(alice), task_id, {"task_id": task_id, "status": "completed", "title": "Renamed"}
        )

    task = db_session.get(models.Task, task_id)
    db_session.refresh(task)
    assert task.title == "Write report"
    assert task.status == models.TaskStatus.PENDING


def test_update_by_outsider_looks_like_missing_task(db_session: Session, task_engine: TaskEngine, admin, alice, bob):
    task_id = _create(task_engine, admin, alice)

    with pytest.raises(NotFoundOrForbidden) as outsider:
        task_engine.update(identity_for(bob), task_id, {"task_id": task_id, "status": "completed"})
    with pytest.raises(NotFoundOrForbidden) as missing:
        task_engine.update(identity_for(bob), 9999, {"status": "completed"})

    assert outsider.value.status_code == missing.value.status_code
    assert outsider.value.detail == missing.value.detail
    task = db_session.get(models.Task, task_id)
    db_session.refresh(task)
    assert task.status == models.TaskStatus.PENDING
    assert _notifications(db_session, alice.id, models.NotificationType.TASK_UPDATED) == []


def test_admin_update_of_missing_task_is_not_found(task_engine: TaskEngine, admin):
    with pytest.raises(NotFound):
        task_engine.update(identity_for(admin), 9999, {"title": "Nothing"})


def test_creator_can_change_status(db_session: Session, task_engine: TaskEngine, admin, alice):
    task_id = _create(task_engine, admin, alice)
    admin.role = models.UserRole.USER
    db_session.commit()

    task_engine.update(identity_for(admin), task_id, {"status": "in_progress"})
    assert db_session.get(models.Task, task_id).status == models.TaskStatus.IN_PROGRESS


def test_any_status_reachable_in_one_step(db_session: Session, task_engine: TaskEngine, admin, alice):
    task_id = _create(task_engine, admin, alice)
    caller = identity_for(alice)

    task_engine.update(caller, task_id, {"status": "completed"})
    assert db_session.get(models.Task, task_id).status == models.TaskStatus.COMPLETED

    task_engine.update(caller, task_id, {"status": "pending"})
    assert db_session.get(models.Task, task_id).status == models.TaskStatus.PENDING

    task_engine.update(caller, task_id, {"status": "in_progress"})
    task_engine.update(caller, task_id, {"status": "pending"})
    assert db_session.get(models.Task, task_id).status == models.TaskStatus.PENDING


def test_invalid_status_is_rejected(db_session: Session, task_engine: TaskEngine, admin, alice):
    task_id = _create(task_engine, admin, alice)
    with pytest.raises(ValidationError):
        task_engine.update(identity_for(alice), task_id, {"status": "archived"})
    assert db_session.get(models.Task, task_id).status == models.TaskStatus.PENDING
    assert _notifications(db_session, alice.id, models.NotificationType.TASK_UPDATED) == []


def test_mismatched_task_id_is_rejected(task_engine: TaskEngine, admin, alice):
    task_id = _create(task_engine, admin, alice)
    with pytest.raises(ValidationError):
        task_engine.update(identity_for(alice), task_id, {"task_id": task_id + 1, "status": "completed"})


def test_reassignment_notifies_new_assignee_once(
    db_session: Session, task_engine: TaskEngine, notifier: FakeNotifier, admin, alice, bob
):
    task_id = _create(task_engine, admin, alice)

    task_engine.update(identity_for(admin), task_id, {"assigned_to": bob.id})
    assert db_session.get(models.Task, task_id).assigned_to == bob.id
    assert len(_notifications(db_session, bob.id, models.NotificationType.TASK_ASSIGNED)) == 1

    task_engine.update(identity_for(admin), task_id, {"assigned_to": bob.id, "title": "Same owner"})
    assert len(_notifications(db_session, bob.id, models.NotificationType.TASK_ASSIGNED)) == 1
    assert len(_notifications(db_session, alice.id, models.NotificationType.TASK_ASSIGNED)) == 1
    assert notifier.assignments == [(task_id, alice.id, admin.id), (task_id, bob.id, admin.id)]


def test_reassignment_to_inactive_user_fails(db_session: Session, task_engine: TaskEngine, admin, alice):
    dormant = make_user(db_session, "dormant", status="inactive")
    task_id = _create(task_engine, admin, alice)

    with pytest.raises(InvalidReference):
        task_engine.update(identity_for(admin), task_id, {"assigned_to": dormant.id, "title": "Moved"})

    task = db_session.get(models.Task, task_id)
    assert task.assigned_to == alice.id
    assert task.title == "Write report"
    assert _notifications(db_session, dormant.id, models.NotificationType.TASK_ASSIGNED) == []


def test_full_update_by_admin(db_session: Session, task_engine: TaskEngine, notifier: FakeNotifier, admin, alice):
    project = models.Project(name="Learning")
    db_session.add(project)
    db_session.commit()
    task_id = _create(task_engine, admin, alice, priority="low")

    task_engine.update(
        identity_for(admin),
        task_id,
        {
            "task_id": task_id,
            "title": "Read chapter 5",
            "priority": "bogus",
            "project_id": project.id,
            "tags": ["learning"],
            "due_date": None,
        },
    )

    task = db_session.get(models.Task, task_id)
    assert task.title == "Read chapter 5"
    assert task.priority == models.TaskPriority.MEDIUM
    assert task.project_id == project.id
    assert task.tags == ["learning"]
    # A full update is not a status change and does not emit task_updated.
    assert notifier.status_changes == []

    with pytest.raises(InvalidReference):
        task_engine.update(identity_for(admin), task_id, {"project_id": 777})
    with pytest.raises(ValidationError):
        task_engine.update(identity_for(admin), task_id, {"title": "  "})
    with pytest.raises(ValidationError):
        task_engine.update(identity_for(admin), task_id, {"colour": "red"})
    with pytest.raises(ValidationError):
        task_engine.update(identity_for(admin), task_id, {"task_id": task_id})


def test_updates_stamp_updated_at(db_session: Session, notifier: FakeNotifier, admin, alice):
    ticks = count()
    start = datetime(2025, 1, 1, 12, 0, 0)
    engine = TaskEngine(db_session, notifier, clock=lambda: start + timedelta(minutes=next(ticks)))

    task_id = _create(engine, admin, alice)
    created = db_session.get(models.Task, task_id)
    assert created.created_at == created.updated_at == start

    engine.update(identity_for(alice), task_id, {"status": "in_progress"})
    task = db_session.get(models.Task, task_id)
    assert task.updated_at > start
    assert task.created_at == start


def test_list_is_scoped_to_owned_rows(db_session: Session, task_engine: TaskEngine, admin, alice, bob):
    mine = _create(task_engine, admin, alice, title="Mine", priority="high")
    theirs = _create(task_engine, admin, bob, title="Theirs", priority="high")
    # A task bob created and handed to alice is visible to both of them.
    shared = models.Task(title="Shared", assigned_to=alice.id, created_by=bob.id)
    db_session.add(shared)
    db_session.commit()

    alice_ids = {task.id for task in task_engine.list(identity_for(alice))}
    bob_ids = {task.id for task in task_engine.list(identity_for(bob))}
    admin_ids = {task.id for task in task_engine.list(identity_for(admin))}

    assert alice_ids == {mine, shared.id}
    assert bob_ids == {theirs, shared.id}
    assert admin_ids == {mine, theirs, shared.id}

    # Extra filters narrow the scope, never widen it.
    high = task_engine.list(identity_for(alice), TaskFilters(priority="high"))
    assert [task.id for task in high] == [mine]
    pending = task_engine.list(identity_for(bob), TaskFilters(status="pending"))
    assert {task.id for task in pending} == {theirs, shared.id}


def test_list_orders_newest_first_and_combines_filters(db_session: Session, task_engine: TaskEngine, admin, alice, bob):
    project = models.Project(name="Personal")
    db_session.add(project)
    db_session.commit()

    first = _create(task_engine, admin, alice, title="First", project_id=project.id)
    second = _create(task_engine, admin, bob, title="Second", project_id=project.id)
    third = _create(task_engine, admin, alice, title="Third")
    task_engine.update(identity_for(alice), first, {"status": "completed"})

    caller = identity_for(admin)
    assert [task.id for task in task_engine.list(caller)] == [third, second, first]
    assert [task.id for task in task_engine.list(caller, TaskFilters(project_id=project.id))] == [second, first]
    assert [task.id for task in task_engine.list(caller, TaskFilters(assigned_to=alice.id))] == [third, first]
    combined = TaskFilters(project_id=project.id, assigned_to=alice.id, status="completed")
    assert [task.id for task in task_engine.list(caller, combined)] == [first]


def test_list_filter_validation(task_engine: TaskEngine, admin, alice):
    with pytest.raises(Forbidden):
        task_engine.list(identity_for(alice), TaskFilters(assigned_to=alice.id))
    with pytest.raises(ValidationError):
        task_engine.list(identity_for(admin), TaskFilters(status="done"))
    with pytest.raises(ValidationError):
        task_engine.list(identity_for(admin), TaskFilters(priority="urgent"))


def test_get_hides_rows_outside_scope(task_engine: TaskEngine, admin, alice, bob):
    task_id = _create(task_engine, admin, alice)

    assert task_engine.get(identity_for(alice), task_id).id == task_id
    assert task_engine.get(identity_for(admin), task_id).id == task_id
    with pytest.raises(NotFoundOrForbidden):
        task_engine.get(identity_for(bob), task_id)
    with pytest.raises(NotFoundOrForbidden):
        task_engine.get(identity_for(bob), 9999)
    with pytest.raises(NotFound):
        task_engine.get(identity_for(admin), 9999)


def test_delete_is_admin_only_and_cascades_notifications(db_session: Session, task_engine: TaskEngine, admin, alice):
    task_id = _create(task_engine, admin, alice)
    assert db_session.query(models.Notification).count() == 1

    with pytest.raises(Forbidden):
        task_engine.delete(identity_for(alice), task_id)
    assert db_session.get(models.Task, task_id) is not None

    task_engine.delete(identity_for(admin), task_id)
    assert db_session.get(models.Task, task_id) is None
    assert db_session.query(models.Notification).count() == 0

    with pytest.raises(NotFound):
        task_engine.delete(identity_for(admin), task_id)


@pytest.mark.parametrize("notifier_kwargs", [{"fail": True}, {"explode": True}])
def test_delivery_failure_does_not_undo_mutation(db_session: Session, admin, alice, notifier_kwargs):
    notifier = FakeNotifier(**notifier_kwargs)
    engine = TaskEngine(db_session, notifier)

    task_id = _create(engine, admin, alice)
    engine.update(identity_for(alice), task_id, {"status": "completed"})

    task = db_session.get(models.Task, task_id)
    assert task.status == models.TaskStatus.COMPLETED
    entries = db_session.query(models.Notification).filter(models.Notification.task_id == task_id).all()
    assert len(entries) == 2
    assert all(entry.delivery_attempted for entry in entries)
    assert len(notifier.assignments) == 1
    assert len(notifier.status_changes) == 1


def test_non_numeric_references_are_rejected(db_session: Session, task_engine: TaskEngine, admin, alice):
    with pytest.raises(ValidationError):
        task_engine.create(identity_for(admin), {"title": "Typo", "assigned_to": "alice"})
    with pytest.raises(ValidationError):
        _create(task_engine, admin, alice, project_id="work")
    assert db_session.query(models.Task).count() == 0

    task_id = _create(task_engine, admin, alice)
    with pytest.raises(ValidationError):
        task_engine.update(identity_for(alice), task_id, {"task_id": "abc", "status": "completed"})
    with pytest.raises(ValidationError):
        task_engine.update(identity_for(admin), task_id, {"assigned_to": "bob"})
    assert db_session.get(models.Task, task_id).assigned_to == alice.id
