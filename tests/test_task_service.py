from __future__ import annotations

from datetime import datetime

import pytest

from ops360.domain.enums import TaskStatus, TransitionKind
from ops360.domain.errors import NotFoundError, ValidationError
from ops360.domain.filters import TaskFilters

ONE_OFF = {"frequency": "once", "due_type": "After", "after": 1}


@pytest.fixture
def people(env):
    worker = env.user_repo.create_user("worker@example.com", role_id=7, firstname="Wes")
    cook = env.user_repo.create_user("cook@example.com", role_id=8, firstname="Cam", lastname="Ng")
    manager = env.user_repo.create_user("manager@example.com", role_id=1, firstname="Mia")
    return worker, cook, manager


def new_task(env, people, **overrides):
    worker, _, manager = people
    data = {
        "title": "Clean the grill",
        "assignees": [worker.id],
        "location_id": 1,
        "due_date": datetime(2026, 1, 8, 23, 59),
    }
    data.update(overrides)
    return env.tasks.create_task(data, creator_id=manager.id)


def new_project(env, people, team_name: str, **kwargs):
    team = env.team_repo.create_team(team_name, location_ids=[1])
    return env.projects.create_recurring_project(
        title=f"{team_name} checks",
        instruction="",
        team_id=team.id,
        assigned_role_id=7,
        recurrence=ONE_OFF,
        creator_id=people[2].id,
        **kwargs,
    )


def test_create_task_defaults(env, people) -> None:
    worker, _, manager = people

    task = new_task(env, people, followers=[manager.id, manager.id])

    assert task.status == TaskStatus.ACTIVE
    assert task.date_start == env.clock()
    assert task.assignees == (worker.id,)
    assert task.followers == (manager.id,)
    assert task.description == ""
    assert env.tasks.get_task(task.id) == task


@pytest.mark.parametrize(
    "overrides",
    [
        {"assignees": []},
        {"title": ""},
        {"due_date": None},
        {"date_start": datetime(2026, 1, 9, 8, 0)},
        {"status": "Completed"},
    ],
)
def test_create_task_rejects_bad_input(env, people, overrides) -> None:
    with pytest.raises(ValidationError):
        new_task(env, people, **overrides)

    assert env.tasks.list_tasks() == []


def test_create_task_in_unknown_project(env, people) -> None:
    with pytest.raises(NotFoundError):
        new_task(env, people, project_id=99)


def test_create_task_attaches_to_project_and_parent(env, people) -> None:
    root = env.team_repo.create_team("Region", location_ids=[])
    env.team_repo.create_team("North", parent_id=root.id, location_ids=[1])
    group = env.projects.create_recurring_project(
        title="Audit",
        instruction="",
        team_id=root.id,
        assigned_role_id=7,
        recurrence=ONE_OFF,
        creator_id=people[2].id,
    )
    child = group.children[0]

    task = new_task(env, people, project_id=child.id)

    assert task.project_id == child.id
    stored_child = env.projects.get_project(child.id)
    stored_parent = env.projects.get_project(group.parent.id)
    assert stored_child.tasks[-1] == task.id
    assert stored_child.no_of_tasks == child.no_of_tasks + 1
    assert stored_parent.tasks[-1] == task.id
    assert stored_parent.no_of_tasks == group.parent.no_of_tasks + 1


def test_get_unknown_task(env) -> None:
    with pytest.raises(NotFoundError):
        env.tasks.get_task(404)


def test_list_tasks_filters(env, people) -> None:
    worker, cook, _ = people
    grill = new_task(env, people)
    fridge = new_task(env, people, title="Check fridge", assignees=[cook.id], location_id=2)
    shared = new_task(
        env,
        people,
        title="Close up",
        assignees=[worker.id, cook.id],
        location_id=2,
        due_date=datetime(2026, 1, 7, 22, 0),
    )
    env.tasks.start_task(fridge.id)

    assert [t.id for t in env.tasks.list_tasks()] == [shared.id, grill.id, fridge.id]
    assert [t.id for t in env.tasks.list_tasks(TaskFilters(assignee=cook.id))] == [shared.id, fridge.id]
    assert [t.id for t in env.tasks.list_tasks(TaskFilters(location=2, status=TaskStatus.IN_PROGRESS))] == [
        fridge.id
    ]
    assert env.tasks.list_tasks(TaskFilters(location=3)) == []


def test_start_task_only_from_active(env, people) -> None:
    task = new_task(env, people)

    started = env.tasks.start_task(task.id)
    assert started.status == TaskStatus.IN_PROGRESS

    with pytest.raises(ValidationError):
        env.tasks.start_task(task.id)


def test_complete_task_notifies_and_cancels_timers(env, people) -> None:
    worker, _, manager = people
    task = new_task(env, people)
    assert env.timers.is_pending(f"{task.id}-missed")

    done = env.tasks.complete_task(task.id, completed_by=worker.id)

    assert done.status == TaskStatus.COMPLETED
    assert done.completed_by == worker.id
    assert done.completed_at == env.clock()
    assert env.timers.pending() == {}
    assert env.transition_repo.list_pending() == []
    assert env.sink.subjects() == {'Task Completed: "Clean the grill"'}
    assert sorted(env.sink.addresses()) == [manager.email, worker.email]


def test_complete_task_twice_is_a_no_op(env, people) -> None:
    task = new_task(env, people)
    first = env.tasks.complete_task(task.id)
    sent = len(env.sink.messages)

    again = env.tasks.complete_task(task.id)

    assert again == first
    assert len(env.sink.messages) == sent


def test_missed_task_can_still_be_completed(env, people) -> None:
    task = new_task(env, people)
    env.clock.now = datetime(2026, 1, 9, 0, 0)
    env.scheduler.fire(task.id, TransitionKind.MISS)

    assert env.tasks.complete_task(task.id).status == TaskStatus.COMPLETED


def test_deleted_task_cannot_be_completed(env, people) -> None:
    task = new_task(env, people)
    env.tasks.delete_task(task.id)

    with pytest.raises(ValidationError):
        env.tasks.complete_task(task.id)


def test_add_comment_notifies_extra_users(env, people) -> None:
    worker, cook, _ = people
    task = new_task(env, people)

    updated = env.tasks.add_comment(task.id, worker.id, "  Grease trap is full ", notify_extra=[cook.id])

    assert [c.text for c in updated.comments] == ["Grease trap is full"]
    assert updated.comments[0].author_id == worker.id
    assert cook.email in env.sink.addresses()
    _, subject, body = env.sink.messages[0]
    assert subject == "New Comment on Task: Clean the grill"
    assert "Wes has added a new comment to the task" in body
    assert '"Grease trap is full"' in body


def test_add_comment_validation(env, people) -> None:
    task = new_task(env, people)

    with pytest.raises(ValidationError):
        env.tasks.add_comment(task.id, people[0].id, "   ")
    with pytest.raises(NotFoundError):
        env.tasks.add_comment(404, people[0].id, "hello")


def test_update_task_moves_between_projects(env, people) -> None:
    kitchen = new_project(env, people, "Kitchen")
    bar = new_project(env, people, "Bar")
    task = new_task(env, people, project_id=kitchen.parent.id)

    moved = env.tasks.update_task(task.id, {"project_id": bar.parent.id, "title": "Clean the taps"})

    assert moved.project_id == bar.parent.id
    assert moved.title == "Clean the taps"
    assert task.id not in env.projects.get_project(kitchen.parent.id).tasks
    assert env.projects.get_project(bar.parent.id).tasks[-1] == task.id


def test_update_task_replaces_assignees(env, people) -> None:
    worker, cook, _ = people
    task = new_task(env, people)

    updated = env.tasks.update_task(task.id, {"assignees": [cook.id, worker.id]})

    assert updated.assignees == (cook.id, worker.id)
    with pytest.raises(ValidationError):
        env.tasks.update_task(task.id, {"assignees": []})


@pytest.mark.parametrize(
    "data",
    [
        {"status": "Completed"},
        {"priority": 1},
        {"date_start": datetime(2026, 1, 10, 8, 0)},
    ],
)
def test_update_task_rejects_bad_changes(env, people, data) -> None:
    task = new_task(env, people)

    with pytest.raises(ValidationError):
        env.tasks.update_task(task.id, data)

    assert env.tasks.get_task(task.id) == task
