import pytest

from taskflow.errors import Forbidden as ForbiddenError
from taskflow.models import UserRole
from taskflow.services.policy import (
    Allowed,
    AllowedWithFilter,
    Forbidden,
    Identity,
    Operation,
    decide,
    is_status_only,
    require,
)

ADMIN = Identity(user_id=1, role=UserRole.ADMIN)
USER = Identity(user_id=7, role=UserRole.USER)


@pytest.mark.parametrize("operation", list(Operation))
def test_admin_is_allowed_everything(operation):
    assert decide(ADMIN, operation) == Allowed()


@pytest.mark.parametrize("operation", [Operation.TASK_LIST, Operation.TASK_READ])
def test_user_reads_come_with_ownership_filter(operation):
    decision = decide(USER, operation)
    assert isinstance(decision, AllowedWithFilter)
    compiled = str(decision.predicate.compile(compile_kwargs={"literal_binds": True}))
    assert "tasks.assigned_to = 7" in compiled
    assert "tasks.created_by = 7" in compiled


def test_status_update_needs_ownership():
    assert decide(USER, Operation.TASK_STATUS_UPDATE, {7, 3}) == Allowed()
    assert isinstance(decide(USER, Operation.TASK_STATUS_UPDATE, {2, 3}), Forbidden)
    assert isinstance(decide(USER, Operation.TASK_STATUS_UPDATE), Forbidden)


@pytest.mark.parametrize(
    "operation",
    [
        Operation.TASK_CREATE,
        Operation.TASK_UPDATE,
        Operation.TASK_DELETE,
        Operation.TASK_LIST_BY_ASSIGNEE,
        Operation.USER_LIST,
        Operation.USER_CREATE,
        Operation.USER_DELETE,
        Operation.USER_ADMIN_UPDATE,
        Operation.PROJECT_WRITE,
    ],
)
def test_user_is_forbidden_admin_operations(operation):
    # Owning the row does not open the full-update path.
    assert isinstance(decide(USER, operation, {USER.user_id}), Forbidden)


def test_user_profile_access_is_self_only():
    assert decide(USER, Operation.USER_READ, {7}) == Allowed()
    assert decide(USER, Operation.USER_UPDATE, {7}) == Allowed()
    assert isinstance(decide(USER, Operation.USER_READ, {8}), Forbidden)
    assert isinstance(decide(USER, Operation.USER_UPDATE, {8}), Forbidden)


def test_require_raises_on_forbidden():
    assert require(Allowed()) == Allowed()
    with pytest.raises(ForbiddenError):
        require(Forbidden("nope"))


@pytest.mark.parametrize(
    "payload, expected",
    [
        ({"task_id": 3, "status": "completed"}, True),
        ({"status": "completed"}, True),
        ({"task_id": 3, "status": "completed", "title": "x"}, False),
        ({"task_id": 3, "title": "x"}, False),
        ({"task_id": 3}, False),
        ({}, False),
    ],
)
def test_is_status_only(payload, expected):
    assert is_status_only(payload) is expected
