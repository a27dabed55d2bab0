"""User administration endpoints"""
from typing import List

from fastapi import APIRouter, Depends, status

from taskflow.dependencies import get_current_identity, get_user_service
from taskflow.schemas import UserCreate, UserResponse, UserStatsResponse, UserUpdate
from taskflow.services import Identity, UserService
from taskflow.services.users import UserStats

router = APIRouter()


def _serialize_stats(stats: UserStats) -> UserStatsResponse:
    base = UserResponse.model_validate(stats.user)
    return UserStatsResponse(
        **base.model_dump(),
        total_tasks=stats.total_tasks,
        pending_tasks=stats.pending_tasks,
        in_progress_tasks=stats.in_progress_tasks,
        completed_tasks=stats.completed_tasks,
    )


@router.get("", response_model=List[UserStatsResponse])
def list_users(
    identity: Identity = Depends(get_current_identity),
    users: UserService = Depends(get_user_service),
):
    """All users with their task counts. Admin only."""
    return [_serialize_stats(stats) for stats in users.list_users(identity)]


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def create_user(
    user_in: UserCreate,
    identity: Identity = Depends(get_current_identity),
    users: UserService = Depends(get_user_service),
):
    return users.create_user(identity, user_in.model_dump())


@router.get("/{user_id}", response_model=UserStatsResponse)
def get_user(
    user_id: int,
    identity: Identity = Depends(get_current_identity),
    users: UserService = Depends(get_user_service),
):
    return _serialize_stats(users.get_user(identity, user_id))


@router.put("/{user_id}", response_model=UserResponse)
def update_user(
    user_id: int,
    user_update: UserUpdate,
    identity: Identity = Depends(get_current_identity),
    users: UserService = Depends(get_user_service),
):
    return users.update_user(identity, user_id, user_update.model_dump(exclude_unset=True))


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    user_id: int,
    identity: Identity = Depends(get_current_identity),
    users: UserService = Depends(get_user_service),
):
    users.delete_user(identity, user_id)
