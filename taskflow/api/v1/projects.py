"""Project endpoints"""
from typing import List

from fastapi import APIRouter, Depends, status

from taskflow.dependencies import get_current_identity, get_project_service
from taskflow.schemas import ProjectCreate, ProjectResponse, ProjectUpdate
from taskflow.services import Identity, ProjectService

router = APIRouter()


@router.get("", response_model=List[ProjectResponse])
def list_projects(
    identity: Identity = Depends(get_current_identity),
    projects: ProjectService = Depends(get_project_service),
):
    results = []
    for project, task_count in projects.list_projects():
        response = ProjectResponse.model_validate(project)
        response.task_count = task_count
        results.append(response)
    return results


@router.post("", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
def create_project(
    project_in: ProjectCreate,
    identity: Identity = Depends(get_current_identity),
    projects: ProjectService = Depends(get_project_service),
):
    return projects.create_project(identity, project_in.model_dump())


@router.put("/{project_id}", response_model=ProjectResponse)
def update_project(
    project_id: int,
    project_update: ProjectUpdate,
    identity: Identity = Depends(get_current_identity),
    projects: ProjectService = Depends(get_project_service),
):
    return projects.update_project(identity, project_id, project_update.model_dump(exclude_unset=True))


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_project(
    project_id: int,
    identity: Identity = Depends(get_current_identity),
    projects: ProjectService = Depends(get_project_service),
):
    projects.delete_project(identity, project_id)
