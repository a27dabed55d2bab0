"""Project labels for tasks."""
import logging
import re
from typing import Any, List, Mapping, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from taskflow.errors import NotFound, ValidationError
from taskflow.models import Project, Task
from taskflow.models.project import DEFAULT_PROJECT_COLOR
from taskflow.services.policy import Identity, Operation, decide, require

logger = logging.getLogger(__name__)

COLOR_PATTERN = re.compile(r"^#[0-9A-Fa-f]{6}$")


def _clean_color(value: Any) -> str:
    if not value:
        return DEFAULT_PROJECT_COLOR
    if not COLOR_PATTERN.match(str(value)):
        raise ValidationError("Color must be a hex value such as #667eea")
    return str(value).lower()


class ProjectService:
    def __init__(self, db: Session):
        self.db = db

    def list_projects(self) -> List[Tuple[Project, int]]:
        """All projects with the number of tasks filed under each, by name."""
        return (
            self.db.query(Project, func.count(Task.id))
            .outerjoin(Task, Task.project_id == Project.id)
            .group_by(Project.id)
            .order_by(Project.name.asc())
            .all()
        )

    def create_project(self, caller: Identity, fields: Mapping[str, Any]) -> Project:
        require(decide(caller, Operation.PROJECT_WRITE))
        name = str(fields.get("name") or "").strip()
        if not name:
            raise ValidationError("Project name is required")
        project = Project(
            name=name,
            description=fields.get("description"),
            color=_clean_color(fields.get("color")),
            created_by=caller.user_id,
        )
        self.db.add(project)
        self.db.commit()
        self.db.refresh(project)
        logger.info("Project %s created by user %s", project.id, caller.user_id)
        return project

    def update_project(self, caller: Identity, project_id: int, fields: Mapping[str, Any]) -> Project:
        require(decide(caller, Operation.PROJECT_WRITE))
        project = self.db.get(Project, project_id)
        if project is None:
            raise NotFound("Project not found")

        if "name" in fields:
            name = str(fields["name"] or "").strip()
            if not name:
                raise ValidationError("Project name is required")
            project.name = name
        if "description" in fields:
            project.description = fields["description"]
        if "color" in fields:
            project.color = _clean_color(fields["color"])

        self.db.commit()
        self.db.refresh(project)
        return project

    def delete_project(self, caller: Identity, project_id: int) -> None:
        """Remove the project; its tasks stay and lose the reference."""
        require(decide(caller, Operation.PROJECT_WRITE))
        project = self.db.get(Project, project_id)
        if project is None:
            raise NotFound("Project not found")
        self.db.delete(project)
        self.db.commit()
        logger.info("Project %s deleted by user %s", project_id, caller.user_id)
