"""
Project router - API endpoints for projects.
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.dependencies import get_current_actor, get_db
from app.core.permissions import Actor
from app.errors import ForbiddenError, NotFoundError
from app.models.project import Project
from app.repositories.project_repository import ProjectRepository
from app.schemas.project import ProjectCreate, ProjectRead, ProjectUpdate
from app.schemas.task import TaskMessage

router = APIRouter(prefix="/api/projects", tags=["projects"])


async def _load_managed(repository: ProjectRepository, project_id: UUID, actor: Actor) -> Project:
    project = await repository.get_by_id(project_id)
    if not project:
        raise NotFoundError(f"Project {project_id} not found")
    if not (actor.is_elevated or project.created_by == actor.id):
        raise ForbiddenError("Only the project creator or an admin can change it")
    return project


@router.get("", response_model=List[ProjectRead])
async def list_projects(
    status: Optional[str] = None,
    department_id: Optional[UUID] = None,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    return await ProjectRepository(db).list(status=status, department_id=department_id)


@router.get("/{project_id}", response_model=ProjectRead)
async def get_project(
    project_id: UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    project = await ProjectRepository(db).get_by_id(project_id)
    if not project:
        raise NotFoundError(f"Project {project_id} not found")
    return project


@router.post("", response_model=ProjectRead, status_code=status.HTTP_201_CREATED)
async def create_project(
    data: ProjectCreate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    project = await ProjectRepository(db).create(actor.id, data)
    await db.commit()
    return project


@router.put("/{project_id}", response_model=ProjectRead)
async def update_project(
    project_id: UUID,
    data: ProjectUpdate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    repository = ProjectRepository(db)
    project = await _load_managed(repository, project_id, actor)
    project = await repository.update(project, data)
    await db.commit()
    return project


@router.delete("/{project_id}", response_model=TaskMessage)
async def delete_project(
    project_id: UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Delete a project. Its tasks stay, with the project link cleared."""
    repository = ProjectRepository(db)
    project = await _load_managed(repository, project_id, actor)
    await repository.delete(project)
    await db.commit()
    return TaskMessage(message="Project deleted successfully")
