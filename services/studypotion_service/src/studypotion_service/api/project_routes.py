from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends

from shared.logging.config import bind_request_context
from studypotion_service.api.dependencies import (
    get_correlation_id,
    get_current_user,
    get_project_service,
)
from studypotion_service.domain.models import (
    AuthenticatedUser,
    Project,
    ProjectCreateRequest,
    ProjectFile,
    ProjectUpdateRequest,
    SuccessResponse,
)
from studypotion_service.domain.services import ProjectService

router = APIRouter(prefix="/projects", tags=["projects"])


@router.get("", response_model=list[Project])
async def list_projects(
    user: AuthenticatedUser = Depends(get_current_user),
    service: ProjectService = Depends(get_project_service),
) -> list[Project]:
    return await service.list_projects(user)


@router.post("", response_model=Project, status_code=201)
async def create_project(
    body: ProjectCreateRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    correlation_id: str = Depends(get_correlation_id),
    service: ProjectService = Depends(get_project_service),
) -> Project:
    bind_request_context(correlation_id=correlation_id, user_id=user.id)
    return await service.create_project(user, body)


@router.get("/{project_id}", response_model=Project)
async def get_project(
    project_id: UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    service: ProjectService = Depends(get_project_service),
) -> Project:
    return await service.get_project(user, project_id)


@router.patch("/{project_id}", response_model=Project)
async def update_project(
    project_id: UUID,
    body: ProjectUpdateRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    correlation_id: str = Depends(get_correlation_id),
    service: ProjectService = Depends(get_project_service),
) -> Project:
    bind_request_context(correlation_id=correlation_id, user_id=user.id, project_id=str(project_id))
    return await service.update_project(user, project_id, body)


@router.delete("/{project_id}", response_model=SuccessResponse)
async def delete_project(
    project_id: UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    correlation_id: str = Depends(get_correlation_id),
    service: ProjectService = Depends(get_project_service),
) -> SuccessResponse:
    bind_request_context(correlation_id=correlation_id, user_id=user.id, project_id=str(project_id))
    await service.delete_project(user, project_id)
    return SuccessResponse()


@router.get("/{project_id}/files", response_model=list[ProjectFile])
async def list_project_files(
    project_id: UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    service: ProjectService = Depends(get_project_service),
) -> list[ProjectFile]:
    return await service.list_files(user, project_id)
