from __future__ import annotations

from urllib.parse import quote
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, Response, UploadFile

from shared.logging.config import bind_request_context
from studypotion_service.api.dependencies import (
    get_correlation_id,
    get_current_user,
    get_file_service,
    read_upload,
)
from studypotion_service.domain.models import AuthenticatedUser, ProjectFile, SuccessResponse
from studypotion_service.domain.services import FileService

router = APIRouter(prefix="/files", tags=["files"])


@router.post("/upload", response_model=ProjectFile, status_code=201)
async def upload_file(
    background_tasks: BackgroundTasks,
    user: AuthenticatedUser = Depends(get_current_user),
    file: UploadFile | None = File(default=None),
    project_id: str | None = Form(default=None, alias="projectId"),
    correlation_id: str = Depends(get_correlation_id),
    service: FileService = Depends(get_file_service),
) -> ProjectFile:
    bind_request_context(correlation_id=correlation_id, user_id=user.id, project_id=project_id)
    document = await read_upload(file)

    record = await service.upload_file(user, project_id, document)
    background_tasks.add_task(service.notify_webhook, record, document)
    return record


@router.put("/{file_id}/replace", response_model=ProjectFile)
async def replace_file(
    file_id: UUID,
    background_tasks: BackgroundTasks,
    user: AuthenticatedUser = Depends(get_current_user),
    file: UploadFile | None = File(default=None),
    correlation_id: str = Depends(get_correlation_id),
    service: FileService = Depends(get_file_service),
) -> ProjectFile:
    bind_request_context(correlation_id=correlation_id, user_id=user.id)
    document = await read_upload(file)

    record = await service.replace_file(user, file_id, document)
    background_tasks.add_task(service.notify_webhook, record, document)
    return record


@router.delete("/{file_id}", response_model=SuccessResponse)
async def delete_file(
    file_id: UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    correlation_id: str = Depends(get_correlation_id),
    service: FileService = Depends(get_file_service),
) -> SuccessResponse:
    bind_request_context(correlation_id=correlation_id, user_id=user.id)
    await service.delete_file(user, file_id)
    return SuccessResponse()


@router.get("/{file_id}/download")
async def download_file(
    file_id: UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    service: FileService = Depends(get_file_service),
) -> Response:
    record, content = await service.download_file(user, file_id)
    return Response(
        content=content,
        media_type=record.mime_type,
        headers={
            "Content-Disposition": f"attachment; filename*=UTF-8''{quote(record.file_name)}",
        },
    )
