from __future__ import annotations

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, Request, UploadFile

from shared.logging.config import bind_request_context
from shared.schemas.base import HealthResponse
from studypotion_service.api.dependencies import (
    get_correlation_id,
    get_current_user,
    get_ingestion_service,
    read_upload,
)
from studypotion_service.domain.models import AuthenticatedUser, UploadResponse
from studypotion_service.domain.services import IngestionService

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.get("/health", response_model=HealthResponse, tags=["ops"])
async def health(request: Request) -> HealthResponse:
    settings = request.app.state.settings
    return HealthResponse(
        status="ok",
        service=settings.service_name,
        version=settings.app_version,
    )


@router.post("/upload", response_model=UploadResponse, tags=["ingestion"])
async def upload_document(
    background_tasks: BackgroundTasks,
    user: AuthenticatedUser = Depends(get_current_user),
    file: UploadFile | None = File(default=None),
    project_id: str | None = Form(default=None, alias="projectId"),
    correlation_id: str = Depends(get_correlation_id),
    service: IngestionService = Depends(get_ingestion_service),
) -> UploadResponse:
    bind_request_context(correlation_id=correlation_id, user_id=user.id, project_id=project_id)
    document = await read_upload(file)

    logger.info(
        "ingestion.request.received",
        filename=document.filename if document else None,
        size_bytes=document.size_bytes if document else 0,
    )

    result = await service.ingest_document(
        user=user,
        project_id=project_id,
        document=document,
        correlation_id=correlation_id,
    )

    # ingest_document has rejected missing file / project id by now
    background_tasks.add_task(service.notify_webhook, user, project_id, document)

    return UploadResponse(
        file_name=result.file_name,
        chunks=result.chunk_count,
        message=f"Documento procesado exitosamente. {result.chunk_count} fragmentos indexados.",
    )
