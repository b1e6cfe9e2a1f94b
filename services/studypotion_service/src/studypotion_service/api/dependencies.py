from __future__ import annotations

from fastapi import Header, Request, UploadFile

from studypotion_service.domain.exceptions import UnauthenticatedError
from studypotion_service.domain.interfaces import AuthGatewayPort
from studypotion_service.domain.models import AuthenticatedUser, UploadedDocument
from studypotion_service.domain.services import FileService, IngestionService, ProjectService
from studypotion_service.settings import Settings


def get_correlation_id(request: Request) -> str:
    return request.state.correlation_id


async def get_current_user(
    request: Request,
    authorization: str | None = Header(default=None),
) -> AuthenticatedUser:
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise UnauthenticatedError("missing bearer token")

    gateway: AuthGatewayPort = request.app.state.auth_gateway
    return await gateway.get_user(token.strip())


def get_ingestion_service(request: Request) -> IngestionService:
    settings: Settings = request.app.state.settings
    return IngestionService(
        extractor=request.app.state.extractor,
        chunker=request.app.state.chunker,
        embedder=request.app.state.embedder,
        chunk_repository=request.app.state.chunk_repository,
        project_repository=request.app.state.project_repository,
        notifier=request.app.state.notifier,
        storage=request.app.state.storage,
        file_repository=request.app.state.file_repository,
        max_file_size_bytes=settings.max_document_size_bytes,
        allowed_formats=frozenset(settings.ingestion_formats),
        timeout_seconds=settings.ingestion_timeout_seconds,
    )


def get_project_service(request: Request) -> ProjectService:
    return ProjectService(
        projects=request.app.state.project_repository,
        files=request.app.state.file_repository,
        storage=request.app.state.storage,
    )


def get_file_service(request: Request) -> FileService:
    settings: Settings = request.app.state.settings
    return FileService(
        files=request.app.state.file_repository,
        projects=request.app.state.project_repository,
        storage=request.app.state.storage,
        notifier=request.app.state.notifier,
        max_file_size_bytes=settings.max_document_size_bytes,
        allowed_content_types=frozenset(settings.allowed_content_types),
    )


async def read_upload(file: UploadFile | None) -> UploadedDocument | None:
    if file is None or not file.filename:
        return None
    content = await file.read()
    return UploadedDocument(
        filename=file.filename,
        content_type=file.content_type or "application/octet-stream",
        content=content,
    )
