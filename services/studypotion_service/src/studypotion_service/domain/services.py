from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import PurePosixPath
from uuid import UUID

import structlog

from shared.schemas.documents import PersistedChunkRecord
from studypotion_service.domain.exceptions import (
    BadRequestError,
    DocumentTooLargeError,
    EmbeddingProviderError,
    EmptyDocumentError,
    FileNotFoundInProjectError,
    IngestionError,
    IngestionTimeoutError,
    MissingFileError,
    MissingProjectIdError,
    NoTextExtractedError,
    PersistenceError,
    ProjectNotFoundError,
    StorageError,
    StudyPotionError,
    UnsupportedContentTypeError,
    WebhookError,
)
from studypotion_service.domain.interfaces import (
    BlobStoragePort,
    ChunkRepositoryPort,
    EmbeddingProviderPort,
    FileRepositoryPort,
    ProjectRepositoryPort,
    WebhookNotifierPort,
)
from studypotion_service.domain.models import (
    AuthenticatedUser,
    IngestionResult,
    IngestionState,
    NewProjectFile,
    Project,
    ProjectCreateRequest,
    ProjectFile,
    ProjectUpdateRequest,
    UploadedDocument,
)
from studypotion_service.domain.processing import (
    ChunkingService,
    TextExtractionService,
    build_chunk_metadata,
    clean_text,
    resolve_format,
)

logger = structlog.get_logger(__name__)

ALLOWED_CONTENT_TYPES = frozenset({
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
})
MAX_FILE_SIZE_BYTES = 50 * 1024 * 1024  # 50 MB
INGESTION_FORMATS = frozenset({"pdf", "doc", "docx", "xlsx", "csv", "txt", "md"})
_INGESTION_FORMATS_LABEL = "PDF, DOC, DOCX, XLSX, CSV, TXT y MD"

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def build_storage_path(user_id: str, project_id: str, filename: str, now: datetime) -> str:
    """``{user}/{project}/{epoch_ms}-{name}``; directory parts of the upload name are dropped."""
    name = PurePosixPath(filename.replace("\\", "/")).name or "file"
    return f"{user_id}/{project_id}/{int(now.timestamp() * 1000)}-{name}"


def validate_upload(
    document: UploadedDocument,
    allowed_content_types: frozenset[str],
    max_file_size_bytes: int,
) -> None:
    if document.content_type not in allowed_content_types:
        logger.warning(
            "upload.rejected.unsupported_type",
            filename=document.filename,
            content_type=document.content_type,
        )
        raise UnsupportedContentTypeError(document.content_type)

    check_size(document, max_file_size_bytes)


def check_size(document: UploadedDocument, max_file_size_bytes: int) -> None:
    if document.size_bytes > max_file_size_bytes:
        logger.warning(
            "upload.rejected.file_too_large",
            filename=document.filename,
            size_bytes=document.size_bytes,
            limit_bytes=max_file_size_bytes,
        )
        raise DocumentTooLargeError(document.size_bytes, max_file_size_bytes)


async def resolve_owned_project(
    projects: ProjectRepositoryPort,
    user: AuthenticatedUser,
    project_id: str,
) -> Project:
    """Return the project when it exists and belongs to user; malformed ids count as missing."""
    try:
        project_uuid = UUID(project_id)
    except ValueError as exc:
        logger.warning("project.rejected.malformed_id", project_id=project_id, user_id=user.id)
        raise ProjectNotFoundError(project_id) from exc

    project = await projects.get(project_uuid, user.id)
    if project is None:
        logger.warning("project.rejected.not_owned", project_id=project_id, user_id=user.id)
        raise ProjectNotFoundError(project_id)
    return project


async def forward_to_webhook(
    notifier: WebhookNotifierPort,
    document: UploadedDocument,
    fields: dict[str, str],
) -> None:
    log = logger.bind(filename=document.filename, **fields)
    if not notifier.enabled:
        log.debug("webhook.notify.skipped", reason="no_webhook_configured")
        return

    try:
        await notifier.notify_file_uploaded(
            document_name=document.filename,
            content_type=document.content_type,
            content=document.content,
            fields=fields,
        )
    except WebhookError as exc:
        log.warning("webhook.notify.failed", error_code=exc.error_code, error=exc.details)
        return

    log.info("webhook.notify.sent")


class IngestionRun:
    """Tracks the state of one ingestion request and logs every transition."""

    def __init__(self, log: structlog.stdlib.BoundLogger) -> None:
        self._log = log
        self.state = IngestionState.AUTHENTICATING

    def transition(self, state: IngestionState, **fields: object) -> None:
        self._log.info("ingestion.state.changed", previous=self.state.value, state=state.value, **fields)
        self.state = state

    def fail(self, exc: StudyPotionError) -> None:
        self._log.error(
            "ingestion.failed",
            failed_state=self.state.value,
            error_code=exc.error_code,
            status_code=exc.status_code,
            error=exc.details or exc.message,
        )
        self.state = IngestionState.FAILED


class IngestionService:
    def __init__(
        self,
        extractor: TextExtractionService,
        chunker: ChunkingService,
        embedder: EmbeddingProviderPort,
        chunk_repository: ChunkRepositoryPort,
        project_repository: ProjectRepositoryPort,
        notifier: WebhookNotifierPort,
        storage: BlobStoragePort | None = None,
        file_repository: FileRepositoryPort | None = None,
        max_file_size_bytes: int = MAX_FILE_SIZE_BYTES,
        allowed_formats: frozenset[str] = INGESTION_FORMATS,
        timeout_seconds: float = 120.0,
        clock: Clock = utc_now,
    ) -> None:
        self._extractor = extractor
        self._chunker = chunker
        self._embedder = embedder
        self._chunk_repository = chunk_repository
        self._project_repository = project_repository
        self._notifier = notifier
        self._storage = storage
        self._file_repository = file_repository
        self._max_file_size_bytes = max_file_size_bytes
        self._allowed_formats = allowed_formats
        self._timeout_seconds = timeout_seconds
        self._clock = clock

    async def ingest_document(
        self,
        user: AuthenticatedUser,
        project_id: str | None,
        document: UploadedDocument | None,
        correlation_id: str,
    ) -> IngestionResult:
        log = logger.bind(
            user_id=user.id,
            project_id=project_id,
            filename=document.filename if document else None,
            correlation_id=correlation_id,
        )
        run = IngestionRun(log)
        run.transition(IngestionState.RECEIVING)

        try:
            if document is None or not document.filename:
                raise MissingFileError()
            if not project_id:
                raise MissingProjectIdError()

            return await asyncio.wait_for(
                self._run(run, user, project_id, document),
                timeout=self._timeout_seconds,
            )
        except StudyPotionError as exc:
            run.fail(exc)
            raise
        except TimeoutError as exc:
            error = IngestionTimeoutError(self._timeout_seconds)
            run.fail(error)
            raise error from exc
        except Exception as exc:
            error = IngestionError(str(exc))
            run.fail(error)
            raise error from exc

    async def _run(
        self,
        run: IngestionRun,
        user: AuthenticatedUser,
        project_id: str,
        document: UploadedDocument,
    ) -> IngestionResult:
        project = await resolve_owned_project(self._project_repository, user, project_id)
        project_id = str(project.id)

        file_format = resolve_format(document.content_type, document.filename)
        run.transition(
            IngestionState.VALIDATING,
            content_type=document.content_type,
            file_format=file_format,
            size_bytes=document.size_bytes,
        )
        if file_format not in self._allowed_formats:
            logger.warning(
                "upload.rejected.unsupported_type",
                filename=document.filename,
                content_type=document.content_type,
            )
            raise UnsupportedContentTypeError(document.content_type, allowed=_INGESTION_FORMATS_LABEL)
        check_size(document, self._max_file_size_bytes)

        run.transition(IngestionState.EXTRACTING)
        text = await asyncio.to_thread(self._extractor.extract, document.content, file_format)
        if not text.strip():
            raise NoTextExtractedError()

        run.transition(IngestionState.CLEANING, char_count=len(text))
        cleaned = clean_text(text)

        run.transition(IngestionState.CHUNKING, char_count=len(cleaned))
        chunks = self._chunker.chunk_text(cleaned)
        if not chunks:
            raise EmptyDocumentError()

        run.transition(IngestionState.EMBEDDING, chunk_count=len(chunks))
        embeddings = await self._embedder.embed_texts([chunk.content for chunk in chunks])
        if len(embeddings) != len(chunks):
            raise EmbeddingProviderError(
                f"expected {len(chunks)} embeddings, received {len(embeddings)}"
            )

        run.transition(IngestionState.PERSISTING)
        now = self._clock()
        inserted = 0
        for chunk, embedding in zip(chunks, embeddings):
            record = PersistedChunkRecord(
                content=chunk.content,
                metadata=build_chunk_metadata(
                    file_name=document.filename,
                    chunk_index=chunk.index,
                    total_chunks=len(chunks),
                    project_id=project_id,
                    user_id=user.id,
                    mime_type=document.content_type,
                    now=now,
                ),
                embedding=embedding,
            )
            try:
                await self._chunk_repository.save_chunk(record)
            except PersistenceError as exc:
                # rows inserted before the failure are kept
                exc.inserted = inserted
                raise
            inserted += 1

        run.transition(IngestionState.STORING, inserted=inserted)
        file_record = await self._store_original(user, project_id, document, now)

        run.transition(IngestionState.DONE, chunk_count=inserted)
        return IngestionResult(
            file_name=document.filename,
            chunk_count=inserted,
            file_record=file_record,
        )

    async def _store_original(
        self,
        user: AuthenticatedUser,
        project_id: str,
        document: UploadedDocument,
        now: datetime,
    ) -> ProjectFile | None:
        if self._storage is None or self._file_repository is None:
            return None

        path = build_storage_path(user.id, project_id, document.filename, now)
        try:
            await self._storage.save(path, document.content)
            return await self._file_repository.create(
                NewProjectFile(
                    project_id=project_id,
                    user_id=user.id,
                    file_name=document.filename,
                    file_path=path,
                    file_size=document.size_bytes,
                    mime_type=document.content_type,
                )
            )
        except (StorageError, PersistenceError) as exc:
            logger.warning(
                "ingestion.storage.skipped",
                path=path,
                error_code=exc.error_code,
                error=exc.details,
            )
            return None

    async def notify_webhook(
        self,
        user: AuthenticatedUser,
        project_id: str,
        document: UploadedDocument,
    ) -> None:
        logger.info(
            "ingestion.state.changed",
            previous=IngestionState.DONE.value,
            state=IngestionState.NOTIFYING_WEBHOOK.value,
            user_id=user.id,
            project_id=project_id,
            filename=document.filename,
        )
        await forward_to_webhook(
            self._notifier,
            document,
            {"projectId": project_id, "userId": user.id},
        )


class ProjectService:
    def __init__(
        self,
        projects: ProjectRepositoryPort,
        files: FileRepositoryPort,
        storage: BlobStoragePort,
    ) -> None:
        self._projects = projects
        self._files = files
        self._storage = storage

    async def list_projects(self, user: AuthenticatedUser) -> list[Project]:
        return await self._projects.list_for_user(user.id)

    async def get_project(self, user: AuthenticatedUser, project_id: UUID) -> Project:
        project = await self._projects.get(project_id, user.id)
        if project is None:
            raise ProjectNotFoundError(str(project_id))
        return project

    async def create_project(self, user: AuthenticatedUser, request: ProjectCreateRequest) -> Project:
        if not request.name or not request.name.strip():
            raise BadRequestError("El nombre del proyecto es requerido")

        project = await self._projects.create(user.id, request.name.strip(), request.description)
        logger.info("project.created", project_id=str(project.id), user_id=user.id)
        return project

    async def update_project(
        self,
        user: AuthenticatedUser,
        project_id: UUID,
        request: ProjectUpdateRequest,
    ) -> Project:
        if not request.name and not request.description:
            raise BadRequestError("Debes proporcionar al menos un campo para actualizar")

        project = await self._projects.update(
            project_id,
            user.id,
            name=request.name.strip() if request.name is not None else None,
            description=request.description.strip() if request.description is not None else None,
        )
        if project is None:
            raise ProjectNotFoundError(str(project_id))
        return project

    async def delete_project(self, user: AuthenticatedUser, project_id: UUID) -> None:
        await self.get_project(user, project_id)

        files = await self._files.list_for_project(str(project_id), user.id)
        if files:
            await self._storage.delete([f.file_path for f in files])

        if not await self._projects.delete(project_id, user.id):
            raise ProjectNotFoundError(str(project_id))

        logger.info(
            "project.deleted",
            project_id=str(project_id),
            user_id=user.id,
            removed_files=len(files),
        )

    async def list_files(self, user: AuthenticatedUser, project_id: UUID) -> list[ProjectFile]:
        return await self._files.list_for_project(str(project_id), user.id)


class FileService:
    def __init__(
        self,
        files: FileRepositoryPort,
        projects: ProjectRepositoryPort,
        storage: BlobStoragePort,
        notifier: WebhookNotifierPort,
        max_file_size_bytes: int = MAX_FILE_SIZE_BYTES,
        allowed_content_types: frozenset[str] = ALLOWED_CONTENT_TYPES,
        clock: Clock = utc_now,
    ) -> None:
        self._files = files
        self._projects = projects
        self._storage = storage
        self._notifier = notifier
        self._max_file_size_bytes = max_file_size_bytes
        self._allowed_content_types = allowed_content_types
        self._clock = clock

    async def upload_file(
        self,
        user: AuthenticatedUser,
        project_id: str | None,
        document: UploadedDocument | None,
    ) -> ProjectFile:
        if document is None or not document.filename:
            raise MissingFileError()
        if not project_id:
            raise MissingProjectIdError()
        project = await resolve_owned_project(self._projects, user, project_id)
        project_id = str(project.id)
        validate_upload(document, self._allowed_content_types, self._max_file_size_bytes)

        path = build_storage_path(user.id, project_id, document.filename, self._clock())
        await self._storage.save(path, document.content)

        record = await self._files.create(
            NewProjectFile(
                project_id=project_id,
                user_id=user.id,
                file_name=document.filename,
                file_path=path,
                file_size=document.size_bytes,
                mime_type=document.content_type,
            )
        )
        logger.info("file.uploaded", file_id=str(record.id), project_id=project_id, path=path)
        return record

    async def replace_file(
        self,
        user: AuthenticatedUser,
        file_id: UUID,
        document: UploadedDocument | None,
    ) -> ProjectFile:
        existing = await self._get_owned(user, file_id)
        if document is None or not document.filename:
            raise MissingFileError()
        validate_upload(document, self._allowed_content_types, self._max_file_size_bytes)

        try:
            await self._storage.delete([existing.file_path])
        except StorageError as exc:
            logger.warning(
                "file.replace.old_blob_not_removed",
                file_id=str(file_id),
                path=existing.file_path,
                error=exc.details,
            )

        path = build_storage_path(user.id, existing.project_id, document.filename, self._clock())
        await self._storage.save(path, document.content)

        record = await self._files.replace(
            file_id,
            user.id,
            NewProjectFile(
                project_id=existing.project_id,
                user_id=user.id,
                file_name=document.filename,
                file_path=path,
                file_size=document.size_bytes,
                mime_type=document.content_type,
            ),
        )
        if record is None:
            raise FileNotFoundInProjectError(str(file_id))

        logger.info("file.replaced", file_id=str(file_id), path=path)
        return record

    async def delete_file(self, user: AuthenticatedUser, file_id: UUID) -> None:
        existing = await self._get_owned(user, file_id)
        await self._storage.delete([existing.file_path])
        if not await self._files.delete(file_id, user.id):
            raise FileNotFoundInProjectError(str(file_id))
        logger.info("file.deleted", file_id=str(file_id), path=existing.file_path)

    async def download_file(self, user: AuthenticatedUser, file_id: UUID) -> tuple[ProjectFile, bytes]:
        existing = await self._get_owned(user, file_id)
        content = await self._storage.read(existing.file_path)
        return existing, content

    async def notify_webhook(self, record: ProjectFile, document: UploadedDocument) -> None:
        await forward_to_webhook(
            self._notifier,
            document,
            {"projectId": record.project_id, "userId": record.user_id, "fileId": str(record.id)},
        )

    async def _get_owned(self, user: AuthenticatedUser, file_id: UUID) -> ProjectFile:
        record = await self._files.get(file_id, user.id)
        if record is None:
            raise FileNotFoundInProjectError(str(file_id))
        return record
