from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class IngestionState(StrEnum):
    AUTHENTICATING = "authenticating"
    RECEIVING = "receiving"
    VALIDATING = "validating"
    EXTRACTING = "extracting"
    CLEANING = "cleaning"
    CHUNKING = "chunking"
    EMBEDDING = "embedding"
    PERSISTING = "persisting"
    STORING = "storing"
    NOTIFYING_WEBHOOK = "notifying_webhook"
    DONE = "done"
    FAILED = "failed"


class AuthenticatedUser(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    email: str | None = None


class UploadedDocument(BaseModel):
    """Raw upload as received; lives only for the duration of one request."""

    model_config = ConfigDict(frozen=True)

    filename: str
    content_type: str
    content: bytes = Field(repr=False)

    @property
    def size_bytes(self) -> int:
        return len(self.content)


class TextChunk(BaseModel):
    model_config = ConfigDict(frozen=True)

    index: int = Field(ge=0)
    content: str
    start_offset: int = Field(ge=0)


class Project(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: UUID
    user_id: str
    name: str
    description: str | None = None
    created_at: datetime
    updated_at: datetime


class ProjectFile(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: UUID
    project_id: str
    user_id: str
    file_name: str
    file_path: str
    file_size: int
    mime_type: str
    created_at: datetime
    updated_at: datetime


class IngestionResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    file_name: str
    chunk_count: int
    file_record: ProjectFile | None = None


class NewProjectFile(BaseModel):
    model_config = ConfigDict(frozen=True)

    project_id: str
    user_id: str
    file_name: str
    file_path: str
    file_size: int = Field(ge=0)
    mime_type: str


# HTTP payloads


class UploadResponse(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    success: bool = True
    file_name: str = Field(serialization_alias="fileName")
    chunks: int
    message: str


class ProjectCreateRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str | None = None
    description: str | None = None


class ProjectUpdateRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str | None = None
    description: str | None = None


class SuccessResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool = True

