from __future__ import annotations

from pydantic import Field, SecretStr, model_validator

from shared.config.base import BaseServiceSettings

PDF = "application/pdf"
DOC = "application/msword"
DOCX = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


class Settings(BaseServiceSettings):
    service_name: str = "studypotion_service"

    storage_base_path: str = Field(default="/app/storage")
    max_document_size_mb: int = Field(default=50, ge=1, le=500)
    allowed_content_types: list[str] = Field(default=[PDF, DOC, DOCX])
    ingestion_formats: list[str] = Field(default=["pdf", "doc", "docx", "xlsx", "csv", "txt", "md"])

    chunk_size_chars: int = Field(default=1000, ge=1)
    chunk_overlap_chars: int = Field(default=200, ge=0)

    embedding_batch_size: int = Field(default=32, ge=1, le=2048)
    embedding_max_concurrency: int = Field(default=4, ge=1, le=64)
    embedding_max_retries: int = Field(default=0, ge=0, le=10)
    embedding_timeout_seconds: float = Field(default=60.0, gt=0)

    webhook_url: SecretStr | None = Field(default=None)
    webhook_timeout_seconds: float = Field(default=30.0, gt=0)

    ingestion_timeout_seconds: float = Field(default=120.0, gt=0)

    @model_validator(mode="after")
    def _check_chunk_window(self) -> "Settings":
        if self.chunk_overlap_chars >= self.chunk_size_chars:
            raise ValueError(
                "chunk_overlap_chars must be smaller than chunk_size_chars "
                f"(got overlap={self.chunk_overlap_chars}, size={self.chunk_size_chars})"
            )
        return self

    @property
    def max_document_size_bytes(self) -> int:
        return self.max_document_size_mb * 1024 * 1024
