from __future__ import annotations

from abc import ABC, abstractmethod
from uuid import UUID

from shared.schemas.documents import PersistedChunkRecord
from studypotion_service.domain.models import (
    AuthenticatedUser,
    NewProjectFile,
    Project,
    ProjectFile,
)


class AuthGatewayPort(ABC):
    @abstractmethod
    async def get_user(self, access_token: str) -> AuthenticatedUser:
        """Resolve an access token to its user. Raises UnauthenticatedError."""


class EmbeddingProviderPort(ABC):
    @abstractmethod
    async def embed_texts(self, texts: list[str]) -> list[list[float]]:
        """Return one vector per text, same order, identical dimensionality."""


class ChunkRepositoryPort(ABC):
    @abstractmethod
    async def save_chunk(self, record: PersistedChunkRecord) -> None:
        """Insert a single content/metadata/embedding row. Raises PersistenceError."""


class BlobStoragePort(ABC):
    @abstractmethod
    async def save(self, path: str, content: bytes) -> str:
        """Persist a binary object. Returns the storage path."""

    @abstractmethod
    async def read(self, path: str) -> bytes:
        """Return the object stored at path. Raises StorageError."""

    @abstractmethod
    async def delete(self, paths: list[str]) -> None:
        """Remove objects; missing paths are ignored."""

    @abstractmethod
    async def exists(self, path: str) -> bool:
        """Check whether an object exists at the given path."""


class ProjectRepositoryPort(ABC):
    @abstractmethod
    async def list_for_user(self, user_id: str) -> list[Project]:
        """Projects owned by user_id, newest first."""

    @abstractmethod
    async def get(self, project_id: UUID, user_id: str) -> Project | None:
        """Retrieve a project scoped to its owner."""

    @abstractmethod
    async def create(self, user_id: str, name: str, description: str | None) -> Project:
        """Insert a project and return the stored row."""

    @abstractmethod
    async def update(
        self,
        project_id: UUID,
        user_id: str,
        name: str | None,
        description: str | None,
    ) -> Project | None:
        """Apply the non-None fields. Returns None when the project is missing."""

    @abstractmethod
    async def delete(self, project_id: UUID, user_id: str) -> bool:
        """Delete the project (file rows cascade). Returns False when missing."""


class FileRepositoryPort(ABC):
    @abstractmethod
    async def list_for_project(self, project_id: str, user_id: str) -> list[ProjectFile]:
        """Files of a project owned by user_id, newest first."""

    @abstractmethod
    async def get(self, file_id: UUID, user_id: str) -> ProjectFile | None:
        """Retrieve a file record scoped to its owner."""

    @abstractmethod
    async def create(self, new_file: NewProjectFile) -> ProjectFile:
        """Insert a file record and return the stored row."""

    @abstractmethod
    async def replace(self, file_id: UUID, user_id: str, new_file: NewProjectFile) -> ProjectFile | None:
        """Point an existing record at a new blob. Returns None when missing."""

    @abstractmethod
    async def delete(self, file_id: UUID, user_id: str) -> bool:
        """Delete a file record. Returns False when missing."""


class WebhookNotifierPort(ABC):
    @property
    @abstractmethod
    def enabled(self) -> bool:
        """False when no webhook URL is configured."""

    @abstractmethod
    async def notify_file_uploaded(
        self,
        document_name: str,
        content_type: str,
        content: bytes,
        fields: dict[str, str],
    ) -> None:
        """Forward a copy of the file to the automation webhook. Raises WebhookError."""
