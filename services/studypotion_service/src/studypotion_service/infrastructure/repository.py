from __future__ import annotations

from collections.abc import Mapping
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from studypotion_service.domain.exceptions import PersistenceError
from studypotion_service.domain.interfaces import FileRepositoryPort, ProjectRepositoryPort
from studypotion_service.domain.models import NewProjectFile, Project, ProjectFile

logger = structlog.get_logger(__name__)

_PROJECT_COLUMNS = "id, user_id, name, description, created_at, updated_at"
_FILE_COLUMNS = (
    "id, project_id, user_id, file_name, file_path, file_size, mime_type, created_at, updated_at"
)


def create_engine(database_url: str, pool_size: int = 5, max_overflow: int = 10) -> AsyncEngine:
    return create_async_engine(database_url, pool_size=pool_size, max_overflow=max_overflow)


def _to_project(row: Mapping[str, Any]) -> Project:
    return Project(
        id=row["id"],
        user_id=str(row["user_id"]),
        name=row["name"],
        description=row["description"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _to_file(row: Mapping[str, Any]) -> ProjectFile:
    return ProjectFile(
        id=row["id"],
        project_id=str(row["project_id"]),
        user_id=str(row["user_id"]),
        file_name=row["file_name"],
        file_path=row["file_path"],
        file_size=row["file_size"],
        mime_type=row["mime_type"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class _PostgresRepository:
    def __init__(self, engine: AsyncEngine) -> None:
        self._session_factory = async_sessionmaker(
            engine, class_=AsyncSession, expire_on_commit=False
        )

    async def _fetch_all(self, sql: str, params: dict[str, Any]) -> list[Mapping[str, Any]]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(text(sql), params)
                return list(result.mappings().all())
        except SQLAlchemyError as exc:
            logger.error("repository.query.failed", error=str(exc))
            raise PersistenceError(str(exc)) from exc

    async def _fetch_one(
        self, sql: str, params: dict[str, Any], commit: bool = False
    ) -> Mapping[str, Any] | None:
        try:
            async with self._session_factory() as session:
                result = await session.execute(text(sql), params)
                row = result.mappings().first()
                if commit:
                    await session.commit()
                return row
        except SQLAlchemyError as exc:
            logger.error("repository.query.failed", error=str(exc))
            raise PersistenceError(str(exc)) from exc


class PostgresProjectRepository(_PostgresRepository, ProjectRepositoryPort):
    async def list_for_user(self, user_id: str) -> list[Project]:
        rows = await self._fetch_all(
            f"""
            SELECT {_PROJECT_COLUMNS}
            FROM projects
            WHERE user_id = :user_id
            ORDER BY created_at DESC
            """,
            {"user_id": user_id},
        )
        return [_to_project(row) for row in rows]

    async def get(self, project_id: UUID, user_id: str) -> Project | None:
        row = await self._fetch_one(
            f"""
            SELECT {_PROJECT_COLUMNS}
            FROM projects
            WHERE id = :id AND user_id = :user_id
            """,
            {"id": project_id, "user_id": user_id},
        )
        return _to_project(row) if row else None

    async def create(self, user_id: str, name: str, description: str | None) -> Project:
        row = await self._fetch_one(
            f"""
            INSERT INTO projects (user_id, name, description)
            VALUES (:user_id, :name, :description)
            RETURNING {_PROJECT_COLUMNS}
            """,
            {"user_id": user_id, "name": name, "description": description},
            commit=True,
        )
        if row is None:
            raise PersistenceError("INSERT INTO projects returned no row")
        return _to_project(row)

    async def update(
        self,
        project_id: UUID,
        user_id: str,
        name: str | None,
        description: str | None,
    ) -> Project | None:
        row = await self._fetch_one(
            f"""
            UPDATE projects
            SET name        = COALESCE(:name, name),
                description = COALESCE(:description, description),
                updated_at  = NOW()
            WHERE id = :id AND user_id = :user_id
            RETURNING {_PROJECT_COLUMNS}
            """,
            {"id": project_id, "user_id": user_id, "name": name, "description": description},
            commit=True,
        )
        return _to_project(row) if row else None

    async def delete(self, project_id: UUID, user_id: str) -> bool:
        row = await self._fetch_one(
            """
            DELETE FROM projects
            WHERE id = :id AND user_id = :user_id
            RETURNING id
            """,
            {"id": project_id, "user_id": user_id},
            commit=True,
        )
        return row is not None


class PostgresFileRepository(_PostgresRepository, FileRepositoryPort):
    async def list_for_project(self, project_id: str, user_id: str) -> list[ProjectFile]:
        rows = await self._fetch_all(
            f"""
            SELECT {_FILE_COLUMNS}
            FROM project_files
            WHERE project_id = :project_id AND user_id = :user_id
            ORDER BY created_at DESC
            """,
            {"project_id": project_id, "user_id": user_id},
        )
        return [_to_file(row) for row in rows]

    async def get(self, file_id: UUID, user_id: str) -> ProjectFile | None:
        row = await self._fetch_one(
            f"""
            SELECT {_FILE_COLUMNS}
            FROM project_files
            WHERE id = :id AND user_id = :user_id
            """,
            {"id": file_id, "user_id": user_id},
        )
        return _to_file(row) if row else None

    async def create(self, new_file: NewProjectFile) -> ProjectFile:
        row = await self._fetch_one(
            f"""
            INSERT INTO project_files (
                project_id, user_id, file_name, file_path, file_size, mime_type
            ) VALUES (
                :project_id, :user_id, :file_name, :file_path, :file_size, :mime_type
            )
            RETURNING {_FILE_COLUMNS}
            """,
            new_file.model_dump(),
            commit=True,
        )
        if row is None:
            raise PersistenceError("INSERT INTO project_files returned no row")

        logger.debug(
            "repository.file.saved",
            file_id=str(row["id"]),
            project_id=new_file.project_id,
        )
        return _to_file(row)

    async def replace(self, file_id: UUID, user_id: str, new_file: NewProjectFile) -> ProjectFile | None:
        row = await self._fetch_one(
            f"""
            UPDATE project_files
            SET file_name  = :file_name,
                file_path  = :file_path,
                file_size  = :file_size,
                mime_type  = :mime_type,
                updated_at = NOW()
            WHERE id = :id AND user_id = :user_id
            RETURNING {_FILE_COLUMNS}
            """,
            {
                "id": file_id,
                "user_id": user_id,
                "file_name": new_file.file_name,
                "file_path": new_file.file_path,
                "file_size": new_file.file_size,
                "mime_type": new_file.mime_type,
            },
            commit=True,
        )
        return _to_file(row) if row else None

    async def delete(self, file_id: UUID, user_id: str) -> bool:
        row = await self._fetch_one(
            """
            DELETE FROM project_files
            WHERE id = :id AND user_id = :user_id
            RETURNING id
            """,
            {"id": file_id, "user_id": user_id},
            commit=True,
        )
        return row is not None
