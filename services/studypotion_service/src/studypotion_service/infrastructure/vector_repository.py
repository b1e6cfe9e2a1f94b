from __future__ import annotations

import json

import structlog
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from shared.schemas.documents import PersistedChunkRecord
from studypotion_service.domain.exceptions import PersistenceError
from studypotion_service.domain.interfaces import ChunkRepositoryPort

logger = structlog.get_logger(__name__)

_INSERT_SQL = text("""
    INSERT INTO vector_documents (content, metadata, embedding)
    VALUES (:content, CAST(:metadata AS jsonb), CAST(:embedding AS vector))
""")


def to_vector_literal(embedding: list[float]) -> str:
    return "[" + ",".join(str(v) for v in embedding) + "]"


class PgVectorChunkRepository(ChunkRepositoryPort):
    """Writes chunk rows into the pgvector-backed ``vector_documents`` table.

    Each row is committed on its own; historical rows from earlier uploads of the
    same file are never touched.
    """

    def __init__(self, engine: AsyncEngine) -> None:
        self._session_factory = async_sessionmaker(
            engine, class_=AsyncSession, expire_on_commit=False
        )

    async def save_chunk(self, record: PersistedChunkRecord) -> None:
        chunk_index = record.metadata.chunk_index
        params = {
            "content": record.content,
            "metadata": json.dumps(record.metadata.model_dump(mode="json", by_alias=True)),
            "embedding": to_vector_literal(record.embedding),
        }

        try:
            async with self._session_factory() as session:
                await session.execute(_INSERT_SQL, params)
                await session.commit()
        except SQLAlchemyError as exc:
            logger.error(
                "repository.chunk.insert_failed",
                chunk_index=chunk_index,
                source=record.metadata.source,
                error=str(exc),
            )
            raise PersistenceError(f"Error al guardar chunk {chunk_index}: {exc}") from exc

        logger.debug(
            "repository.chunk.saved",
            chunk_index=chunk_index,
            total_chunks=record.metadata.total_chunks,
            source=record.metadata.source,
        )
