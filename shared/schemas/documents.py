from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ChunkLocation(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    page_number: int = Field(ge=1)


class ChunkMetadata(BaseModel):
    """Provenance stored next to every chunk in ``vector_documents.metadata``.

    Serialised with camelCase keys (``chunkIndex``, ``totalChunks``...) because the
    chat side reads the JSON column directly.
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    source: str
    blob_type: str
    uploaded_at: datetime
    chunk_index: int = Field(ge=0)
    total_chunks: int = Field(ge=1)
    project_id: str
    user_id: str
    loc: ChunkLocation


class PersistedChunkRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    content: str
    metadata: ChunkMetadata
    embedding: list[float]
