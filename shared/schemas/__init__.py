from shared.schemas.base import ErrorResponse, HealthResponse
from shared.schemas.documents import (
    ChunkLocation,
    ChunkMetadata,
    PersistedChunkRecord,
)

__all__ = [
    "HealthResponse",
    "ErrorResponse",
    "ChunkLocation",
    "ChunkMetadata",
    "PersistedChunkRecord",
]
