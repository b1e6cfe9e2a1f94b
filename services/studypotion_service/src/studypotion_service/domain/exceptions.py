from __future__ import annotations


class StudyPotionError(Exception):
    """Base for every error that maps onto an HTTP response.

    ``message`` is the user-facing text, ``details`` the technical cause (if any).
    """

    status_code: int = 500

    def __init__(
        self,
        message: str,
        error_code: str,
        details: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details
        if status_code is not None:
            self.status_code = status_code


class UnauthenticatedError(StudyPotionError):
    status_code = 401

    def __init__(self, details: str | None = None) -> None:
        super().__init__(message="No autenticado", error_code="UNAUTHENTICATED", details=details)


class BadRequestError(StudyPotionError):
    status_code = 400

    def __init__(self, message: str, error_code: str = "INVALID_REQUEST") -> None:
        super().__init__(message=message, error_code=error_code)


class MissingFileError(BadRequestError):
    def __init__(self) -> None:
        super().__init__(message="No se proporcionó ningún archivo", error_code="MISSING_FILE")


class MissingProjectIdError(BadRequestError):
    def __init__(self) -> None:
        super().__init__(
            message="No se proporcionó el ID del proyecto",
            error_code="MISSING_PROJECT_ID",
        )


class UnsupportedContentTypeError(BadRequestError):
    def __init__(self, content_type: str, allowed: str = "PDF, DOC y DOCX") -> None:
        super().__init__(
            message=f"Tipo de archivo no permitido. Solo se permiten {allowed}",
            error_code="UNSUPPORTED_CONTENT_TYPE",
        )
        self.details = f"Content type '{content_type}' is not supported."


class DocumentTooLargeError(StudyPotionError):
    status_code = 413

    def __init__(self, size_bytes: int, limit_bytes: int) -> None:
        super().__init__(
            message="El archivo supera el tamaño máximo permitido",
            error_code="DOCUMENT_TOO_LARGE",
            details=f"Document size {size_bytes} bytes exceeds limit {limit_bytes} bytes.",
        )


class NotFoundError(StudyPotionError):
    status_code = 404


class ProjectNotFoundError(NotFoundError):
    def __init__(self, project_id: str) -> None:
        super().__init__(
            message="Proyecto no encontrado",
            error_code="PROJECT_NOT_FOUND",
            details=f"Project '{project_id}' does not exist or is not owned by the caller.",
        )


class FileNotFoundInProjectError(NotFoundError):
    def __init__(self, file_id: str) -> None:
        super().__init__(
            message="Archivo no encontrado",
            error_code="FILE_NOT_FOUND",
            details=f"File '{file_id}' does not exist or is not owned by the caller.",
        )


# Extraction


class UnsupportedFormatError(BadRequestError):
    def __init__(self, declared: str) -> None:
        super().__init__(message=f"Formato no soportado: {declared}", error_code="UNSUPPORTED_FORMAT")


class EmptyInputError(BadRequestError):
    def __init__(self) -> None:
        super().__init__(message="El archivo está vacío", error_code="EMPTY_INPUT")


class ExtractionError(StudyPotionError):
    def __init__(self, file_format: str, detail: str) -> None:
        super().__init__(
            message="Error al procesar el documento",
            error_code="EXTRACTION_FAILED",
            details=f"Error extrayendo texto ({file_format}): {detail}",
        )


class EmptyDocumentError(BadRequestError):
    def __init__(
        self,
        message: str = "El documento no contiene suficiente texto para procesar",
        error_code: str = "EMPTY_DOCUMENT",
    ) -> None:
        super().__init__(message=message, error_code=error_code)


class NoTextExtractedError(EmptyDocumentError):
    def __init__(self) -> None:
        super().__init__(
            message="No se pudo extraer texto del documento",
            error_code="NO_TEXT_EXTRACTED",
        )


class ChunkingConfigurationError(StudyPotionError):
    def __init__(self, size: int, overlap: int) -> None:
        super().__init__(
            message="Error al procesar el documento",
            error_code="CHUNKING_MISCONFIGURED",
            details=f"Chunk overlap ({overlap}) must be >= 0 and smaller than chunk size ({size}).",
        )
        self.size = size
        self.overlap = overlap


# Embedding


class EmbeddingError(StudyPotionError):
    pass


class QuotaExceededError(EmbeddingError):
    status_code = 503

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(
            message=(
                "El servicio de embeddings está temporalmente no disponible. "
                "Por favor, contacta al administrador."
            ),
            error_code="EMBEDDING_QUOTA_EXCEEDED",
            details="OpenAI quota exceeded",
        )
        self.provider_detail = detail


class DimensionMismatchError(EmbeddingError):
    def __init__(self, expected: int, actual: int, index: int) -> None:
        super().__init__(
            message="Error al procesar el documento",
            error_code="EMBEDDING_DIMENSION_MISMATCH",
            details=(
                f"Embeddings con dimensiones incorrectas: esperado {expected}, "
                f"recibido {actual} (chunk {index})"
            ),
        )
        self.expected = expected
        self.actual = actual
        self.index = index


class EmbeddingProviderError(EmbeddingError):
    def __init__(self, detail: str) -> None:
        super().__init__(
            message="Error al procesar el documento",
            error_code="EMBEDDING_PROVIDER_ERROR",
            details=f"Error generando embedding: {detail}",
        )


# Persistence and side channels


class PersistenceError(StudyPotionError):
    def __init__(self, detail: str, inserted: int = 0) -> None:
        super().__init__(
            message="Error al procesar el documento",
            error_code="PERSISTENCE_FAILED",
            details=detail,
        )
        self.inserted = inserted


class StorageError(StudyPotionError):
    def __init__(self, detail: str) -> None:
        super().__init__(
            message="Error al subir el archivo al almacenamiento",
            error_code="STORAGE_ERROR",
            details=f"Storage operation failed: {detail}",
        )


class IngestionTimeoutError(StudyPotionError):
    def __init__(self, timeout_seconds: float) -> None:
        super().__init__(
            message="Error al procesar el documento",
            error_code="INGESTION_TIMEOUT",
            details=f"Ingestion did not finish within {timeout_seconds:g} seconds.",
        )


class IngestionError(StudyPotionError):
    def __init__(self, detail: str) -> None:
        super().__init__(
            message="Error al procesar el documento",
            error_code="INGESTION_FAILED",
            details=detail,
        )


class WebhookError(StudyPotionError):
    def __init__(self, detail: str) -> None:
        super().__init__(
            message="Webhook notification failed",
            error_code="WEBHOOK_FAILED",
            details=detail,
        )
