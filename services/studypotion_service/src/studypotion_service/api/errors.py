from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from shared.schemas.base import ErrorResponse
from studypotion_service.domain.exceptions import StudyPotionError


async def handle_domain_error(request: Request, exc: StudyPotionError) -> JSONResponse:
    body = ErrorResponse(
        error=exc.message,
        error_code=exc.error_code,
        details=exc.details,
        correlation_id=getattr(request.state, "correlation_id", None),
    )
    return JSONResponse(status_code=exc.status_code, content=body.model_dump(exclude_none=True))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StudyPotionError, handle_domain_error)
