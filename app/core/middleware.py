from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
import time
import logging

from app.config.settings import settings
from app.core.exceptions import DomainError, InfrastructureError
from app.shared.schemas.common import ErrorResponse

logger = logging.getLogger(__name__)

def _error_response(error: DomainError) -> JSONResponse:
    body = ErrorResponse(
        message=error.detail,
        error_code=error.error_code,
        details=error.details or None
    )
    return JSONResponse(
        status_code=error.status_code,
        content=body.model_dump(mode="json"),
        headers=getattr(error, "headers", None)
    )

def setup_exception_handlers(app: FastAPI):
    """Traducir errores de negocio e infraestructura a ErrorResponse"""

    @app.exception_handler(DomainError)
    async def domain_error_handler(request: Request, exc: DomainError):
        return _error_response(exc)

    @app.exception_handler(SQLAlchemyError)
    async def database_error_handler(request: Request, exc: SQLAlchemyError):
        logger.exception(f"Error de base de datos no controlado en {request.method} {request.url.path}")
        return _error_response(InfrastructureError())

def setup_middleware(app: FastAPI):
    """Configure all middleware for the application"""

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request, call_next):
        start_time = time.time()

        response = await call_next(request)

        process_time = time.time() - start_time
        logger.info(
            f"{request.method} {request.url.path} - "
            f"Status: {response.status_code} - "
            f"Time: {process_time:.4f}s"
        )

        return response
