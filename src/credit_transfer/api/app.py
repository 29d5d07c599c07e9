from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..config import Settings, setup_logging
from ..errors import CreditTransferError
from ..models.api_models import ErrorResponse
from .container import ServiceContainer, build_container
from .middleware import DEFAULT_CORS_HEADERS, CORSHeadersMiddleware
from .router import router


logger = logging.getLogger(__name__)


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message).model_dump())


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    message = str(first.get("msg", "Invalid request"))
    if message.startswith("Value error, "):
        return message[len("Value error, "):]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    return f"{location}: {message}" if location else message


def create_app(
    settings: Optional[Settings] = None,
    container: Optional[ServiceContainer] = None,
) -> FastAPI:
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        ensure_indexes = getattr(app.state.container.db, "ensure_indexes", None)
        if ensure_indexes is not None:
            await ensure_indexes()
        yield

    app = FastAPI(title="Credit transfers", lifespan=lifespan)
    app.state.container = container or build_container(settings)
    app.add_middleware(CORSHeadersMiddleware)
    app.include_router(router)

    @app.exception_handler(CreditTransferError)
    async def _handle_transfer_error(request: Request, exc: CreditTransferError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("Request failed: %s", exc.message, extra={"path": request.url.path})
        return _error_response(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def _handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return _error_response(400, _validation_message(exc))

    @app.exception_handler(Exception)
    async def _handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error", extra={"path": request.url.path})
        # Runs outside the CORS middleware, so the headers are added here
        response = _error_response(500, "Internal error")
        response.headers.update(DEFAULT_CORS_HEADERS)
        return response

    return app


def main() -> None:
    import uvicorn

    settings = Settings.from_env()
    setup_logging(settings.log_level)
    uvicorn.run(create_app(settings), host="0.0.0.0", port=8000)


if __name__ == "__main__":
    main()
