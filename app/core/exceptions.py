# Copyright (c) 2025 Alexandre Tavares
# Licensed under the Creative Commons Attribution-NonCommercial 4.0 International (CC BY-NC 4.0)
# See the LICENSE file in the project root for more information.
import uuid
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from app.core.logging_config import get_logger

"""
Handler global de exceções não tratadas.


- Loga método/rota/tipo com traceback e um `error_id` para correlação.
- Responde 500 `{"detail": "Internal server error", "error_id", "error_type"}`.
- HTTPException e erros de validação seguem nos handlers padrão do FastAPI.
"""

logger = get_logger(__name__)


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    error_id = uuid.uuid4().hex[:12]
    logger.error(
        "Unhandled exception [%s] in %s %s: %s",
        error_id,
        request.method,
        request.url.path,
        exc,
        exc_info=exc,
        extra={
            "error_id": error_id,
            "path": request.url.path,
            "client": request.client.host if request.client else "unknown",
            "error_type": type(exc).__name__,
        },
    )
    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "error_id": error_id,
            "error_type": type(exc).__name__,
        },
    )


def setup_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(Exception, global_exception_handler)
    logger.debug("Exception handlers registered")
