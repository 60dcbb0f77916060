# Copyright (c) 2025 Alexandre Tavares
# Licensed under the Creative Commons Attribution-NonCommercial 4.0 International (CC BY-NC 4.0)
# See the LICENSE file in the project root for more information.
import asyncio
import contextlib
import json
from contextlib import asynccontextmanager
from pathlib import Path
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from starlette.middleware.sessions import SessionMiddleware
from app.core.config import settings
from app.core.exceptions import setup_exception_handlers
from app.core.logging_config import get_logger, setup_logging
from app.api.v1.router import router_api
from app.db.session import SessionLocal, init_models
from app.services.time_tracking import run_stale_sweeper

"""
DocuFlow – FastAPI entrypoint.

- Cria a instância principal do FastAPI (title/version) e monta /api.
- Lifespan: logging, criação do schema (DB_CREATE_ALL) e varredura de timers parados.
- Sessão por cookie assinado (SessionMiddleware) e CORS com credenciais.
- Garante a existência do diretório de uploads e o serve em /uploads (StaticFiles).
- Expõe /health para diagnóstico rápido do ambiente.
"""

setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.DB_CREATE_ALL:
        await init_models()

    sweeper = None
    if settings.TIME_SWEEP_INTERVAL_S > 0:
        sweeper = asyncio.create_task(
            run_stale_sweeper(SessionLocal, settings.TIME_SWEEP_INTERVAL_S, settings.TIME_STALE_AFTER_S)
        )
        logger.info("Stale timer sweep every %ss (stale after %ss)", settings.TIME_SWEEP_INTERVAL_S, settings.TIME_STALE_AFTER_S)
    yield
    if sweeper:
        sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper


start_server = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    lifespan=lifespan,
)

Path(settings.UPLOAD_DIR).mkdir(parents=True, exist_ok=True)
start_server.mount("/uploads", StaticFiles(directory=settings.UPLOAD_DIR), name="uploads")

start_server.include_router(router_api, prefix="/api")
setup_exception_handlers(start_server)

def _normalize_cors(origins_setting):
    """
    Aceita: list[str], string JSON (ex: '["http://..."]') ou CSV (ex: 'http://...,http://...').
    Retorna sempre uma lista de strings (sem espaços) ou lista vazia.
    """
    if not origins_setting:
        return []
    if isinstance(origins_setting, list):
        return [o.strip() for o in origins_setting if o and o.strip()]
    if isinstance(origins_setting, str):
        s = origins_setting.strip()
        if s.startswith("["):
            try:
                parsed = json.loads(s)
            except ValueError:
                parsed = None
            if isinstance(parsed, list):
                return [o.strip() for o in parsed if o and o.strip()]
        return [o.strip() for o in s.split(",") if o and o.strip()]
    return []

origins = _normalize_cors(settings.CORS_ORIGINS)

if not origins:
    origins = ["http://localhost:5173", "http://127.0.0.1:5173"]

start_server.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
start_server.add_middleware(
    SessionMiddleware,
    secret_key=settings.SESSION_SECRET,
    session_cookie=settings.SESSION_COOKIE,
    max_age=settings.SESSION_MAX_AGE_S,
    same_site="lax",
    https_only=settings.SESSION_HTTPS_ONLY,
)

logger.info("CORS habilitado para: %s", origins)

@start_server.get("/health", tags=["Health"])
def health():
    return {"status": "ok", "env": settings.APP_ENV}
