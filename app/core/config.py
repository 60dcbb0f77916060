# Copyright (c) 2025 Alexandre Tavares
# Licensed under the Creative Commons Attribution-NonCommercial 4.0 International (CC BY-NC 4.0)
# See the LICENSE file in the project root for more information.
import os
from dataclasses import dataclass
from dotenv import load_dotenv

"""
Central de configurações (Settings) do DocuFlow.


- Carrega variáveis do .env (app/env/db/log/cors/sessão/uploads/time-tracking).
- Fornece defaults seguros e tipados via dataclass.
- Expõe `settings` como singleton para uso em toda a app.
"""

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    APP_NAME: str = os.getenv("APP_NAME", "DocuFlow")
    APP_ENV: str = os.getenv("APP_ENV", "local")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_FORMAT: str = os.getenv("LOG_FORMAT", "detailed")


    HOST: str = os.getenv("HOST", "127.0.0.1")
    PORT: int = int(os.getenv("PORT", "8000"))


    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./docuflow.db")
    DB_POOL_SIZE: int = int(os.getenv("DB_POOL_SIZE", "5"))
    DB_MAX_OVERFLOW: int = int(os.getenv("DB_MAX_OVERFLOW", "5"))
    DB_POOL_TIMEOUT: int = int(os.getenv("DB_POOL_TIMEOUT", "30"))
    DB_CREATE_ALL: bool = _env_bool("DB_CREATE_ALL", "true")

    CORS_ORIGINS: str = os.getenv("CORS_ORIGINS", "")

    SESSION_SECRET: str = os.getenv("SESSION_SECRET", "dev-insecure-session-secret")
    SESSION_COOKIE: str = os.getenv("SESSION_COOKIE", "docuflow_session")
    SESSION_MAX_AGE_S: int = int(os.getenv("SESSION_MAX_AGE_S", str(7 * 24 * 60 * 60)))
    SESSION_HTTPS_ONLY: bool = _env_bool("SESSION_HTTPS_ONLY", "false")

    UPLOAD_DIR: str = os.getenv("UPLOAD_DIR", "uploads")
    MAX_UPLOAD_MB: int = int(os.getenv("MAX_UPLOAD_MB", "10"))
    ALLOWED_IMAGE_TYPES: tuple[str, ...] = tuple(
        t.strip() for t in os.getenv("ALLOWED_IMAGE_TYPES", "image/jpeg,image/png,image/webp").split(",") if t.strip()
    )

    TIME_STALE_AFTER_S: int = int(os.getenv("TIME_STALE_AFTER_S", "900"))
    TIME_SWEEP_INTERVAL_S: int = int(os.getenv("TIME_SWEEP_INTERVAL_S", "300"))

settings = Settings()
