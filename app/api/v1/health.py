# Copyright (c) 2025 Alexandre Tavares
# Licensed under the Creative Commons Attribution-NonCommercial 4.0 International (CC BY-NC 4.0)
# See the LICENSE file in the project root for more information.
from time import perf_counter
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession
from app.api.deps import get_db
from app.core.logging_config import get_logger

"""
Diagnóstico do banco de dados.


- `GET /db` verifica conectividade e mede latência.
- Retorna dialeto e contagem de usuários; trata erros com 503.
"""

router = APIRouter(tags=["Health"])
logger = get_logger(__name__)

@router.get("/db")
async def health_db(db: AsyncSession = Depends(get_db)):
    """
    Verifica conexão com o banco e retorna alguns metadados úteis.
    """
    try:
        t0 = perf_counter()
        await db.execute(text("SELECT 1"))
        user_count = (await db.execute(text("SELECT COUNT(*) FROM users"))).scalar_one()
        latency_ms = (perf_counter() - t0) * 1000.0

        return {
            "db": "ok",
            "latency_ms": round(latency_ms, 2),
            "dialect": db.bind.dialect.name,
            "user_count": user_count,
        }
    except Exception as e:
        logger.warning("Database health check failed: %s", e)
        raise HTTPException(
            status_code=503,
            detail={"db": "error", "type": e.__class__.__name__, "message": str(e)},
        )
