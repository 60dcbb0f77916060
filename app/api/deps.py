# Copyright (c) 2025 Alexandre Tavares
# Licensed under the Creative Commons Attribution-NonCommercial 4.0 International (CC BY-NC 4.0)
# See the LICENSE file in the project root for more information.
from typing import Any, AsyncGenerator
from fastapi import Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession
from app.db.rows import fetch_one
from app.db.session import SessionLocal

"""
Dependências reutilizáveis da API.


- `get_db()` injeta `AsyncSession` (abre/fecha sessão corretamente).
- `get_current_user_id()` lê o usuário da sessão assinada (401 se ausente).
- `get_current_user()` carrega a linha do usuário; `require_admin()` exige role admin.
"""

SESSION_USER_KEY = "user_id"


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with SessionLocal() as session:
        yield session


def get_current_user_id(request: Request) -> str:
    user_id = request.session.get(SESSION_USER_KEY)
    if not user_id:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user_id


async def get_current_user(
    request: Request,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    user = await fetch_one(db, "SELECT * FROM users WHERE id = :id", {"id": user_id})
    if not user:
        # usuário removido com sessão ainda válida
        request.session.clear()
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user


async def require_admin(user: dict[str, Any] = Depends(get_current_user)) -> dict[str, Any]:
    if user.get("role") != "admin":
        raise HTTPException(status_code=403, detail="Admin access required")
    return user
