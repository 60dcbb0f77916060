# Copyright (c) 2025 Alexandre Tavares
# Licensed under the Creative Commons Attribution-NonCommercial 4.0 International (CC BY-NC 4.0)
# See the LICENSE file in the project root for more information.
from __future__ import annotations
from typing import Any, Optional
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import EmailStr, Field, field_validator
from sqlalchemy.ext.asyncio import AsyncSession
from app.api.deps import SESSION_USER_KEY, get_db
from app.core.logging_config import get_logger, log_event
from app.core.security import MAX_PASSWORD_BYTES, hash_password, verify_password
from app.db.rows import fetch_one, new_id, utcnow
from app.schemas.common import ApiModel, MessageOut, SafeUser

"""
Autenticação por sessão (cookie assinado).


- `GET /auth/user` usuário atual ou null.
- `POST /auth/register` cria conta (bcrypt) e já loga.
- `POST /auth/login` / `POST /auth/logout`.
"""

router = APIRouter()
logger = get_logger(__name__)


class RegisterIn(ApiModel):
    email: EmailStr
    password: str = Field(..., min_length=8)
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    model_config = {
        "json_schema_extra": {
            "example": {"email": "ana@docuflow.dev", "password": "s3nha-forte", "firstName": "Ana", "lastName": "Souza"}
        }
    }

    @field_validator("password")
    @classmethod
    def _fits_bcrypt(cls, value: str) -> str:
        if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
        return value


class LoginIn(ApiModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


def _login(request: Request, user_id: str) -> None:
    # sessão nova a cada login
    request.session.clear()
    request.session[SESSION_USER_KEY] = user_id


@router.get("/user", response_model=Optional[SafeUser], summary="Usuário autenticado (ou null)")
async def current_user(request: Request, db: AsyncSession = Depends(get_db)) -> Optional[dict[str, Any]]:
    user_id = request.session.get(SESSION_USER_KEY)
    if not user_id:
        return None
    return await fetch_one(db, "SELECT * FROM users WHERE id = :id", {"id": user_id})


@router.post("/register", response_model=SafeUser, status_code=201, summary="Criar conta")
async def register(payload: RegisterIn, request: Request, db: AsyncSession = Depends(get_db)) -> dict[str, Any]:
    email = payload.email.lower()
    if await fetch_one(db, "SELECT id FROM users WHERE LOWER(email) = :email", {"email": email}):
        raise HTTPException(status_code=409, detail="Email already registered")

    now = utcnow()
    user = await fetch_one(db, """
        INSERT INTO users (id, email, password, first_name, last_name, role, hours_per_day, created_at, updated_at)
        VALUES (:id, :email, :password, :first_name, :last_name, 'user', 8, :now, :now)
        RETURNING *
    """, {
        "id": new_id(),
        "email": email,
        "password": hash_password(payload.password),
        "first_name": payload.first_name,
        "last_name": payload.last_name,
        "now": now,
    })
    if not user:
        raise HTTPException(status_code=500, detail="Falha ao registrar usuário")
    await db.commit()

    _login(request, user["id"])
    log_event(logger, "auth.register", user_id=user["id"])
    return user


@router.post("/login", response_model=SafeUser, summary="Login por email/senha")
async def login(payload: LoginIn, request: Request, db: AsyncSession = Depends(get_db)) -> dict[str, Any]:
    user = await fetch_one(db, "SELECT * FROM users WHERE LOWER(email) = :email", {"email": payload.email.lower()})
    if not user or not verify_password(payload.password, user["password"]):
        raise HTTPException(status_code=401, detail="Invalid email or password")

    _login(request, user["id"])
    log_event(logger, "auth.login", user_id=user["id"])
    return user


@router.post("/logout", response_model=MessageOut, summary="Encerrar sessão")
async def logout(request: Request) -> dict[str, str]:
    request.session.clear()
    return {"message": "Logged out successfully"}
