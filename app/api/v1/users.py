# Copyright (c) 2025 Alexandre Tavares
# Licensed under the Creative Commons Attribution-NonCommercial 4.0 International (CC BY-NC 4.0)
# See the LICENSE file in the project root for more information.
from __future__ import annotations
from typing import Any, List
from fastapi import APIRouter, Depends, HTTPException, Path
from sqlalchemy.ext.asyncio import AsyncSession
from app.api.deps import get_current_user_id, get_db, require_admin
from app.db.rows import fetch_all, fetch_one, utcnow
from app.schemas.common import ApiModel, SafeUser, UserRole
from app.services.crm import SAFE_USER_COLUMNS

"""
Usuários (pickers de responsável/menção) e administração de papéis.


- `GET /users` lista todos (sem senha).
- `PATCH /admin/users/{user_id}/role` somente admin.
"""

router = APIRouter()


class RoleIn(ApiModel):
    role: UserRole


@router.get("/users", response_model=List[SafeUser], summary="Listar usuários")
async def list_users(
    _: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> List[dict[str, Any]]:
    return await fetch_all(db, f"SELECT {SAFE_USER_COLUMNS} FROM users ORDER BY email")


@router.patch("/admin/users/{user_id}/role", response_model=SafeUser, summary="Alterar papel (admin)")
async def update_user_role(
    payload: RoleIn,
    user_id: str = Path(..., description="UUID do usuário"),
    admin: dict[str, Any] = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    if user_id == admin["id"] and payload.role != "admin":
        raise HTTPException(status_code=400, detail="You cannot remove your own admin role")

    user = await fetch_one(db, f"""
        UPDATE users SET role = :role, updated_at = :now WHERE id = :id
        RETURNING {SAFE_USER_COLUMNS}
    """, {"role": payload.role, "now": utcnow(), "id": user_id})
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    await db.commit()
    return user
