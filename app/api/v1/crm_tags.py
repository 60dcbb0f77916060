# Copyright (c) 2025 Alexandre Tavares
# Licensed under the Creative Commons Attribution-NonCommercial 4.0 International (CC BY-NC 4.0)
# See the LICENSE file in the project root for more information.
from __future__ import annotations
from datetime import datetime
from typing import Any, List, Optional
from fastapi import APIRouter, Depends, HTTPException, Path, Response
from pydantic import Field
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from app.api.deps import get_current_user_id, get_db
from app.db.rows import Statement, drop_nulls, execute, fetch_all, fetch_one, new_id, set_clause, utcnow
from app.schemas.common import ApiModel

"""
Tags do CRM (catálogo global, nome único).


- `GET /crm/tags` (ordenado por nome), `POST`, `PATCH /{tag_id}`, `DELETE /{tag_id}`.
- Cor em hex `#RRGGBB`; nome duplicado retorna 409.
"""

router = APIRouter()

DUPLICATE_NAME = "A tag with this name already exists"

HEX_COLOR = r"^#[0-9A-Fa-f]{6}$"


class TagOut(ApiModel):
    id: str
    name: str
    color: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class TagCreateIn(ApiModel):
    name: str = Field(..., min_length=1, max_length=100)
    color: str = Field(..., pattern=HEX_COLOR)

    model_config = {"json_schema_extra": {"example": {"name": "Urgente", "color": "#EF4444"}}}


class TagUpdateIn(ApiModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    color: Optional[str] = Field(None, pattern=HEX_COLOR)


async def _name_taken(db: AsyncSession, name: str, exclude_id: Optional[str] = None) -> bool:
    row = await fetch_one(db, "SELECT id FROM crm_tags WHERE LOWER(name) = :name", {"name": name.lower()})
    return bool(row) and row["id"] != exclude_id


async def _save(db: AsyncSession, sql: Statement, params: dict[str, Any]) -> dict[str, Any]:
    # corrida entre duas gravações com o mesmo nome cai na UNIQUE
    try:
        row = await fetch_one(db, sql, params)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=409, detail=DUPLICATE_NAME)
    return row


@router.get("", response_model=List[TagOut], summary="Listar tags")
async def list_tags(
    _: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> List[dict[str, Any]]:
    return await fetch_all(db, "SELECT * FROM crm_tags ORDER BY name")


@router.post("", response_model=TagOut, status_code=201, summary="Criar tag")
async def create_tag(
    payload: TagCreateIn,
    _: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    name = payload.name.strip()
    if await _name_taken(db, name):
        raise HTTPException(status_code=409, detail=DUPLICATE_NAME)
    now = utcnow()
    return await _save(db, """
        INSERT INTO crm_tags (id, name, color, created_at, updated_at)
        VALUES (:id, :name, :color, :now, :now)
        RETURNING *
    """, {"id": new_id(), "name": name, "color": payload.color, "now": now})


@router.patch("/{tag_id}", response_model=TagOut, summary="Atualizar tag")
async def update_tag(
    payload: TagUpdateIn,
    tag_id: str = Path(..., description="UUID da tag"),
    _: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    tag = await fetch_one(db, "SELECT * FROM crm_tags WHERE id = :id", {"id": tag_id})
    if not tag:
        raise HTTPException(status_code=404, detail="Tag not found")

    data = drop_nulls(payload.model_dump(exclude_unset=True), "name", "color")
    if "name" in data:
        data["name"] = data["name"].strip()
        if await _name_taken(db, data["name"], exclude_id=tag_id):
            raise HTTPException(status_code=409, detail=DUPLICATE_NAME)
    if not data:
        return tag

    data["updated_at"] = utcnow()
    return await _save(db, f"UPDATE crm_tags SET {set_clause(data)} WHERE id = :id RETURNING *", {**data, "id": tag_id})


@router.delete("/{tag_id}", status_code=204, summary="Excluir tag")
async def delete_tag(
    tag_id: str = Path(..., description="UUID da tag"),
    _: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> Response:
    removed = await execute(db, "DELETE FROM crm_tags WHERE id = :id", {"id": tag_id})
    if not removed:
        raise HTTPException(status_code=404, detail="Tag not found")
    await db.commit()
    return Response(status_code=204)
