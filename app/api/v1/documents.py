# Copyright (c) 2025 Alexandre Tavares
# Licensed under the Creative Commons Attribution-NonCommercial 4.0 International (CC BY-NC 4.0)
# See the LICENSE file in the project root for more information.
from __future__ import annotations
from datetime import datetime
from typing import Any, List, Literal, Optional
from fastapi import APIRouter, Depends, HTTPException, Path, Query, Response
from pydantic import Field
from sqlalchemy.ext.asyncio import AsyncSession
from app.api.deps import get_current_user_id, get_db
from app.core.logging_config import get_logger, log_event
from app.db.rows import DOCUMENT_JSON_KEYS, drop_nulls, dump_json, fetch_all, fetch_one, set_clause, utcnow
from app.schemas.common import ApiModel
from app.services.documents import (
    delete_document_tree,
    duplicate_document,
    get_ancestors,
    move_document,
    owned_document,
    subtree_ids,
    touch_project,
)

"""
Documentos (páginas da wiki) e busca global.


- `router_document`: `/documents/...` (recent, get, ancestors, patch/autosave, move, delete, duplicate).
- `router_search`: `GET /search?q=` em projetos do usuário e documentos.
- Escrita estrutural (posições/subárvores) fica em `app.services.documents`.
"""

router_document = APIRouter()
router_search = APIRouter()
logger = get_logger(__name__)

TemplateId = Literal["blank", "client-project", "meeting-notes"]


class DocumentOut(ApiModel):
    id: str
    title: str
    content: Optional[Any] = None
    icon: Optional[str] = None
    cover_image: Optional[str] = None
    project_id: str
    parent_id: Optional[str] = None
    position: int
    created_by_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class DocumentNode(DocumentOut):
    children: List["DocumentNode"] = []


DocumentNode.model_rebuild()


class DocumentCreateIn(ApiModel):
    title: str = Field("Untitled", min_length=1, max_length=500)
    parent_id: Optional[str] = None
    content: Optional[Any] = None
    icon: Optional[str] = None
    template_id: Optional[TemplateId] = None

    model_config = {
        "json_schema_extra": {
            "example": {"title": "Kickoff", "parentId": None, "templateId": "meeting-notes"}
        }
    }


class DocumentUpdateIn(ApiModel):
    title: Optional[str] = Field(None, min_length=1, max_length=500)
    content: Optional[Any] = None
    icon: Optional[str] = None
    cover_image: Optional[str] = None
    parent_id: Optional[str] = None
    position: Optional[int] = Field(None, ge=0)


class DocumentMoveIn(ApiModel):
    parent_id: Optional[str] = None
    position: int = Field(..., ge=0)


class SearchResult(ApiModel):
    type: Literal["project", "document"]
    id: str
    title: str
    project_name: Optional[str] = None


async def _check_new_parent(db: AsyncSession, doc: dict[str, Any], parent_id: Optional[str]) -> None:
    if not parent_id:
        return
    if parent_id == doc["id"]:
        raise HTTPException(status_code=400, detail="A document cannot be its own parent")
    parent = await fetch_one(db, "SELECT id, project_id FROM documents WHERE id = :id", {"id": parent_id})
    if not parent or parent["project_id"] != doc["project_id"]:
        raise HTTPException(status_code=404, detail="Parent document not found")
    if parent_id in await subtree_ids(db, doc):
        raise HTTPException(status_code=400, detail="Cannot move a document into its own descendant")


@router_document.get("/recent", response_model=List[DocumentOut], summary="Documentos recentes")
async def recent_documents(
    limit: int = Query(10, ge=1, le=50),
    _: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> List[dict[str, Any]]:
    return await fetch_all(
        db,
        "SELECT * FROM documents ORDER BY updated_at DESC LIMIT :limit",
        {"limit": limit},
        json_keys=DOCUMENT_JSON_KEYS,
    )


@router_document.get("/{document_id}", response_model=DocumentOut, summary="Detalhar documento")
async def get_document(
    document_id: str = Path(..., description="UUID do documento"),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    return await owned_document(db, document_id, user_id)


@router_document.get("/{document_id}/ancestors", response_model=List[DocumentOut], summary="Breadcrumb (raiz → pai)")
async def document_ancestors(
    document_id: str = Path(..., description="UUID do documento"),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> List[dict[str, Any]]:
    doc = await owned_document(db, document_id, user_id)
    return await get_ancestors(db, doc)


@router_document.patch("/{document_id}", response_model=DocumentOut, summary="Atualizar documento (autosave)")
async def update_document(
    payload: DocumentUpdateIn,
    document_id: str = Path(..., description="UUID do documento"),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    doc = await owned_document(db, document_id, user_id)
    data = drop_nulls(payload.model_dump(exclude_unset=True), "title", "position")
    if not data:
        return doc

    if "parent_id" in data:
        await _check_new_parent(db, doc, data["parent_id"])
    if "content" in data:
        data["content"] = dump_json(data["content"])

    data["updated_at"] = utcnow()
    row = await fetch_one(
        db,
        f"UPDATE documents SET {set_clause(data)} WHERE id = :id RETURNING *",
        {**data, "id": document_id},
        json_keys=DOCUMENT_JSON_KEYS,
    )
    await touch_project(db, doc["project_id"])
    await db.commit()
    return row


@router_document.post("/{document_id}/move", response_model=DocumentOut, summary="Mover/reordenar documento")
async def move(
    payload: DocumentMoveIn,
    document_id: str = Path(..., description="UUID do documento"),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    doc = await owned_document(db, document_id, user_id)
    await _check_new_parent(db, doc, payload.parent_id)
    moved = await move_document(db, doc, payload.parent_id, payload.position)
    await db.commit()
    return moved


@router_document.delete("/{document_id}", status_code=204, summary="Excluir documento e subpáginas")
async def delete_document(
    document_id: str = Path(..., description="UUID do documento"),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> Response:
    doc = await owned_document(db, document_id, user_id)
    removed = await delete_document_tree(db, doc)
    await db.commit()
    log_event(logger, "documents.delete", document_id=document_id, removed=removed)
    return Response(status_code=204)


@router_document.post("/{document_id}/duplicate", response_model=DocumentOut, status_code=201, summary="Duplicar documento (com subpáginas)")
async def duplicate(
    document_id: str = Path(..., description="UUID do documento"),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    original = await owned_document(db, document_id, user_id)
    try:
        copy = await duplicate_document(db, original, created_by_id=user_id)
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    return copy


@router_search.get("/search", response_model=List[SearchResult], summary="Busca em projetos e documentos")
async def search(
    q: str = Query("", description="Trecho do nome/título (case-insensitive)"),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> List[dict[str, Any]]:
    q = q.strip()
    if not q:
        return []
    pattern = f"%{q.lower()}%"

    projects = await fetch_all(db, """
        SELECT id, name FROM projects
        WHERE owner_id = :uid AND LOWER(name) LIKE :pattern
        ORDER BY updated_at DESC
        LIMIT 20
    """, {"uid": user_id, "pattern": pattern})
    docs = await fetch_all(db, """
        SELECT d.id, d.title, p.name AS project_name
        FROM documents d
        JOIN projects p ON p.id = d.project_id
        WHERE LOWER(d.title) LIKE :pattern
        ORDER BY d.updated_at DESC
        LIMIT 20
    """, {"pattern": pattern})

    results = [{"type": "project", "id": p["id"], "title": p["name"]} for p in projects]
    results += [{"type": "document", "id": d["id"], "title": d["title"], "project_name": d["project_name"]} for d in docs]
    return results[:20]
