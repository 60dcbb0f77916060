# Copyright (c) 2025 Alexandre Tavares
# Licensed under the Creative Commons Attribution-NonCommercial 4.0 International (CC BY-NC 4.0)
# See the LICENSE file in the project root for more information.
from __future__ import annotations
from datetime import datetime
from typing import Any, List, Optional
from fastapi import APIRouter, Depends, HTTPException, Path
from pydantic import Field
from sqlalchemy.ext.asyncio import AsyncSession
from app.api.deps import get_current_user_id, get_db
from app.api.v1.documents import DocumentCreateIn, DocumentNode, DocumentOut
from app.db.rows import fetch_all, fetch_one, utcnow
from app.schemas.common import ApiModel
from app.services.document_tree import build_document_tree
from app.services.documents import create_document, owned_project, project_documents
from app.services.page_templates import template_content

"""
Endpoints de projetos (wiki).


- `GET /projects` lista (visibilidade da empresa) e `GET /projects/documentable`.
- `GET/PATCH /projects/{project_id}` (PATCH só renomeia; dono apenas).
- `POST`/`DELETE` descontinuados: criação/remoção passa pelo CRM.
- `GET/POST /projects/{project_id}/documents` e `/documents/tree`.
"""

router = APIRouter()

CRM_REDIRECT = "/api/crm/projects"


class ProjectOut(ApiModel):
    id: str
    name: str
    description: Optional[str] = None
    icon: Optional[str] = None
    owner_id: str
    created_at: datetime
    updated_at: datetime


class ProjectRenameIn(ApiModel):
    name: str = Field(..., min_length=1, max_length=255)


@router.get("", response_model=List[ProjectOut], summary="Listar projetos")
async def list_projects(
    _: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> List[dict[str, Any]]:
    return await fetch_all(db, "SELECT * FROM projects ORDER BY updated_at DESC")


@router.get("/documentable", response_model=List[ProjectOut], summary="Projetos com documentação habilitada")
async def list_documentable_projects(
    _: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> List[dict[str, Any]]:
    return await fetch_all(db, """
        SELECT p.*
        FROM projects p
        JOIN crm_projects cp ON cp.project_id = p.id
        WHERE cp.documentation_enabled = :enabled
        ORDER BY p.updated_at DESC
    """, {"enabled": True})


@router.post("", status_code=400, summary="Descontinuado: use o CRM")
async def create_project_deprecated(_: str = Depends(get_current_user_id)) -> None:
    raise HTTPException(status_code=400, detail={
        "message": "Projects must be created through Project Management. Use POST /api/crm/projects instead.",
        "redirectTo": CRM_REDIRECT,
    })


@router.get("/{project_id}", response_model=ProjectOut, summary="Detalhar projeto")
async def get_project(
    project_id: str = Path(..., description="UUID do projeto"),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    return await owned_project(db, project_id, user_id)


@router.patch("/{project_id}", response_model=ProjectOut, summary="Renomear projeto")
async def rename_project(
    payload: ProjectRenameIn,
    project_id: str = Path(..., description="UUID do projeto"),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    await owned_project(db, project_id, user_id)
    row = await fetch_one(db, """
        UPDATE projects SET name = :name, updated_at = :now WHERE id = :id RETURNING *
    """, {"name": payload.name, "now": utcnow(), "id": project_id})
    await db.commit()
    return row


@router.delete("/{project_id}", status_code=400, summary="Descontinuado: use o CRM")
async def delete_project_deprecated(
    project_id: str = Path(..., description="UUID do projeto"),
    _: str = Depends(get_current_user_id),
) -> None:
    raise HTTPException(status_code=400, detail={
        "message": "Projects must be deleted through Project Management. Use DELETE /api/crm/projects/:id instead.",
        "redirectTo": CRM_REDIRECT,
    })


@router.get("/{project_id}/documents", response_model=List[DocumentOut], summary="Documentos do projeto (lista plana)")
async def list_project_documents(
    project_id: str = Path(..., description="UUID do projeto"),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> List[dict[str, Any]]:
    await owned_project(db, project_id, user_id)
    return await project_documents(db, project_id)


@router.get("/{project_id}/documents/tree", response_model=List[DocumentNode], summary="Árvore de páginas do projeto")
async def project_document_tree(
    project_id: str = Path(..., description="UUID do projeto"),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> List[dict[str, Any]]:
    await owned_project(db, project_id, user_id)
    return build_document_tree(await project_documents(db, project_id))


@router.post("/{project_id}/documents", response_model=DocumentOut, status_code=201, summary="Criar documento")
async def create_project_document(
    payload: DocumentCreateIn,
    project_id: str = Path(..., description="UUID do projeto"),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    await owned_project(db, project_id, user_id)

    if payload.parent_id:
        parent = await fetch_one(db, "SELECT project_id FROM documents WHERE id = :id", {"id": payload.parent_id})
        if not parent or parent["project_id"] != project_id:
            raise HTTPException(status_code=404, detail="Parent document not found")

    content = payload.content
    if content is None:
        content = template_content(payload.template_id)

    doc = await create_document(
        db,
        project_id=project_id,
        title=payload.title,
        parent_id=payload.parent_id,
        content=content,
        icon=payload.icon,
        created_by_id=user_id,
    )
    await db.commit()
    return doc
