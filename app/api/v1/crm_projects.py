# Copyright (c) 2025 Alexandre Tavares
# Licensed under the Creative Commons Attribution-NonCommercial 4.0 International (CC BY-NC 4.0)
# See the LICENSE file in the project root for more information.
from __future__ import annotations
from datetime import datetime
from typing import Any, List, Literal, Optional
from fastapi import APIRouter, Depends, HTTPException, Path, Query, Response
from pydantic import Field
from sqlalchemy.ext.asyncio import AsyncSession
from app.api.deps import get_current_user, get_current_user_id, get_db
from app.api.v1.crm_clients import ClientDetailOut
from app.api.v1.crm_tags import TagOut
from app.api.v1.projects import ProjectOut
from app.core.logging_config import get_logger, log_event
from app.db.rows import as_utc, drop_nulls, execute, fetch_all, fetch_one, new_id, set_clause, utcnow
from app.schemas.common import ApiModel, SafeUser
from app.services.crm import (
    create_note,
    create_project_with_crm,
    enrich_crm_projects,
    get_crm_project,
    record_stage_change,
    users_by_ids,
)
from app.services.documents import create_document
from app.services.page_templates import DEFAULT_DOCUMENTATION_PAGES
from app.services.time_tracking import remove_files, screenshot_files

"""
Projetos do CRM (fonte de verdade dos projetos).


- Lista paginada `{data,total,page,pageSize}` com project/client/assignee/latestNote/tags.
- Criação atômica (projeto base + registro CRM), patch com histórico de estágio,
  toggle de documentação (semeia páginas padrão), clone e exclusão em cascata.
- Notas com menções (geram notificações) e vínculo de tags.
"""

router = APIRouter()
logger = get_logger(__name__)

CrmProjectStatus = Literal[
    "lead",
    "discovering_call_completed",
    "proposal_sent",
    "follow_up",
    "in_negotiation",
    "won",
    "won_not_started",
    "won_in_progress",
    "won_in_review",
    "won_completed",
    "lost",
    "won_cancelled",
]
CrmProjectType = Literal["one_time", "monthly", "hourly_budget", "internal"]

DATE_FIELDS = ("start_date", "due_date", "actual_finish_date")


class CrmProjectOut(ApiModel):
    id: str
    project_id: str
    client_id: Optional[str] = None
    status: CrmProjectStatus
    project_type: Optional[CrmProjectType] = None
    assignee_id: Optional[str] = None
    start_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    actual_finish_date: Optional[datetime] = None
    comments: Optional[str] = None
    budgeted_hours: Optional[int] = None
    actual_hours: Optional[int] = None
    documentation_enabled: bool = False
    is_documentation_only: bool = False
    created_at: datetime
    updated_at: datetime


class NoteOut(ApiModel):
    id: str
    crm_project_id: str
    content: str
    created_by_id: str
    mentioned_user_ids: List[str] = []
    created_at: datetime
    updated_at: datetime
    created_by: Optional[SafeUser] = None


class CrmProjectDetailOut(CrmProjectOut):
    project: Optional[ProjectOut] = None
    client: Optional[ClientDetailOut] = None
    assignee: Optional[SafeUser] = None
    latest_note: Optional[NoteOut] = None
    tags: List[TagOut] = []


class CrmProjectPage(ApiModel):
    data: List[CrmProjectDetailOut]
    total: int
    page: int
    page_size: int


class CrmProjectCreatedOut(ApiModel):
    project: ProjectOut
    crm_project: CrmProjectOut


class StageHistoryOut(ApiModel):
    id: str
    crm_project_id: str
    from_status: Optional[str] = None
    to_status: str
    changed_by_id: str
    changed_at: datetime
    changed_by: Optional[SafeUser] = None


class CrmProjectCreateIn(ApiModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    icon: Optional[str] = None
    client_id: Optional[str] = None
    status: CrmProjectStatus = "lead"
    project_type: CrmProjectType = "one_time"
    assignee_id: Optional[str] = None
    start_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    actual_finish_date: Optional[datetime] = None
    comments: Optional[str] = None
    budgeted_hours: Optional[int] = Field(None, ge=0)

    model_config = {
        "json_schema_extra": {
            "example": {
                "name": "Website redesign",
                "clientId": None,
                "status": "proposal_sent",
                "projectType": "one_time",
                "dueDate": "2025-12-01T00:00:00Z",
                "budgetedHours": 40,
            }
        }
    }


class CrmProjectUpdateIn(ApiModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    icon: Optional[str] = None
    client_id: Optional[str] = None
    status: Optional[CrmProjectStatus] = None
    project_type: Optional[CrmProjectType] = None
    assignee_id: Optional[str] = None
    start_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    actual_finish_date: Optional[datetime] = None
    comments: Optional[str] = None
    budgeted_hours: Optional[int] = Field(None, ge=0)
    actual_hours: Optional[int] = Field(None, ge=0)


class DocumentationIn(ApiModel):
    enabled: bool


class NoteCreateIn(ApiModel):
    content: str = Field(..., min_length=1)
    mentioned_user_ids: List[str] = []

    model_config = {
        "json_schema_extra": {
            "example": {"content": "@Ana pode revisar o escopo?", "mentionedUserIds": ["5c1f..."]}
        }
    }


class NoteUpdateIn(ApiModel):
    content: str = Field(..., min_length=1)


# Helpers _load/_owned/_detail
async def _load(db: AsyncSession, crm_project_id: str) -> dict[str, Any]:
    row = await get_crm_project(db, crm_project_id)
    if not row:
        raise HTTPException(status_code=404, detail="CRM Project not found")
    return row


async def _owned(db: AsyncSession, crm_project_id: str, user_id: str) -> dict[str, Any]:
    row = await _load(db, crm_project_id)
    if row["owner_id"] != user_id:
        raise HTTPException(status_code=403, detail="Forbidden")
    return row


async def _detail(db: AsyncSession, crm_project_id: str) -> dict[str, Any]:
    row = await fetch_one(db, "SELECT * FROM crm_projects WHERE id = :id", {"id": crm_project_id})
    return (await enrich_crm_projects(db, [row]))[0]


async def _check_refs(db: AsyncSession, client_id: Optional[str], assignee_id: Optional[str]) -> None:
    if client_id and not await fetch_one(db, "SELECT id FROM crm_clients WHERE id = :id", {"id": client_id}):
        raise HTTPException(status_code=404, detail="Client not found")
    if assignee_id and not await fetch_one(db, "SELECT id FROM users WHERE id = :id", {"id": assignee_id}):
        raise HTTPException(status_code=404, detail="Assignee not found")


def _with_utc_dates(data: dict[str, Any]) -> dict[str, Any]:
    for k in DATE_FIELDS:
        if data.get(k) is not None:
            data[k] = as_utc(data[k])
    return data


@router.get("", response_model=CrmProjectPage, summary="Listar projetos CRM (paginado)")
async def list_crm_projects(
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100, alias="pageSize"),
    status: Optional[CrmProjectStatus] = Query(None),
    search: Optional[str] = Query(None, description="Nome do projeto, cliente ou empresa (contém, case-insensitive)"),
    _: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    cond = ["cp.is_documentation_only = :doc_only"]
    params: dict[str, Any] = {"doc_only": False}
    if status:
        cond.append("cp.status = :status")
        params["status"] = status
    if search and search.strip():
        cond.append("""(LOWER(p.name) LIKE :pattern
                     OR LOWER(COALESCE(c.name, '')) LIKE :pattern
                     OR LOWER(COALESCE(c.company, '')) LIKE :pattern)""")
        params["pattern"] = f"%{search.strip().lower()}%"

    base = f"""
        FROM crm_projects cp
        JOIN projects p ON p.id = cp.project_id
        LEFT JOIN crm_clients c ON c.id = cp.client_id
        WHERE {' AND '.join(cond)}
    """
    total = await fetch_one(db, f"SELECT COUNT(*) AS total {base}", params)
    rows = await fetch_all(db, f"SELECT cp.* {base} ORDER BY cp.updated_at DESC LIMIT :limit OFFSET :offset",
                           {**params, "limit": page_size, "offset": (page - 1) * page_size})

    return {
        "data": await enrich_crm_projects(db, rows),
        "total": int(total["total"]) if total else 0,
        "page": page,
        "page_size": page_size,
    }


@router.post("", response_model=CrmProjectCreatedOut, status_code=201, summary="Criar projeto CRM (com projeto base)")
async def create_crm_project(
    payload: CrmProjectCreateIn,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    await _check_refs(db, payload.client_id, payload.assignee_id)
    data = _with_utc_dates(payload.model_dump())
    project, crm_row = await create_project_with_crm(
        db,
        user_id,
        {"name": data["name"], "description": data["description"], "icon": data["icon"]},
        data,
    )
    await db.commit()
    log_event(logger, "crm.project-created", crm_project_id=crm_row["id"], project_id=project["id"])
    return {"project": project, "crm_project": crm_row}


@router.get("/by-project/{project_id}", response_model=CrmProjectDetailOut, summary="Projeto CRM pelo projeto base")
async def get_by_project(
    project_id: str = Path(..., description="UUID do projeto base"),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    row = await fetch_one(db, "SELECT id FROM crm_projects WHERE project_id = :pid", {"pid": project_id})
    if not row:
        raise HTTPException(status_code=404, detail="CRM Project not found")
    await _owned(db, row["id"], user_id)
    return await _detail(db, row["id"])


@router.get("/{crm_project_id}", response_model=CrmProjectDetailOut, summary="Detalhar projeto CRM")
async def get_crm_project_detail(
    crm_project_id: str = Path(..., description="UUID do projeto CRM"),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    await _owned(db, crm_project_id, user_id)
    return await _detail(db, crm_project_id)


@router.patch("/{crm_project_id}", response_model=CrmProjectDetailOut, summary="Atualizar projeto CRM")
async def update_crm_project(
    payload: CrmProjectUpdateIn,
    crm_project_id: str = Path(..., description="UUID do projeto CRM"),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    current = await _owned(db, crm_project_id, user_id)
    data = _with_utc_dates(drop_nulls(payload.model_dump(exclude_unset=True), "name", "status", "project_type"))
    await _check_refs(db, data.get("client_id"), data.get("assignee_id"))
    now = utcnow()

    base = {k: data.pop(k) for k in ("name", "description", "icon") if k in data}
    if base:
        await execute(db, f"UPDATE projects SET {set_clause(base)}, updated_at = :now WHERE id = :id",
                      {**base, "now": now, "id": current["project_id"]})

    if data:
        await execute(db, f"UPDATE crm_projects SET {set_clause(data)}, updated_at = :now WHERE id = :id",
                      {**data, "now": now, "id": crm_project_id})
    elif base:
        await execute(db, "UPDATE crm_projects SET updated_at = :now WHERE id = :id", {"now": now, "id": crm_project_id})

    new_status = data.get("status")
    if new_status and new_status != current["status"]:
        await record_stage_change(db, crm_project_id, current["status"], new_status, user_id)

    await db.commit()
    return await _detail(db, crm_project_id)


@router.patch("/{crm_project_id}/documentation", response_model=CrmProjectOut, summary="Habilitar/desabilitar documentação")
async def toggle_documentation(
    payload: DocumentationIn,
    crm_project_id: str = Path(..., description="UUID do projeto CRM"),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    current = await _owned(db, crm_project_id, user_id)
    row = await fetch_one(db, """
        UPDATE crm_projects SET documentation_enabled = :enabled, updated_at = :now
        WHERE id = :id
        RETURNING *
    """, {"enabled": payload.enabled, "now": utcnow(), "id": crm_project_id})

    if payload.enabled:
        existing = await fetch_one(db, "SELECT COUNT(*) AS n FROM documents WHERE project_id = :pid",
                                   {"pid": current["project_id"]})
        if not existing or int(existing["n"]) == 0:
            for page in DEFAULT_DOCUMENTATION_PAGES:
                await create_document(
                    db,
                    project_id=current["project_id"],
                    title=page["title"],
                    content=page["content"],
                    created_by_id=user_id,
                )
            log_event(logger, "crm.documentation-seeded", crm_project_id=crm_project_id, pages=len(DEFAULT_DOCUMENTATION_PAGES))

    await db.commit()
    return row


@router.delete("/{crm_project_id}", status_code=204, summary="Excluir projeto CRM e projeto base")
async def delete_crm_project(
    crm_project_id: str = Path(..., description="UUID do projeto CRM"),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> Response:
    current = await _owned(db, crm_project_id, user_id)
    # o cascade leva time_entries e screenshots; os arquivos saem após o commit
    shots = await screenshot_files(db, crm_project_id=crm_project_id)
    await execute(db, "DELETE FROM crm_projects WHERE id = :id", {"id": crm_project_id})
    await execute(db, "DELETE FROM documents WHERE project_id = :pid", {"pid": current["project_id"]})
    await execute(db, "DELETE FROM projects WHERE id = :pid", {"pid": current["project_id"]})
    await db.commit()
    remove_files(shots)
    log_event(logger, "crm.project-deleted", crm_project_id=crm_project_id, project_id=current["project_id"])
    return Response(status_code=204)


@router.post("/{crm_project_id}/clone", response_model=CrmProjectCreatedOut, status_code=201, summary="Clonar projeto CRM")
async def clone_crm_project(
    crm_project_id: str = Path(..., description="UUID do projeto CRM"),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    source = await _owned(db, crm_project_id, user_id)
    base = await fetch_one(db, "SELECT * FROM projects WHERE id = :id", {"id": source["project_id"]})

    project, crm_row = await create_project_with_crm(
        db,
        user_id,
        {"name": f"{base['name']} (Copy)", "description": base.get("description"), "icon": base.get("icon")},
        {
            "client_id": source.get("client_id"),
            "status": "lead",
            "project_type": source.get("project_type"),
            "assignee_id": source.get("assignee_id"),
            "comments": source.get("comments"),
            "budgeted_hours": source.get("budgeted_hours"),
        },
    )
    await db.commit()
    return {"project": project, "crm_project": crm_row}


@router.get("/{crm_project_id}/stage-history", response_model=List[StageHistoryOut], summary="Histórico de estágios")
async def stage_history(
    crm_project_id: str = Path(..., description="UUID do projeto CRM"),
    _: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> List[dict[str, Any]]:
    await _load(db, crm_project_id)
    rows = await fetch_all(db, """
        SELECT * FROM crm_project_stage_history
        WHERE crm_project_id = :id
        ORDER BY changed_at DESC
    """, {"id": crm_project_id})
    users = await users_by_ids(db, (r["changed_by_id"] for r in rows))
    return [{**r, "changed_by": users.get(r["changed_by_id"])} for r in rows]


# Notas
@router.get("/{crm_project_id}/notes", response_model=List[NoteOut], summary="Listar notas (mais recentes primeiro)")
async def list_notes(
    crm_project_id: str = Path(..., description="UUID do projeto CRM"),
    _: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> List[dict[str, Any]]:
    await _load(db, crm_project_id)
    notes = await fetch_all(db, """
        SELECT * FROM crm_project_notes WHERE crm_project_id = :id ORDER BY created_at DESC
    """, {"id": crm_project_id})
    users = await users_by_ids(db, (n["created_by_id"] for n in notes))
    return [{**n, "created_by": users.get(n["created_by_id"])} for n in notes]


@router.post("/{crm_project_id}/notes", response_model=NoteOut, status_code=201, summary="Criar nota (com menções)")
async def add_note(
    payload: NoteCreateIn,
    crm_project_id: str = Path(..., description="UUID do projeto CRM"),
    user: dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    crm_project = await _load(db, crm_project_id)
    note = await create_note(db, crm_project, user, payload.content, payload.mentioned_user_ids)
    await execute(db, "UPDATE crm_projects SET updated_at = :now WHERE id = :id", {"now": utcnow(), "id": crm_project_id})
    await db.commit()
    return {**note, "created_by": user}


async def _own_note(db: AsyncSession, crm_project_id: str, note_id: str, user_id: str) -> dict[str, Any]:
    note = await fetch_one(db, "SELECT * FROM crm_project_notes WHERE id = :id AND crm_project_id = :cpid",
                           {"id": note_id, "cpid": crm_project_id})
    if not note:
        raise HTTPException(status_code=404, detail="Note not found")
    if note["created_by_id"] != user_id:
        raise HTTPException(status_code=403, detail="Only the author can modify this note")
    return note


@router.patch("/{crm_project_id}/notes/{note_id}", response_model=NoteOut, summary="Editar nota (autor)")
async def update_note(
    payload: NoteUpdateIn,
    crm_project_id: str = Path(..., description="UUID do projeto CRM"),
    note_id: str = Path(..., description="UUID da nota"),
    user: dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    await _own_note(db, crm_project_id, note_id, user["id"])
    row = await fetch_one(db, """
        UPDATE crm_project_notes SET content = :content, updated_at = :now WHERE id = :id RETURNING *
    """, {"content": payload.content, "now": utcnow(), "id": note_id})
    await db.commit()
    return {**row, "created_by": user}


@router.delete("/{crm_project_id}/notes/{note_id}", status_code=204, summary="Excluir nota (autor)")
async def delete_note(
    crm_project_id: str = Path(..., description="UUID do projeto CRM"),
    note_id: str = Path(..., description="UUID da nota"),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> Response:
    await _own_note(db, crm_project_id, note_id, user_id)
    await execute(db, "DELETE FROM crm_project_notes WHERE id = :id", {"id": note_id})
    await db.commit()
    return Response(status_code=204)


# Tags do projeto
@router.get("/{crm_project_id}/tags", response_model=List[TagOut], summary="Tags do projeto")
async def project_tags(
    crm_project_id: str = Path(..., description="UUID do projeto CRM"),
    _: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> List[dict[str, Any]]:
    await _load(db, crm_project_id)
    return await fetch_all(db, """
        SELECT t.* FROM crm_tags t
        JOIN crm_project_tags pt ON pt.tag_id = t.id
        WHERE pt.crm_project_id = :id
        ORDER BY t.name
    """, {"id": crm_project_id})


@router.post("/{crm_project_id}/tags/{tag_id}", response_model=TagOut, status_code=201, summary="Vincular tag (idempotente)")
async def attach_tag(
    crm_project_id: str = Path(..., description="UUID do projeto CRM"),
    tag_id: str = Path(..., description="UUID da tag"),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    await _owned(db, crm_project_id, user_id)
    tag = await fetch_one(db, "SELECT * FROM crm_tags WHERE id = :id", {"id": tag_id})
    if not tag:
        raise HTTPException(status_code=404, detail="Tag not found")

    linked = await fetch_one(db, "SELECT id FROM crm_project_tags WHERE crm_project_id = :cpid AND tag_id = :tid",
                             {"cpid": crm_project_id, "tid": tag_id})
    if not linked:
        await execute(db, "INSERT INTO crm_project_tags (id, crm_project_id, tag_id) VALUES (:id, :cpid, :tid)",
                      {"id": new_id(), "cpid": crm_project_id, "tid": tag_id})
        await db.commit()
    return tag


@router.delete("/{crm_project_id}/tags/{tag_id}", status_code=204, summary="Desvincular tag")
async def detach_tag(
    crm_project_id: str = Path(..., description="UUID do projeto CRM"),
    tag_id: str = Path(..., description="UUID da tag"),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> Response:
    await _owned(db, crm_project_id, user_id)
    await execute(db, "DELETE FROM crm_project_tags WHERE crm_project_id = :cpid AND tag_id = :tid",
                  {"cpid": crm_project_id, "tid": tag_id})
    await db.commit()
    return Response(status_code=204)
