# Copyright (c) 2025 Alexandre Tavares
# Licensed under the Creative Commons Attribution-NonCommercial 4.0 International (CC BY-NC 4.0)
# See the LICENSE file in the project root for more information.
from __future__ import annotations
from datetime import datetime
from typing import Any, List, Optional
from fastapi import APIRouter, Depends, HTTPException, Path
from sqlalchemy.ext.asyncio import AsyncSession
from app.api.deps import get_current_user_id, get_db
from app.db.rows import execute, fetch_all, fetch_one
from app.schemas.common import ApiModel, SafeUser
from app.services.crm import users_by_ids

"""
Notificações de menção do usuário logado.


- `GET /notifications` (últimas 50, com fromUser e nome do projeto CRM).
- `GET /unread-count`, `POST /{id}/read`, `POST /read-all`.
"""

router = APIRouter()

NOTIFICATIONS_LIMIT = 50


class CrmProjectRef(ApiModel):
    id: str
    name: Optional[str] = None


class NotificationOut(ApiModel):
    id: str
    user_id: str
    type: str
    note_id: Optional[str] = None
    crm_project_id: Optional[str] = None
    from_user_id: Optional[str] = None
    message: Optional[str] = None
    is_read: bool
    created_at: datetime
    from_user: Optional[SafeUser] = None
    crm_project: Optional[CrmProjectRef] = None


class UnreadCountOut(ApiModel):
    count: int


@router.get("", response_model=List[NotificationOut], summary="Listar notificações")
async def list_notifications(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> List[dict[str, Any]]:
    rows = await fetch_all(db, """
        SELECT n.*, p.name AS project_name
        FROM notifications n
        LEFT JOIN crm_projects cp ON cp.id = n.crm_project_id
        LEFT JOIN projects p ON p.id = cp.project_id
        WHERE n.user_id = :uid
        ORDER BY n.created_at DESC
        LIMIT :limit
    """, {"uid": user_id, "limit": NOTIFICATIONS_LIMIT})
    senders = await users_by_ids(db, (r.get("from_user_id") for r in rows))

    out: List[dict[str, Any]] = []
    for r in rows:
        project_name = r.pop("project_name", None)
        out.append({
            **r,
            "from_user": senders.get(r.get("from_user_id")),
            "crm_project": {"id": r["crm_project_id"], "name": project_name} if r.get("crm_project_id") else None,
        })
    return out


@router.get("/unread-count", response_model=UnreadCountOut, summary="Contagem de não lidas")
async def unread_count(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict[str, int]:
    row = await fetch_one(db, "SELECT COUNT(*) AS n FROM notifications WHERE user_id = :uid AND is_read = :is_read",
                          {"uid": user_id, "is_read": False})
    return {"count": int(row["n"]) if row else 0}


@router.post("/read-all", summary="Marcar todas como lidas")
async def mark_all_read(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    updated = await execute(db, "UPDATE notifications SET is_read = :is_read WHERE user_id = :uid AND is_read = :unread",
                            {"is_read": True, "unread": False, "uid": user_id})
    await db.commit()
    return {"success": True, "updated": updated}


@router.post("/{notification_id}/read", response_model=NotificationOut, summary="Marcar como lida")
async def mark_read(
    notification_id: str = Path(..., description="UUID da notificação"),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    row = await fetch_one(db, """
        UPDATE notifications SET is_read = :is_read
        WHERE id = :id AND user_id = :uid
        RETURNING *
    """, {"is_read": True, "id": notification_id, "uid": user_id})
    if not row:
        raise HTTPException(status_code=404, detail="Notification not found")
    await db.commit()
    return row
