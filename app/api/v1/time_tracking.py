# Copyright (c) 2025 Alexandre Tavares
# Licensed under the Creative Commons Attribution-NonCommercial 4.0 International (CC BY-NC 4.0)
# See the LICENSE file in the project root for more information.
from __future__ import annotations
from datetime import datetime
from pathlib import Path as FsPath
from typing import Any, List, Literal, Optional
import secrets
import time
from fastapi import (
    APIRouter,
    Depends,
    File,
    Form,
    HTTPException,
    Path as PathParam,
    Query,
    Response,
    UploadFile,
)
from pydantic import Field
from sqlalchemy.ext.asyncio import AsyncSession
from app.api.deps import get_current_user, get_current_user_id, get_db
from app.core.config import settings
from app.core.logging_config import get_logger, log_screenshot_event, log_time_event
from app.db.rows import as_utc, execute, fetch_all, fetch_one, new_id, utcnow
from app.schemas.common import ApiModel
from app.services.time_tracking import (
    activity_updates,
    aggregate_stats,
    apply_updates,
    display_name,
    get_active_entry,
    get_entry,
    list_entries,
    pause_updates,
    remove_files,
    resume_updates,
    screenshot_files,
    start_entry,
    stop_updates,
)

"""
Time tracking (timer por projeto CRM) e screenshots.


- `/active`, `/start`, `/{id}/activity|pause|resume|stop` (só o dono da entrada).
- `/entries` (não-admin vê só as próprias; resposta `{data}`), `DELETE /entries/{id}`, `/stats` (entradas stopped).
- `/screenshots`: upload real (JPEG/PNG/WebP) em `UPLOAD_DIR/screenshots/<entry>`, listagem e exclusão.
"""

router = APIRouter()
logger = get_logger(__name__)

EntryStatus = Literal["running", "paused", "stopped"]


class TimeEntryOut(ApiModel):
    id: str
    user_id: str
    crm_project_id: str
    description: Optional[str] = None
    start_time: datetime
    end_time: Optional[datetime] = None
    status: EntryStatus
    duration: int = 0
    idle_time: int = 0
    last_activity_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class TimeEntryDetailOut(TimeEntryOut):
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    project_name: Optional[str] = None


class TimeEntryPage(ApiModel):
    data: List[TimeEntryDetailOut]


class ScreenshotOut(ApiModel):
    id: str
    time_entry_id: str
    user_id: str
    crm_project_id: str
    storage_key: str
    url: str
    content_type: Optional[str] = None
    size_bytes: Optional[int] = None
    captured_at: datetime
    created_at: datetime


class StartIn(ApiModel):
    crm_project_id: str
    description: Optional[str] = Field(None, max_length=1000)

    model_config = {"json_schema_extra": {"example": {"crmProjectId": "3f0c...", "description": "Wireframes"}}}


class ResumeIn(ApiModel):
    discard_idle_time: bool = False


def _safe_filename(content_type: str) -> str:
    ext_map = {
        "image/jpeg": "jpg",
        "image/png": "png",
        "image/webp": "webp",
    }
    ext = ext_map.get(content_type, "bin")
    ts = int(time.time() * 1000)
    rand = secrets.token_hex(6)
    return f"{ts}_{rand}.{ext}"


def _with_url(row: dict[str, Any]) -> dict[str, Any]:
    return {**row, "url": f"/uploads/{row['storage_key']}"}


def _detail(row: dict[str, Any]) -> dict[str, Any]:
    return {**row, "user_name": display_name(row.get("user_first_name"), row.get("user_last_name"), row.get("user_email"))}


async def _own_entry(db: AsyncSession, entry_id: str, user_id: str) -> dict[str, Any]:
    entry = await get_entry(db, entry_id)
    if not entry:
        raise HTTPException(status_code=404, detail="Time entry not found")
    if entry["user_id"] != user_id:
        raise HTTPException(status_code=403, detail="Forbidden")
    return entry


def _scope_user(user: dict[str, Any], requested: Optional[str]) -> Optional[str]:
    # não-admin só enxerga as próprias entradas; admin sem filtro vê todos
    if user.get("role") == "admin":
        return requested
    return user["id"]


@router.get("/active", response_model=Optional[TimeEntryOut], summary="Timer ativo (running/paused)")
async def active_entry(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any] | None:
    return await get_active_entry(db, user_id)


@router.post("/start", response_model=TimeEntryOut, status_code=201, summary="Iniciar timer (para o ativo antes)")
async def start(
    payload: StartIn,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    if not await fetch_one(db, "SELECT id FROM crm_projects WHERE id = :id", {"id": payload.crm_project_id}):
        raise HTTPException(status_code=404, detail="CRM Project not found")
    entry = await start_entry(db, user_id, payload.crm_project_id, payload.description)
    await db.commit()
    return entry


@router.get("/entries", response_model=TimeEntryPage, summary="Listar entradas")
async def entries(
    user_filter: Optional[str] = Query(None, alias="userId"),
    crm_project_id: Optional[str] = Query(None, alias="crmProjectId"),
    status: Optional[EntryStatus] = Query(None),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    user: dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    rows = await list_entries(
        db,
        user_id=_scope_user(user, user_filter),
        crm_project_id=crm_project_id,
        status=status,
        start_date=as_utc(start_date),
        end_date=as_utc(end_date),
    )
    return {"data": [_detail(r) for r in rows]}


@router.delete("/entries/{entry_id}", status_code=204, summary="Excluir entrada (dono ou admin)")
async def delete_entry(
    entry_id: str = PathParam(..., description="UUID da entrada"),
    user: dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> Response:
    entry = await get_entry(db, entry_id)
    if not entry:
        raise HTTPException(status_code=404, detail="Time entry not found")
    if entry["user_id"] != user["id"] and user.get("role") != "admin":
        raise HTTPException(status_code=403, detail="Forbidden")

    shots = await screenshot_files(db, time_entry_id=entry_id)
    await execute(db, "DELETE FROM time_entries WHERE id = :id", {"id": entry_id})
    await db.commit()
    remove_files(shots)
    log_time_event("delete", entry_id, user["id"], screenshots=len(shots))
    return Response(status_code=204)


@router.get("/stats", summary="Totais por projeto e usuário (entradas stopped)")
async def stats(
    user_filter: Optional[str] = Query(None, alias="userId"),
    crm_project_id: Optional[str] = Query(None, alias="crmProjectId"),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    user: dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    rows = await list_entries(
        db,
        user_id=_scope_user(user, user_filter),
        crm_project_id=crm_project_id,
        status="stopped",
        start_date=as_utc(start_date),
        end_date=as_utc(end_date),
    )
    return aggregate_stats(rows)


# Screenshots
@router.post("/screenshots", response_model=ScreenshotOut, status_code=201, summary="Upload de screenshot (arquivo)")
async def upload_screenshot(
    time_entry_id: str = Form(..., alias="timeEntryId"),
    captured_at: Optional[datetime] = Form(None, alias="capturedAt"),
    file: UploadFile = File(..., description="Imagem (image/jpeg, image/png, image/webp)"),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    entry = await _own_entry(db, time_entry_id, user_id)

    if file.content_type not in settings.ALLOWED_IMAGE_TYPES:
        raise HTTPException(status_code=415, detail=f"Unsupported media type: {file.content_type}")

    max_bytes = settings.MAX_UPLOAD_MB * 1024 * 1024
    entry_dir = FsPath(settings.UPLOAD_DIR) / "screenshots" / time_entry_id
    entry_dir.mkdir(parents=True, exist_ok=True)
    filename = _safe_filename(file.content_type)
    disk_path = entry_dir / filename
    size = 0

    with disk_path.open("wb") as out:
        while True:
            chunk = await file.read(1024 * 1024)  # 1MB
            if not chunk:
                break
            size += len(chunk)
            if size > max_bytes:
                out.close()
                disk_path.unlink(missing_ok=True)
                raise HTTPException(status_code=413, detail=f"File too large (>{settings.MAX_UPLOAD_MB}MB)")
            out.write(chunk)

    now = utcnow()
    row = await fetch_one(db, """
        INSERT INTO time_entry_screenshots (id, time_entry_id, user_id, crm_project_id, storage_key, file_path,
                                            content_type, size_bytes, captured_at, created_at)
        VALUES (:id, :eid, :uid, :cpid, :key, :file_path, :content_type, :size, :captured_at, :now)
        RETURNING *
    """, {
        "id": new_id(),
        "eid": time_entry_id,
        "uid": user_id,
        "cpid": entry["crm_project_id"],
        "key": f"screenshots/{time_entry_id}/{filename}",
        "file_path": str(disk_path),
        "content_type": file.content_type,
        "size": size,
        "captured_at": as_utc(captured_at) or now,
        "now": now,
    })
    await db.commit()
    log_screenshot_event("upload", time_entry_id, screenshot_id=row["id"], size_bytes=size)
    return _with_url(row)


@router.get("/screenshots", response_model=List[ScreenshotOut], summary="Listar screenshots")
async def list_screenshots(
    time_entry_id: Optional[str] = Query(None, alias="timeEntryId"),
    user_filter: Optional[str] = Query(None, alias="userId"),
    crm_project_id: Optional[str] = Query(None, alias="crmProjectId"),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    user: dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> List[dict[str, Any]]:
    cond: List[str] = []
    params: dict[str, Any] = {}
    scoped_user = _scope_user(user, user_filter)
    if scoped_user:
        cond.append("user_id = :uid")
        params["uid"] = scoped_user
    if time_entry_id:
        cond.append("time_entry_id = :eid")
        params["eid"] = time_entry_id
    if crm_project_id:
        cond.append("crm_project_id = :cpid")
        params["cpid"] = crm_project_id
    if start_date:
        cond.append("captured_at >= :start_date")
        params["start_date"] = as_utc(start_date)
    if end_date:
        cond.append("captured_at <= :end_date")
        params["end_date"] = as_utc(end_date)

    where = f"WHERE {' AND '.join(cond)}" if cond else ""
    rows = await fetch_all(db, f"SELECT * FROM time_entry_screenshots {where} ORDER BY captured_at DESC", params)
    return [_with_url(r) for r in rows]


@router.delete("/screenshots/{screenshot_id}", status_code=204, summary="Excluir screenshot (remove arquivo e registro)")
async def delete_screenshot(
    screenshot_id: str = PathParam(..., description="UUID do screenshot"),
    user: dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> Response:
    row = await fetch_one(db, "SELECT * FROM time_entry_screenshots WHERE id = :id", {"id": screenshot_id})
    if not row:
        return Response(status_code=204)
    if row["user_id"] != user["id"] and user.get("role") != "admin":
        raise HTTPException(status_code=403, detail="Forbidden")

    if row.get("file_path"):
        FsPath(row["file_path"]).unlink(missing_ok=True)

    await execute(db, "DELETE FROM time_entry_screenshots WHERE id = :id", {"id": screenshot_id})
    await db.commit()
    log_screenshot_event("delete", row["time_entry_id"], screenshot_id=screenshot_id)
    return Response(status_code=204)


# Transições do timer
@router.post("/{entry_id}/activity", response_model=TimeEntryOut, summary="Heartbeat de atividade")
async def activity(
    entry_id: str = PathParam(..., description="UUID da entrada"),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    entry = await _own_entry(db, entry_id, user_id)
    row = await apply_updates(db, entry_id, activity_updates(entry, utcnow()))
    await db.commit()
    return row


@router.post("/{entry_id}/pause", response_model=TimeEntryOut, summary="Pausar timer")
async def pause(
    entry_id: str = PathParam(..., description="UUID da entrada"),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    entry = await _own_entry(db, entry_id, user_id)
    row = await apply_updates(db, entry_id, pause_updates(entry, utcnow()))
    await db.commit()
    log_time_event("pause", entry_id, user_id, duration=row["duration"])
    return row


@router.post("/{entry_id}/resume", response_model=TimeEntryOut, summary="Retomar timer")
async def resume(
    payload: Optional[ResumeIn] = None,
    entry_id: str = PathParam(..., description="UUID da entrada"),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    entry = await _own_entry(db, entry_id, user_id)
    discard = bool(payload and payload.discard_idle_time)
    row = await apply_updates(db, entry_id, resume_updates(entry, utcnow(), discard_idle_time=discard))
    await db.commit()
    log_time_event("resume", entry_id, user_id, discard_idle_time=discard)
    return row


@router.post("/{entry_id}/stop", response_model=TimeEntryOut, summary="Parar timer")
async def stop(
    entry_id: str = PathParam(..., description="UUID da entrada"),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    entry = await _own_entry(db, entry_id, user_id)
    row = await apply_updates(db, entry_id, stop_updates(entry, utcnow()))
    await db.commit()
    log_time_event("stop", entry_id, user_id, duration=row["duration"])
    return row
