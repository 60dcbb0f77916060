# Copyright (c) 2025 Alexandre Tavares
# Licensed under the Creative Commons Attribution-NonCommercial 4.0 International (CC BY-NC 4.0)
# See the LICENSE file in the project root for more information.
from __future__ import annotations
import asyncio
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional
from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from app.core.logging_config import get_logger, log_stale_session, log_time_event
from app.db.rows import as_utc, fetch_all, fetch_one, new_id, set_clause, utcnow

"""
Máquina de estados do timer (running ⇄ paused → stopped).


- Funções puras calculam os campos a gravar em cada transição (segundos inteiros).
- `start_entry()` para automaticamente o timer ativo antes de abrir outro.
- `list_entries()` / `aggregate_stats()` alimentam relatórios (só entradas stopped contam).
- `sweep_stale_entries()` encerra timers sem heartbeat; `run_stale_sweeper()` roda em loop no lifespan.
- `screenshot_files()` / `remove_files()`: arquivos em disco saem só depois do commit.
"""

logger = get_logger(__name__)


def elapsed_seconds(since: Optional[datetime], now: datetime) -> int:
    if since is None:
        return 0
    return max(0, int((now - as_utc(since)).total_seconds()))


def activity_updates(entry: Dict[str, Any], now: datetime) -> Dict[str, Any]:
    if entry["status"] != "running":
        return {}
    return {
        "duration": (entry.get("duration") or 0) + elapsed_seconds(entry.get("last_activity_at"), now),
        "last_activity_at": now,
    }


def pause_updates(entry: Dict[str, Any], now: datetime) -> Dict[str, Any]:
    if entry["status"] != "running":
        raise HTTPException(status_code=400, detail="Entry is not running")
    return {**activity_updates(entry, now), "status": "paused"}


def resume_updates(entry: Dict[str, Any], now: datetime, discard_idle_time: bool = False) -> Dict[str, Any]:
    if entry["status"] != "paused":
        raise HTTPException(status_code=400, detail="Entry is not paused")
    updates: Dict[str, Any] = {"status": "running", "last_activity_at": now}
    if discard_idle_time:
        updates["idle_time"] = (entry.get("idle_time") or 0) + elapsed_seconds(entry.get("last_activity_at"), now)
    return updates


def stop_updates(entry: Dict[str, Any], now: datetime) -> Dict[str, Any]:
    if entry["status"] == "stopped":
        raise HTTPException(status_code=400, detail="Entry is already stopped")
    return {**activity_updates(entry, now), "status": "stopped", "end_time": now}


def stale_stop_updates(entry: Dict[str, Any]) -> Dict[str, Any]:
    # credita só até o último heartbeat
    last = entry.get("last_activity_at") or entry["start_time"]
    return {"status": "stopped", "end_time": as_utc(last)}


def display_name(first_name: Optional[str], last_name: Optional[str], email: Optional[str]) -> str:
    name = f"{first_name or ''} {last_name or ''}".strip()
    return name or email or "Unknown User"


def aggregate_stats(entries: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
    entries = list(entries)
    by_project: Dict[str, Dict[str, Any]] = {}
    by_user: Dict[str, Dict[str, Any]] = {}

    for e in entries:
        duration = e.get("duration") or 0
        p = by_project.setdefault(e["crm_project_id"], {
            "crmProjectId": e["crm_project_id"],
            "projectName": e.get("project_name") or "Unknown Project",
            "totalDuration": 0,
        })
        p["totalDuration"] += duration

        u = by_user.setdefault(e["user_id"], {
            "userId": e["user_id"],
            "userName": display_name(e.get("user_first_name"), e.get("user_last_name"), e.get("user_email")),
            "totalDuration": 0,
        })
        u["totalDuration"] += duration

    return {
        "totalDuration": sum(e.get("duration") or 0 for e in entries),
        "totalIdleTime": sum(e.get("idle_time") or 0 for e in entries),
        "entriesCount": len(entries),
        "byProject": list(by_project.values()),
        "byUser": list(by_user.values()),
    }


# acesso ao banco
async def screenshot_files(db: AsyncSession, *, time_entry_id: Optional[str] = None, crm_project_id: Optional[str] = None) -> List[str]:
    column, value = ("time_entry_id", time_entry_id) if time_entry_id else ("crm_project_id", crm_project_id)
    rows = await fetch_all(db, f"SELECT file_path FROM time_entry_screenshots WHERE {column} = :value", {"value": value})
    return [r["file_path"] for r in rows if r.get("file_path")]


def remove_files(paths: Iterable[str]) -> None:
    for p in paths:
        Path(p).unlink(missing_ok=True)


async def get_entry(db: AsyncSession, entry_id: str) -> Dict[str, Any] | None:
    return await fetch_one(db, "SELECT * FROM time_entries WHERE id = :id", {"id": entry_id})


async def get_active_entry(db: AsyncSession, user_id: str) -> Dict[str, Any] | None:
    return await fetch_one(db, """
        SELECT * FROM time_entries
        WHERE user_id = :uid AND status IN ('running', 'paused')
        ORDER BY start_time DESC
        LIMIT 1
    """, {"uid": user_id})


async def apply_updates(db: AsyncSession, entry_id: str, updates: Dict[str, Any]) -> Dict[str, Any] | None:
    if not updates:
        return await get_entry(db, entry_id)
    fields = {**updates, "updated_at": utcnow()}
    return await fetch_one(db, f"UPDATE time_entries SET {set_clause(fields)} WHERE id = :id RETURNING *", {**fields, "id": entry_id})


async def start_entry(db: AsyncSession, user_id: str, crm_project_id: str, description: Optional[str]) -> Dict[str, Any]:
    now = utcnow()
    active = await get_active_entry(db, user_id)
    if active:
        await apply_updates(db, active["id"], stop_updates(active, now))
        log_time_event("auto-stop", active["id"], user_id, reason="new-entry")

    entry = await fetch_one(db, """
        INSERT INTO time_entries (id, user_id, crm_project_id, description, start_time, status, duration, idle_time, last_activity_at, created_at, updated_at)
        VALUES (:id, :uid, :cpid, :description, :now, 'running', 0, 0, :now, :now, :now)
        RETURNING *
    """, {"id": new_id(), "uid": user_id, "cpid": crm_project_id, "description": description, "now": now})
    log_time_event("start", entry["id"], user_id, crm_project_id=crm_project_id)
    return entry


ENTRY_SELECT = """
    SELECT te.*,
           u.email AS user_email, u.first_name AS user_first_name, u.last_name AS user_last_name,
           p.name AS project_name
    FROM time_entries te
    JOIN users u ON u.id = te.user_id
    JOIN crm_projects cp ON cp.id = te.crm_project_id
    JOIN projects p ON p.id = cp.project_id
"""


async def list_entries(
    db: AsyncSession,
    *,
    user_id: Optional[str] = None,
    crm_project_id: Optional[str] = None,
    status: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    cond: List[str] = []
    params: Dict[str, Any] = {}
    if user_id:
        cond.append("te.user_id = :uid")
        params["uid"] = user_id
    if crm_project_id:
        cond.append("te.crm_project_id = :cpid")
        params["cpid"] = crm_project_id
    if status:
        cond.append("te.status = :status")
        params["status"] = status
    if start_date:
        cond.append("te.start_time >= :start_date")
        params["start_date"] = start_date
    if end_date:
        cond.append("te.start_time <= :end_date")
        params["end_date"] = end_date

    where = f"WHERE {' AND '.join(cond)}" if cond else ""
    return await fetch_all(db, f"{ENTRY_SELECT} {where} ORDER BY te.start_time DESC", params)


async def sweep_stale_entries(db: AsyncSession, stale_after_s: int, now: Optional[datetime] = None) -> int:
    now = now or utcnow()
    cutoff = now - timedelta(seconds=stale_after_s)
    stale = await fetch_all(db, """
        SELECT * FROM time_entries
        WHERE status = 'running' AND last_activity_at < :cutoff
    """, {"cutoff": cutoff})

    for entry in stale:
        await apply_updates(db, entry["id"], stale_stop_updates(entry))
        log_stale_session(entry["id"], entry["user_id"], entry.get("last_activity_at"))
    return len(stale)


async def run_stale_sweeper(session_factory: Callable[[], Any], interval_s: int, stale_after_s: int) -> None:
    while True:
        await asyncio.sleep(interval_s)
        try:
            async with session_factory() as db:
                stopped = await sweep_stale_entries(db, stale_after_s)
                await db.commit()
            if stopped:
                logger.info("Stale sweep stopped %d time entries", stopped)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Stale sweep failed")
