# Copyright (c) 2025 Alexandre Tavares
# Licensed under the Creative Commons Attribution-NonCommercial 4.0 International (CC BY-NC 4.0)
# See the LICENSE file in the project root for more information.
from __future__ import annotations
from typing import Any, Dict, Iterable, List, Optional
from sqlalchemy import bindparam, text
from sqlalchemy.ext.asyncio import AsyncSession
from app.core.logging_config import get_logger, log_event
from app.db.rows import dump_json, execute, fetch_all, fetch_one, new_id, utcnow
from app.utils.phone import format_phone

"""
Regras de CRM compartilhadas pelos routers.


- Enriquecimento de projetos CRM (project, client+contacts, assignee, latestNote, tags) em lote.
- Criação atômica projeto base + registro CRM, histórico de estágio e notificações de menção.
"""

logger = get_logger(__name__)

SAFE_USER_COLUMNS = "id, email, first_name, last_name, profile_image_url, role, hours_per_day, created_at, updated_at"


def _in(sql: str, *names: str):
    return text(sql).bindparams(*(bindparam(n, expanding=True) for n in names))


async def users_by_ids(db: AsyncSession, ids: Iterable[Optional[str]]) -> Dict[str, Dict[str, Any]]:
    ids = sorted({i for i in ids if i})
    if not ids:
        return {}
    rows = await fetch_all(db, _in(f"SELECT {SAFE_USER_COLUMNS} FROM users WHERE id IN :ids", "ids"), {"ids": ids})
    return {r["id"]: r for r in rows}


def with_phone(client: Dict[str, Any]) -> Dict[str, Any]:
    return {**client, "phone_formatted": format_phone(client.get("phone"), client.get("phone_format"))}


async def client_with_contacts(db: AsyncSession, client: Dict[str, Any]) -> Dict[str, Any]:
    contacts = await fetch_all(db, "SELECT * FROM crm_contacts WHERE client_id = :cid ORDER BY created_at",
                               {"cid": client["id"]})
    return {**with_phone(client), "contacts": contacts}


async def enrich_crm_projects(db: AsyncSession, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    if not rows:
        return []
    cp_ids = [r["id"] for r in rows]

    projects = await fetch_all(db, _in("SELECT * FROM projects WHERE id IN :ids", "ids"),
                               {"ids": [r["project_id"] for r in rows]})
    project_map = {p["id"]: p for p in projects}

    client_ids = sorted({r["client_id"] for r in rows if r.get("client_id")})
    client_map: Dict[str, Dict[str, Any]] = {}
    if client_ids:
        clients = await fetch_all(db, _in("SELECT * FROM crm_clients WHERE id IN :ids", "ids"), {"ids": client_ids})
        contacts = await fetch_all(db, _in("SELECT * FROM crm_contacts WHERE client_id IN :ids ORDER BY created_at", "ids"),
                                   {"ids": client_ids})
        for c in clients:
            client_map[c["id"]] = {**with_phone(c), "contacts": [k for k in contacts if k["client_id"] == c["id"]]}

    tag_rows = await fetch_all(db, _in("""
        SELECT pt.crm_project_id, t.*
        FROM crm_project_tags pt
        JOIN crm_tags t ON t.id = pt.tag_id
        WHERE pt.crm_project_id IN :ids
        ORDER BY t.name
    """, "ids"), {"ids": cp_ids})

    notes = await fetch_all(db, _in("""
        SELECT * FROM crm_project_notes WHERE crm_project_id IN :ids ORDER BY created_at DESC
    """, "ids"), {"ids": cp_ids})
    latest: Dict[str, Dict[str, Any]] = {}
    for n in notes:
        latest.setdefault(n["crm_project_id"], n)

    users = await users_by_ids(db, [r.get("assignee_id") for r in rows] + [n["created_by_id"] for n in latest.values()])

    out: List[Dict[str, Any]] = []
    for r in rows:
        note = latest.get(r["id"])
        out.append({
            **r,
            "project": project_map.get(r["project_id"]),
            "client": client_map.get(r.get("client_id")),
            "assignee": users.get(r.get("assignee_id")),
            "latest_note": {**note, "created_by": users.get(note["created_by_id"])} if note else None,
            "tags": [{k: v for k, v in t.items() if k != "crm_project_id"} for t in tag_rows if t["crm_project_id"] == r["id"]],
        })
    return out


async def get_crm_project(db: AsyncSession, crm_project_id: str) -> Dict[str, Any] | None:
    return await fetch_one(db, """
        SELECT cp.*, p.owner_id AS owner_id, p.name AS project_name
        FROM crm_projects cp
        JOIN projects p ON p.id = cp.project_id
        WHERE cp.id = :id
    """, {"id": crm_project_id})


async def create_project_with_crm(
    db: AsyncSession,
    owner_id: str,
    project: Dict[str, Any],
    crm: Dict[str, Any],
) -> tuple[Dict[str, Any], Dict[str, Any]]:
    now = utcnow()
    base = await fetch_one(db, """
        INSERT INTO projects (id, name, description, icon, owner_id, created_at, updated_at)
        VALUES (:id, :name, :description, :icon, :owner_id, :now, :now)
        RETURNING *
    """, {
        "id": new_id(),
        "name": project["name"],
        "description": project.get("description"),
        "icon": project.get("icon") or "folder",
        "owner_id": owner_id,
        "now": now,
    })
    fields = {
        "client_id": crm.get("client_id"),
        "status": crm.get("status") or "lead",
        "project_type": crm.get("project_type") or "one_time",
        "assignee_id": crm.get("assignee_id"),
        "start_date": crm.get("start_date"),
        "due_date": crm.get("due_date"),
        "actual_finish_date": crm.get("actual_finish_date"),
        "comments": crm.get("comments"),
        "budgeted_hours": crm.get("budgeted_hours"),
        "actual_hours": crm.get("actual_hours"),
        "documentation_enabled": bool(crm.get("documentation_enabled")),
        "is_documentation_only": bool(crm.get("is_documentation_only")),
    }
    cols = ", ".join(fields)
    vals = ", ".join(f":{k}" for k in fields)
    crm_row = await fetch_one(db, f"""
        INSERT INTO crm_projects (id, project_id, {cols}, created_at, updated_at)
        VALUES (:id, :project_id, {vals}, :now, :now)
        RETURNING *
    """, {**fields, "id": new_id(), "project_id": base["id"], "now": now})
    return base, crm_row


async def record_stage_change(db: AsyncSession, crm_project_id: str, from_status: Optional[str], to_status: str, changed_by_id: str) -> None:
    await execute(db, """
        INSERT INTO crm_project_stage_history (id, crm_project_id, from_status, to_status, changed_by_id, changed_at)
        VALUES (:id, :cpid, :from_status, :to_status, :uid, :now)
    """, {
        "id": new_id(),
        "cpid": crm_project_id,
        "from_status": from_status,
        "to_status": to_status,
        "uid": changed_by_id,
        "now": utcnow(),
    })
    log_event(logger, "crm.stage-change", crm_project_id=crm_project_id, from_status=from_status, to_status=to_status)


def mention_targets(mentioned_ids: Iterable[str], author_id: str, known_ids: Iterable[str]) -> List[str]:
    """Ids únicos, na ordem recebida, sem o autor e sem usuários inexistentes."""
    known = set(known_ids)
    out: List[str] = []
    for uid in mentioned_ids:
        if uid and uid != author_id and uid in known and uid not in out:
            out.append(uid)
    return out


async def create_note(
    db: AsyncSession,
    crm_project: Dict[str, Any],
    author: Dict[str, Any],
    content: str,
    mentioned_user_ids: List[str],
) -> Dict[str, Any]:
    now = utcnow()
    note = await fetch_one(db, """
        INSERT INTO crm_project_notes (id, crm_project_id, content, created_by_id, mentioned_user_ids, created_at, updated_at)
        VALUES (:id, :cpid, :content, :uid, :mentions, :now, :now)
        RETURNING *
    """, {
        "id": new_id(),
        "cpid": crm_project["id"],
        "content": content,
        "uid": author["id"],
        "mentions": dump_json(mentioned_user_ids),
        "now": now,
    })

    known = await users_by_ids(db, mentioned_user_ids)
    targets = mention_targets(mentioned_user_ids, author["id"], known.keys())
    author_name = f"{author.get('first_name') or ''} {author.get('last_name') or ''}".strip() or author["email"]
    for uid in targets:
        await execute(db, """
            INSERT INTO notifications (id, user_id, type, note_id, crm_project_id, from_user_id, message, is_read, created_at)
            VALUES (:id, :uid, 'mention', :note_id, :cpid, :from_uid, :message, :is_read, :now)
        """, {
            "id": new_id(),
            "uid": uid,
            "note_id": note["id"],
            "cpid": crm_project["id"],
            "from_uid": author["id"],
            "message": f"{author_name} mentioned you in {crm_project.get('project_name') or 'a project'}",
            "is_read": False,
            "now": now,
        })
    if targets:
        log_event(logger, "crm.mentions", note_id=note["id"], notified=len(targets))
    return note
