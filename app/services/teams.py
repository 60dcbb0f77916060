# Copyright (c) 2025 Alexandre Tavares
# Licensed under the Creative Commons Attribution-NonCommercial 4.0 International (CC BY-NC 4.0)
# See the LICENSE file in the project root for more information.
from __future__ import annotations
from datetime import datetime
from typing import Any, Dict, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from app.db.rows import as_utc, execute, fetch_one, new_id, utcnow

"""
Regras de times e convites.


- `invite_problem()` diz por que um convite não pode ser usado (ou None se ok).
- `member_role()` / `add_member()` consultam e gravam `team_members`.
"""

INVITE_NOT_FOUND = "Invitation not found"
INVITE_INACTIVE = "This invitation is no longer active"
INVITE_EXPIRED = "This invitation has expired"
INVITE_USED_UP = "This invitation has reached its maximum uses"
ALREADY_MEMBER = "You are already a member of this team"


def invite_problem(invite: Optional[Dict[str, Any]], now: Optional[datetime] = None) -> Optional[str]:
    if not invite:
        return INVITE_NOT_FOUND
    if not invite.get("is_active"):
        return INVITE_INACTIVE
    expires_at = as_utc(invite.get("expires_at"))
    if expires_at and expires_at < (now or utcnow()):
        return INVITE_EXPIRED
    max_uses = invite.get("max_uses")
    if max_uses and (invite.get("use_count") or 0) >= max_uses:
        return INVITE_USED_UP
    return None


async def get_invite_by_code(db: AsyncSession, code: str) -> Dict[str, Any] | None:
    return await fetch_one(db, """
        SELECT i.*, t.name AS team_name
        FROM team_invites i
        JOIN teams t ON t.id = i.team_id
        WHERE i.code = :code
    """, {"code": code})


async def member_role(db: AsyncSession, team_id: str, user_id: str) -> Optional[str]:
    row = await fetch_one(db, "SELECT role FROM team_members WHERE team_id = :tid AND user_id = :uid",
                          {"tid": team_id, "uid": user_id})
    return row["role"] if row else None


async def add_member(db: AsyncSession, team_id: str, user_id: str, role: str = "member") -> Dict[str, Any]:
    return await fetch_one(db, """
        INSERT INTO team_members (id, team_id, user_id, role, joined_at)
        VALUES (:id, :tid, :uid, :role, :now)
        RETURNING *
    """, {"id": new_id(), "tid": team_id, "uid": user_id, "role": role, "now": utcnow()})


async def consume_invite(db: AsyncSession, invite: Dict[str, Any], user_id: str) -> None:
    await add_member(db, invite["team_id"], user_id, "member")
    await execute(db, "UPDATE team_invites SET use_count = use_count + 1 WHERE id = :id", {"id": invite["id"]})
