# Copyright (c) 2025 Alexandre Tavares
# Licensed under the Creative Commons Attribution-NonCommercial 4.0 International (CC BY-NC 4.0)
# See the LICENSE file in the project root for more information.
from __future__ import annotations
from datetime import datetime
from typing import Any, List, Literal, Optional
from fastapi import APIRouter, Depends, HTTPException, Path, Response
from pydantic import Field
from sqlalchemy.ext.asyncio import AsyncSession
from app.api.deps import get_current_user_id, get_db
from app.core.logging_config import get_logger, log_event
from app.core.security import new_invite_code
from app.db.rows import as_utc, drop_nulls, execute, fetch_all, fetch_one, new_id, set_clause, utcnow
from app.schemas.common import ApiModel, SafeUser
from app.services.crm import users_by_ids
from app.services.teams import (
    ALREADY_MEMBER,
    add_member,
    consume_invite,
    get_invite_by_code,
    invite_problem,
    member_role,
)

"""
Times, membros e convites.


- `router_team` (`/teams`): CRUD do time, membros e convites (owner/admin do time).
- `router_invite` (`/invite`): preview público do convite e entrada no time via código.
"""

router_team = APIRouter()
router_invite = APIRouter()
logger = get_logger(__name__)

INVALID_INVITE = "This invitation is no longer valid"


class TeamOut(ApiModel):
    id: str
    name: str
    description: Optional[str] = None
    owner_id: str
    created_at: datetime
    updated_at: datetime


class TeamMemberOut(ApiModel):
    id: str
    team_id: str
    user_id: str
    role: str
    joined_at: datetime
    user: Optional[SafeUser] = None


class TeamListItem(TeamOut):
    owner: Optional[SafeUser] = None
    member_count: int = 0


class TeamDetailOut(TeamOut):
    owner: Optional[SafeUser] = None
    members: List[TeamMemberOut] = []


class InviteOut(ApiModel):
    id: str
    team_id: str
    code: str
    created_by_id: str
    expires_at: Optional[datetime] = None
    max_uses: Optional[int] = None
    use_count: int = 0
    is_active: bool
    created_at: datetime


class InvitePreviewOut(ApiModel):
    team_name: str


class JoinOut(ApiModel):
    message: str
    team: TeamOut


class TeamCreateIn(ApiModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None

    model_config = {"json_schema_extra": {"example": {"name": "Design", "description": "Time de produto"}}}


class TeamUpdateIn(ApiModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None


class MemberRoleIn(ApiModel):
    role: Literal["admin", "member"]


class InviteCreateIn(ApiModel):
    expires_at: Optional[datetime] = None
    max_uses: Optional[int] = Field(None, gt=0)


async def _team(db: AsyncSession, team_id: str) -> dict[str, Any]:
    team = await fetch_one(db, "SELECT * FROM teams WHERE id = :id", {"id": team_id})
    if not team:
        raise HTTPException(status_code=404, detail="Team not found")
    return team


def _require_owner(team: dict[str, Any], user_id: str, detail: str) -> None:
    if team["owner_id"] != user_id:
        raise HTTPException(status_code=403, detail=detail)


async def _require_member(db: AsyncSession, team: dict[str, Any], user_id: str, detail: str) -> None:
    if team["owner_id"] != user_id and not await member_role(db, team["id"], user_id):
        raise HTTPException(status_code=403, detail=detail)


async def _require_manager(db: AsyncSession, team: dict[str, Any], user_id: str, detail: str) -> None:
    if team["owner_id"] == user_id:
        return
    if await member_role(db, team["id"], user_id) not in ("owner", "admin"):
        raise HTTPException(status_code=403, detail=detail)


async def _members(db: AsyncSession, team_id: str) -> List[dict[str, Any]]:
    rows = await fetch_all(db, "SELECT * FROM team_members WHERE team_id = :tid ORDER BY joined_at", {"tid": team_id})
    users = await users_by_ids(db, (r["user_id"] for r in rows))
    return [{**r, "user": users.get(r["user_id"])} for r in rows]


@router_team.get("", response_model=List[TeamListItem], summary="Times do usuário (dono ou membro)")
async def list_teams(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> List[dict[str, Any]]:
    teams = await fetch_all(db, """
        SELECT t.*,
               (SELECT COUNT(*) FROM team_members m2 WHERE m2.team_id = t.id) AS member_count
        FROM teams t
        WHERE t.owner_id = :uid
           OR t.id IN (SELECT m.team_id FROM team_members m WHERE m.user_id = :uid)
        ORDER BY t.created_at DESC
    """, {"uid": user_id})
    owners = await users_by_ids(db, (t["owner_id"] for t in teams))
    return [{**t, "owner": owners.get(t["owner_id"])} for t in teams]


@router_team.post("", response_model=TeamOut, status_code=201, summary="Criar time")
async def create_team(
    payload: TeamCreateIn,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    now = utcnow()
    team = await fetch_one(db, """
        INSERT INTO teams (id, name, description, owner_id, created_at, updated_at)
        VALUES (:id, :name, :description, :uid, :now, :now)
        RETURNING *
    """, {"id": new_id(), "name": payload.name, "description": payload.description, "uid": user_id, "now": now})
    await add_member(db, team["id"], user_id, "owner")
    await db.commit()
    log_event(logger, "teams.create", team_id=team["id"], owner_id=user_id)
    return team


@router_team.get("/{team_id}", response_model=TeamDetailOut, summary="Detalhar time")
async def get_team(
    team_id: str = Path(..., description="UUID do time"),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    team = await _team(db, team_id)
    await _require_member(db, team, user_id, "Not authorized to view this team")
    owner = await users_by_ids(db, [team["owner_id"]])
    return {**team, "owner": owner.get(team["owner_id"]), "members": await _members(db, team_id)}


@router_team.patch("/{team_id}", response_model=TeamOut, summary="Atualizar time (dono)")
async def update_team(
    payload: TeamUpdateIn,
    team_id: str = Path(..., description="UUID do time"),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    team = await _team(db, team_id)
    _require_owner(team, user_id, "Only team owner can update the team")
    data = drop_nulls(payload.model_dump(exclude_unset=True), "name")
    if not data:
        return team
    data["updated_at"] = utcnow()
    row = await fetch_one(db, f"UPDATE teams SET {set_clause(data)} WHERE id = :id RETURNING *", {**data, "id": team_id})
    await db.commit()
    return row


@router_team.delete("/{team_id}", status_code=204, summary="Excluir time (dono)")
async def delete_team(
    team_id: str = Path(..., description="UUID do time"),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> Response:
    team = await _team(db, team_id)
    _require_owner(team, user_id, "Only team owner can delete the team")
    await execute(db, "DELETE FROM teams WHERE id = :id", {"id": team_id})
    await db.commit()
    log_event(logger, "teams.delete", team_id=team_id)
    return Response(status_code=204)


# Membros
@router_team.get("/{team_id}/members", response_model=List[TeamMemberOut], summary="Membros do time")
async def list_members(
    team_id: str = Path(..., description="UUID do time"),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> List[dict[str, Any]]:
    team = await _team(db, team_id)
    await _require_member(db, team, user_id, "Not authorized to view team members")
    return await _members(db, team_id)


@router_team.delete("/{team_id}/members/{member_user_id}", status_code=204, summary="Remover membro (dono ou o próprio)")
async def remove_member(
    team_id: str = Path(..., description="UUID do time"),
    member_user_id: str = Path(..., description="UUID do usuário membro"),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> Response:
    team = await _team(db, team_id)
    if team["owner_id"] != user_id and member_user_id != user_id:
        raise HTTPException(status_code=403, detail="Not authorized to remove this member")
    if team["owner_id"] == member_user_id:
        raise HTTPException(status_code=400, detail="Team owner cannot be removed")
    await execute(db, "DELETE FROM team_members WHERE team_id = :tid AND user_id = :uid",
                  {"tid": team_id, "uid": member_user_id})
    await db.commit()
    return Response(status_code=204)


@router_team.patch("/{team_id}/members/{member_user_id}", response_model=TeamMemberOut, summary="Alterar papel do membro (dono)")
async def update_member_role(
    payload: MemberRoleIn,
    team_id: str = Path(..., description="UUID do time"),
    member_user_id: str = Path(..., description="UUID do usuário membro"),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    team = await _team(db, team_id)
    _require_owner(team, user_id, "Only team owner can change member roles")
    if team["owner_id"] == member_user_id:
        raise HTTPException(status_code=400, detail="Team owner role cannot be changed")
    row = await fetch_one(db, """
        UPDATE team_members SET role = :role
        WHERE team_id = :tid AND user_id = :uid
        RETURNING *
    """, {"role": payload.role, "tid": team_id, "uid": member_user_id})
    if not row:
        raise HTTPException(status_code=404, detail="Member not found")
    await db.commit()
    return row


# Convites
@router_team.get("/{team_id}/invites", response_model=List[InviteOut], summary="Convites do time (dono/admin)")
async def list_invites(
    team_id: str = Path(..., description="UUID do time"),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> List[dict[str, Any]]:
    team = await _team(db, team_id)
    await _require_manager(db, team, user_id, "Not authorized to view invites")
    return await fetch_all(db, "SELECT * FROM team_invites WHERE team_id = :tid ORDER BY created_at DESC", {"tid": team_id})


@router_team.post("/{team_id}/invites", response_model=InviteOut, status_code=201, summary="Criar link de convite (dono/admin)")
async def create_invite(
    payload: InviteCreateIn,
    team_id: str = Path(..., description="UUID do time"),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    team = await _team(db, team_id)
    await _require_manager(db, team, user_id, "Not authorized to create invites")
    row = await fetch_one(db, """
        INSERT INTO team_invites (id, team_id, code, created_by_id, expires_at, max_uses, use_count, is_active, created_at)
        VALUES (:id, :tid, :code, :uid, :expires_at, :max_uses, 0, :is_active, :now)
        RETURNING *
    """, {
        "id": new_id(),
        "tid": team_id,
        "code": new_invite_code(),
        "uid": user_id,
        "expires_at": as_utc(payload.expires_at),
        "max_uses": payload.max_uses,
        "is_active": True,
        "now": utcnow(),
    })
    await db.commit()
    log_event(logger, "teams.invite-created", team_id=team_id, invite_id=row["id"])
    return row


@router_team.delete("/{team_id}/invites/{invite_id}", status_code=204, summary="Desativar convite (dono)")
async def deactivate_invite(
    team_id: str = Path(..., description="UUID do time"),
    invite_id: str = Path(..., description="UUID do convite"),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> Response:
    team = await _team(db, team_id)
    _require_owner(team, user_id, "Only team owner can deactivate invites")
    await execute(db, "UPDATE team_invites SET is_active = :is_active WHERE id = :id AND team_id = :tid",
                  {"is_active": False, "id": invite_id, "tid": team_id})
    await db.commit()
    return Response(status_code=204)


# Convite público
@router_invite.get("/{code}", response_model=InvitePreviewOut, summary="Preview do convite (público)")
async def invite_preview(
    code: str = Path(..., description="Código do convite"),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    invite = await get_invite_by_code(db, code)
    # mensagem única para não permitir enumeração de códigos
    if invite_problem(invite):
        raise HTTPException(status_code=404, detail=INVALID_INVITE)
    return {"team_name": invite.get("team_name") or "Unknown Team"}


@router_invite.post("/{code}/join", response_model=JoinOut, summary="Entrar no time via convite")
async def join_team(
    code: str = Path(..., description="Código do convite"),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    invite = await get_invite_by_code(db, code)
    problem = invite_problem(invite)
    if problem:
        raise HTTPException(status_code=400, detail=problem)
    if await member_role(db, invite["team_id"], user_id):
        raise HTTPException(status_code=400, detail=ALREADY_MEMBER)

    await consume_invite(db, invite, user_id)
    team = await fetch_one(db, "SELECT * FROM teams WHERE id = :id", {"id": invite["team_id"]})
    await db.commit()
    log_event(logger, "teams.join", team_id=team["id"], user_id=user_id)
    return {"message": "Successfully joined team", "team": team}
