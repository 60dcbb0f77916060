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
from app.db.rows import drop_nulls, execute, fetch_all, fetch_one, new_id, set_clause, utcnow
from app.schemas.common import ApiModel
from app.services.crm import client_with_contacts, with_phone
from app.utils.phone import PhoneFormat

"""
Clientes e contatos do CRM.


- `router_client`: `/crm/clients` (list/get com contatos/create/patch/delete) + contatos do cliente.
- `router_contact`: `/crm/contacts/{id}` (patch/delete).
- Leitura é da empresa toda; escrita só pelo dono do cliente.
- `phoneFormatted` segue o `phone_format` do cliente.
"""

router_client = APIRouter()
router_contact = APIRouter()

ClientStatus = Literal["lead", "prospect", "client", "client_recurrent"]
ClientSource = Literal["fiverr", "zoho", "direct"]


class ContactOut(ApiModel):
    id: str
    client_id: str
    name: str
    role: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    is_primary: bool = False
    created_at: datetime
    updated_at: datetime


class ClientOut(ApiModel):
    id: str
    name: str
    company: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    phone_format: Optional[PhoneFormat] = "us"
    phone_formatted: str = ""
    notes: Optional[str] = None
    status: ClientStatus = "lead"
    source: Optional[ClientSource] = None
    owner_id: str
    created_at: datetime
    updated_at: datetime


class ClientDetailOut(ClientOut):
    contacts: List[ContactOut] = []


class ClientCreateIn(ApiModel):
    name: str = Field(..., min_length=1, max_length=255)
    company: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    phone_format: PhoneFormat = "us"
    notes: Optional[str] = None
    status: ClientStatus = "lead"
    source: Optional[ClientSource] = None

    model_config = {
        "json_schema_extra": {
            "example": {
                "name": "Acme Corp",
                "company": "Acme",
                "email": "ops@acme.com",
                "phone": "5551234567",
                "phoneFormat": "us",
                "status": "prospect",
                "source": "direct",
            }
        }
    }


class ClientUpdateIn(ApiModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    company: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    phone_format: Optional[PhoneFormat] = None
    notes: Optional[str] = None
    status: Optional[ClientStatus] = None
    source: Optional[ClientSource] = None


class ContactCreateIn(ApiModel):
    name: str = Field(..., min_length=1, max_length=255)
    role: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    is_primary: bool = False


class ContactUpdateIn(ApiModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    role: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    is_primary: Optional[bool] = None


async def _client(db: AsyncSession, client_id: str) -> dict[str, Any]:
    client = await fetch_one(db, "SELECT * FROM crm_clients WHERE id = :id", {"id": client_id})
    if not client:
        raise HTTPException(status_code=404, detail="Client not found")
    return client


async def _owned_client(db: AsyncSession, client_id: str, user_id: str) -> dict[str, Any]:
    client = await _client(db, client_id)
    if client["owner_id"] != user_id:
        raise HTTPException(status_code=403, detail="Forbidden")
    return client


async def _owned_contact(db: AsyncSession, contact_id: str, user_id: str) -> dict[str, Any]:
    contact = await fetch_one(db, "SELECT * FROM crm_contacts WHERE id = :id", {"id": contact_id})
    if not contact:
        raise HTTPException(status_code=404, detail="Contact not found")
    client = await fetch_one(db, "SELECT owner_id FROM crm_clients WHERE id = :id", {"id": contact["client_id"]})
    if not client or client["owner_id"] != user_id:
        raise HTTPException(status_code=403, detail="Forbidden")
    return contact


@router_client.get("", response_model=List[ClientOut], summary="Listar clientes")
async def list_clients(
    q: Optional[str] = Query(None, description="Filtro por nome/empresa/email (contém, case-insensitive)"),
    status: Optional[ClientStatus] = Query(None),
    _: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> List[dict[str, Any]]:
    cond: List[str] = []
    params: dict[str, Any] = {}
    if q:
        cond.append("(LOWER(name) LIKE :pattern OR LOWER(COALESCE(company, '')) LIKE :pattern OR LOWER(COALESCE(email, '')) LIKE :pattern)")
        params["pattern"] = f"%{q.lower()}%"
    if status:
        cond.append("status = :status")
        params["status"] = status
    where = f"WHERE {' AND '.join(cond)}" if cond else ""
    rows = await fetch_all(db, f"SELECT * FROM crm_clients {where} ORDER BY name", params)
    return [with_phone(r) for r in rows]


@router_client.get("/{client_id}", response_model=ClientDetailOut, summary="Detalhar cliente (com contatos)")
async def get_client(
    client_id: str = Path(..., description="UUID do cliente"),
    _: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    return await client_with_contacts(db, await _client(db, client_id))


@router_client.post("", response_model=ClientOut, status_code=201, summary="Criar cliente")
async def create_client(
    payload: ClientCreateIn,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    now = utcnow()
    row = await fetch_one(db, """
        INSERT INTO crm_clients (id, name, company, email, phone, phone_format, notes, status, source, owner_id, created_at, updated_at)
        VALUES (:id, :name, :company, :email, :phone, :phone_format, :notes, :status, :source, :owner_id, :now, :now)
        RETURNING *
    """, {**payload.model_dump(), "id": new_id(), "owner_id": user_id, "now": now})
    await db.commit()
    return with_phone(row)


@router_client.patch("/{client_id}", response_model=ClientOut, summary="Atualizar cliente")
async def update_client(
    payload: ClientUpdateIn,
    client_id: str = Path(..., description="UUID do cliente"),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    client = await _owned_client(db, client_id, user_id)
    data = drop_nulls(payload.model_dump(exclude_unset=True), "name", "status")
    if not data:
        return with_phone(client)
    data["updated_at"] = utcnow()
    row = await fetch_one(db, f"UPDATE crm_clients SET {set_clause(data)} WHERE id = :id RETURNING *", {**data, "id": client_id})
    await db.commit()
    return with_phone(row)


@router_client.delete("/{client_id}", status_code=204, summary="Excluir cliente")
async def delete_client(
    client_id: str = Path(..., description="UUID do cliente"),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> Response:
    await _owned_client(db, client_id, user_id)
    await execute(db, "DELETE FROM crm_clients WHERE id = :id", {"id": client_id})
    await db.commit()
    return Response(status_code=204)


@router_client.post("/{client_id}/contacts", response_model=ContactOut, status_code=201, summary="Criar contato do cliente")
async def create_contact(
    payload: ContactCreateIn,
    client_id: str = Path(..., description="UUID do cliente"),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    await _owned_client(db, client_id, user_id)
    now = utcnow()
    row = await fetch_one(db, """
        INSERT INTO crm_contacts (id, client_id, name, role, email, phone, is_primary, created_at, updated_at)
        VALUES (:id, :client_id, :name, :role, :email, :phone, :is_primary, :now, :now)
        RETURNING *
    """, {**payload.model_dump(), "id": new_id(), "client_id": client_id, "now": now})
    await db.commit()
    return row


@router_contact.patch("/{contact_id}", response_model=ContactOut, summary="Atualizar contato")
async def update_contact(
    payload: ContactUpdateIn,
    contact_id: str = Path(..., description="UUID do contato"),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    contact = await _owned_contact(db, contact_id, user_id)
    data = drop_nulls(payload.model_dump(exclude_unset=True), "name", "is_primary")
    if not data:
        return contact
    data["updated_at"] = utcnow()
    row = await fetch_one(db, f"UPDATE crm_contacts SET {set_clause(data)} WHERE id = :id RETURNING *", {**data, "id": contact_id})
    await db.commit()
    return row


@router_contact.delete("/{contact_id}", status_code=204, summary="Excluir contato")
async def delete_contact(
    contact_id: str = Path(..., description="UUID do contato"),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> Response:
    await _owned_contact(db, contact_id, user_id)
    await execute(db, "DELETE FROM crm_contacts WHERE id = :id", {"id": contact_id})
    await db.commit()
    return Response(status_code=204)
