# Copyright (c) 2025 Alexandre Tavares
# Licensed under the Creative Commons Attribution-NonCommercial 4.0 International (CC BY-NC 4.0)
# See the LICENSE file in the project root for more information.
from __future__ import annotations
import json
import uuid
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Optional, Union
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import TextClause

"""
Helpers de acesso a linhas (`text()` + `.mappings()`).


- `fetch_one()` / `fetch_all()` retornam `dict` já normalizado.
- Normaliza o que o driver devolve cru: timestamps em texto (SQLite),
  JSON em texto (só as chaves pedidas em `json_keys`) e booleanos 0/1.
- `new_id()` / `utcnow()` geram ids e timestamps no lado da aplicação.
- `set_clause()` / `drop_nulls()` montam UPDATEs parciais (PATCH).
"""

Statement = Union[str, TextClause]

JSON_KEYS = frozenset({"mentioned_user_ids"})
# `content` só é JSON em `documents`; nas notas é texto puro
DOCUMENT_JSON_KEYS = JSON_KEYS | {"content"}
BOOL_KEYS = {"is_primary", "is_read", "is_active", "documentation_enabled", "is_documentation_only"}
DATETIME_SUFFIXES = ("_at", "_time", "_date")


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def dump_json(value: Any) -> Optional[str]:
    if value is None:
        return None
    return json.dumps(value)


def as_utc(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def row_to_dict(row: Mapping[str, Any], json_keys: Iterable[str] = JSON_KEYS) -> dict[str, Any]:
    out = dict(row)
    for key, value in out.items():
        if value is None:
            continue
        if key in json_keys and isinstance(value, (str, bytes)):
            out[key] = json.loads(value)
        elif key in BOOL_KEYS:
            out[key] = bool(value)
        elif key.endswith(DATETIME_SUFFIXES) and isinstance(value, (str, datetime)):
            out[key] = as_utc(value)
    return out


def _stmt(sql: Statement) -> TextClause:
    return text(sql) if isinstance(sql, str) else sql


async def fetch_one(
    db: AsyncSession,
    sql: Statement,
    params: Optional[dict[str, Any]] = None,
    *,
    json_keys: Iterable[str] = JSON_KEYS,
) -> dict[str, Any] | None:
    res = await db.execute(_stmt(sql), params or {})
    row = res.mappings().first()
    return row_to_dict(row, json_keys) if row else None


async def fetch_all(
    db: AsyncSession,
    sql: Statement,
    params: Optional[dict[str, Any]] = None,
    *,
    json_keys: Iterable[str] = JSON_KEYS,
) -> list[dict[str, Any]]:
    res = await db.execute(_stmt(sql), params or {})
    return [row_to_dict(r, json_keys) for r in res.mappings().all()]


async def execute(db: AsyncSession, sql: Statement, params: Optional[dict[str, Any]] = None) -> int:
    res = await db.execute(_stmt(sql), params or {})
    return res.rowcount or 0


def set_clause(data: dict[str, Any]) -> str:
    return ", ".join(f"{k} = :{k}" for k in data)


def drop_nulls(data: dict[str, Any], *keys: str) -> dict[str, Any]:
    # colunas NOT NULL não aceitam null explícito no PATCH
    for k in keys:
        if k in data and data[k] is None:
            data.pop(k)
    return data
