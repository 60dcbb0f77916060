# Copyright (c) 2025 Alexandre Tavares
# Licensed under the Creative Commons Attribution-NonCommercial 4.0 International (CC BY-NC 4.0)
# See the LICENSE file in the project root for more information.
from __future__ import annotations
from typing import Any, Dict, List, Optional
from fastapi import HTTPException
from sqlalchemy import bindparam, text
from sqlalchemy.ext.asyncio import AsyncSession
from app.db.rows import DOCUMENT_JSON_KEYS, dump_json, execute, fetch_all, fetch_one, new_id, utcnow
from app.services.document_tree import (
    ancestor_chain,
    descendant_ids,
    next_position,
    reorder_positions,
    unique_copy_title,
)

"""
Operações de escrita sobre a árvore de documentos.


- `create_document()` posiciona no fim dos irmãos e toca `projects.updated_at`.
- `duplicate_document()` copia a subárvore logo após o original (mesma transação).
- `delete_document_tree()` remove recursivamente; `move_document()` reordena o destino.
- `owned_project()` / `owned_document()` aplicam 404/403 pelo dono do projeto.
- Nenhuma função faz commit: quem chama (router) decide.
"""


async def owned_project(db: AsyncSession, project_id: str, user_id: str) -> Dict[str, Any]:
    project = await fetch_one(db, "SELECT * FROM projects WHERE id = :id", {"id": project_id})
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    if project["owner_id"] != user_id:
        raise HTTPException(status_code=403, detail="Forbidden")
    return project


async def owned_document(db: AsyncSession, document_id: str, user_id: str) -> Dict[str, Any]:
    doc = await fetch_one(db, """
        SELECT d.*, p.owner_id AS owner_id
        FROM documents d
        JOIN projects p ON p.id = d.project_id
        WHERE d.id = :id
    """, {"id": document_id}, json_keys=DOCUMENT_JSON_KEYS)
    if not doc:
        raise HTTPException(status_code=404, detail="Document not found")
    if doc.pop("owner_id") != user_id:
        raise HTTPException(status_code=403, detail="Forbidden")
    return doc


def _sibling_filter(parent_id: Optional[str]) -> str:
    return "parent_id = :parent_id" if parent_id else "parent_id IS NULL"


async def touch_project(db: AsyncSession, project_id: str) -> None:
    await execute(db, "UPDATE projects SET updated_at = :now WHERE id = :id", {"now": utcnow(), "id": project_id})


async def list_siblings(db: AsyncSession, project_id: str, parent_id: Optional[str]) -> List[Dict[str, Any]]:
    return await fetch_all(db, f"""
        SELECT id, title, position FROM documents
        WHERE project_id = :project_id AND {_sibling_filter(parent_id)}
        ORDER BY position
    """, {"project_id": project_id, "parent_id": parent_id})


async def create_document(
    db: AsyncSession,
    *,
    project_id: str,
    title: str,
    parent_id: Optional[str] = None,
    content: Any = None,
    icon: Optional[str] = None,
    created_by_id: Optional[str] = None,
) -> Dict[str, Any]:
    siblings = await list_siblings(db, project_id, parent_id)
    now = utcnow()
    doc = await fetch_one(db, """
        INSERT INTO documents (id, title, content, icon, project_id, parent_id, position, created_by_id, created_at, updated_at)
        VALUES (:id, :title, :content, :icon, :project_id, :parent_id, :position, :created_by_id, :now, :now)
        RETURNING *
    """, {
        "id": new_id(),
        "title": title,
        "content": dump_json(content),
        "icon": icon,
        "project_id": project_id,
        "parent_id": parent_id,
        "position": next_position(s["position"] for s in siblings),
        "created_by_id": created_by_id,
        "now": now,
    }, json_keys=DOCUMENT_JSON_KEYS)
    await touch_project(db, project_id)
    return doc


async def project_documents(db: AsyncSession, project_id: str) -> List[Dict[str, Any]]:
    return await fetch_all(db, "SELECT * FROM documents WHERE project_id = :pid ORDER BY position", {"pid": project_id}, json_keys=DOCUMENT_JSON_KEYS)


async def get_ancestors(db: AsyncSession, doc: Dict[str, Any]) -> List[Dict[str, Any]]:
    docs = await project_documents(db, doc["project_id"])
    return ancestor_chain(doc["id"], {d["id"]: d for d in docs})


async def subtree_ids(db: AsyncSession, doc: Dict[str, Any]) -> set[str]:
    docs = await fetch_all(db, "SELECT id, parent_id FROM documents WHERE project_id = :pid", {"pid": doc["project_id"]})
    return descendant_ids(doc["id"], docs)


async def delete_document_tree(db: AsyncSession, doc: Dict[str, Any]) -> int:
    ids = await subtree_ids(db, doc)
    ids.add(doc["id"])
    stmt = text("DELETE FROM documents WHERE id IN :ids").bindparams(bindparam("ids", expanding=True))
    await execute(db, stmt, {"ids": list(ids)})
    await touch_project(db, doc["project_id"])
    return len(ids)


async def duplicate_document(db: AsyncSession, original: Dict[str, Any], created_by_id: Optional[str] = None) -> Dict[str, Any]:
    new_position = original["position"] + 1
    parent_id = original.get("parent_id")

    # abre espaço logo após o original
    await execute(db, f"""
        UPDATE documents SET position = position + 1
        WHERE project_id = :project_id AND {_sibling_filter(parent_id)} AND position >= :pos
    """, {"project_id": original["project_id"], "parent_id": parent_id, "pos": new_position})

    async def _copy(doc: Dict[str, Any], new_parent_id: Optional[str], is_root: bool) -> Dict[str, Any]:
        siblings = await list_siblings(db, doc["project_id"], new_parent_id)
        now = utcnow()
        copy = await fetch_one(db, """
            INSERT INTO documents (id, title, content, icon, cover_image, project_id, parent_id, position, created_by_id, created_at, updated_at)
            VALUES (:id, :title, :content, :icon, :cover_image, :project_id, :parent_id, :position, :created_by_id, :now, :now)
            RETURNING *
        """, {
            "id": new_id(),
            "title": unique_copy_title(doc["title"], (s["title"] for s in siblings)),
            "content": dump_json(doc.get("content")),
            "icon": doc.get("icon"),
            "cover_image": doc.get("cover_image"),
            "project_id": doc["project_id"],
            "parent_id": new_parent_id,
            "position": new_position if is_root else doc["position"],
            "created_by_id": created_by_id or doc.get("created_by_id"),
            "now": now,
        }, json_keys=DOCUMENT_JSON_KEYS)
        children = await fetch_all(db, "SELECT * FROM documents WHERE parent_id = :pid ORDER BY position", {"pid": doc["id"]}, json_keys=DOCUMENT_JSON_KEYS)
        for child in children:
            await _copy(child, copy["id"], False)
        return copy

    duplicated = await _copy(original, parent_id, True)
    await touch_project(db, original["project_id"])
    return duplicated


async def move_document(db: AsyncSession, doc: Dict[str, Any], new_parent_id: Optional[str], new_position: int) -> Dict[str, Any]:
    siblings = await fetch_all(db, f"""
        SELECT id, position FROM documents
        WHERE project_id = :project_id AND {_sibling_filter(new_parent_id)} AND id != :id
        ORDER BY position
    """, {"project_id": doc["project_id"], "parent_id": new_parent_id, "id": doc["id"]})

    current = {s["id"]: s["position"] for s in siblings}
    for sid, pos in reorder_positions([s["id"] for s in siblings], new_position).items():
        if current[sid] != pos:
            await execute(db, "UPDATE documents SET position = :pos WHERE id = :id", {"pos": pos, "id": sid})

    moved = await fetch_one(db, """
        UPDATE documents SET parent_id = :parent_id, position = :pos, updated_at = :now
        WHERE id = :id
        RETURNING *
    """, {"parent_id": new_parent_id, "pos": new_position, "now": utcnow(), "id": doc["id"]}, json_keys=DOCUMENT_JSON_KEYS)
    await touch_project(db, doc["project_id"])
    return moved
