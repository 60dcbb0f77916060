# Copyright (c) 2025 Alexandre Tavares
# Licensed under the Creative Commons Attribution-NonCommercial 4.0 International (CC BY-NC 4.0)
# See the LICENSE file in the project root for more information.
from __future__ import annotations
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set

"""
Árvore de páginas (wiki) a partir de lista plana.


- `build_document_tree()` aninha por `parent_id` e ordena por `position` em cada nível.
- `ancestor_chain()` caminha pai a pai (raiz → pai), tolerante a ciclos.
- `descendant_ids()` / `unique_copy_title()` / `next_position()` apoiam move/duplicate/create.
"""


def build_document_tree(docs: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """
    Monta a árvore: cada nó é uma cópia do doc com `children: []`.
    Docs cujo pai não está na lista viram raízes (órfãos não somem).
    """
    docs = list(docs)
    nodes: Dict[str, Dict[str, Any]] = {d["id"]: {**d, "children": []} for d in docs}
    roots: List[Dict[str, Any]] = []

    for d in docs:
        node = nodes[d["id"]]
        parent_id = d.get("parent_id")
        if parent_id and parent_id in nodes and parent_id != d["id"]:
            nodes[parent_id]["children"].append(node)
        else:
            roots.append(node)

    def _sort(level: List[Dict[str, Any]]) -> None:
        level.sort(key=lambda n: n.get("position") or 0)
        for n in level:
            if n["children"]:
                _sort(n["children"])

    _sort(roots)
    return roots


def ancestor_chain(doc_id: str, by_id: Mapping[str, Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """
    Ancestrais de `doc_id` na ordem raiz → pai.
    Não inclui o próprio doc nem a página de topo (sem parent_id).
    """
    ancestors: List[Dict[str, Any]] = []
    visited: Set[str] = set()
    current: Optional[str] = doc_id

    while current:
        if current in visited:
            break
        visited.add(current)
        doc = by_id.get(current)
        if not doc:
            break
        if doc.get("parent_id") and doc["id"] != doc_id:
            ancestors.insert(0, dict(doc))
        current = doc.get("parent_id")

    return ancestors


def descendant_ids(root_id: str, docs: Iterable[Mapping[str, Any]]) -> Set[str]:
    children: Dict[str, List[str]] = {}
    for d in docs:
        if d.get("parent_id"):
            children.setdefault(d["parent_id"], []).append(d["id"])

    found: Set[str] = set()
    stack = list(children.get(root_id, []))
    while stack:
        cur = stack.pop()
        if cur in found or cur == root_id:
            continue
        found.add(cur)
        stack.extend(children.get(cur, []))
    return found


def unique_copy_title(base: str, existing: Iterable[str]) -> str:
    """`X` → `X (Copy)` → `X (Copy 2)` ... até não colidir com irmãos."""
    taken = set(existing)
    title = base
    counter = 1
    while title in taken:
        title = f"{base} (Copy)" if counter == 1 else f"{base} (Copy {counter})"
        counter += 1
    return title


def next_position(sibling_positions: Iterable[int]) -> int:
    return max(sibling_positions, default=-1) + 1


def reorder_positions(sibling_ids: List[str], new_position: int) -> Dict[str, int]:
    """
    Reposiciona irmãos (já ordenados, sem o doc movido) abrindo espaço em `new_position`.
    """
    out: Dict[str, int] = {}
    for i, sid in enumerate(sibling_ids):
        out[sid] = i + 1 if i >= new_position else i
    return out
