# Copyright (c) 2025 Alexandre Tavares
# Licensed under the Creative Commons Attribution-NonCommercial 4.0 International (CC BY-NC 4.0)
# See the LICENSE file in the project root for more information.
from __future__ import annotations
from typing import Any, Dict, List, Optional

"""
Templates de página (conteúdo TipTap/ProseMirror em JSON).


- `PAGE_TEMPLATES`: blank / client-project / meeting-notes (usados em `templateId`).
- `DEFAULT_DOCUMENTATION_PAGES`: Resources / Requirements / Deliverables,
  semeadas ao habilitar documentação em um projeto CRM vazio.
"""

Node = Dict[str, Any]


def _text(value: str, *marks: str) -> Node:
    node: Node = {"type": "text", "text": value}
    if marks:
        node["marks"] = [{"type": m} for m in marks]
    return node


def _heading(level: int, value: str, *marks: str) -> Node:
    return {"type": "heading", "attrs": {"level": level, "textAlign": None}, "content": [_text(value, *marks)]}


def _paragraph(*parts: Node) -> Node:
    node: Node = {"type": "paragraph", "attrs": {"textAlign": None}}
    if parts:
        node["content"] = list(parts)
    return node


def _bullets(*items: str) -> Node:
    return {
        "type": "bulletList",
        "content": [{"type": "listItem", "content": [_paragraph(_text(i))]} for i in items],
    }


def _tasks(*items: str) -> Node:
    return {
        "type": "taskList",
        "content": [
            {"type": "taskItem", "attrs": {"checked": False}, "content": [_paragraph(_text(i))]}
            for i in items
        ],
    }


def _doc(*content: Node) -> Node:
    return {"type": "doc", "content": list(content)}


PAGE_TEMPLATES: Dict[str, Dict[str, Any]] = {
    "blank": {
        "name": "Blank Page",
        "icon": "📄",
        "content": _doc(_paragraph()),
    },
    "client-project": {
        "name": "Client Project Documentation",
        "icon": "📋",
        "content": _doc(
            _heading(2, "Project Description"),
            _paragraph(_text("Describe the context and main objectives of the client project here...", "italic")),
            _paragraph(),
            _heading(2, "Tasks and Scopes"),
            _tasks("Task 1 - Task description", "Task 2 - Task description", "Task 3 - Task description"),
            _paragraph(),
            _heading(2, "Available Resources"),
            _bullets(
                "Team: Team members and their roles",
                "Tools: Technologies and tools used",
                "Documentation: Links to relevant documentation",
                "Budget: Budget information if applicable",
            ),
            _paragraph(),
        ),
    },
    "meeting-notes": {
        "name": "Meeting Notes",
        "icon": "🗒️",
        "content": _doc(
            _heading(2, "Meeting Details"),
            _bullets("Date: [Insert Date]", "Attendees: [Names]", "Agenda: [Topics]"),
            _heading(2, "Discussion"),
            _paragraph(_text("Key points discussed during the meeting...", "italic")),
            _paragraph(),
            _heading(2, "Action Items"),
            _tasks("Action 1 - Owner", "Action 2 - Owner"),
            _paragraph(),
        ),
    },
}


DEFAULT_DOCUMENTATION_PAGES: List[Dict[str, Any]] = [
    {
        "title": "Resources",
        "content": _doc(
            _heading(1, "Login Details", "bold"),
            _paragraph(_text("[Add login credentials information here]")),
            _heading(1, "Conversations", "bold"),
            _paragraph(_text("[Add conversation references or summaries here]")),
            _heading(1, "Recordings", "bold"),
            _paragraph(_text("[Add meeting or call recording links here]")),
            _heading(1, "Files", "bold"),
            _paragraph(_text("[Add related documents or attachments here]")),
            _heading(1, "Clients Notes", "bold"),
            _paragraph(_text("[Add client notes and remarks here]")),
        ),
    },
    {
        "title": "Requirements",
        "content": _doc(
            _heading(1, "Document Information", "bold"),
            _bullets("Client: [Client Name]", "Date: [Insert Date]", "Project Title: [Enhancement / Fix / Integration Name]"),
            _heading(1, "1. Overview", "bold"),
            _paragraph(_text("Brief description of what this update addresses.")),
            _heading(1, "2. Objectives", "bold"),
            _paragraph(_text("What this update aims to achieve.")),
            _heading(1, "3. Scope of Work", "bold"),
            _bullets("[Feature / Fix 1]", "[Feature / Fix 2]"),
            _heading(1, "4. Acceptance Criteria", "bold"),
            _bullets("All listed changes are implemented", "No regression issues occur", "Client confirms expected behavior"),
        ),
    },
    {
        "title": "Deliverables",
        "content": _doc(
            _heading(1, "Client", "bold", "underline"),
            _heading(2, "Text", "bold"),
            _paragraph(),
            _heading(2, "Video", "bold"),
            _paragraph(),
            _heading(1, "Internal", "bold", "underline"),
            _heading(2, "Text", "bold"),
            _paragraph(),
            _heading(2, "Video", "bold"),
            _paragraph(),
        ),
    },
]


def template_content(template_id: Optional[str]) -> Optional[Node]:
    if not template_id:
        return None
    tmpl = PAGE_TEMPLATES.get(template_id)
    return tmpl["content"] if tmpl else None
