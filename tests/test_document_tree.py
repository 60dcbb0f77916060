# Copyright (c) 2025 Alexandre Tavares
# Licensed under the Creative Commons Attribution-NonCommercial 4.0 International (CC BY-NC 4.0)
# See the LICENSE file in the project root for more information.
from app.services.document_tree import (
    ancestor_chain,
    build_document_tree,
    descendant_ids,
    next_position,
    reorder_positions,
    unique_copy_title,
)
from app.services.page_templates import DEFAULT_DOCUMENTATION_PAGES, template_content


def _doc(doc_id, parent_id=None, position=0, title=None):
    return {"id": doc_id, "parent_id": parent_id, "position": position, "title": title or doc_id}


class TestBuildDocumentTree:
    def test_nests_by_parent_and_sorts_each_level(self):
        docs = [
            _doc("b", position=1),
            _doc("a", position=0),
            _doc("a2", parent_id="a", position=1),
            _doc("a1", parent_id="a", position=0),
            _doc("a1x", parent_id="a1", position=0),
        ]
        tree = build_document_tree(docs)

        assert [n["id"] for n in tree] == ["a", "b"]
        assert [n["id"] for n in tree[0]["children"]] == ["a1", "a2"]
        assert [n["id"] for n in tree[0]["children"][0]["children"]] == ["a1x"]
        assert tree[1]["children"] == []

    def test_orphans_become_roots(self):
        tree = build_document_tree([_doc("x", parent_id="missing"), _doc("y", position=1)])
        assert {n["id"] for n in tree} == {"x", "y"}

    def test_does_not_mutate_input(self):
        docs = [_doc("a"), _doc("b", parent_id="a")]
        build_document_tree(docs)
        assert "children" not in docs[0]

    def test_empty_list(self):
        assert build_document_tree([]) == []


class TestAncestorChain:
    def test_root_to_parent_without_self_and_top_page(self):
        by_id = {d["id"]: d for d in [_doc("root"), _doc("mid", "root"), _doc("leaf", "mid")]}
        assert [a["id"] for a in ancestor_chain("leaf", by_id)] == ["mid"]

    def test_deeper_chain(self):
        docs = [_doc("r"), _doc("a", "r"), _doc("b", "a"), _doc("c", "b")]
        by_id = {d["id"]: d for d in docs}
        assert [a["id"] for a in ancestor_chain("c", by_id)] == ["a", "b"]

    def test_top_level_has_no_ancestors(self):
        assert ancestor_chain("r", {"r": _doc("r")}) == []

    def test_cycle_terminates(self):
        by_id = {"a": _doc("a", "b"), "b": _doc("b", "a")}
        assert [x["id"] for x in ancestor_chain("a", by_id)] == ["b"]


class TestHelpers:
    def test_descendant_ids(self):
        docs = [_doc("r"), _doc("a", "r"), _doc("b", "a"), _doc("z")]
        assert descendant_ids("r", docs) == {"a", "b"}
        assert descendant_ids("z", docs) == set()

    def test_unique_copy_title(self):
        assert unique_copy_title("Plan", []) == "Plan"
        assert unique_copy_title("Plan", ["Plan"]) == "Plan (Copy)"
        assert unique_copy_title("Plan", ["Plan", "Plan (Copy)"]) == "Plan (Copy 2)"
        assert unique_copy_title("Plan", ["Plan", "Plan (Copy)", "Plan (Copy 2)"]) == "Plan (Copy 3)"

    def test_next_position(self):
        assert next_position([]) == 0
        assert next_position([0, 3, 1]) == 4

    def test_reorder_positions_opens_gap(self):
        assert reorder_positions(["a", "b", "c"], 1) == {"a": 0, "b": 2, "c": 3}
        assert reorder_positions(["a", "b"], 0) == {"a": 1, "b": 2}
        assert reorder_positions(["a", "b"], 5) == {"a": 0, "b": 1}


class TestPageTemplates:
    def test_known_templates(self):
        for template_id in ("blank", "client-project", "meeting-notes"):
            content = template_content(template_id)
            assert content["type"] == "doc"
            assert content["content"]

    def test_unknown_or_missing(self):
        assert template_content(None) is None
        assert template_content("nope") is None

    def test_default_documentation_pages(self):
        assert [p["title"] for p in DEFAULT_DOCUMENTATION_PAGES] == ["Resources", "Requirements", "Deliverables"]
