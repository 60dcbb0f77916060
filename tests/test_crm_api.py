# Copyright (c) 2025 Alexandre Tavares
# Licensed under the Creative Commons Attribution-NonCommercial 4.0 International (CC BY-NC 4.0)
# See the LICENSE file in the project root for more information.
import pytest
from app.api.v1 import crm_tags

pytestmark = pytest.mark.asyncio


async def _new_client(c, **extra):
    res = await c.post("/api/crm/clients", json={"name": "Acme Corp", "company": "Acme", "phone": "5551234567", **extra})
    assert res.status_code == 201, res.text
    return res.json()


async def _new_crm_project(c, name, **extra):
    res = await c.post("/api/crm/projects", json={"name": name, **extra})
    assert res.status_code == 201, res.text
    return res.json()


class TestClients:
    async def test_create_list_filter(self, client, user):
        acme = await _new_client(client)
        assert acme["phoneFormatted"] == "(555) 123-4567"
        assert acme["status"] == "lead"
        await _new_client(client, name="Globex", company="Globex", status="client", phone=None)

        all_clients = (await client.get("/api/crm/clients")).json()
        assert [c["name"] for c in all_clients] == ["Acme Corp", "Globex"]

        by_q = (await client.get("/api/crm/clients", params={"q": "acm"})).json()
        assert [c["name"] for c in by_q] == ["Acme Corp"]

        by_status = (await client.get("/api/crm/clients", params={"status": "client"})).json()
        assert [c["name"] for c in by_status] == ["Globex"]

    async def test_patch_keeps_not_null_columns(self, client, user):
        acme = await _new_client(client)
        res = await client.patch(f"/api/crm/clients/{acme['id']}", json={"name": None, "phoneFormat": "international", "phone": "5511987654321"})
        assert res.status_code == 200
        body = res.json()
        assert body["name"] == "Acme Corp"
        assert body["phoneFormatted"] == "+551 198 765 4321"

    async def test_contacts(self, client, user):
        acme = await _new_client(client)
        created = await client.post(f"/api/crm/clients/{acme['id']}/contacts", json={"name": "Rita", "isPrimary": True})
        assert created.status_code == 201
        contact = created.json()
        assert contact["isPrimary"] is True

        detail = (await client.get(f"/api/crm/clients/{acme['id']}")).json()
        assert [c["name"] for c in detail["contacts"]] == ["Rita"]

        patched = await client.patch(f"/api/crm/contacts/{contact['id']}", json={"role": "CTO"})
        assert patched.json()["role"] == "CTO"

        assert (await client.delete(f"/api/crm/contacts/{contact['id']}")).status_code == 204
        assert (await client.get(f"/api/crm/clients/{acme['id']}")).json()["contacts"] == []

    async def test_mutations_are_owner_only(self, client, user, new_client, signup):
        acme = await _new_client(client)
        other = new_client()
        await signup(other, "bia@docuflow.dev")

        assert (await other.get(f"/api/crm/clients/{acme['id']}")).status_code == 200
        assert (await other.patch(f"/api/crm/clients/{acme['id']}", json={"name": "x"})).status_code == 403
        assert (await other.delete(f"/api/crm/clients/{acme['id']}")).status_code == 403
        assert (await other.get("/api/crm/clients/missing")).status_code == 404

    async def test_delete_client_unlinks_projects(self, client, user):
        acme = await _new_client(client)
        created = await _new_crm_project(client, "Portal", clientId=acme["id"])
        assert (await client.delete(f"/api/crm/clients/{acme['id']}")).status_code == 204

        detail = (await client.get(f"/api/crm/projects/{created['crmProject']['id']}")).json()
        assert detail["clientId"] is None
        assert detail["client"] is None


class TestCrmProjects:
    async def test_create_and_detail(self, client, user):
        acme = await _new_client(client)
        created = await _new_crm_project(client, "Portal", clientId=acme["id"], assigneeId=user["id"], budgetedHours=40,
                                         dueDate="2025-12-01T00:00:00Z")
        crm = created["crmProject"]
        assert crm["status"] == "lead"
        assert crm["budgetedHours"] == 40
        assert crm["projectId"] == created["project"]["id"]

        detail = (await client.get(f"/api/crm/projects/{crm['id']}")).json()
        assert detail["project"]["name"] == "Portal"
        assert detail["client"]["name"] == "Acme Corp"
        assert detail["assignee"]["email"] == user["email"]
        assert detail["latestNote"] is None
        assert detail["tags"] == []
        assert detail["dueDate"].startswith("2025-12-01T00:00:00")

        by_project = (await client.get(f"/api/crm/projects/by-project/{created['project']['id']}")).json()
        assert by_project["id"] == crm["id"]

    async def test_unknown_client_is_rejected(self, client, user):
        res = await client.post("/api/crm/projects", json={"name": "x", "clientId": "missing"})
        assert res.status_code == 404

    async def test_pagination_and_search(self, client, user):
        acme = await _new_client(client)
        for i in range(3):
            await _new_crm_project(client, f"Project {i}")
        await _new_crm_project(client, "Acme portal", clientId=acme["id"], status="won")

        page = (await client.get("/api/crm/projects", params={"page": 1, "pageSize": 2})).json()
        assert page["total"] == 4
        assert page["page"] == 1
        assert page["pageSize"] == 2
        assert len(page["data"]) == 2

        last = (await client.get("/api/crm/projects", params={"page": 2, "pageSize": 3})).json()
        assert len(last["data"]) == 1

        by_company = (await client.get("/api/crm/projects", params={"search": "ACME"})).json()
        assert [p["project"]["name"] for p in by_company["data"]] == ["Acme portal"]

        by_status = (await client.get("/api/crm/projects", params={"status": "won"})).json()
        assert by_status["total"] == 1

    async def test_patch_records_stage_history_and_renames_base(self, client, user):
        created = await _new_crm_project(client, "Portal")
        cid = created["crmProject"]["id"]

        res = await client.patch(f"/api/crm/projects/{cid}", json={"status": "proposal_sent", "name": "Portal v2"})
        assert res.status_code == 200
        assert res.json()["status"] == "proposal_sent"
        assert res.json()["project"]["name"] == "Portal v2"

        await client.patch(f"/api/crm/projects/{cid}", json={"status": "proposal_sent", "comments": "same stage"})
        await client.patch(f"/api/crm/projects/{cid}", json={"status": "won"})

        history = (await client.get(f"/api/crm/projects/{cid}/stage-history")).json()
        assert [(h["fromStatus"], h["toStatus"]) for h in history] == [("proposal_sent", "won"), ("lead", "proposal_sent")]
        assert history[0]["changedBy"]["id"] == user["id"]

        bad = await client.patch(f"/api/crm/projects/{cid}", json={"status": "archived"})
        assert bad.status_code == 422

    async def test_documentation_seeds_default_pages_once(self, client, user):
        created = await _new_crm_project(client, "Portal")
        cid, pid = created["crmProject"]["id"], created["project"]["id"]

        res = await client.patch(f"/api/crm/projects/{cid}/documentation", json={"enabled": True})
        assert res.json()["documentationEnabled"] is True
        titles = [d["title"] for d in (await client.get(f"/api/projects/{pid}/documents")).json()]
        assert titles == ["Resources", "Requirements", "Deliverables"]

        await client.patch(f"/api/crm/projects/{cid}/documentation", json={"enabled": False})
        await client.patch(f"/api/crm/projects/{cid}/documentation", json={"enabled": True})
        assert len((await client.get(f"/api/projects/{pid}/documents")).json()) == 3

    async def test_clone(self, client, user):
        created = await _new_crm_project(client, "Portal", status="won", budgetedHours=12, comments="keep")
        res = await client.post(f"/api/crm/projects/{created['crmProject']['id']}/clone")
        assert res.status_code == 201
        clone = res.json()
        assert clone["project"]["name"] == "Portal (Copy)"
        assert clone["crmProject"]["status"] == "lead"
        assert clone["crmProject"]["budgetedHours"] == 12
        assert clone["crmProject"]["comments"] == "keep"
        assert clone["project"]["id"] != created["project"]["id"]

    async def test_delete_removes_base_project(self, client, user):
        created = await _new_crm_project(client, "Portal")
        pid = created["project"]["id"]
        await client.post(f"/api/projects/{pid}/documents", json={"title": "Doc"})

        assert (await client.delete(f"/api/crm/projects/{created['crmProject']['id']}")).status_code == 204
        assert (await client.get(f"/api/projects/{pid}")).status_code == 404
        assert (await client.get(f"/api/crm/projects/{created['crmProject']['id']}")).status_code == 404

    async def test_owner_only(self, client, user, new_client, signup):
        created = await _new_crm_project(client, "Portal")
        other = new_client()
        await signup(other, "bia@docuflow.dev")
        cid = created["crmProject"]["id"]

        assert (await other.get(f"/api/crm/projects/{cid}")).status_code == 403
        assert (await other.patch(f"/api/crm/projects/{cid}", json={"comments": "x"})).status_code == 403
        assert (await other.delete(f"/api/crm/projects/{cid}")).status_code == 403


class TestNotes:
    async def test_mentions_notify_other_users(self, client, user, new_client, signup):
        bia_c = new_client()
        bia = await signup(bia_c, "bia@docuflow.dev", first_name="Bia", last_name="Lima")
        created = await _new_crm_project(client, "Portal")
        cid = created["crmProject"]["id"]

        res = await client.post(f"/api/crm/projects/{cid}/notes", json={
            "content": "@Bia can you review?",
            "mentionedUserIds": [bia["id"], user["id"], "ghost"],
        })
        assert res.status_code == 201
        note = res.json()
        assert note["createdBy"]["id"] == user["id"]
        assert note["mentionedUserIds"] == [bia["id"], user["id"], "ghost"]

        assert (await client.get("/api/notifications/unread-count")).json() == {"count": 0}
        assert (await bia_c.get("/api/notifications/unread-count")).json() == {"count": 1}

        notifications = (await bia_c.get("/api/notifications")).json()
        assert notifications[0]["type"] == "mention"
        assert notifications[0]["fromUser"]["id"] == user["id"]
        assert notifications[0]["crmProject"] == {"id": cid, "name": "Portal"}
        assert notifications[0]["message"] == "Ana Souza mentioned you in Portal"

        read = await bia_c.post(f"/api/notifications/{notifications[0]['id']}/read")
        assert read.json()["isRead"] is True
        assert (await bia_c.get("/api/notifications/unread-count")).json() == {"count": 0}

        detail = (await client.get(f"/api/crm/projects/{cid}")).json()
        assert detail["latestNote"]["content"] == "@Bia can you review?"

    async def test_read_all_and_foreign_notification(self, client, user, new_client, signup):
        bia_c = new_client()
        bia = await signup(bia_c, "bia@docuflow.dev")
        cid = (await _new_crm_project(client, "Portal"))["crmProject"]["id"]
        for text in ("one", "two"):
            await client.post(f"/api/crm/projects/{cid}/notes", json={"content": text, "mentionedUserIds": [bia["id"]]})

        notifications = (await bia_c.get("/api/notifications")).json()
        assert len(notifications) == 2
        assert (await client.post(f"/api/notifications/{notifications[0]['id']}/read")).status_code == 404

        res = await bia_c.post("/api/notifications/read-all")
        assert res.json()["updated"] == 2
        assert (await bia_c.get("/api/notifications/unread-count")).json() == {"count": 0}

    async def test_edit_and_delete_are_author_only(self, client, user, new_client, signup):
        other = new_client()
        await signup(other, "bia@docuflow.dev")
        cid = (await _new_crm_project(client, "Portal"))["crmProject"]["id"]
        note = (await client.post(f"/api/crm/projects/{cid}/notes", json={"content": "draft"})).json()

        assert (await other.patch(f"/api/crm/projects/{cid}/notes/{note['id']}", json={"content": "x"})).status_code == 403
        assert (await other.delete(f"/api/crm/projects/{cid}/notes/{note['id']}")).status_code == 403

        edited = await client.patch(f"/api/crm/projects/{cid}/notes/{note['id']}", json={"content": "final"})
        assert edited.json()["content"] == "final"

        assert (await client.delete(f"/api/crm/projects/{cid}/notes/{note['id']}")).status_code == 204
        assert (await client.get(f"/api/crm/projects/{cid}/notes")).json() == []

    async def test_content_is_plain_text(self, client, user):
        cid = (await _new_crm_project(client, "Portal"))["crmProject"]["id"]
        for text in ("hello team", "123", '{"a": 1}'):
            res = await client.post(f"/api/crm/projects/{cid}/notes", json={"content": text})
            assert res.status_code == 201, res.text
            assert res.json()["content"] == text

        listed = (await client.get(f"/api/crm/projects/{cid}/notes")).json()
        assert sorted(n["content"] for n in listed) == sorted(["hello team", "123", '{"a": 1}'])

        note_id = listed[0]["id"]
        edited = await client.patch(f"/api/crm/projects/{cid}/notes/{note_id}", json={"content": "[1, 2]"})
        assert edited.json()["content"] == "[1, 2]"

        detail = (await client.get(f"/api/crm/projects/{cid}")).json()
        assert isinstance(detail["latestNote"]["content"], str)


class TestTags:
    async def test_tag_catalog(self, client, user):
        res = await client.post("/api/crm/tags", json={"name": "Urgent", "color": "#EF4444"})
        assert res.status_code == 201
        tag = res.json()

        dup = await client.post("/api/crm/tags", json={"name": "urgent", "color": "#000000"})
        assert dup.status_code == 409

        bad_color = await client.post("/api/crm/tags", json={"name": "Blue", "color": "blue"})
        assert bad_color.status_code == 422

        await client.post("/api/crm/tags", json={"name": "Backlog", "color": "#3B82F6"})
        assert [t["name"] for t in (await client.get("/api/crm/tags")).json()] == ["Backlog", "Urgent"]

        renamed = await client.patch(f"/api/crm/tags/{tag['id']}", json={"name": "Backlog"})
        assert renamed.status_code == 409
        recolored = await client.patch(f"/api/crm/tags/{tag['id']}", json={"color": "#111111"})
        assert recolored.json()["color"] == "#111111"

        assert (await client.delete(f"/api/crm/tags/{tag['id']}")).status_code == 204
        assert (await client.delete(f"/api/crm/tags/{tag['id']}")).status_code == 404

    async def test_attach_is_idempotent(self, client, user):
        cid = (await _new_crm_project(client, "Portal"))["crmProject"]["id"]
        tag = (await client.post("/api/crm/tags", json={"name": "Urgent", "color": "#EF4444"})).json()

        for _ in range(2):
            res = await client.post(f"/api/crm/projects/{cid}/tags/{tag['id']}")
            assert res.status_code == 201
        assert [t["id"] for t in (await client.get(f"/api/crm/projects/{cid}/tags")).json()] == [tag["id"]]

        detail = (await client.get(f"/api/crm/projects/{cid}")).json()
        assert [t["name"] for t in detail["tags"]] == ["Urgent"]

        assert (await client.delete(f"/api/crm/projects/{cid}/tags/{tag['id']}")).status_code == 204
        assert (await client.get(f"/api/crm/projects/{cid}/tags")).json() == []

        missing = await client.post(f"/api/crm/projects/{cid}/tags/missing")
        assert missing.status_code == 404

    async def test_unique_constraint_maps_to_conflict(self, client, user, monkeypatch):
        async def _never_taken(*args, **kwargs):
            return False

        await client.post("/api/crm/tags", json={"name": "Urgent", "color": "#EF4444"})
        # simula duas criações concorrentes que passaram pela checagem prévia
        monkeypatch.setattr(crm_tags, "_name_taken", _never_taken)

        res = await client.post("/api/crm/tags", json={"name": "Urgent", "color": "#000000"})
        assert res.status_code == 409
        assert res.json()["detail"] == crm_tags.DUPLICATE_NAME
        assert [t["name"] for t in (await client.get("/api/crm/tags")).json()] == ["Urgent"]
