# Copyright (c) 2025 Alexandre Tavares
# Licensed under the Creative Commons Attribution-NonCommercial 4.0 International (CC BY-NC 4.0)
# See the LICENSE file in the project root for more information.
from datetime import timedelta
from pathlib import Path
import pytest
from sqlalchemy import text
from app.core.config import settings
from app.db.rows import fetch_one, utcnow
from app.services.time_tracking import sweep_stale_entries

pytestmark = pytest.mark.asyncio

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


async def _start(c, crm_project_id, description=None):
    res = await c.post("/api/time-tracking/start", json={"crmProjectId": crm_project_id, "description": description})
    assert res.status_code == 201, res.text
    return res.json()


class TestTimer:
    async def test_start_auto_stops_previous(self, client, crm_project):
        cid = crm_project["crmProject"]["id"]
        first = await _start(client, cid, "Wireframes")
        assert first["status"] == "running"
        assert first["duration"] == 0

        second = await _start(client, cid)
        active = (await client.get("/api/time-tracking/active")).json()
        assert active["id"] == second["id"]

        entries = (await client.get("/api/time-tracking/entries")).json()["data"]
        by_id = {e["id"]: e for e in entries}
        assert by_id[first["id"]]["status"] == "stopped"
        assert by_id[first["id"]]["endTime"] is not None
        assert by_id[first["id"]]["projectName"] == "Website redesign"
        assert by_id[first["id"]]["userName"] == "Ana Souza"

    async def test_no_active_entry(self, client, user):
        res = await client.get("/api/time-tracking/active")
        assert res.status_code == 200
        assert res.json() is None

    async def test_unknown_project(self, client, user):
        res = await client.post("/api/time-tracking/start", json={"crmProjectId": "missing"})
        assert res.status_code == 404

    async def test_state_machine(self, client, crm_project):
        entry = await _start(client, crm_project["crmProject"]["id"])
        base = f"/api/time-tracking/{entry['id']}"

        assert (await client.post(f"{base}/resume")).status_code == 400
        assert (await client.post(f"{base}/activity")).json()["status"] == "running"

        paused = await client.post(f"{base}/pause")
        assert paused.json()["status"] == "paused"
        assert (await client.post(f"{base}/pause")).status_code == 400

        resumed = await client.post(f"{base}/resume", json={"discardIdleTime": True})
        assert resumed.json()["status"] == "running"

        stopped = await client.post(f"{base}/stop")
        assert stopped.json()["status"] == "stopped"
        assert stopped.json()["endTime"] is not None

        again = await client.post(f"{base}/stop")
        assert again.status_code == 400
        assert again.json()["detail"] == "Entry is already stopped"
        assert (await client.get("/api/time-tracking/active")).json() is None

    async def test_only_owner_mutates(self, client, crm_project, new_client, signup):
        entry = await _start(client, crm_project["crmProject"]["id"])
        other = new_client()
        await signup(other, "bia@docuflow.dev")

        assert (await other.post(f"/api/time-tracking/{entry['id']}/pause")).status_code == 403
        assert (await other.delete(f"/api/time-tracking/entries/{entry['id']}")).status_code == 403
        assert (await other.post("/api/time-tracking/missing/stop")).status_code == 404

    async def test_entries_are_scoped_to_caller(self, client, crm_project, new_client, signup, db):
        cid = crm_project["crmProject"]["id"]
        await _start(client, cid)
        other = new_client()
        bia = await signup(other, "bia@docuflow.dev")
        await _start(other, cid)

        mine = (await client.get("/api/time-tracking/entries")).json()["data"]
        assert len(mine) == 1
        spoofed = (await other.get("/api/time-tracking/entries", params={"userId": mine[0]["userId"]})).json()["data"]
        assert [e["userId"] for e in spoofed] == [bia["id"]]

        await db.execute(text("UPDATE users SET role = 'admin' WHERE id = :id"), {"id": bia["id"]})
        await db.commit()
        as_admin = (await other.get("/api/time-tracking/entries", params={"userId": mine[0]["userId"]})).json()["data"]
        assert [e["id"] for e in as_admin] == [mine[0]["id"]]

    async def test_admin_without_filter_sees_everyone(self, client, crm_project, new_client, signup, db):
        cid = crm_project["crmProject"]["id"]
        ana_entry = await _start(client, cid)
        other = new_client()
        bia = await signup(other, "bia@docuflow.dev", first_name="Bia")
        bia_entry = await _start(other, cid)
        await client.post(f"/api/time-tracking/{ana_entry['id']}/stop")
        await other.post(f"/api/time-tracking/{bia_entry['id']}/stop")

        await db.execute(text("UPDATE users SET role = 'admin' WHERE id = :id"), {"id": bia["id"]})
        await db.commit()

        everyone = (await other.get("/api/time-tracking/entries")).json()["data"]
        assert {e["id"] for e in everyone} == {ana_entry["id"], bia_entry["id"]}

        stats = (await other.get("/api/time-tracking/stats")).json()
        assert stats["entriesCount"] == 2
        assert {u["userId"] for u in stats["byUser"]} == {ana_entry["userId"], bia["id"]}

        own = (await client.get("/api/time-tracking/stats")).json()
        assert [u["userId"] for u in own["byUser"]] == [ana_entry["userId"]]

    async def test_stats_only_count_stopped(self, client, crm_project, db):
        cid = crm_project["crmProject"]["id"]
        done = await _start(client, cid)
        await db.execute(
            text("UPDATE time_entries SET last_activity_at = :t WHERE id = :id"),
            {"t": utcnow() - timedelta(seconds=120), "id": done["id"]},
        )
        await db.commit()
        await client.post(f"/api/time-tracking/{done['id']}/stop")
        await _start(client, cid)

        stats = (await client.get("/api/time-tracking/stats")).json()
        assert stats["entriesCount"] == 1
        assert stats["totalDuration"] >= 120
        assert stats["byProject"][0]["projectName"] == "Website redesign"
        assert stats["byUser"][0]["userName"] == "Ana Souza"

    async def test_delete_entry(self, client, crm_project):
        entry = await _start(client, crm_project["crmProject"]["id"])
        assert (await client.delete(f"/api/time-tracking/entries/{entry['id']}")).status_code == 204
        assert (await client.get("/api/time-tracking/entries")).json()["data"] == []
        assert (await client.delete(f"/api/time-tracking/entries/{entry['id']}")).status_code == 404


class TestStaleSweep:
    async def test_stops_entries_without_heartbeat(self, client, crm_project, db):
        cid = crm_project["crmProject"]["id"]
        stale = await _start(client, cid)
        last = utcnow() - timedelta(hours=1)
        await db.execute(
            text("UPDATE time_entries SET last_activity_at = :t WHERE id = :id"),
            {"t": last, "id": stale["id"]},
        )
        await db.commit()

        stopped = await sweep_stale_entries(db, stale_after_s=900)
        await db.commit()
        assert stopped == 1

        row = await fetch_one(db, "SELECT status, end_time FROM time_entries WHERE id = :id", {"id": stale["id"]})
        assert row["status"] == "stopped"
        assert abs((row["end_time"] - last).total_seconds()) < 1

    async def test_fresh_entries_survive(self, client, crm_project, db):
        await _start(client, crm_project["crmProject"]["id"])
        assert await sweep_stale_entries(db, stale_after_s=900) == 0


class TestScreenshots:
    async def test_upload_list_delete(self, client, crm_project):
        entry = await _start(client, crm_project["crmProject"]["id"])
        res = await client.post(
            "/api/time-tracking/screenshots",
            data={"timeEntryId": entry["id"]},
            files={"file": ("shot.png", PNG_BYTES, "image/png")},
        )
        assert res.status_code == 201, res.text
        shot = res.json()
        assert shot["url"].startswith(f"/uploads/screenshots/{entry['id']}/")
        assert shot["sizeBytes"] == len(PNG_BYTES)

        stored = Path(settings.UPLOAD_DIR) / shot["storageKey"]
        assert stored.read_bytes() == PNG_BYTES

        served = await client.get(shot["url"])
        assert served.status_code == 200

        listed = (await client.get("/api/time-tracking/screenshots", params={"timeEntryId": entry["id"]})).json()
        assert [s["id"] for s in listed] == [shot["id"]]

        assert (await client.delete(f"/api/time-tracking/screenshots/{shot['id']}")).status_code == 204
        assert not stored.exists()
        assert (await client.delete(f"/api/time-tracking/screenshots/{shot['id']}")).status_code == 204

    async def test_rejects_unsupported_type(self, client, crm_project):
        entry = await _start(client, crm_project["crmProject"]["id"])
        res = await client.post(
            "/api/time-tracking/screenshots",
            data={"timeEntryId": entry["id"]},
            files={"file": ("notes.txt", b"hello", "text/plain")},
        )
        assert res.status_code == 415

    async def test_rejects_large_file(self, client, crm_project):
        entry = await _start(client, crm_project["crmProject"]["id"])
        too_big = b"\x00" * (settings.MAX_UPLOAD_MB * 1024 * 1024 + 1)
        res = await client.post(
            "/api/time-tracking/screenshots",
            data={"timeEntryId": entry["id"]},
            files={"file": ("big.png", too_big, "image/png")},
        )
        assert res.status_code == 413

    async def test_entry_must_belong_to_caller(self, client, crm_project, new_client, signup):
        entry = await _start(client, crm_project["crmProject"]["id"])
        other = new_client()
        await signup(other, "bia@docuflow.dev")
        res = await other.post(
            "/api/time-tracking/screenshots",
            data={"timeEntryId": entry["id"]},
            files={"file": ("shot.png", PNG_BYTES, "image/png")},
        )
        assert res.status_code == 403

    async def test_deleting_crm_project_removes_files(self, client, crm_project):
        cid = crm_project["crmProject"]["id"]
        entry = await _start(client, cid)
        shot = (await client.post(
            "/api/time-tracking/screenshots",
            data={"timeEntryId": entry["id"]},
            files={"file": ("shot.png", PNG_BYTES, "image/png")},
        )).json()
        stored = Path(settings.UPLOAD_DIR) / shot["storageKey"]
        assert stored.exists()

        assert (await client.delete(f"/api/crm/projects/{cid}")).status_code == 204
        assert not stored.exists()
        assert (await client.get("/api/time-tracking/entries")).json()["data"] == []
