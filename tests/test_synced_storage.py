from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from errors import ValidationFailure
from persistence.blob_store import BlobJsonDocumentStore, InMemoryBlobStorage
from persistence.document_store import DocumentStore
from sync import ALL, build_synced_storage
from sync.storage import SyncedDataStorage


def _local() -> SyncedDataStorage:
    return SyncedDataStorage(DocumentStore(BlobJsonDocumentStore(InMemoryBlobStorage(), "grandInterviewData")))


def test_section_and_all_observers_fire_once_per_write():
    storage = _local()
    seen = []
    storage.watch("curators", lambda v: seen.append(("curators", sorted(v))))
    storage.watch(ALL, lambda doc: seen.append(("all", len(doc.curators))))
    storage.watch("questions", lambda v: seen.append(("questions", v)))

    rec = storage.add_curator("FIB", "Sleazy")

    assert seen == [("curators", [rec.id]), ("all", 1)]


def test_curator_and_question_operations():
    storage = _local()
    a = storage.add_curator("FIB", "Onur")
    b = storage.add_curator("FIB", "Moe")

    assert [c.name for c in storage.get_curators_by_org("FIB")] == ["Moe", "Onur"]
    assert storage.update_curator(a.id, {"name": "Onur B"}).name == "Onur B"
    assert storage.update_curator("FIB_missing", {"name": "x"}) is None
    assert storage.remove_curator(b.id) is True
    assert storage.remove_curator(b.id) is False

    qid = storage.add_question("Title", "Body", "FIB")
    assert storage.get_question(qid).title == "Title"
    assert [q.id for q in storage.get_questions_by_org("FIB")] == [qid]
    assert storage.update_question(qid, {"title": "New"}) is True
    assert storage.update_question("q_missing", {"title": "x"}) is False
    assert storage.remove_question(qid) is True
    assert storage.remove_question(qid) is False
    assert storage.get_all_questions() == {}


def test_export_import_clear_and_stats():
    storage = _local()
    storage.add_curator("GOV", "Lilith")
    exported = storage.export_json()

    other = _local()
    other.import_json(exported)
    assert [c.name for c in other.get_curators_by_org("GOV")] == ["Lilith"]

    with pytest.raises(ValidationFailure):
        other.import_json("{not json")
    with pytest.raises(ValidationFailure):
        other.import_json(json.dumps({"curators": {}}))
    assert other.get_stats()["totalCurators"] == 1

    stats = other.get_stats()
    assert stats["organizations"] == 7
    assert stats["storageUsed"] > 0

    other.clear_all()
    assert other.get_all().curators == {}
    assert set(other.get_all().organizations) == {"EMS", "FIB", "GOV", "LI", "LSPD", "NG", "SAHP"}


def test_sections_round_trip():
    storage = _local()
    storage.set_section("questions", {"q_1": {"id": "q_1", "title": "t"}})
    assert storage.get_section("questions")["q_1"]["title"] == "t"
    assert storage.get_section("nope") is None


def test_cross_instance_changes_reach_other_observers_without_pushing(settings):
    pushes = []

    def handler(request: httpx.Request) -> httpx.Response:
        pushes.append(request.url.path)
        return httpx.Response(200, json={"success": True})

    async def _run():
        shared = InMemoryBlobStorage()
        transport = httpx.MockTransport(handler)
        tab_a = build_synced_storage(settings, shared, origin="tab-a", transport=transport)
        tab_b = build_synced_storage(settings, shared, origin="tab-b", transport=transport)
        await tab_a.start()
        await tab_b.start()

        seen_a, seen_b = [], []
        tab_a.watch(ALL, seen_a.append)
        tab_b.watch(ALL, seen_b.append)

        tab_a.add_curator("LI", "Markus")

        assert len(seen_a) == 1
        assert len(seen_b) == 1
        assert [c.name for c in seen_b[0].curators_for("LI")] == ["Markus"]
        assert tab_a.scheduler.pending
        assert not tab_b.scheduler.pending

        await tab_a.close(flush=True)
        await tab_b.close()

        # B no longer hears A once detached.
        tab_a.add_curator("LI", "Siven")
        assert len(seen_b) == 1

    asyncio.run(_run())

    assert pushes == ["/api/data/save"]


def test_load_from_server_replaces_local_document(settings):
    remote = _local()
    remote.add_curator("SAHP", "Trashley")
    remote_doc = remote.get_all().to_disk_doc()

    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            return httpx.Response(200, json=remote_doc)
        return httpx.Response(200, json={"success": True})

    async def _run():
        storage = build_synced_storage(settings, InMemoryBlobStorage(), transport=httpx.MockTransport(handler))
        async with storage:
            pulled = await storage.load_from_server()
            assert pulled is not None
            assert [c.name for c in storage.get_curators_by_org("SAHP")] == ["Trashley"]

    asyncio.run(_run())


def test_load_from_server_offline_keeps_local(settings):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("offline", request=request)

    async def _run():
        storage = build_synced_storage(settings, InMemoryBlobStorage(), transport=httpx.MockTransport(handler))
        async with storage:
            rec = storage.add_curator("FIB", "Saturo")
            assert await storage.load_from_server() is None
            assert storage.get_all().curators[rec.id].name == "Saturo"

    asyncio.run(_run())
