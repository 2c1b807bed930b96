from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest

from errors import NotFoundError, PersistenceFailure, ValidationFailure
from persistence.backups import BackupManager
from persistence.disk_store import DiskJsonDocumentStore
from persistence.document import CuratorRecord
from persistence.document_store import DocumentStore
from persistence.repositories import AsyncDiskCuratorRepository, CuratorRepository


def _repo(sandbox_project, **kwargs) -> CuratorRepository:
    store = DocumentStore(DiskJsonDocumentStore(sandbox_project / "data" / "curator-data.json"))
    return CuratorRepository(store, **kwargs)


class _FlakyMedium:
    """Accepts writes until `fail` is set."""

    location = "flaky"

    def __init__(self):
        self.doc = None
        self.fail = False

    def load(self):
        return None if self.doc is None else dict(self.doc)

    def save(self, doc):
        if self.fail:
            raise OSError("read-only")
        self.doc = doc

    def clear(self):
        self.doc = None


def test_add_curator_attaches_id_once(sandbox_project):
    repo = _repo(sandbox_project)

    rec = repo.add_curator("FIB", "  Sleazy  ", {"rank": "senior", "id": "ignored"})
    assert rec.id.startswith("FIB_")
    assert rec.name == "Sleazy"
    assert rec.organization == "FIB"
    assert rec.createdAt
    assert rec.model_dump()["rank"] == "senior"

    doc = repo.get_document()
    assert doc.organizations["FIB"].curators.count(rec.id) == 1
    assert doc.curators[rec.id].name == "Sleazy"


def test_add_curator_ids_are_unique_in_the_same_millisecond(sandbox_project, monkeypatch):
    import persistence.repositories as repositories

    monkeypatch.setattr(repositories, "time", SimpleNamespace(time=lambda: 1_700_000_000.0))
    repo = _repo(sandbox_project)

    a = repo.add_curator("LSPD", "Donte")
    b = repo.add_curator("LSPD", "Mahmut")
    assert a.id != b.id
    assert repo.get_document().organizations["LSPD"].curators == [a.id, b.id]


def test_add_curator_requires_name(sandbox_project):
    repo = _repo(sandbox_project)
    with pytest.raises(ValidationFailure):
        repo.add_curator("FIB", "   ")


def test_add_curator_unknown_org_is_stored_but_unattached(sandbox_project):
    repo = _repo(sandbox_project)
    rec = repo.add_curator("XYZ", "Nobody")

    doc = repo.get_document()
    assert rec.id in doc.curators
    assert "XYZ" not in doc.organizations


def test_curators_by_org_sorted_and_dangling_ids_excluded(sandbox_project):
    repo = _repo(sandbox_project)
    repo.add_curator("FIB", "Saturo")
    repo.add_curator("FIB", "moe")
    repo.add_curator("FIB", "Nikkie")

    doc = repo.get_document()
    doc.organizations["FIB"].curators.append("FIB_ghost")
    repo.store.save(doc)

    assert [c.name for c in repo.get_curators_by_org("FIB")] == ["moe", "Nikkie", "Saturo"]
    assert repo.get_curators_by_org("EMS") == []
    with pytest.raises(NotFoundError):
        repo.get_curators_by_org("XYZ")


def test_remove_curator_removes_from_map_and_org(sandbox_project):
    repo = _repo(sandbox_project)
    keep = repo.add_curator("GOV", "Lilith")
    gone = repo.add_curator("GOV", "Vanilla")

    removed = repo.remove_curator(gone.id)
    assert removed.name == "Vanilla"

    doc = repo.get_document()
    assert gone.id not in doc.curators
    assert doc.organizations["GOV"].curators == [keep.id]


def test_remove_missing_curator_leaves_document_unchanged(sandbox_project):
    repo = _repo(sandbox_project)
    repo.add_curator("NG", "James")
    before = repo.get_document().to_disk_doc()

    with pytest.raises(NotFoundError):
        repo.remove_curator("NG_missing")
    assert repo.get_document().to_disk_doc() == before


def test_update_curator_merges_fields(sandbox_project):
    repo = _repo(sandbox_project)
    rec = repo.add_curator("EMS", "Mego")

    updated = repo.update_curator(rec.id, {"name": "Mego Jr", "id": "hijack", "shift": "night"})
    assert updated.id == rec.id
    assert updated.name == "Mego Jr"
    assert repo.get_curator(rec.id).model_dump()["shift"] == "night"

    with pytest.raises(NotFoundError):
        repo.update_curator("EMS_missing", {"name": "x"})


def test_moving_curator_then_deleting_leaves_no_dangling_ids(sandbox_project):
    repo = _repo(sandbox_project)
    rec = repo.add_curator("FIB", "Sleazy")

    repo.update_curator(rec.id, {"organization": "LSPD"})
    doc = repo.get_document()
    assert doc.organizations["FIB"].curators == []
    assert doc.organizations["LSPD"].curators == [rec.id]

    repo.remove_curator(rec.id)
    doc = repo.get_document()
    assert doc.curators == {}
    assert all(rec.id not in org.curators for org in doc.organizations.values())


def test_remove_curator_detaches_from_stale_organization(sandbox_project):
    repo = _repo(sandbox_project)
    rec = repo.add_curator("EMS", "Nikkie")

    # Record edited behind the repository's back: org field no longer matches membership.
    curators = repo.get_section("curators")
    curators[rec.id]["organization"] = "NG"
    repo.set_section("curators", curators)

    repo.remove_curator(rec.id)
    assert repo.get_document().organizations["EMS"].curators == []


def test_failed_save_raises_and_keeps_previous_document():
    medium = _FlakyMedium()
    repo = CuratorRepository(DocumentStore(medium))
    repo.add_curator("FIB", "Onur")
    before = repo.get_document().to_disk_doc()

    medium.fail = True
    with pytest.raises(PersistenceFailure):
        repo.add_curator("FIB", "Moe")
    assert repo.get_document().to_disk_doc() == before


def test_questions_crud_and_org_listing(sandbox_project):
    repo = _repo(sandbox_project)

    q1 = repo.add_question("Leadership", "Why lead?", "FIB", {"difficulty": 2, "createdAt": "ignored"})
    q2 = repo.add_question("Rules", "Name a rule", "FIB")
    repo.add_question("Other", "Unrelated", "LSPD")
    assert q1.id.startswith("q_")
    assert q1.createdAt != "ignored"

    updated = repo.update_question(q1.id, {"content": "Why lead FIB?", "createdAt": "nope"})
    assert updated.content == "Why lead FIB?"
    assert updated.createdAt == q1.createdAt
    assert updated.updatedAt >= q1.updatedAt

    fib = repo.list_questions("FIB")
    assert {q.id for q in fib} == {q1.id, q2.id}
    assert fib[0].updatedAt >= fib[1].updatedAt
    assert len(repo.list_questions()) == 3

    repo.remove_question(q2.id)
    assert repo.get_question(q2.id) is None
    with pytest.raises(NotFoundError):
        repo.remove_question(q2.id)


def test_set_section_and_metadata_is_protected(sandbox_project):
    repo = _repo(sandbox_project)
    repo.set_section("curators", {"FIB_1": {"id": "FIB_1", "name": "Sleazy", "organization": "FIB"}})
    assert repo.get_section("curators")["FIB_1"]["name"] == "Sleazy"

    with pytest.raises(ValidationFailure):
        repo.set_section("metadata", {})
    with pytest.raises(ValidationFailure):
        repo.set_section("curators", "not a mapping")


def test_import_requires_curators_and_questions(sandbox_project):
    repo = _repo(sandbox_project)
    repo.add_curator("LI", "Siven")
    before = repo.get_document().to_disk_doc()

    with pytest.raises(ValidationFailure):
        repo.import_document({"curators": {}})
    with pytest.raises(ValidationFailure):
        repo.import_document(["not", "a", "document"])
    assert repo.get_document().to_disk_doc() == before

    repo.import_document({"curators": {}, "questions": {}, "organizations": {"LI": {"name": "LI"}}})
    assert repo.get_document().curators == {}


def test_replace_document_snapshots_backup_first(sandbox_project):
    backups = BackupManager(sandbox_project / "data" / "backups")
    repo = _repo(sandbox_project, backups=backups)

    doc = repo.get_document()
    doc.curators["FIB_1"] = CuratorRecord(id="FIB_1", name="Sleazy", organization="FIB")
    repo.replace_document(doc.to_disk_doc())

    assert len(backups.list_backups()) == 1
    assert repo.get_document().curators["FIB_1"].name == "Sleazy"


def test_saved_hook_reports_section(sandbox_project):
    seen = []
    repo = _repo(sandbox_project, on_saved=lambda doc, section: seen.append(section))

    rec = repo.add_curator("FIB", "Moe")
    repo.remove_curator(rec.id)
    repo.add_question("t", "c")
    repo.reset()

    assert seen == ["curators", "curators", "questions", None]


def test_async_disk_curator_repository_basic_flow(sandbox_project):
    async def _run():
        repo = AsyncDiskCuratorRepository(_repo(sandbox_project))

        rec = await repo.add_curator("SAHP", "Trashley")
        assert [c.id for c in await repo.get_curators_by_org("SAHP")] == [rec.id]

        stats = await repo.stats()
        assert stats["totalCurators"] == 1
        assert stats["organizations"] == 7

        await repo.remove_curator(rec.id)
        assert (await repo.get_document()).curators == {}

    asyncio.run(_run())
