from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable, Mapping

from pydantic import BaseModel, ConfigDict, Field

DOCUMENT_VERSION = "1.0.0"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_iso(value: Any) -> datetime | None:
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


class CuratorRecord(BaseModel):
    # Arbitrary caller metadata is stored inline next to the known fields.
    model_config = ConfigDict(extra="allow")

    id: str
    name: str
    organization: str = ""
    createdAt: str | None = None


class OrganizationRecord(BaseModel):
    name: str
    curators: list[str] = Field(default_factory=list)


class QuestionRecord(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    title: str = ""
    content: str = ""
    organization: str = ""
    createdAt: str | None = None
    updatedAt: str | None = None


class DocumentMetadata(BaseModel):
    model_config = ConfigDict(extra="allow")

    version: str = DOCUMENT_VERSION
    createdAt: str = Field(default_factory=utc_now_iso)
    lastModified: str = Field(default_factory=utc_now_iso)


class CuratorDocument(BaseModel):
    """
    Mirrors the persisted curator-data.json schema:
      {
        "curators": { "<curator_id>": {...} },
        "organizations": { "<ORG>": { "name": "<ORG>", "curators": ["<curator_id>", ...] } },
        "questions": { "<question_id>": {...} },
        "metadata": { "version": "1.0.0", "createdAt": "...", "lastModified": "..." }
      }
    The same schema is used for the file and the blob storage media.
    """

    model_config = ConfigDict(extra="allow")

    curators: dict[str, CuratorRecord] = Field(default_factory=dict)
    organizations: dict[str, OrganizationRecord] = Field(default_factory=dict)
    questions: dict[str, QuestionRecord] = Field(default_factory=dict)
    metadata: DocumentMetadata = Field(default_factory=DocumentMetadata)

    @classmethod
    def skeleton(cls, organizations: Iterable[str]) -> "CuratorDocument":
        return cls(organizations={code: OrganizationRecord(name=code) for code in organizations})

    @classmethod
    def from_disk_doc(cls, doc: Mapping[str, Any]) -> "CuratorDocument":
        return cls.model_validate(doc)

    def to_disk_doc(self) -> dict[str, Any]:
        return self.model_dump(mode="json")

    def stamp_last_modified(self, now: str | None = None) -> str:
        """Set metadata.lastModified to now, never moving it backwards."""
        stamp = now or utc_now_iso()
        previous = parse_iso(self.metadata.lastModified)
        current = parse_iso(stamp)
        if previous is not None and current is not None and previous > current:
            stamp = self.metadata.lastModified
        self.metadata.lastModified = stamp
        return stamp

    def attach_curator(self, curator_id: str, org: str) -> bool:
        """Append curator_id to org's list once. False when org is unknown."""
        org_rec = self.organizations.get(org)
        if org_rec is None:
            return False
        if curator_id not in org_rec.curators:
            org_rec.curators.append(curator_id)
        return True

    def detach_curator(self, curator_id: str) -> None:
        """Drop curator_id from every organization list."""
        for org_rec in self.organizations.values():
            if curator_id in org_rec.curators:
                org_rec.curators = [cid for cid in org_rec.curators if cid != curator_id]

    def curators_for(self, org: str) -> list[CuratorRecord]:
        """Curators listed under org, dangling ids dropped, sorted by name."""
        org_rec = self.organizations.get(org)
        if org_rec is None:
            return []
        found = [self.curators[cid] for cid in org_rec.curators if cid in self.curators]
        return sorted(found, key=lambda c: (c.name.casefold(), c.name))
