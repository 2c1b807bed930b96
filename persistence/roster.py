from __future__ import annotations

import copy
import json
import logging
from typing import Any, Callable, Iterable

from pydantic import BaseModel, Field, ValidationError

from json_store import dump_json
from settings import DEFAULT_ORGANIZATIONS

from .document import utc_now_iso
from .interfaces import KeyValueDocumentStore

logger = logging.getLogger(__name__)

DEFAULT_SENIOR_CURATOR = "Zaid Pluxury"

DEFAULT_ROSTER: dict[str, list[str]] = {
    "FIB": ["Sleazy", "Nikkie", "Moe", "Onur", "Saturo"],
    "LSPD": ["Donte", "Mahmut", "Saturo"],
    "SAHP": ["Lilith", "Donte", "Nikkie", "Trashley"],
    "GOV": ["Lilith", "Vanilla"],
    "LI": ["Vanilla", "Markus", "Siven"],
    "NG": ["James", "Mego"],
    "EMS": ["James", "Mego", "Nikkie"],
}

# Display names some forms submit instead of the organization code.
ORGANIZATION_ALIASES = {
    "Government": "GOV",
    "Lifeinvaider": "LI",
}


class RosterDocument(BaseModel):
    """
    Mirrors the persisted roster schema:
      { "curators": { "<ORG>": ["<name>", ...] }, "seniorCurator": "...", "lastModified": "..." }
    """

    curators: dict[str, list[str]] = Field(default_factory=dict)
    seniorCurator: str = DEFAULT_SENIOR_CURATOR
    lastModified: str = Field(default_factory=utc_now_iso)

    def to_disk_doc(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


RosterListener = Callable[[RosterDocument], None]


class CuratorRoster:
    """
    Name-based curator roster per organization, plus one senior curator.

    Organization codes form a closed set fixed at construction; every operation
    on an unknown code returns False and leaves the roster untouched.
    """

    def __init__(
        self,
        medium: KeyValueDocumentStore,
        *,
        organizations: Iterable[str] = DEFAULT_ORGANIZATIONS,
        defaults: dict[str, list[str]] | None = None,
        on_change: RosterListener | None = None,
    ):
        self._medium = medium
        self._organizations = tuple(organizations)
        self._defaults = copy.deepcopy(DEFAULT_ROSTER if defaults is None else defaults)
        self._on_change = on_change

    @property
    def organizations(self) -> tuple[str, ...]:
        return self._organizations

    def _default_doc(self) -> RosterDocument:
        return RosterDocument(curators=copy.deepcopy(self._defaults))

    def _resolve(self, org: str) -> str | None:
        code = ORGANIZATION_ALIASES.get(org, org)
        return code if code in self._organizations else None

    def initialize(self) -> RosterDocument:
        """Persist the default roster when nothing is stored yet."""
        if self._medium.load() is not None:
            return self.get_data()
        doc = self._default_doc()
        if self.set_data(doc):
            logger.info("ROSTER: seeded defaults into %s", self._medium.location)
        return doc

    def get_data(self) -> RosterDocument:
        raw = self._medium.load()
        if raw is None:
            return self._default_doc()
        try:
            return RosterDocument.model_validate(raw)
        except ValidationError as e:
            logger.warning("ROSTER LOAD: invalid roster in %s, using defaults: %s", self._medium.location, e)
            return self._default_doc()

    def set_data(self, doc: RosterDocument) -> bool:
        doc.lastModified = utc_now_iso()
        try:
            self._medium.save(doc.to_disk_doc())
        except (OSError, TypeError, ValueError):
            logger.exception("ROSTER SAVE: failed to write %s", self._medium.location)
            return False
        if self._on_change is not None:
            try:
                self._on_change(doc)
            except Exception:
                logger.exception("ROSTER SAVE: change listener failed")
        return True

    def get_curators(self, org: str) -> list[str]:
        code = ORGANIZATION_ALIASES.get(org, org)
        return list(self.get_data().curators.get(code, []))

    def set_curators(self, org: str, names: Iterable[Any]) -> bool:
        code = self._resolve(org)
        if code is None:
            logger.warning("ROSTER: invalid organization %s", org)
            return False
        doc = self.get_data()
        doc.curators[code] = [n.strip() for n in names if isinstance(n, str) and n.strip()]
        return self.set_data(doc)

    def add_curator(self, org: str, name: str | None) -> bool:
        trimmed = (name or "").strip()
        if not trimmed:
            return False
        code = self._resolve(org)
        if code is None:
            logger.warning("ROSTER: invalid organization %s", org)
            return False

        doc = self.get_data()
        names = doc.curators.setdefault(code, [])
        if any(n.casefold() == trimmed.casefold() for n in names):
            return False
        names.append(trimmed)
        return self.set_data(doc)

    def remove_curator(self, org: str, name: str | None) -> bool:
        trimmed = (name or "").strip()
        if not trimmed:
            return False
        code = self._resolve(org)
        if code is None:
            logger.warning("ROSTER: invalid organization %s", org)
            return False

        doc = self.get_data()
        names = doc.curators.get(code)
        if not names:
            return False
        idx = next((i for i, n in enumerate(names) if n.casefold() == trimmed.casefold()), None)
        if idx is None:
            return False
        names.pop(idx)
        return self.set_data(doc)

    def get_senior_curator(self) -> str:
        return self.get_data().seniorCurator or DEFAULT_SENIOR_CURATOR

    def set_senior_curator(self, name: str | None) -> bool:
        trimmed = (name or "").strip()
        if not trimmed:
            return False
        doc = self.get_data()
        doc.seniorCurator = trimmed
        return self.set_data(doc)

    def get_all(self) -> dict[str, Any]:
        return self.get_data().to_disk_doc()

    def reset_to_defaults(self) -> bool:
        return self.set_data(self._default_doc())

    def export_json(self) -> str:
        return dump_json(self.get_all())

    def import_json(self, raw: str) -> bool:
        try:
            data = json.loads(raw)
        except ValueError as e:
            logger.error("ROSTER IMPORT: invalid JSON: %s", e)
            return False
        if not isinstance(data, dict) or not isinstance(data.get("curators"), dict):
            logger.error("ROSTER IMPORT: invalid curator data structure")
            return False

        curators: dict[str, list[str]] = {}
        for org, names in data["curators"].items():
            if not isinstance(names, list):
                names = []
            curators[str(org)] = [n.strip() for n in names if isinstance(n, str) and n.strip()]
        senior = data.get("seniorCurator")
        if not isinstance(senior, str) or not senior.strip():
            senior = DEFAULT_SENIOR_CURATOR
        return self.set_data(RosterDocument(curators=curators, seniorCurator=senior.strip()))

    def stats(self) -> dict[str, Any]:
        doc = self.get_data()
        per_org = {org: len(doc.curators.get(org, [])) for org in self._organizations}
        return {
            "totalCurators": sum(per_org.values()),
            "perOrg": per_org,
            "seniorCurator": doc.seniorCurator,
            "lastModified": doc.lastModified,
        }
