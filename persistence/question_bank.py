from __future__ import annotations

import copy
import logging
from typing import Any, Mapping

from pydantic import BaseModel, Field, ValidationError

from errors import NotFoundError, PersistenceFailure, ValidationFailure

from .document import utc_now_iso
from .interfaces import KeyValueDocumentStore

logger = logging.getLogger(__name__)

MANDATORY_QUESTIONS = [
    "Why do you want to be Leader of this Organisation?",
    "What is the minimum term of leadership required to avoid removal from the post?",
    "What happens if the leader leaves their post without serious reason?",
    "Is a leader allowed to use the organization's warehouse for personal purposes?",
    "Does a leader have the right to take a 24-hour faction freeze upon appointment?",
    "How many 9th-rank deputies can the leader of state organizations have?",
    "Does a leader have the right to dismiss employees if they lose confidence in them, with/without curator approval?",
    "How long of a freeze can a leader take once per term with senior curator approval?",
    "How often must a leader host a global event?",
    "What are your responsibilites as a leader?",
    "Is there any OOC responsibilites you need to follow?",
    "As a leader of an organizations are you prohibited from any OOC rules?",
]


def default_questions() -> dict[str, list[str]]:
    questions = {"mandatory": list(MANDATORY_QUESTIONS)}
    for org in ("FIB", "LSPD", "SAHP", "GOV", "LI", "NG", "EMS"):
        questions[org] = [f"Sample {org} Question 1", f"Sample {org} Question 2"]
    return questions


class QuestionBankDocument(BaseModel):
    """
    Mirrors the persisted questions-db.json schema:
      { "questions": { "<category>": ["<text>", ...] }, "lastModified": "..." }
    """

    questions: dict[str, list[str]] = Field(default_factory=dict)
    lastModified: str = Field(default_factory=utc_now_iso)

    def to_disk_doc(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class QuestionBank:
    """Category -> ordered list of question texts, persisted as one document."""

    def __init__(self, medium: KeyValueDocumentStore, *, defaults: Mapping[str, list[str]] | None = None):
        self._medium = medium
        self._defaults = copy.deepcopy(dict(defaults)) if defaults is not None else default_questions()

    def _default_doc(self) -> QuestionBankDocument:
        return QuestionBankDocument(questions=copy.deepcopy(self._defaults))

    def initialize(self) -> QuestionBankDocument:
        """Seed the default questions when nothing is persisted yet."""
        if self._medium.load() is None:
            doc = self._default_doc()
            self._write(doc, "initialize")
            logger.info("QUESTION BANK: seeded defaults into %s", self._medium.location)
            return doc
        return self._read()

    def _read(self) -> QuestionBankDocument:
        raw = self._medium.load()
        if raw is None:
            return QuestionBankDocument()
        try:
            return QuestionBankDocument.model_validate(raw)
        except ValidationError as e:
            logger.warning("QUESTION BANK LOAD: invalid document in %s: %s", self._medium.location, e)
            return QuestionBankDocument()

    def _write(self, doc: QuestionBankDocument, action: str) -> None:
        doc.lastModified = utc_now_iso()
        try:
            self._medium.save(doc.to_disk_doc())
        except (OSError, TypeError, ValueError) as e:
            logger.exception("QUESTION BANK SAVE: failed to %s in %s", action, self._medium.location)
            raise PersistenceFailure(f"Failed to {action} questions") from e

    @staticmethod
    def _clean(text: Any) -> str:
        if not isinstance(text, str) or not text.strip():
            raise ValidationFailure("Question text is required")
        return text.strip()

    @staticmethod
    def _check_index(doc: QuestionBankDocument, category: str, index: int) -> list[str]:
        items = doc.questions.get(category)
        if items is None or index < 0 or index >= len(items):
            raise NotFoundError("Question not found")
        return items

    def list_all(self) -> QuestionBankDocument:
        return self._read()

    def list_category(self, category: str) -> tuple[list[str], str]:
        doc = self._read()
        return list(doc.questions.get(category, [])), doc.lastModified

    def add_question(self, category: str, text: Any) -> list[str]:
        question = self._clean(text)
        doc = self._read()
        items = doc.questions.setdefault(category, [])
        if question in items:
            raise ValidationFailure("Question already exists")
        items.append(question)
        self._write(doc, "save")
        return list(items)

    def update_question(self, category: str, index: int, text: Any) -> list[str]:
        question = self._clean(text)
        doc = self._read()
        items = self._check_index(doc, category, index)
        items[index] = question
        self._write(doc, "update")
        return list(items)

    def delete_question(self, category: str, index: int) -> tuple[str, list[str]]:
        doc = self._read()
        items = self._check_index(doc, category, index)
        deleted = items.pop(index)
        self._write(doc, "delete")
        return deleted, list(items)

    def export(self) -> dict[str, Any]:
        return self._read().to_disk_doc()

    def import_data(self, payload: Any) -> QuestionBankDocument:
        if not isinstance(payload, Mapping) or not isinstance(payload.get("questions"), Mapping):
            raise ValidationFailure("Invalid data format")
        try:
            doc = QuestionBankDocument.model_validate({"questions": payload["questions"]})
        except ValidationError as e:
            raise ValidationFailure("Invalid data format") from e
        self._write(doc, "import")
        return doc

    def reset(self) -> QuestionBankDocument:
        doc = self._default_doc()
        self._write(doc, "reset")
        return doc
