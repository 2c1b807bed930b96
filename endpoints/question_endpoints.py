# question_endpoints.py
from __future__ import annotations

import asyncio
import logging
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from persistence.document import utc_now_iso
from persistence.question_bank import QuestionBank

router = APIRouter(prefix="/api", tags=["questions"])
logger = logging.getLogger(__name__)


class QuestionBody(BaseModel):
    # Optional so a missing field reaches the "Question text is required" check.
    question: Any = None


class ImportBody(BaseModel):
    data: Any = None


def _bank(request: Request) -> QuestionBank:
    return request.app.state.question_bank


@router.get("/questions")
async def list_all_questions(request: Request):
    doc = await asyncio.to_thread(_bank(request).list_all)
    return JSONResponse({"success": True, "data": doc.questions, "lastModified": doc.lastModified})


@router.get("/questions/{category}")
async def list_category(request: Request, category: str):
    questions, last_modified = await asyncio.to_thread(_bank(request).list_category, category)
    return JSONResponse(
        {
            "success": True,
            "category": category,
            "questions": questions,
            "count": len(questions),
            "lastModified": last_modified,
        }
    )


@router.post("/questions/{category}")
async def add_question(request: Request, category: str, body: QuestionBody):
    questions = await asyncio.to_thread(_bank(request).add_question, category, body.question)
    logger.info("QUESTION ADD: category=%s count=%s", category, len(questions))
    return JSONResponse({"success": True, "message": "Question added successfully", "questions": questions})


@router.put("/questions/{category}/{index}")
async def update_question(request: Request, category: str, index: int, body: QuestionBody):
    questions = await asyncio.to_thread(_bank(request).update_question, category, index, body.question)
    return JSONResponse({"success": True, "message": "Question updated successfully", "questions": questions})


@router.delete("/questions/{category}/{index}")
async def delete_question(request: Request, category: str, index: int):
    deleted, questions = await asyncio.to_thread(_bank(request).delete_question, category, index)
    return JSONResponse(
        {
            "success": True,
            "message": "Question deleted successfully",
            "deleted": deleted,
            "questions": questions,
        }
    )


@router.get("/health")
async def health():
    return JSONResponse(
        {
            "success": True,
            "message": "Grand Interview Backend API is running",
            "timestamp": utc_now_iso(),
        }
    )


@router.post("/export")
async def export_questions(request: Request):
    data = await asyncio.to_thread(_bank(request).export)
    return JSONResponse({"success": True, "data": data})


@router.post("/import")
async def import_questions(request: Request, body: ImportBody):
    await asyncio.to_thread(_bank(request).import_data, body.data)
    logger.info("QUESTION IMPORT: replaced question bank")
    return JSONResponse({"success": True, "message": "Questions imported successfully"})


@router.post("/reset")
async def reset_questions(request: Request):
    doc = await asyncio.to_thread(_bank(request).reset)
    return JSONResponse({"success": True, "message": "Questions reset to defaults", "data": doc.to_disk_doc()})
