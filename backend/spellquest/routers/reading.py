from __future__ import annotations
import base64
import binascii
import time
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from ..oracle import LessonOracle, get_oracle
from ..rules import READING_STARS, READING_XP
from ..schemas import ReadingPassage, ReadingSession, Student
from ..store import Store, get_store
from .auth import require_student


router = APIRouter(prefix="/reading", tags=["reading"])

DEFAULT_READING_LEVEL = 4


class PassageRequest(BaseModel):
    theme: str = "Mystery"


class AnalyzeRequest(BaseModel):
    audio_base64: str
    mime_type: str = "audio/webm"
    target_text: Optional[str] = None
    # Optional live transcript captured on the client
    transcript: Optional[str] = None


class AnalyzeResponse(BaseModel):
    session: ReadingSession
    student: Student


def reading_level_for(student: Student) -> int:
    if student.teacher_assessment and student.teacher_assessment.reading_level:
        return student.teacher_assessment.reading_level
    return student.year_level or DEFAULT_READING_LEVEL


@router.post("/passage", response_model=ReadingPassage)
async def passage(req: PassageRequest, student: Student = Depends(require_student), oracle: LessonOracle = Depends(get_oracle)):
    return await oracle.generate_reading_passage(reading_level_for(student), req.theme or "General")


@router.post("/analyze", response_model=AnalyzeResponse)
async def analyze(
    req: AnalyzeRequest,
    student: Student = Depends(require_student),
    store: Store = Depends(get_store),
    oracle: LessonOracle = Depends(get_oracle),
):
    try:
        base64.b64decode(req.audio_base64, validate=True)
    except (binascii.Error, ValueError):
        raise HTTPException(status_code=400, detail="audio_base64 is not valid base64")
    year_level = student.year_level or DEFAULT_READING_LEVEL
    result = await oracle.analyze_reading(req.audio_base64, req.mime_type, year_level, req.target_text)
    session = ReadingSession(
        id=f"read_{int(time.time() * 1000)}",
        date=datetime.now(timezone.utc).isoformat(),
        transcript=(req.transcript or "").strip() or "(Audio Analyzed)",
        target_text=req.target_text,
        difficult_words=result.difficult_words,
        misread_words=result.misread_words,
        feedback=result.feedback,
        assessed_level=result.assessed_level,
    )
    student.reading_log = [session] + student.reading_log
    student.xp += READING_XP
    student.stars += READING_STARS
    updated = store.update_student(student)
    return AnalyzeResponse(session=session, student=updated)
