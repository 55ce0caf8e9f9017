from __future__ import annotations
from typing import Dict, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from ..lesson import LessonSession, LessonStateError
from ..oracle import LessonOracle, get_oracle
from ..schemas import ActivityItem, LessonPhase, LessonPhaseState, Student
from ..store import Store, get_store
from .auth import require_student
from .students import module_views


router = APIRouter(prefix="/lessons", tags=["lessons"])

_sessions: Dict[str, LessonSession] = {}


class StartRequest(BaseModel):
    module_id: str


class AnswerRequest(BaseModel):
    answer: str = ""


class ConceptRequest(BaseModel):
    answer: str


class RatingRequest(BaseModel):
    confidence: int = Field(ge=1, le=5)


class LessonView(BaseModel):
    session_id: str
    module_id: str
    module_title: str
    phase: LessonPhase
    resumed: bool = False
    state: Optional[LessonPhaseState] = None
    current_item: Optional[ActivityItem] = None
    concept_passed: bool = False
    can_continue: bool = False
    confidence: Optional[int] = None
    performance_analysis: Optional[str] = None
    final_percentage: Optional[int] = None


class FinishResponse(BaseModel):
    final_percentage: int
    student: Student


def _view(session: LessonSession) -> LessonView:
    state = session.snapshot() if session.content is not None else None
    return LessonView(
        session_id=session.id,
        module_id=session.module.id,
        module_title=session.module.title,
        phase=session.phase,
        resumed=session.resumed,
        state=state,
        current_item=session.current_item(),
        concept_passed=session.concept_passed,
        can_continue=session.can_continue_to_test,
        confidence=session.confidence,
        performance_analysis=session.performance_analysis,
        final_percentage=session.final_percentage,
    )


def session_for_student(session_id: str, student: Student) -> LessonSession:
    session = _sessions.get(session_id)
    if session is None or session.student_id != student.id:
        raise HTTPException(status_code=404, detail="Lesson session not found")
    return session


def _conflict(exc: LessonStateError) -> HTTPException:
    return HTTPException(status_code=409, detail=str(exc))


@router.post("/start", response_model=LessonView)
async def start_lesson(
    req: StartRequest,
    student: Student = Depends(require_student),
    store: Store = Depends(get_store),
    oracle: LessonOracle = Depends(get_oracle),
):
    view = next((v for v in module_views(student, store.get_all_modules()) if v.module.id == req.module_id), None)
    if view is None:
        raise HTTPException(status_code=404, detail="Module not found")
    if view.locked and not (view.assigned or view.suggested):
        raise HTTPException(status_code=403, detail="Module is locked")
    session = LessonSession(student.id, view.module, oracle)
    await session.load(store)
    if session.phase != LessonPhase.ERROR:
        _sessions[session.id] = session
    return _view(session)


@router.get("/{session_id}", response_model=LessonView)
async def get_lesson(session_id: str, student: Student = Depends(require_student)):
    return _view(session_for_student(session_id, student))


@router.post("/{session_id}/begin", response_model=LessonView)
async def begin(session_id: str, student: Student = Depends(require_student), store: Store = Depends(get_store)):
    session = session_for_student(session_id, student)
    try:
        session.begin(store)
    except LessonStateError as exc:
        raise _conflict(exc)
    return _view(session)


@router.post("/{session_id}/answer", response_model=LessonView)
async def answer(session_id: str, req: AnswerRequest, student: Student = Depends(require_student)):
    session = session_for_student(session_id, student)
    try:
        session.submit_answer(req.answer)
    except LessonStateError as exc:
        raise _conflict(exc)
    return _view(session)


@router.post("/{session_id}/next", response_model=LessonView)
async def next_item(session_id: str, student: Student = Depends(require_student), store: Store = Depends(get_store)):
    session = session_for_student(session_id, student)
    try:
        session.advance(store)
    except LessonStateError as exc:
        raise _conflict(exc)
    return _view(session)


@router.post("/{session_id}/concept", response_model=LessonView)
async def concept(session_id: str, req: ConceptRequest, student: Student = Depends(require_student)):
    session = session_for_student(session_id, student)
    try:
        await session.submit_concept(req.answer)
    except LessonStateError as exc:
        raise _conflict(exc)
    return _view(session)


@router.post("/{session_id}/concept/continue", response_model=LessonView)
async def concept_continue(session_id: str, student: Student = Depends(require_student), store: Store = Depends(get_store)):
    session = session_for_student(session_id, student)
    try:
        session.continue_to_test(store)
    except LessonStateError as exc:
        raise _conflict(exc)
    return _view(session)


@router.post("/{session_id}/rating", response_model=LessonView)
async def rating(session_id: str, req: RatingRequest, student: Student = Depends(require_student)):
    session = session_for_student(session_id, student)
    try:
        session.select_confidence(req.confidence)
        await session.confirm_rating()
    except LessonStateError as exc:
        raise _conflict(exc)
    return _view(session)


@router.post("/{session_id}/finish", response_model=FinishResponse)
async def finish(session_id: str, student: Student = Depends(require_student), store: Store = Depends(get_store)):
    session = session_for_student(session_id, student)
    try:
        updated = session.finish(store)
    except LessonStateError as exc:
        raise _conflict(exc)
    _sessions.pop(session_id, None)
    return FinishResponse(final_percentage=session.final_percentage, student=updated)


@router.post("/{session_id}/exit", response_model=LessonView)
async def exit_lesson(session_id: str, student: Student = Depends(require_student), store: Store = Depends(get_store)):
    session = session_for_student(session_id, student)
    session.exit(store)
    _sessions.pop(session_id, None)
    return _view(session)
