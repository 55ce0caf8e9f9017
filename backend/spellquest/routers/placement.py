from __future__ import annotations
import uuid
from typing import Dict, List

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from ..oracle import LessonOracle, get_oracle
from ..schemas import PlacementOutcome, PlacementQuestion, PlacementResult, Student
from ..store import Store, get_store
from .auth import require_student


router = APIRouter(prefix="/placement", tags=["placement"])


class PlacementState:
    def __init__(self, session_id: str, student_id: str, questions: List[PlacementQuestion]) -> None:
        self.session_id = session_id
        self.student_id = student_id
        self.questions = questions
        self.results: List[PlacementResult] = []

    @property
    def done(self) -> bool:
        return len(self.results) >= len(self.questions)


_sessions: Dict[str, PlacementState] = {}


class QuestionView(BaseModel):
    index: int
    question: str
    options: List[str]
    level: int


class StartResponse(BaseModel):
    session_id: str
    questions: List[QuestionView]


class AnswerRequest(BaseModel):
    answer: str


class AnswerResponse(BaseModel):
    index: int
    is_correct: bool
    answered: int
    total: int
    done: bool


class PlacementResponse(BaseModel):
    outcome: PlacementOutcome
    student: Student


def _options(q: PlacementQuestion) -> List[str]:
    # Deterministic order so the correct answer is not always first
    return sorted({q.correct_answer, *q.distractors})


def _get_state(session_id: str, student: Student) -> PlacementState:
    state = _sessions.get(session_id)
    if state is None or state.student_id != student.id:
        raise HTTPException(status_code=404, detail="Placement session not found")
    return state


@router.post("/start", response_model=StartResponse)
async def start(student: Student = Depends(require_student), oracle: LessonOracle = Depends(get_oracle)):
    questions = await oracle.generate_placement_test()
    state = PlacementState(uuid.uuid4().hex, student.id, questions)
    _sessions[state.session_id] = state
    return StartResponse(
        session_id=state.session_id,
        questions=[
            QuestionView(index=i, question=q.question, options=_options(q), level=q.level)
            for i, q in enumerate(questions)
        ],
    )


@router.post("/{session_id}/answer", response_model=AnswerResponse)
async def answer(session_id: str, req: AnswerRequest, student: Student = Depends(require_student)):
    state = _get_state(session_id, student)
    if state.done:
        raise HTTPException(status_code=409, detail="All questions are already answered")
    index = len(state.results)
    question = state.questions[index]
    is_correct = req.answer == question.correct_answer
    state.results.append(PlacementResult(question=question, is_correct=is_correct))
    return AnswerResponse(index=index, is_correct=is_correct, answered=len(state.results), total=len(state.questions), done=state.done)


@router.post("/{session_id}/finish", response_model=PlacementResponse)
async def finish(
    session_id: str,
    student: Student = Depends(require_student),
    store: Store = Depends(get_store),
    oracle: LessonOracle = Depends(get_oracle),
):
    state = _get_state(session_id, student)
    if not state.done:
        raise HTTPException(status_code=409, detail="Answer every question first")
    outcome = await oracle.analyze_placement(state.results)
    student.placement_test_status = "COMPLETED"
    student.placement_level = outcome.level
    student.placement_analysis = outcome.analysis
    updated = store.update_student(student)
    _sessions.pop(session_id, None)
    return PlacementResponse(outcome=outcome, student=updated)


@router.post("/skip", response_model=Student)
async def skip(student: Student = Depends(require_student), store: Store = Depends(get_store)):
    student.placement_test_status = "SKIPPED"
    return store.update_student(student)
