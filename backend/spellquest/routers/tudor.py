from __future__ import annotations
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from ..oracle import LessonOracle, get_oracle
from ..schemas import Student, TudorContext
from ..store import Store, get_store
from .auth import require_student
from .lessons import session_for_student


router = APIRouter(prefix="/tudor", tags=["tudor"])


class AskRequest(BaseModel):
    query: str
    # Either a live lesson session, or a module id for general help
    session_id: Optional[str] = None
    module_id: Optional[str] = None


class AskResponse(BaseModel):
    reply: str


def _lesson_words(session) -> List[str]:
    content = session.content
    if content is None:
        return []
    words = [e.word for e in content.intro.examples]
    words += [i.correct_answer for i in content.practice + content.quiz]
    return list(dict.fromkeys(w for w in words if w))


@router.post("/ask", response_model=AskResponse)
async def ask(
    req: AskRequest,
    student: Student = Depends(require_student),
    store: Store = Depends(get_store),
    oracle: LessonOracle = Depends(get_oracle),
):
    query = (req.query or "").strip()
    if not query:
        raise HTTPException(status_code=400, detail="query is required")
    if req.session_id:
        session = session_for_student(req.session_id, student)
        item = session.current_item()
        question = item.prompt if item else None
        if question is None and session.content is not None:
            question = f"Introduction phase: {session.content.intro.title}"
        context = TudorContext(
            module_title=session.module.title,
            rule=session.module.rule_explanation,
            current_question=question,
            correct_answer=item.correct_answer if item else None,
            example_words=_lesson_words(session),
        )
    elif req.module_id:
        module = store.get_module(req.module_id)
        if module is None:
            raise HTTPException(status_code=404, detail="Module not found")
        context = TudorContext(module_title=module.title, rule=module.rule_explanation)
    else:
        context = TudorContext(module_title="General help")
    return AskResponse(reply=await oracle.ask_tudor(query, context))
