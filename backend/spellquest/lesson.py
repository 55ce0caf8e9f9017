"""Lesson progression: intro, practice, concept check, quiz, confidence rating, summary.

A ``LessonSession`` is driven one action at a time by the lesson routes. It
persists a resumable snapshot on every phase start and item advance, and
restores it when the same module is opened again before completion.
"""

from __future__ import annotations

import logging
import uuid
from typing import Callable, Dict, List, Optional

from . import matching, rules
from .oracle import ANALYSIS_FALLBACK, GRADE_FALLBACK, LessonOracle
from .schemas import (
    ActivityItem,
    Feedback,
    LearningModule,
    LessonContent,
    LessonPhase,
    LessonPhaseState,
    MistakeRecord,
    ModuleProgress,
    Student,
)
from .store import Store


logger = logging.getLogger(__name__)

CONCEPT_PASS_SCORE = 3
CONCEPT_MAX_ATTEMPTS = 2

# Phases in which an exit snapshot is meaningful
_RESUMABLE = (
    LessonPhase.INTRO,
    LessonPhase.PRACTICE,
    LessonPhase.CONCEPT,
    LessonPhase.TEST,
    LessonPhase.RATING,
)


class LessonStateError(Exception):
    """Raised when an action is not valid in the session's current phase."""


class LessonSession:
    def __init__(self, student_id: str, module: LearningModule, oracle: LessonOracle, session_id: Optional[str] = None) -> None:
        self.id = session_id or uuid.uuid4().hex
        self.student_id = student_id
        self.module = module
        self.oracle = oracle

        self.phase = LessonPhase.LOADING
        self.content: Optional[LessonContent] = None
        self.sub_index = 0
        self.test_score = 0
        self.mistakes: List[MistakeRecord] = []
        self.user_answer = ""
        self.feedback: Optional[Feedback] = None
        self.feedback_title = ""
        self.attempts_for_current = 0

        self.concept_attempts = 0
        self.concept_score: Optional[int] = None
        self.concept_feedback: Optional[str] = None

        self.confidence: Optional[int] = None
        self.performance_analysis: Optional[str] = None
        self.final_percentage: Optional[int] = None
        self.resumed = False
        self.finished = False

        self._answer_handlers: Dict[LessonPhase, Callable[[str], LessonPhaseState]] = {
            LessonPhase.PRACTICE: self._answer_item,
            LessonPhase.TEST: self._answer_item,
        }
        self._advance_handlers: Dict[LessonPhase, Callable[[Store], LessonPhaseState]] = {
            LessonPhase.PRACTICE: self._advance_practice,
            LessonPhase.TEST: self._advance_quiz,
        }

    # ---- helpers ----

    def _require(self, *phases: LessonPhase) -> None:
        if self.phase not in phases:
            allowed = ", ".join(p.value for p in phases)
            raise LessonStateError(f"Not allowed in phase {self.phase.value} (expected {allowed})")

    def current_items(self) -> List[ActivityItem]:
        if self.content is None:
            return []
        if self.phase == LessonPhase.PRACTICE:
            return self.content.practice
        if self.phase == LessonPhase.TEST:
            return self.content.quiz
        return []

    def current_item(self) -> Optional[ActivityItem]:
        items = self.current_items()
        if 0 <= self.sub_index < len(items):
            return items[self.sub_index]
        return None

    @property
    def concept_passed(self) -> bool:
        return self.concept_score is not None and self.concept_score >= CONCEPT_PASS_SCORE

    @property
    def can_continue_to_test(self) -> bool:
        return self.concept_passed or self.concept_attempts >= CONCEPT_MAX_ATTEMPTS

    def _clear_item_state(self) -> None:
        self.user_answer = ""
        self.feedback = None
        self.feedback_title = ""
        self.attempts_for_current = 0

    def snapshot(self) -> LessonPhaseState:
        if self.content is None:
            raise LessonStateError("Lesson content is not loaded")
        return LessonPhaseState(
            phase=self.phase,
            sub_index=self.sub_index,
            test_score=self.test_score,
            content=self.content,
            mistakes=list(self.mistakes),
            user_answer=self.user_answer,
            feedback=self.feedback,
            feedback_title=self.feedback_title,
            attempts_for_current=self.attempts_for_current,
            concept_attempts=self.concept_attempts,
            concept_score=self.concept_score,
            concept_feedback=self.concept_feedback,
        )

    def _save(self, store: Store) -> None:
        if self.content is None or self.phase not in _RESUMABLE:
            return
        store.save_student_progress_state(self.student_id, self.module.id, self.snapshot())

    def _restore(self, state: LessonPhaseState) -> None:
        self.content = state.content
        self.phase = state.phase
        self.sub_index = state.sub_index
        self.test_score = state.test_score
        self.mistakes = list(state.mistakes)
        self.user_answer = state.user_answer
        self.feedback = state.feedback
        self.feedback_title = state.feedback_title
        self.attempts_for_current = state.attempts_for_current
        self.concept_attempts = state.concept_attempts
        self.concept_score = state.concept_score
        self.concept_feedback = state.concept_feedback
        self.resumed = True

    def _start_phase(self, phase: LessonPhase, store: Store) -> LessonPhaseState:
        self.phase = phase
        self.sub_index = 0
        self._clear_item_state()
        self._save(store)
        return self.snapshot()

    # ---- LOADING ----

    async def load(self, store: Store) -> Optional[LessonPhaseState]:
        self._require(LessonPhase.LOADING)
        student = store.get_student(self.student_id)
        progress = student.progress.get(self.module.id) if student is not None else None
        if progress is not None and progress.resume_state is not None and not progress.completed:
            self._restore(progress.resume_state)
            logger.info("Resumed %s for %s at %s/%s", self.module.id, self.student_id, self.phase.value, self.sub_index)
            return self.snapshot()
        try:
            content = await self.oracle.generate_lesson(self.module)
        except Exception:
            logger.exception("Lesson generation raised for %s", self.module.id)
            content = None
        if content is None:
            self.phase = LessonPhase.ERROR
            return None
        self.content = content
        self.phase = LessonPhase.INTRO
        return self.snapshot()

    # ---- INTRO ----

    def begin(self, store: Store) -> LessonPhaseState:
        self._require(LessonPhase.INTRO)
        return self._start_phase(LessonPhase.PRACTICE, store)

    # ---- PRACTICE / TEST ----

    def submit_answer(self, answer: str) -> LessonPhaseState:
        self._require(LessonPhase.PRACTICE, LessonPhase.TEST)
        return self._answer_handlers[self.phase](answer)

    def _answer_item(self, answer: str) -> LessonPhaseState:
        if self.feedback in (Feedback.CORRECT, Feedback.INCORRECT):
            raise LessonStateError("This item is already answered; move to the next one")
        item = self.current_item()
        if item is None:
            raise LessonStateError("No current item")
        self.user_answer = answer or ""
        in_test = self.phase == LessonPhase.TEST

        if matching.check_answer(self.user_answer, item.correct_answer):
            self.feedback = Feedback.CORRECT
            self.feedback_title = matching.feedback_title(True, self.phase)
            if in_test:
                self.test_score += 1
        elif self.attempts_for_current == 0:
            self.feedback = Feedback.HINT
            self.attempts_for_current = 1
            self.feedback_title = matching.hint_title(self.user_answer, item.correct_answer, self.phase)
        else:
            self.feedback = Feedback.INCORRECT
            self.attempts_for_current += 1
            self.feedback_title = matching.feedback_title(False, self.phase)
            if in_test:
                self.mistakes.append(MistakeRecord(question=item.prompt, attempt=self.user_answer, correct=item.correct_answer))
        return self.snapshot()

    def advance(self, store: Store) -> LessonPhaseState:
        self._require(LessonPhase.PRACTICE, LessonPhase.TEST)
        if self.feedback not in (Feedback.CORRECT, Feedback.INCORRECT):
            raise LessonStateError("Answer the current item before moving on")
        return self._advance_handlers[self.phase](store)

    def _advance_practice(self, store: Store) -> LessonPhaseState:
        if self.sub_index < len(self.content.practice) - 1:
            self.sub_index += 1
            self._clear_item_state()
            self._save(store)
            return self.snapshot()
        return self._start_phase(LessonPhase.CONCEPT, store)

    def _advance_quiz(self, store: Store) -> LessonPhaseState:
        if self.sub_index < len(self.content.quiz) - 1:
            self.sub_index += 1
            self._clear_item_state()
            self._save(store)
            return self.snapshot()
        return self._start_phase(LessonPhase.RATING, store)

    # ---- CONCEPT ----

    async def submit_concept(self, answer: str) -> LessonPhaseState:
        self._require(LessonPhase.CONCEPT)
        if self.can_continue_to_test:
            raise LessonStateError("Concept check is already finished")
        answer = (answer or "").strip()
        if not answer:
            raise LessonStateError("An answer is required")
        self.user_answer = answer
        check = self.content.concept_check
        try:
            grade = await self.oracle.grade_answer(check.question, answer, check.grading_guidance)
        except Exception:
            logger.exception("Concept grading raised for %s", self.module.id)
            grade = None
        if grade is None:
            grade = GRADE_FALLBACK
        self.concept_score = max(1, min(5, grade.score))
        self.concept_feedback = grade.feedback
        if self.concept_score < CONCEPT_PASS_SCORE:
            self.concept_attempts += 1
        return self.snapshot()

    def continue_to_test(self, store: Store) -> LessonPhaseState:
        self._require(LessonPhase.CONCEPT)
        if not self.can_continue_to_test:
            raise LessonStateError("Pass the concept check first")
        return self._start_phase(LessonPhase.TEST, store)

    # ---- RATING ----

    def select_confidence(self, rating: int) -> int:
        self._require(LessonPhase.RATING)
        if not 1 <= int(rating) <= 5:
            raise LessonStateError("Confidence rating must be between 1 and 5")
        self.confidence = int(rating)
        return self.confidence

    async def confirm_rating(self) -> Optional[str]:
        self._require(LessonPhase.RATING)
        if self.confidence is None:
            raise LessonStateError("Pick a confidence rating first")
        self.phase = LessonPhase.SUMMARY
        self.final_percentage = rules.final_percentage(self.test_score, len(self.content.quiz))
        if self.mistakes:
            try:
                self.performance_analysis = await self.oracle.analyze_mistakes(self.module.title, self.mistakes)
            except Exception:
                logger.exception("Mistake analysis raised for %s", self.module.id)
                self.performance_analysis = ANALYSIS_FALLBACK
        return self.performance_analysis

    # ---- SUMMARY ----

    def finish(self, store: Store) -> Student:
        self._require(LessonPhase.SUMMARY)
        if self.finished:
            raise LessonStateError("Lesson is already finished")
        student = store.get_student(self.student_id)
        if student is None:
            raise LessonStateError("Student no longer exists")
        final = rules.final_percentage(self.test_score, len(self.content.quiz))
        self.final_percentage = final
        old = student.progress.get(self.module.id) or ModuleProgress()
        student.progress[self.module.id] = ModuleProgress(
            completed=True,
            score=max(old.score, final),
            attempts=old.attempts + 1,
            confidence=self.confidence,
            performance_analysis=self.performance_analysis or None,
            resume_state=None,
        )
        xp, stars = rules.completion_reward(final, self.concept_score)
        student.xp += xp
        student.stars += stars
        updated = store.update_student(student)
        self.finished = True
        logger.info("Completed %s for %s with %s%% (+%s XP, +%s stars)", self.module.id, self.student_id, final, xp, stars)
        return updated

    # ---- any phase ----

    def exit(self, store: Store) -> Optional[LessonPhaseState]:
        if self.phase not in _RESUMABLE:
            return None
        self._save(store)
        return self.snapshot()
