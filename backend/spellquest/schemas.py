"""Pydantic records for everything the service stores or exchanges with the oracle."""

from __future__ import annotations

from enum import Enum
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field


EPOCH_ISO = "1970-01-01T00:00:00+00:00"


class UserRole(str, Enum):
    STUDENT = "STUDENT"
    TEACHER = "TEACHER"


class ModuleTheme(str, Enum):
    FOREST = "forest"
    OCEAN = "ocean"
    VOLCANO = "volcano"
    DESERT = "desert"
    SPACE = "space"


class ActivityType(str, Enum):
    BUILD_WORD = "BUILD_WORD"
    MATCHING = "MATCHING"
    SORTING = "SORTING"
    FIX_SENTENCE = "FIX_SENTENCE"


# Item types that are presented as a list of options to choose from
CHOICE_TYPES = (ActivityType.MATCHING, ActivityType.SORTING)


class LessonPhase(str, Enum):
    LOADING = "LOADING"
    INTRO = "INTRO"
    PRACTICE = "PRACTICE"
    CONCEPT = "CONCEPT"
    TEST = "TEST"
    RATING = "RATING"
    SUMMARY = "SUMMARY"
    ERROR = "ERROR"


class Feedback(str, Enum):
    CORRECT = "correct"
    INCORRECT = "incorrect"
    HINT = "hint"


class Achievement(BaseModel):
    id: str
    title: str
    icon: str
    description: str
    unlocked_at: Optional[int] = None  # epoch milliseconds


class ShopItem(BaseModel):
    id: str
    name: str
    type: Literal["HAT", "GLASSES", "BACKGROUND", "ACCESSORY"]
    icon: str
    cost: int = Field(ge=0)


class Teacher(BaseModel):
    id: str
    name: str
    email: str
    password_hash: str
    avatar: Optional[str] = None


class TeacherProfile(BaseModel):
    """Teacher as exposed over HTTP (no credentials)."""
    id: str
    name: str
    email: str
    avatar: Optional[str] = None


class Equipped(BaseModel):
    hat: Optional[str] = None
    glasses: Optional[str] = None
    background: Optional[str] = None
    accessory: Optional[str] = None


class TeacherAssessment(BaseModel):
    reading_level: int = Field(ge=0, le=13)
    focus_areas: List[str] = Field(default_factory=list)


class DifficultWord(BaseModel):
    word: str
    meaning: str = ""


class MisreadWord(BaseModel):
    word: str
    heard: str = ""


class ReadingSession(BaseModel):
    id: str
    date: str
    transcript: str
    target_text: Optional[str] = None
    difficult_words: List[DifficultWord] = Field(default_factory=list)
    misread_words: List[MisreadWord] = Field(default_factory=list)
    feedback: str
    assessed_level: str


class MistakeRecord(BaseModel):
    question: str
    attempt: str
    correct: str


class ActivityItem(BaseModel):
    id: str
    type: ActivityType = ActivityType.BUILD_WORD
    prompt: str
    correct_answer: str
    options: Optional[List[str]] = None
    distractors: Optional[List[str]] = None
    explanation: str = ""
    hint: str = ""


class LessonExample(BaseModel):
    word: str
    sentence: str = ""


class LessonIntro(BaseModel):
    title: str
    explanation: str
    examples: List[LessonExample] = Field(default_factory=list)


class ConceptCheck(BaseModel):
    question: str
    grading_guidance: str = ""


class LessonContent(BaseModel):
    intro: LessonIntro
    practice: List[ActivityItem] = Field(min_length=1)
    concept_check: ConceptCheck
    quiz: List[ActivityItem] = Field(min_length=1)
    conclusion: str = ""


class LessonPhaseState(BaseModel):
    phase: LessonPhase
    sub_index: int = 0
    test_score: int = 0
    content: LessonContent
    mistakes: List[MistakeRecord] = Field(default_factory=list)
    user_answer: str = ""
    feedback: Optional[Feedback] = None
    feedback_title: str = ""
    attempts_for_current: int = 0
    concept_attempts: int = 0
    concept_score: Optional[int] = None
    concept_feedback: Optional[str] = None


class ModuleProgress(BaseModel):
    completed: bool = False
    score: int = Field(default=0, ge=0, le=100)
    attempts: int = 0
    confidence: Optional[int] = Field(default=None, ge=1, le=5)
    performance_analysis: Optional[str] = None
    resume_state: Optional[LessonPhaseState] = None


class LearningModule(BaseModel):
    id: str
    title: str
    level: str
    theme: ModuleTheme
    description: str
    rule_explanation: str
    is_custom: bool = False
    custom_words: Optional[List[str]] = None
    created_by: Optional[str] = None


class ClassGroup(BaseModel):
    id: str
    teacher_id: str
    name: str
    student_ids: List[str] = Field(default_factory=list)
    avatar: Optional[str] = None


class Student(BaseModel):
    id: str
    login_code: str
    name: str
    avatar: str = "\U0001F423"
    year_level: Optional[int] = None
    xp: int = 0
    level: int = 1
    stars: int = 0
    current_streak: int = 0
    last_active_date: str = EPOCH_ISO
    progress: Dict[str, ModuleProgress] = Field(default_factory=dict)
    achievements: List[Achievement] = Field(default_factory=list)
    assigned_module_ids: List[str] = Field(default_factory=list)
    suggested_module_ids: List[str] = Field(default_factory=list)
    custom_rewards: List[str] = Field(default_factory=list)
    placement_test_status: Literal["NOT_STARTED", "COMPLETED", "SKIPPED"] = "NOT_STARTED"
    placement_level: Optional[int] = None
    placement_analysis: Optional[str] = None
    teacher_assessment: Optional[TeacherAssessment] = None
    reading_log: List[ReadingSession] = Field(default_factory=list)
    inventory: List[str] = Field(default_factory=list)
    equipped: Equipped = Field(default_factory=Equipped)

    def completed_module_count(self) -> int:
        return sum(1 for p in self.progress.values() if p.completed)


# ---- Oracle results ----

class ConceptGrade(BaseModel):
    score: int = Field(ge=1, le=5)
    feedback: str


class PlacementQuestion(BaseModel):
    question: str
    correct_answer: str
    distractors: List[str] = Field(default_factory=list)
    level: int = Field(default=1, ge=1, le=5)


class PlacementResult(BaseModel):
    question: PlacementQuestion
    is_correct: bool


class PlacementOutcome(BaseModel):
    level: int = Field(ge=1, le=5)
    analysis: str


class ReadingPassage(BaseModel):
    title: str
    content: str


class ReadingAnalysis(BaseModel):
    difficult_words: List[DifficultWord] = Field(default_factory=list)
    misread_words: List[MisreadWord] = Field(default_factory=list)
    feedback: str
    assessed_level: str


class TudorContext(BaseModel):
    module_title: str
    rule: str = ""
    current_question: Optional[str] = None
    correct_answer: Optional[str] = None
    example_words: List[str] = Field(default_factory=list)
