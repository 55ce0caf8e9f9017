"""
Shared fixtures: in-memory database, store, a scripted oracle and an API client.
"""
from typing import List, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from spellquest.db import Base
from spellquest import models  # noqa: F401 (registers tables)
from spellquest.oracle import PERFECT_ANALYSIS, fallback_placement_questions
from spellquest.schemas import (
    ActivityItem,
    ActivityType,
    ConceptCheck,
    ConceptGrade,
    LessonContent,
    LessonExample,
    LessonIntro,
    PlacementOutcome,
    ReadingAnalysis,
    ReadingPassage,
    MisreadWord,
)
from spellquest.store import ChangeNotifier, Store


def make_lesson() -> LessonContent:
    return LessonContent(
        intro=LessonIntro(
            title="CVC Words",
            explanation="Consonant, vowel, consonant.",
            examples=[LessonExample(word="cat", sentence="The cat naps.")],
        ),
        practice=[
            ActivityItem(id="p1", type=ActivityType.BUILD_WORD, prompt="Spell the hot thing in the sky.", correct_answer="sun"),
            ActivityItem(
                id="p2",
                type=ActivityType.MATCHING,
                prompt="Pick the CVC word.",
                correct_answer="cat",
                options=["cat", "cake", "coat"],
                distractors=["cake", "coat"],
            ),
        ],
        concept_check=ConceptCheck(question="What is a CVC word?", grading_guidance="Consonant vowel consonant."),
        quiz=[
            ActivityItem(id="q1", type=ActivityType.BUILD_WORD, prompt="Spell the pet that meows.", correct_answer="cat"),
            ActivityItem(id="q2", type=ActivityType.BUILD_WORD, prompt="Spell the pet that barks.", correct_answer="dog"),
        ],
        conclusion="Ka pai!",
    )


class FakeOracle:
    """Scripted stand-in for LessonOracle. Set an attribute to an exception to make that call raise."""

    def __init__(self) -> None:
        self.lesson = make_lesson()
        self.grade = ConceptGrade(score=4, feedback="Spot on!")
        self.analysis = "Watch the vowel in the middle."
        self.placement = PlacementOutcome(level=3, analysis="Nice work, start at Level 3.")
        self.calls: List[str] = []
        self.last_tudor_context = None
        self.last_passage_level: Optional[int] = None

    async def generate_lesson(self, module):
        self.calls.append("generate_lesson")
        if isinstance(self.lesson, Exception):
            raise self.lesson
        return self.lesson

    async def grade_answer(self, question, answer, guidance):
        self.calls.append("grade_answer")
        if isinstance(self.grade, Exception):
            raise self.grade
        return self.grade

    async def analyze_mistakes(self, module_title, mistakes):
        self.calls.append("analyze_mistakes")
        if not mistakes:
            return PERFECT_ANALYSIS
        return self.analysis

    async def ask_tudor(self, query, context):
        self.calls.append("ask_tudor")
        self.last_tudor_context = context
        return "It rhymes with 'log'!"

    async def generate_placement_test(self):
        self.calls.append("generate_placement_test")
        return fallback_placement_questions()

    async def analyze_placement(self, results):
        self.calls.append("analyze_placement")
        return self.placement

    async def generate_reading_passage(self, level, theme="General"):
        self.calls.append("generate_reading_passage")
        self.last_passage_level = level
        return ReadingPassage(title="The Kiwi", content="The kiwi bird is awake at night.")

    async def analyze_reading(self, audio_b64, mime_type, year_level, target_text=None):
        self.calls.append("analyze_reading")
        return ReadingAnalysis(
            misread_words=[MisreadWord(word="awake", heard="a wake")],
            feedback="Great expression!",
            assessed_level=f"Fluent Level {year_level}",
        )


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def notifier():
    return ChangeNotifier()


@pytest.fixture
def store(db, notifier):
    return Store(db, notifier)


@pytest.fixture
def fake_oracle():
    return FakeOracle()


@pytest.fixture
def api_client(session_factory, fake_oracle):
    """TestClient over the real app with the in-memory database and the fake oracle."""
    from fastapi.testclient import TestClient
    from spellquest.db import get_db
    from spellquest.main import app
    from spellquest.oracle import get_oracle

    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    from spellquest.routers import lessons, placement

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_oracle] = lambda: fake_oracle
    # Not entered as a context manager: startup hooks would touch the file database
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()
    lessons._sessions.clear()
    placement._sessions.clear()
