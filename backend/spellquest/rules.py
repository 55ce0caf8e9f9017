"""Derived student state: suggestions, achievements, level and day streak.

Everything here is pure. ``Store.update_student`` is the only caller that
persists the result.
"""

from __future__ import annotations

import re
import time
from datetime import date, datetime, timedelta
from typing import Iterable, List, Optional

from .schemas import Achievement, LearningModule, Student


XP_PER_LEVEL = 500

COMPLETION_XP = 100
COMPLETION_STARS = 20
PERFECT_BONUS_XP = 50
PERFECT_BONUS_STARS = 10
CONCEPT_XP_PER_POINT = 10

READING_XP = 20
READING_STARS = 1

_YEAR_RANGE_RE = re.compile(r"Year (\d+)(-(\d+))?")

# (threshold, id, title, icon, description)
_MODULE_ACHIEVEMENTS = [
    (1, "first_step", "First Step", "\U0001F463", "Completed your first adventure!"),
    (3, "master_explorer", "Master Explorer", "\U0001F5FA️", "Completed 3 adventures!"),
    (5, "pro_speller", "Pro Speller", "\U0001F4DA", "Completed 5 adventures!"),
    (10, "champion", "Champion", "\U0001F3C6", "Completed 10 adventures!"),
]
_XP_ACHIEVEMENTS = [
    (500, "novice", "Rising Star", "\U0001F31F", "Earned 500 XP!"),
    (1000, "legend", "Spelling Legend", "\U0001F451", "Earned 1000 XP!"),
    (2000, "grandmaster", "Grandmaster", "\U0001F9D9", "Earned 2000 XP!"),
]
_STREAK_ACHIEVEMENTS = [
    (3, "on_fire", "On Fire", "\U0001F525", "3 Day Streak!"),
    (7, "unstoppable", "Unstoppable", "\U0001F680", "7 Day Streak!"),
]


def calculate_level(xp: int) -> int:
    return max(xp, 0) // XP_PER_LEVEL + 1


def is_level_match(module_level: str, year: int) -> bool:
    """Whether a band such as "Level 2 (Year 3-4)" covers ``year``, allowing one year of revision."""
    match = _YEAR_RANGE_RE.search(module_level or "")
    if not match:
        return False
    start = int(match.group(1))
    end = int(match.group(3)) if match.group(3) else start
    return start <= year <= end + 1


def suggest_modules(student: Student, modules: Iterable[LearningModule]) -> List[str]:
    assessment = student.teacher_assessment
    if assessment is None:
        return list(student.suggested_module_ids)
    terms = [f.lower() for f in assessment.focus_areas if f]
    suggestions: List[str] = []
    for module in modules:
        score = 0
        if is_level_match(module.level, assessment.reading_level):
            score += 5
        title = module.title.lower()
        description = module.description.lower()
        for term in terms:
            if term in title or term in description:
                score += 10
        if score >= 5:
            suggestions.append(module.id)
    return suggestions


def unlock_achievements(student: Student, existing: Iterable[Achievement] = (), now_ms: Optional[int] = None) -> List[Achievement]:
    """Return the student's achievements plus any newly earned ones; never removes any."""
    now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
    unlocked: List[Achievement] = []
    seen = set()
    for ach in list(existing) + list(student.achievements):
        if ach.id not in seen:
            seen.add(ach.id)
            unlocked.append(ach)

    def _add(rows, value):
        for threshold, ach_id, title, icon, description in rows:
            if value >= threshold and ach_id not in seen:
                seen.add(ach_id)
                unlocked.append(Achievement(id=ach_id, title=title, icon=icon, description=description, unlocked_at=now_ms))

    _add(_MODULE_ACHIEVEMENTS, student.completed_module_count())
    _add(_XP_ACHIEVEMENTS, student.xp)
    _add(_STREAK_ACHIEVEMENTS, student.current_streak)
    return unlocked


def _local_date(value: datetime, reference: datetime) -> date:
    if value.tzinfo is not None and reference.tzinfo is not None:
        value = value.astimezone(reference.tzinfo)
    elif value.tzinfo is not None:
        value = value.astimezone().replace(tzinfo=None)
    return value.date()


def _parse_instant(raw: str) -> Optional[datetime]:
    if not raw:
        return None
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return None


def apply_streak(student: Student, now: datetime) -> Student:
    last = _parse_instant(student.last_active_date)
    today = now.date()
    last_day = _local_date(last, now) if last is not None else None
    if last_day == today:
        return student
    if last_day == today - timedelta(days=1):
        streak = student.current_streak + 1
        xp = student.xp
        stars = student.stars
        if streak % 7 == 0:
            xp += 50
            stars += 5
        if streak % 30 == 0:
            xp += 200
            stars += 20
        return student.model_copy(update={"current_streak": streak, "xp": xp, "stars": stars})
    return student.model_copy(update={"current_streak": 1})


def derive_student_state(
    update: Student,
    modules: Iterable[LearningModule],
    previous: Optional[Student] = None,
    now: Optional[datetime] = None,
) -> Student:
    """Apply the derived-field rules to an updated student record.

    Order matters: suggestions, achievements (against the streak as it was),
    level, day streak, then the activity stamp.
    """
    now = now or datetime.now().astimezone()
    student = update.model_copy(deep=True)

    student.suggested_module_ids = suggest_modules(student, modules)
    student.achievements = unlock_achievements(
        student,
        existing=previous.achievements if previous is not None else (),
        now_ms=int(now.timestamp() * 1000),
    )
    student.level = calculate_level(student.xp)
    student = apply_streak(student, now)
    # streak bonuses can push XP over a level boundary
    student.level = calculate_level(student.xp)
    student.last_active_date = now.isoformat()
    return student


def completion_reward(final_percentage: int, concept_score: Optional[int] = None) -> tuple[int, int]:
    """XP and stars earned for finishing a lesson."""
    xp = COMPLETION_XP
    stars = COMPLETION_STARS
    if final_percentage == 100:
        xp += PERFECT_BONUS_XP
        stars += PERFECT_BONUS_STARS
    if concept_score:
        xp += CONCEPT_XP_PER_POINT * concept_score
    return xp, stars


def final_percentage(test_score: int, quiz_length: int) -> int:
    """Quiz score as a whole percentage, rounding halves up."""
    if quiz_length <= 0:
        return 0
    return (test_score * 200 + quiz_length) // (quiz_length * 2)
