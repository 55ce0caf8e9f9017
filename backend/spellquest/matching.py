"""Answer checking and near-miss detection for typed and chosen answers."""

from __future__ import annotations

import re

from .schemas import LessonPhase


_WHITESPACE_RE = re.compile(r"\s+")
_TRAILING_PUNCT_RE = re.compile(r"[.,!?;:]$")


def normalize_answer(text: str) -> str:
    """Lower-case, trim, collapse internal whitespace and drop one trailing punctuation mark."""
    cleaned = _WHITESPACE_RE.sub(" ", (text or "").lower().strip())
    return _TRAILING_PUNCT_RE.sub("", cleaned)


def check_answer(user_input: str, correct_answer: str) -> bool:
    user_input = user_input or ""
    correct_answer = correct_answer or ""
    if user_input.lower().strip() == correct_answer.lower().strip():
        return True
    return normalize_answer(user_input) == normalize_answer(correct_answer)


def edit_distance(a: str, b: str) -> int:
    """Levenshtein distance with unit costs for insert, delete and substitute."""
    if not a:
        return len(b)
    if not b:
        return len(a)
    rows = len(b) + 1
    cols = len(a) + 1
    table = [[0] * cols for _ in range(rows)]
    for i in range(rows):
        table[i][0] = i
    for j in range(cols):
        table[0][j] = j
    for i in range(1, rows):
        for j in range(1, cols):
            if b[i - 1] == a[j - 1]:
                table[i][j] = table[i - 1][j - 1]
            else:
                table[i][j] = min(
                    table[i - 1][j - 1] + 1,
                    table[i][j - 1] + 1,
                    table[i - 1][j] + 1,
                )
    return table[rows - 1][cols - 1]


def is_near_miss(user_input: str, correct_answer: str) -> bool:
    """Whether a wrong answer is close enough to the target to be encouraged.

    Only picks the tone of a hint; correctness is always decided by ``check_answer``.
    """
    target = normalize_answer(correct_answer)
    distance = edit_distance(normalize_answer(user_input), target)
    threshold = 1 if len(target) <= 4 else 2
    return 0 < distance <= threshold


def hint_title(user_input: str, correct_answer: str, phase: LessonPhase) -> str:
    close = is_near_miss(user_input, correct_answer)
    if phase == LessonPhase.TEST:
        return "So close!" if close else "Try again"
    return "Almost Correct!" if close else "Not quite right"


def feedback_title(correct: bool, phase: LessonPhase) -> str:
    """Title shown for terminal feedback (a correct answer, or a second miss)."""
    if phase == LessonPhase.TEST:
        return "Correct!" if correct else "Incorrect"
    return "Spot on!" if correct else "Let's learn from this."
