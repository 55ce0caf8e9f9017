"""AI content oracle: lesson generation, grading and analyses backed by Gemini.

Every public method is async and always returns a usable value. Malformed
model output raises ``OracleError`` internally; transport failures and
``OracleError`` are logged and replaced by a canned fallback.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError

from .gemini_client import GeminiClient
from .schemas import (
    CHOICE_TYPES,
    ActivityItem,
    ActivityType,
    ConceptCheck,
    ConceptGrade,
    DifficultWord,
    LearningModule,
    LessonContent,
    LessonExample,
    LessonIntro,
    MisreadWord,
    MistakeRecord,
    PlacementOutcome,
    PlacementQuestion,
    PlacementResult,
    ReadingAnalysis,
    ReadingPassage,
    TudorContext,
)
from .settings import settings


logger = logging.getLogger(__name__)


class OracleError(Exception):
    """Raised when the model's output cannot be turned into a valid result."""


# ---- Year level calibration snippets for reading passages ----

LEVEL_REFERENCES: Dict[int, Dict[str, str]] = {
    1: {"focus": "Simple sentences, concrete ideas, familiar actions",
        "text": "The dog ran across the grass. It saw a red ball and barked happily. The ball rolled into a puddle, "
                "and the dog splashed after it. The dog was wet, but it wagged its tail."},
    2: {"focus": "Simple sequencing, basic emotion",
        "text": "Mia walked to the park with her brother. The swing moved high and low, and the wind brushed her face. "
                "She laughed when her shoes almost touched the sky. It was her favourite part of the day."},
    3: {"focus": "Description, cause and effect",
        "text": "The old tree stood at the edge of the playground. Its branches stretched wide, giving shade on hot days. "
                "When the bell rang, children gathered underneath it. It felt like a quiet place in a noisy school."},
    4: {"focus": "Figurative language (basic), expanded sentences",
        "text": "Rain tapped gently on the window as Leo finished his homework. The sound reminded him of fingers drumming "
                "on a table. Outside, puddles grew bigger and shinier. Leo hoped the rain would stop before morning."},
    5: {"focus": "Stronger description, inner thought",
        "text": "The hallway felt longer than usual as Ava walked toward the office. Her heart thumped like a drum in her chest. "
                "She didn't know what she had done wrong, but she felt nervous. When the door opened, she took a deep breath."},
    6: {"focus": "Mood, tension, varied sentence length",
        "text": "The forest grew quiet as the sun dipped behind the hills. Birds vanished into the trees, and the air turned cool. "
                "Sam slowed his steps. For the first time, he wondered if coming alone had been a mistake."},
    7: {"focus": "Metaphor, inference, stronger vocabulary",
        "text": "The classroom buzzed with energy before the debate began. Ideas bounced from desk to desk like sparks. "
                "Ella clenched her notes, knowing her turn was coming. This was no longer just an assignment; "
                "it was a test of confidence."},
    8: {"focus": "Character motivation, symbolism",
        "text": "The cracked trophy sat at the back of the shelf, forgotten. Once, it had meant everything to Marcus. "
                "Now, it reminded him of how much he had changed. He reached past it and closed the cupboard door."},
    9: {"focus": "Abstract ideas, controlled imagery",
        "text": "The town looked smaller from the hill, as if its problems could be folded away. Lila knew that wasn't true. "
                "Distance made things seem simple, but living inside them was harder. She turned back toward the road."},
    10: {"focus": "Theme, implication, layered meaning",
         "text": "The announcement echoed through the hall, but no one spoke. Some students stared at the floor; others smiled "
                 "too quickly. Change had arrived, whether they wanted it or not. The silence said more than words ever could."},
    11: {"focus": "Symbolism, authorial intent, interpretation",
         "text": "The river no longer flooded the village, yet people still feared it. Old stories clung to its banks like mist. "
                 "Even progress could not erase memory. The water flowed on, indifferent to human belief."},
    12: {"focus": "Ambiguity, complex metaphor, tone",
         "text": "The abandoned house leaned into the wind, its windows dark and watchful. Time had stripped it of warmth but "
                 "not of presence. Those who passed felt its weight without understanding why. Some places remember more "
                 "than people do."},
    13: {"focus": "Dense language, abstraction, layered symbolism",
         "text": "The silence in the courtroom was not empty; it was burdened. Every pause carried the residue of unspoken truths. "
                 "Justice, Elian realised, was less a verdict than a negotiation with memory. And memory, unlike law, "
                 "never truly rested."},
}


def reference_for_level(level: int) -> Dict[str, str]:
    effective = max(1, min(13, int(level)))
    return LEVEL_REFERENCES.get(effective, LEVEL_REFERENCES[4])


# ---- Response schemas (Gemini OpenAPI subset) ----

_ITEM_SCHEMA: Dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "id": {"type": "STRING"},
        "type": {"type": "STRING", "enum": [t.value for t in ActivityType]},
        "prompt": {"type": "STRING"},
        "correct_answer": {"type": "STRING"},
        "options": {"type": "ARRAY", "items": {"type": "STRING"}},
        "distractors": {"type": "ARRAY", "items": {"type": "STRING"}},
        "explanation": {"type": "STRING"},
        "hint": {"type": "STRING"},
    },
    "required": ["id", "type", "prompt", "correct_answer", "explanation", "hint"],
}

LESSON_SCHEMA: Dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "intro": {
            "type": "OBJECT",
            "properties": {
                "title": {"type": "STRING"},
                "explanation": {"type": "STRING"},
                "examples": {
                    "type": "ARRAY",
                    "items": {
                        "type": "OBJECT",
                        "properties": {"word": {"type": "STRING"}, "sentence": {"type": "STRING"}},
                    },
                },
            },
            "required": ["title", "explanation", "examples"],
        },
        "practice": {"type": "ARRAY", "items": _ITEM_SCHEMA},
        "concept_check": {
            "type": "OBJECT",
            "properties": {"question": {"type": "STRING"}, "grading_guidance": {"type": "STRING"}},
            "required": ["question", "grading_guidance"],
        },
        "quiz": {"type": "ARRAY", "items": _ITEM_SCHEMA},
        "conclusion": {"type": "STRING"},
    },
    "required": ["intro", "practice", "concept_check", "quiz", "conclusion"],
}

GRADE_SCHEMA: Dict[str, Any] = {
    "type": "OBJECT",
    "properties": {"score": {"type": "INTEGER"}, "feedback": {"type": "STRING"}},
    "required": ["score", "feedback"],
}

PLACEMENT_SCHEMA: Dict[str, Any] = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {
            "question": {"type": "STRING"},
            "correct_answer": {"type": "STRING"},
            "distractors": {"type": "ARRAY", "items": {"type": "STRING"}},
            "level": {"type": "INTEGER"},
        },
        "required": ["question", "correct_answer", "distractors", "level"],
    },
}

PLACEMENT_ANALYSIS_SCHEMA: Dict[str, Any] = {
    "type": "OBJECT",
    "properties": {"level": {"type": "INTEGER"}, "analysis": {"type": "STRING"}},
    "required": ["level", "analysis"],
}

PASSAGE_SCHEMA: Dict[str, Any] = {
    "type": "OBJECT",
    "properties": {"title": {"type": "STRING"}, "content": {"type": "STRING"}},
    "required": ["title", "content"],
}

READING_SCHEMA: Dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "difficult_words": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {"word": {"type": "STRING"}, "meaning": {"type": "STRING"}},
                "required": ["word", "meaning"],
            },
        },
        "misread_words": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {"word": {"type": "STRING"}, "heard": {"type": "STRING"}},
                "required": ["word", "heard"],
            },
        },
        "feedback": {"type": "STRING"},
        "assessed_level": {"type": "STRING"},
    },
    "required": ["difficult_words", "misread_words", "feedback", "assessed_level"],
}


# ---- Fallback values ----

PERFECT_ANALYSIS = "Perfect score! You're a legend!"
ANALYSIS_FALLBACK = "Keep practicing! You'll get it next time."
GRADE_FALLBACK = ConceptGrade(score=3, feedback="Good effort! I think you've got the idea.")
TUDOR_FALLBACK = "Sorry, I'm having trouble hearing you! Check your connection."
PLACEMENT_ANALYSIS_FALLBACK = PlacementOutcome(level=1, analysis="Good effort! Let's start from Level 1 and build up.")
PASSAGE_FALLBACK = ReadingPassage(
    title="The Forest",
    content="Tudor the Kiwi walked through the green forest. He was looking for bugs to eat.",
)
READING_FEEDBACK_FALLBACK = "Great effort reading today! I had a little trouble hearing the file."


def fallback_lesson() -> LessonContent:
    """Canned CVC lesson used whenever generation fails."""
    return LessonContent(
        intro=LessonIntro(
            title="Short Vowel Sounds",
            explanation="CVC words are short words that have a Consonant, then a Vowel, then a Consonant. "
                        "The vowel makes a short sound.",
            examples=[
                LessonExample(word="Cat", sentence="The cat sat on the mat."),
                LessonExample(word="Pig", sentence="The pig likes mud."),
            ],
        ),
        practice=[
            ActivityItem(
                id="p1",
                type=ActivityType.MATCHING,
                prompt='What does "CVC" stand for?',
                correct_answer="Consonant Vowel Consonant",
                options=["Consonant Vowel Consonant", "Cat Van Can", "Circle Very Cool"],
                distractors=["Cat Van Can", "Circle Very Cool", "Cool Very Cool"],
                explanation="CVC describes the pattern of letters.",
                hint="Think about the types of letters.",
            ),
            ActivityItem(
                id="p2",
                type=ActivityType.BUILD_WORD,
                prompt="Spell the word for a pet that barks.",
                correct_answer="dog",
                explanation='D-O-G. Short "o" sound.',
                hint="Starts with D.",
            ),
            ActivityItem(
                id="p3",
                type=ActivityType.SORTING,
                prompt='Which word has a short "a"?',
                correct_answer="hat",
                options=["hat", "late"],
                distractors=["late"],
                explanation="Hat is short. Late is long.",
                hint="Listen for the quick sound.",
            ),
        ],
        concept_check=ConceptCheck(
            question="What is a CVC word?",
            grading_guidance="Look for mentions of Consonant Vowel Consonant or short sounds.",
        ),
        quiz=[
            ActivityItem(
                id="q1",
                type=ActivityType.FIX_SENTENCE,
                prompt="The sunn is hot.",
                correct_answer="sun",
                explanation="Sun only needs one n.",
            ),
            ActivityItem(
                id="q2",
                type=ActivityType.BUILD_WORD,
                prompt="Spell the word for a square container.",
                correct_answer="box",
                explanation="B-O-X",
            ),
            ActivityItem(
                id="q3",
                type=ActivityType.MATCHING,
                prompt='Which letter is the vowel in "PIG"?',
                correct_answer="I",
                options=["P", "I", "G"],
                distractors=["P", "G", "U", "A"],
                explanation="I is the vowel.",
                hint="A, E, I, O, U",
            ),
        ],
        conclusion="You are a master of short sounds! Kia pai tō mahi!",
    )


def fallback_placement_questions() -> List[PlacementQuestion]:
    rows = [
        ("Cat", ["Kat", "Catt", "Caat"], 1),
        ("Happy", ["Hapy", "Happee", "Hapey"], 2),
        ("Because", ["Becoz", "Becuase", "Beceuse"], 3),
        ("Necessary", ["Neccessary", "Necesary", "Nesessary"], 4),
        ("Accommodation", ["Acommodation", "Accomodation", "Acomodation"], 5),
    ]
    return [
        PlacementQuestion(question="Select the correct spelling.", correct_answer=answer, distractors=wrong, level=level)
        for answer, wrong, level in rows
    ]


def fallback_reading_analysis(year_level: int) -> ReadingAnalysis:
    return ReadingAnalysis(
        difficult_words=[],
        misread_words=[],
        feedback=READING_FEEDBACK_FALLBACK,
        assessed_level=f"Level {year_level}",
    )


# ---- Parsing ----

def _extract_json(text: str) -> Any:
    """Parse JSON from model text: raw, inside a ```json block, or the first object/array."""
    try:
        return json.loads(text)
    except (TypeError, ValueError):
        pass
    code_block = re.search(r"```(?:json)?\s*([\s\S]*?)\s*```", text or "")
    if code_block:
        try:
            return json.loads(code_block.group(1))
        except ValueError:
            pass
    for opener, closer in (("{", "}"), ("[", "]")):
        start = (text or "").find(opener)
        end = (text or "").rfind(closer)
        if start != -1 and end > start:
            try:
                return json.loads(text[start:end + 1])
            except ValueError:
                continue
    raise OracleError("Model response was not JSON")


def _field(data: Dict[str, Any], snake: str, camel: str, default: Any = None) -> Any:
    # The model occasionally answers in camelCase despite the schema
    if snake in data:
        return data[snake]
    return data.get(camel, default)


def _parse_items(raw_items: Any, section: str) -> List[ActivityItem]:
    if not isinstance(raw_items, list) or not raw_items:
        raise OracleError(f"Lesson is missing its {section} items")
    items: List[ActivityItem] = []
    for idx, raw in enumerate(raw_items, start=1):
        if not isinstance(raw, dict):
            raise OracleError(f"{section} item {idx} is not an object")
        answer = _field(raw, "correct_answer", "correctAnswer")
        if not isinstance(answer, str) or not answer.strip():
            raise OracleError(f"{section} item {idx} has no correct answer")
        item_type = raw.get("type")
        try:
            item_type = ActivityType(item_type)
        except ValueError:
            item_type = ActivityType.BUILD_WORD
        distractors = raw.get("distractors")
        if not isinstance(distractors, list):
            distractors = None
        if item_type in CHOICE_TYPES and not distractors:
            item_type = ActivityType.BUILD_WORD
        options = raw.get("options")
        items.append(ActivityItem(
            id=str(raw.get("id") or f"{section[0]}{idx}"),
            type=item_type,
            prompt=raw.get("prompt") or "Solve this puzzle:",
            correct_answer=answer,
            options=[str(o) for o in options] if isinstance(options, list) else None,
            distractors=[str(d) for d in distractors] if distractors else None,
            explanation=raw.get("explanation") or "",
            hint=raw.get("hint") or "",
        ))
    return items


def parse_lesson_content(data: Any, module_title: str = "this lesson") -> LessonContent:
    """Validate and repair a generated lesson; raises ``OracleError`` when it cannot be used."""
    if not isinstance(data, dict):
        raise OracleError("Lesson response must be an object")
    intro = data.get("intro")
    if not isinstance(intro, dict) or not intro.get("title"):
        raise OracleError("Lesson is missing its intro")
    practice = _parse_items(data.get("practice"), "practice")
    quiz = _parse_items(data.get("quiz"), "quiz")
    concept = _field(data, "concept_check", "conceptCheck") or {}
    question = concept.get("question") if isinstance(concept, dict) else None
    if not question:
        concept = {"question": f"Explain the rule for {module_title} in your own words.", "grading_guidance": ""}
    try:
        return LessonContent(
            intro=LessonIntro(
                title=intro["title"],
                explanation=intro.get("explanation") or "",
                examples=[LessonExample.model_validate(e) for e in intro.get("examples") or [] if isinstance(e, dict)],
            ),
            practice=practice,
            concept_check=ConceptCheck(
                question=concept["question"],
                grading_guidance=_field(concept, "grading_guidance", "gradingGuidance", "") or "",
            ),
            quiz=quiz,
            conclusion=data.get("conclusion") or "",
        )
    except ValidationError as exc:
        raise OracleError(f"Lesson failed validation: {exc}") from exc


# ---- Prompts ----

LESSON_SYSTEM_INSTRUCTION = (
    "You are an expert literacy teacher. You ensure every multiple-choice question "
    "has exactly 1 correct answer and 3 incorrect distractors."
)


def build_lesson_prompt(module: LearningModule) -> str:
    if module.is_custom and module.custom_words:
        context = (
            "**CUSTOM WORD LIST MODE**\n"
            f"The teacher has provided this specific list of words: {', '.join(module.custom_words)}.\n"
            "Tasks:\n"
            "1. Analyze the list to find the common spelling pattern or rule.\n"
            "2. Explain this rule in the intro.\n"
            "3. Generate practice and quiz questions that PRIMARILY use these specific words. "
            "You can add 1-2 similar words if the list is short (<4 words), but focus on the provided list."
        )
    else:
        context = (
            "**STANDARD CURRICULUM MODE**\n"
            f"- Level: {module.level}\n"
            f"- Theme: {module.theme.value}\n"
            f"- Rule: {module.rule_explanation}"
        )
    return (
        "Create a comprehensive spelling and grammar lesson for New Zealand primary school students.\n\n"
        f"{context}\n\n"
        "Activity type guide:\n"
        "- BUILD_WORD: the student must type the word.\n"
        "- MATCHING / SORTING: the student selects the correct option from a list.\n"
        "- FIX_SENTENCE: the student rewrites a sentence correctly.\n\n"
        "Structure requirements:\n"
        "1. INTRO: title, rule explanation, and 2-3 examples.\n"
        "2. PRACTICE: 4 to 6 questions. At least 2 must ask about the rule itself. "
        "MATCHING or SORTING items MUST have 3 distinct, plausible wrong answers in 'distractors'.\n"
        "3. CONCEPT CHECK: one open-ended question asking 'What is...?' or 'How does...?'.\n"
        "4. QUIZ: 4 to 6 test questions, at least 1 about the rule, BUILD_WORD for the rest. "
        "No underscores or blanks in prompts.\n"
        "5. CONCLUSION: a short, encouraging wrap-up message.\n\n"
        "Tone: encouraging, fun, and typically New Zealand (Kiwi) English.\n"
        "Use snake_case keys exactly as in the response schema."
    )


def build_grade_prompt(question: str, answer: str, guidance: str) -> str:
    return (
        "You are a friendly, encouraging primary school teacher (Year 1-8).\n\n"
        f'Question: "{question}"\n'
        f'Grading Guidance: "{guidance}"\n'
        f'Student Answer: "{answer}"\n\n'
        "Task: Grade the student's understanding on a scale of 1 to 5.\n"
        "Rules:\n"
        "1. Accuracy over grammar: the correct meaning earns 4 or 5 even with imperfect spelling.\n"
        "2. Ignore length: short answers are valid.\n"
        "3. Synonyms are valid.\n"
        "4. Score 1 only for irrelevant, nonsensical, or completely wrong answers.\n\n"
        'Output JSON: {"score": number, "feedback": "A short, encouraging sentence explaining the score."}'
    )


def build_mistake_prompt(module_title: str, mistakes: List[MistakeRecord]) -> str:
    lines = "\n".join(
        f'Word/Question: "{m.question}". Their Answer: "{m.attempt}". Correct: "{m.correct}".' for m in mistakes
    )
    return (
        "You are Tudor, a friendly Kiwi bird teacher.\n"
        f'The student just finished a module called "{module_title}" but made some mistakes.\n\n'
        f"Mistakes:\n{lines}\n\n"
        "Task:\n"
        "- Analyze the mistakes. Is there a pattern (e.g. forgetting silent letters, mixing up vowels)?\n"
        "- Give ONE concise, helpful tip to fix this pattern.\n"
        "- Be encouraging and constructive.\n"
        "- Limit the response to 2 sentences."
    )


def build_tudor_prompt(query: str, context: TudorContext) -> str:
    examples = (
        f"- Known words in this lesson: {', '.join(context.example_words)}" if context.example_words else ""
    )
    target = (
        f'HIDDEN TARGET ANSWER: "{context.correct_answer}" (Do NOT say this word!)'
        if context.correct_answer
        else "No specific target answer for this phase."
    )
    return (
        "You are 'Tudor', a friendly, wise Kiwi bird assistant for a primary school spelling app.\n\n"
        "Context:\n"
        f'- Module: "{context.module_title}".\n'
        f'- Rule: "{context.rule}".\n'
        f'- Current Question Prompt: "{context.current_question or "General help"}".\n'
        f"- {target}\n"
        f"{examples}\n\n"
        f'Student asks: "{query}"\n\n'
        "Scaffolding rules:\n"
        "1. NEVER give the answer. Never spell out or say the hidden target answer.\n"
        "2. If they ask for the answer, refuse politely and help instead: give a rhyme, a different word "
        "following the same rule, or a definition. Give the first letter only if they are really stuck.\n\n"
        "Persona: encouraging, uses emojis and occasional NZ slang (Kia ora, Sweet as, Good on ya). "
        "Keep responses to 2-3 short sentences."
    )


def build_placement_prompt() -> str:
    return (
        "Generate a spelling placement test for a primary school student (Year 1-8).\n"
        "Create 10 multiple choice questions, ranging from very easy (Level 1) to difficult (Level 5).\n"
        'Each item: {"question": "Which word is spelled correctly?", "correct_answer": "Because", '
        '"distractors": ["Becoz", "Becuase", "Beceuse"], "level": 1}\n'
        "Ensure a good mix of phonics, irregular words, and morphological rules. Output a JSON array."
    )


def build_placement_analysis_prompt(results: List[PlacementResult]) -> str:
    correct = sum(1 for r in results if r.is_correct)
    mistakes = "\n".join(
        f'Level {r.question.level} Question: "{r.question.question}". Target: "{r.question.correct_answer}".'
        for r in results if not r.is_correct
    )
    return (
        "A student took a spelling placement test.\n"
        f"Score: {correct}/{len(results)}.\n\n"
        f"Mistakes made:\n{mistakes or 'None. Perfect score.'}\n\n"
        "Task:\n"
        "1. Determine the appropriate starting Level (1-5) based on where they started failing.\n"
        "2. Write a short, encouraging analysis for the student (max 2 sentences).\n"
        'Output JSON: {"level": number, "analysis": "string"}'
    )


def build_passage_prompt(level: int, theme: str) -> str:
    effective = max(1, min(13, int(level)))
    reference = reference_for_level(effective)
    theme_text = "Mystery or Adventure in New Zealand" if theme == "General" else theme
    return (
        "You are an expert educational writer for New Zealand schools.\n\n"
        f"TASK: Write a complete short story (approx 100-250 words) appropriate for a Year {effective} student.\n"
        f"THEME: {theme_text}\n\n"
        "STYLE & COMPLEXITY GUIDE: mimic the sentence structure, vocabulary difficulty, and tone of the "
        "reference snippet, but expand it into a full narrative.\n"
        f'Reference Snippet: "{reference["text"]}"\n'
        f"Focus Area: {reference['focus']}\n\n"
        "Instructions:\n"
        "1. The story must be significantly longer than the snippet (at least 100 words).\n"
        "2. Use New Zealand English spelling (e.g. colour, mum, realised).\n"
        "3. Match the reading level of the reference exactly.\n"
        'Output JSON: {"title": "Creative Title", "content": "Full story content..."}'
    )


def build_reading_prompt(year_level: int, target_text: Optional[str]) -> str:
    if target_text:
        target = f'- Target Text they are trying to read: "{target_text}"'
    else:
        target = "- Student is Free Reading (no target text provided, so judge based on vocabulary used)."
    return (
        "You are an expert New Zealand Literacy Specialist (Tudor).\n"
        "Please listen to the attached audio of a student reading.\n\n"
        "Context:\n"
        f"- Student Year Level: Year {year_level}\n"
        f"{target}\n\n"
        "Assessment tasks:\n"
        "1. Listen carefully to what was actually said.\n"
        "2. Compare it to the target text. Do NOT penalize minor accent variations (Kiwi accent) or "
        "self-corrections. Do NOT drop the reading level for 1 or 2 mistakes.\n"
        "3. Listen for expression, pausing at punctuation, and smooth phrasing.\n\n"
        "Output:\n"
        "- difficult_words: 2-3 words from the text that are complex for this level.\n"
        "- misread_words: only words they genuinely struggled with; empty if perfect.\n"
        "- feedback: 2 encouraging sentences focused on what they did well.\n"
        '- assessed_level: "[Fluency] Level N", e.g. "Fluent Level 5". If the target text was Level X and they '
        "made fewer than 3 mistakes, the assessed level MUST be Level X."
    )


# ---- Oracle ----

class LessonOracle:
    def __init__(self, client_factory: Callable[..., GeminiClient] = GeminiClient) -> None:
        self._client_factory = client_factory

    async def _generate(self, prompt: str, **kwargs: Any) -> str:
        client = self._client_factory()
        try:
            return await client.generate(prompt, **kwargs)
        finally:
            await client.aclose()

    async def generate_lesson(self, module: LearningModule) -> LessonContent:
        try:
            raw = await self._generate(
                build_lesson_prompt(module),
                system_instruction=LESSON_SYSTEM_INSTRUCTION,
                response_schema=LESSON_SCHEMA,
            )
            return parse_lesson_content(_extract_json(raw), module.title)
        except Exception as exc:
            logger.warning("Lesson generation failed for %s, using fallback lesson: %s", module.id, exc)
            return fallback_lesson()

    async def grade_answer(self, question: str, answer: str, guidance: str) -> ConceptGrade:
        try:
            raw = await self._generate(build_grade_prompt(question, answer, guidance), response_schema=GRADE_SCHEMA)
            data = _extract_json(raw)
            if not isinstance(data, dict):
                raise OracleError("Grade response must be an object")
            score = int(data.get("score"))
            feedback = str(data.get("feedback") or "").strip() or GRADE_FALLBACK.feedback
            return ConceptGrade(score=max(1, min(5, score)), feedback=feedback)
        except Exception as exc:
            logger.warning("Concept grading failed, passing with default grade: %s", exc)
            return GRADE_FALLBACK.model_copy()

    async def analyze_mistakes(self, module_title: str, mistakes: List[MistakeRecord]) -> str:
        if not mistakes:
            return PERFECT_ANALYSIS
        try:
            text = (await self._generate(build_mistake_prompt(module_title, mistakes))).strip()
            return text or "Good effort! Keep practicing those tricky words."
        except Exception as exc:
            logger.warning("Mistake analysis failed: %s", exc)
            return ANALYSIS_FALLBACK

    async def ask_tudor(self, query: str, context: TudorContext) -> str:
        try:
            text = (await self._generate(build_tudor_prompt(query, context))).strip()
            return text or "Oops, I dropped my notes! Try asking again."
        except Exception as exc:
            logger.warning("Tudor chat failed: %s", exc)
            return TUDOR_FALLBACK

    async def generate_placement_test(self) -> List[PlacementQuestion]:
        try:
            raw = await self._generate(build_placement_prompt(), response_schema=PLACEMENT_SCHEMA)
            data = _extract_json(raw)
            if isinstance(data, dict):
                data = data.get("questions")
            if not isinstance(data, list) or not data:
                raise OracleError("Placement test must be a non-empty array")
            questions = []
            for item in data:
                if not isinstance(item, dict):
                    raise OracleError("Placement question is not an object")
                if not item.get("distractors"):
                    raise OracleError("Placement question has no distractors")
                questions.append(PlacementQuestion(
                    question=item.get("question") or "Select the correct spelling.",
                    correct_answer=_field(item, "correct_answer", "correctAnswer"),
                    distractors=[str(d) for d in item.get("distractors") or []],
                    level=max(1, min(5, int(item.get("level") or 1))),
                ))
            return questions
        except Exception as exc:
            logger.warning("Placement test generation failed, using fallback questions: %s", exc)
            return fallback_placement_questions()

    async def analyze_placement(self, results: List[PlacementResult]) -> PlacementOutcome:
        try:
            raw = await self._generate(build_placement_analysis_prompt(results), response_schema=PLACEMENT_ANALYSIS_SCHEMA)
            data = _extract_json(raw)
            if not isinstance(data, dict):
                raise OracleError("Placement analysis must be an object")
            return PlacementOutcome(
                level=max(1, min(5, int(data.get("level")))),
                analysis=str(data.get("analysis") or "Let's start at the beginning!"),
            )
        except Exception as exc:
            logger.warning("Placement analysis failed: %s", exc)
            return PLACEMENT_ANALYSIS_FALLBACK.model_copy()

    async def generate_reading_passage(self, level: int, theme: str = "General") -> ReadingPassage:
        try:
            raw = await self._generate(build_passage_prompt(level, theme), response_schema=PASSAGE_SCHEMA)
            return ReadingPassage.model_validate(_extract_json(raw))
        except Exception as exc:
            logger.warning("Reading passage generation failed: %s", exc)
            return PASSAGE_FALLBACK.model_copy()

    async def analyze_reading(
        self,
        audio_b64: str,
        mime_type: str,
        year_level: int,
        target_text: Optional[str] = None,
    ) -> ReadingAnalysis:
        parts = [
            {"inline_data": {"mime_type": mime_type, "data": audio_b64}},
            {"text": build_reading_prompt(year_level, target_text)},
        ]
        try:
            client = self._client_factory(model=settings.gemini_model_audio or None)
            try:
                raw = await client.generate_multimodal(parts, response_schema=READING_SCHEMA)
            finally:
                await client.aclose()
            data = _extract_json(raw)
            if not isinstance(data, dict):
                raise OracleError("Reading analysis must be an object")
            return ReadingAnalysis(
                difficult_words=[DifficultWord.model_validate(w) for w in _field(data, "difficult_words", "difficultWords", []) or []],
                misread_words=[MisreadWord.model_validate(w) for w in _field(data, "misread_words", "misreadWords", []) or []],
                feedback=data.get("feedback") or "Good reading!",
                assessed_level=_field(data, "assessed_level", "assessedLevel") or f"Level {year_level}",
            )
        except Exception as exc:
            logger.warning("Reading analysis failed: %s", exc)
            return fallback_reading_analysis(year_level)


_oracle: Optional[LessonOracle] = None


def get_oracle() -> LessonOracle:
    global _oracle
    if _oracle is None:
        _oracle = LessonOracle()
    return _oracle
