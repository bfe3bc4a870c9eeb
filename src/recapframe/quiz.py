"""Quiz generation, grouping and grading."""

from __future__ import annotations

import logging
import math
import re
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, StrictStr, model_validator

from .errors import ConfigurationError, InputError, RecapError, ServiceError, ValidationError
from .llm import LanguageModelClient
from .models import QuestionState, QuizConfig, QuizQuestion
from .structured import StructuredParser, as_string, parse_json

logger = logging.getLogger("recapframe.quiz")

MIN_QUESTIONS = 5
MAX_QUESTIONS = 20
DIFFICULTIES = ("easy", "medium", "hard")
MIN_TRANSCRIPT_CHARS = 50
GROUP_SIZE = 5

MULTIPLE_CHOICE = "multiple-choice"
TRUE_FALSE = "true-false"
OPTION_LETTERS = ("A", "B", "C", "D")

_OPTION_PREFIX = re.compile(r"^[A-D]\.\s*")

QUIZ_SYSTEM_PROMPT = """You are a quiz generator that creates {difficulty} difficulty questions based on meeting transcripts.

Rules for generating questions:
1. For multiple-choice questions:
   - Always provide exactly 4 options
   - Use A, B, C, D as answer choices
   - Make sure the correct answer matches one of these letters
   - Don't include the letter in the option text
2. For true/false questions:
   - Use lowercase 'true' or 'false' as the correct answer
   - Don't include any options
3. Make questions clear and unambiguous
4. Ensure correct answers are properly marked
5. Provide clear explanations"""

CREATE_QUESTIONS_FUNCTION: Dict[str, Any] = {
    "name": "createQuestions",
    "description": "Create quiz questions based on the transcript",
    "parameters": {
        "type": "object",
        "properties": {
            "questions": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "id": {"type": "string"},
                        "type": {"type": "string", "enum": [MULTIPLE_CHOICE, TRUE_FALSE]},
                        "question": {"type": "string"},
                        "options": {"type": "array", "items": {"type": "string"}},
                        "correctAnswer": {"type": "string"},
                        "explanation": {"type": "string"},
                    },
                    "required": ["id", "type", "question", "correctAnswer", "explanation"],
                },
            }
        },
        "required": ["questions"],
    },
}


class QuizQuestionShape(BaseModel):
    id: StrictStr
    type: Literal["multiple-choice", "true-false"]
    question: StrictStr
    options: Optional[List[StrictStr]] = None
    correct_answer: StrictStr = Field(alias="correctAnswer")
    explanation: StrictStr

    @model_validator(mode="after")
    def _check_variant(self) -> "QuizQuestionShape":
        if self.type == MULTIPLE_CHOICE:
            if self.options is None or len(self.options) != 4:
                raise ValueError("multiple-choice questions need exactly 4 options")
            if self.correct_answer not in OPTION_LETTERS:
                raise ValueError("multiple-choice answer must be one of A-D")
        else:
            if self.options is not None:
                raise ValueError("true-false questions take no options")
            if self.correct_answer not in ("true", "false"):
                raise ValueError("true-false answer must be true or false")
        return self


QUESTION_PARSER = StructuredParser(
    QuizQuestionShape,
    {
        "question": as_string,
        "explanation": as_string,
    },
)


def validate_config(config: QuizConfig) -> None:
    if not isinstance(config.num_questions, int) or not (
        MIN_QUESTIONS <= config.num_questions <= MAX_QUESTIONS
    ):
        raise InputError(
            f"Number of questions must be between {MIN_QUESTIONS} and {MAX_QUESTIONS}",
            reason="invalid_config",
        )
    if config.difficulty not in DIFFICULTIES:
        raise InputError(
            f"Difficulty must be one of: {', '.join(DIFFICULTIES)}",
            reason="invalid_config",
        )


def check_transcript(transcript: Optional[str]) -> str:
    text = (transcript or "").strip()
    if not text:
        raise InputError(
            "Please select a meeting transcript to generate questions.",
            reason="empty",
        )
    if len(text) < MIN_TRANSCRIPT_CHARS:
        raise InputError(
            "The selected transcript is too short to generate meaningful questions. "
            "Please select a longer transcript.",
            reason="too_short",
        )
    return text


def normalize_answer(question_type: Any, answer: Any) -> Any:
    answer = as_string(answer)
    if not isinstance(answer, str):
        return answer
    answer = answer.strip()
    return answer.lower() if question_type == TRUE_FALSE else answer.upper()


def normalize_item(raw: Any, position: int) -> Any:
    """Reassign the id and repair casing and option prefixes of one item."""
    if not isinstance(raw, dict):
        return raw
    item = dict(raw)
    item["id"] = f"q-{position}"
    item["correctAnswer"] = normalize_answer(item.get("type"), item.get("correctAnswer"))
    options = item.get("options")
    if item.get("type") == MULTIPLE_CHOICE and isinstance(options, list):
        item["options"] = [_OPTION_PREFIX.sub("", str(opt)).strip() for opt in options]
    elif item.get("type") == TRUE_FALSE:
        item.pop("options", None)
    return item


def to_question(shape: QuizQuestionShape, question_id: str) -> QuizQuestion:
    return QuizQuestion(
        id=question_id,
        type=shape.type,
        question=shape.question,
        options=list(shape.options) if shape.options is not None else None,
        correct_answer=shape.correct_answer,
        explanation=shape.explanation,
    )


def extract_items(arguments: str) -> List[Any]:
    payload = parse_json(arguments)
    if isinstance(payload, dict):
        payload = payload.get("questions")
    if not isinstance(payload, list):
        raise ValidationError("Failed to parse generated questions", reason="json")
    return payload


def build_questions(raw_items: List[Any]) -> List[QuizQuestion]:
    normalized = [normalize_item(raw, index + 1) for index, raw in enumerate(raw_items)]
    survivors = QUESTION_PARSER.parse_many(normalized)
    if len(survivors) < len(normalized):
        logger.warning(
            "Dropped %s of %s generated questions",
            len(normalized) - len(survivors),
            len(normalized),
        )
    if not survivors:
        raise ValidationError("No valid questions were generated", reason="no_questions")
    return [to_question(shape, f"q-{index + 1}") for index, shape in enumerate(survivors)]


def group_questions(questions: List[QuizQuestion], size: int = GROUP_SIZE) -> List[List[QuizQuestion]]:
    return [questions[i : i + size] for i in range(0, len(questions), size)]


class QuizEngine:
    def __init__(
        self,
        client: LanguageModelClient,
        model: Optional[str] = None,
        temperature: float = 0.7,
    ) -> None:
        self.client = client
        self.model = model
        self.temperature = temperature

    def generate(self, transcript: Optional[str], config: Optional[QuizConfig] = None) -> List[QuizQuestion]:
        config = config or QuizConfig()
        text = check_transcript(transcript)
        validate_config(config)

        messages = [
            {"role": "system", "content": QUIZ_SYSTEM_PROMPT.format(difficulty=config.difficulty)},
            {
                "role": "user",
                "content": f"Generate {config.num_questions} {config.difficulty} "
                f"difficulty questions from this transcript:\n{text}",
            },
        ]
        logger.info(
            "Generating %s %s questions", config.num_questions, config.difficulty
        )
        arguments = self.client.call_function(
            messages,
            CREATE_QUESTIONS_FUNCTION,
            model=self.model,
            temperature=self.temperature,
        )
        if not arguments:
            raise ServiceError("Failed to generate questions")
        questions = build_questions(extract_items(arguments))
        logger.info("Generated %s valid questions", len(questions))
        return questions


class QuizAttempt:
    """Answer-once grading state for one generated batch."""

    def __init__(self, questions: List[QuizQuestion]) -> None:
        self.questions = list(questions)
        self._by_id = {q.id: q for q in self.questions}
        self._states: Dict[str, QuestionState] = {}

    @property
    def groups(self) -> List[List[QuizQuestion]]:
        return group_questions(self.questions)

    def state(self, question_id: str) -> Optional[QuestionState]:
        return self._states.get(question_id)

    def answer(self, question_id: str, answer: str) -> Optional[QuestionState]:
        question = self._by_id.get(question_id)
        if question is None:
            return None
        existing = self._states.get(question_id)
        if existing is not None and existing.is_answered:
            return existing
        selected = normalize_answer(question.type, answer)
        state = QuestionState(
            selected_answer=selected,
            is_answered=True,
            is_correct=selected == question.correct_answer,
        )
        self._states[question_id] = state
        return state

    @property
    def all_answered(self) -> bool:
        return all(
            self._states.get(q.id) is not None and self._states[q.id].is_answered
            for q in self.questions
        )

    @property
    def correct_count(self) -> int:
        return sum(1 for state in self._states.values() if state.is_correct)

    @property
    def score(self) -> int:
        if not self.questions:
            return 0
        return math.floor(self.correct_count * 100 / len(self.questions) + 0.5)

    def user_answers(self) -> Dict[str, str]:
        return {
            qid: state.selected_answer
            for qid, state in self._states.items()
            if state.selected_answer is not None
        }


class QuizSession:
    """Quiz flow for one transcript: configure, generate, answer, retry."""

    def __init__(
        self,
        engine: QuizEngine,
        transcript: Optional[str] = None,
        config: Optional[QuizConfig] = None,
    ) -> None:
        self.engine = engine
        self.transcript = transcript
        self.config = config or QuizConfig()
        self.attempt: Optional[QuizAttempt] = None
        self.error: Optional[RecapError] = None

    def select_transcript(self, transcript: Optional[str]) -> None:
        self.transcript = transcript
        self.attempt = None
        self.error = None

    def generate(self) -> Optional[QuizAttempt]:
        self.error = None
        try:
            questions = self.engine.generate(self.transcript, self.config)
        except ConfigurationError:
            raise
        except RecapError as exc:
            logger.error("Quiz generation failed: %s", exc.message)
            self.error = exc
            self.attempt = None
            return None
        self.attempt = QuizAttempt(questions)
        return self.attempt

    def retry(self) -> None:
        self.error = None
        self.attempt = None
