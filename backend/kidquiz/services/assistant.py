"""LLM-backed delegates: grading, hints, explanations and authoring helpers.

Each delegate sends one structured request, expects a JSON object back and
validates it locally. A failed call (transport error, timeout, unusable
output) is retried once with the same payload, then surfaces as
``DelegateUnavailable``; callers decide whether a fallback exists.
"""

import asyncio
import json
import math
import re
import uuid
from dataclasses import dataclass
from typing import Any

import httpx

from kidquiz.core.app_exceptions import DelegateUnavailable, ValidationError
from kidquiz.core.config import settings
from kidquiz.core.logging import get_logger
from kidquiz.llm.client import LLMClient, LLMError
from kidquiz.llm.factory import get_llm_client
from kidquiz.llm.types import LLMMessage, LLMRequest
from kidquiz.schemas.assistant import CurrentQuestion
from kidquiz.schemas.question_bank import QualityEvaluation, QuestionBankItem

logger = get_logger(__name__)

ANALYSIS_MAX_CHARS = 15000
EXTRACTION_MAX_CHARS = 10000
REGENERATION_MAX_CHARS = 3000
MAX_EXPLANATION_SENTENCES = 4
REGENERABLE_FIELDS = ("title", "answer", "topics", "concepts", "difficulty", "marks", "working")

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)
_SENTENCE_RE = re.compile(r"(?<=[.!?])\s+")

GRADING_PROMPT = """You grade short answers written by young children (ages 3-8).
Return JSON {"score": int 0-100, "isCorrect": bool, "feedback": str}.
Rubric:
- 100: exact or synonymous answer
- 90-99: small typo (at most 2 characters) with the right meaning
- 80-89: right idea, a minor detail missing
- 50-79: partially correct
- 0-49: wrong
isCorrect is true only when score >= 80. Feedback is one friendly sentence
starting with "Correct!", "Almost!" or "Incorrect."."""

HINT_PROMPT = """You help young children (ages 3-6) with quiz questions.
Return JSON {"hint": str}: one or two short, encouraging sentences.
Never state the answer itself."""

EXPLANATION_PROMPT = """You explain ideas to young children (ages 3-6).
Return JSON {"content": str}: at most 4 short, simple sentences about the
concept behind the question. If the child asked something, answer it."""

ANALYSIS_PROMPT = """You help a teacher turn a document into a quiz for young children.
Return JSON {"type": str, "greeting": str, "analysis": str, "topics": [str],
"suggestedQuestionCount": int, "clarification": str or null}.
Ask a clarification question only if the document is ambiguous."""

EXTRACTION_PROMPT = """Write fill-in-the-blank questions for young children from the text.
Return JSON {"questions": [{"questionText": str, "correctAnswer": str,
"hints": [str, str, str], "microLearning": str, "order": int}]}.
Answers are one or two words. Hints get progressively more helpful."""

REGENERATION_PROMPT = """Rewrite the quiz question draft using the source text.
Return JSON with the same keys as currentQuestion. Fields listed in
preserveFields were written by the teacher: copy them unchanged."""

VARIANTS_PROMPT = """You write practice questions for a question bank.
Follow each configuration exactly: write variantCount questions per
configuration, only on its topics and concepts, at its difficulty (1 easiest,
5 hardest) and marks. Give working steps when difficulty is 3 or more.
Return JSON {"questions": [{"title": str, "answer": str, "topic": str,
"concept": str, "difficulty": int, "difficultyReason": str, "marks": int,
"working": str}]}."""

EVALUATION_PROMPT = """You review one quiz question with its answer and working.
Check that the answer follows from the question, that the working is correct
and that the wording is clear. Return JSON {"isCorrect": bool,
"feedback": str, "suggestedImprovement": str}."""


@dataclass(frozen=True)
class DelegateGrade:
    score: int
    is_correct: bool
    feedback: str


def strip_json_fences(text: str) -> str:
    return _FENCE_RE.sub("", text.strip()).strip()


def parse_json_object(text: str) -> dict[str, Any]:
    """Parse a delegate reply into a dict; raises ValueError when unusable."""
    data = json.loads(strip_json_fences(text))
    if not isinstance(data, dict):
        raise ValueError("Delegate reply is not a JSON object")
    return data


def text_field(data: dict[str, Any], key: str, required: bool = True) -> str:
    """Read a string field from a delegate reply; raises ValueError on null or non-strings."""
    value = data.get(key)
    if value is None and not required:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"{key} must be a string")
    return value.strip()


def limit_sentences(text: str, max_sentences: int = MAX_EXPLANATION_SENTENCES) -> str:
    sentences = [s for s in _SENTENCE_RE.split(text.strip()) if s]
    return " ".join(sentences[:max_sentences])


def reveals_answer(hint: str, answer: str) -> bool:
    """True when the hint is just the answer, or spells it out as a whole word."""
    hint_n = hint.strip().casefold().rstrip(".!?")
    answer_n = answer.strip().casefold()
    if not answer_n:
        return False
    if hint_n == answer_n:
        return True
    return re.search(rf"(?<!\w){re.escape(answer_n)}(?!\w)", hint_n) is not None


def build_regeneration_payload(
    current: dict[str, Any],
    dirty_fields: list[str],
    document_text: str,
) -> dict[str, Any]:
    """Build the regeneration request; hand-edited fields are marked as preserved."""
    unknown = sorted(set(dirty_fields) - set(REGENERABLE_FIELDS))
    if unknown:
        raise ValidationError(f"Unknown question fields: {', '.join(unknown)}", field="dirty_fields")

    preserve = [f for f in REGENERABLE_FIELDS if f in dirty_fields]
    return {
        "documentText": (document_text or "")[:REGENERATION_MAX_CHARS],
        "currentQuestion": {f: current.get(f) for f in REGENERABLE_FIELDS},
        "preserveFields": preserve,
        "regenerateFields": [f for f in REGENERABLE_FIELDS if f not in preserve],
    }


class Assistant:
    """Entry point for every delegate call."""

    def __init__(self, client: LLMClient, timeout: float | None = None, max_retries: int | None = None):
        self.client = client
        self.timeout = timeout if timeout is not None else settings.LLM_TIMEOUT_SECONDS
        self.max_retries = max_retries if max_retries is not None else settings.LLM_MAX_RETRIES

    async def _call(
        self,
        task: str,
        system_prompt: str,
        data: dict[str, Any],
        model: str,
        temperature: float,
        max_output_tokens: int = 600,
        validate=None,
    ) -> dict[str, Any]:
        req = LLMRequest(
            task=task,
            model=model,
            temperature=temperature,
            max_output_tokens=max_output_tokens,
            messages=[
                LLMMessage(role="system", content=system_prompt),
                LLMMessage(role="user", content=json.dumps(data, ensure_ascii=False)),
            ],
            metadata={"json": True, "input": data},
        )

        last_error: Exception | None = None
        for attempt in range(1 + self.max_retries):
            try:
                resp = await asyncio.wait_for(self.client.generate(req), timeout=self.timeout)
                result = parse_json_object(resp.text)
                if validate is not None:
                    result = validate(result)
                return result
            except (
                httpx.HTTPError,
                asyncio.TimeoutError,
                LLMError,
                ValueError,
                KeyError,
                TypeError,
                OverflowError,
            ) as e:
                last_error = e
                logger.warning(
                    "Delegate call failed",
                    extra={"task": task, "attempt": attempt + 1, "error": repr(e)},
                )

        raise DelegateUnavailable(task, reason=type(last_error).__name__ if last_error else None)

    async def grade(self, question_text: str, correct_answer: str, student_answer: str) -> DelegateGrade:
        def validate(data: dict[str, Any]) -> DelegateGrade:
            score = data["score"]
            if isinstance(score, bool) or not isinstance(score, (int, float)) or not math.isfinite(score):
                raise ValueError("score must be a finite number")
            return DelegateGrade(
                score=int(round(score)),
                is_correct=bool(data.get("isCorrect", False)),
                feedback=text_field(data, "feedback", required=False),
            )

        return await self._call(
            "grading",
            GRADING_PROMPT,
            {
                "questionText": question_text,
                "correctAnswer": correct_answer,
                "studentAnswer": student_answer,
            },
            model=settings.LLM_MODEL_GRADING,
            temperature=0.0,
            max_output_tokens=200,
            validate=validate,
        )

    async def hint(self, question_text: str, correct_answer: str, student_answer: str | None = None) -> str:
        def validate(data: dict[str, Any]) -> str:
            hint = text_field(data, "hint")
            if not hint or reveals_answer(hint, correct_answer):
                raise ValueError("Hint is empty or gives the answer away")
            return hint

        data: dict[str, Any] = {"questionText": question_text, "correctAnswer": correct_answer}
        if student_answer:
            data["studentAnswer"] = student_answer
        return await self._call(
            "hint",
            HINT_PROMPT,
            data,
            model=settings.LLM_MODEL_TUTOR,
            temperature=0.6,
            max_output_tokens=120,
            validate=validate,
        )

    async def explain(self, question_text: str, correct_answer: str, student_question: str | None = None) -> str:
        def validate(data: dict[str, Any]) -> str:
            content = limit_sentences(text_field(data, "content"))
            if not content:
                raise ValueError("Empty explanation")
            return content

        data: dict[str, Any] = {"questionText": question_text, "correctAnswer": correct_answer}
        if student_question:
            data["studentQuestion"] = student_question
        return await self._call(
            "explanation",
            EXPLANATION_PROMPT,
            data,
            model=settings.LLM_MODEL_TUTOR,
            temperature=0.5,
            max_output_tokens=300,
            validate=validate,
        )

    async def analyze_document(self, content: str, clarification_answer: str | None = None) -> dict[str, Any]:
        def validate(data: dict[str, Any]) -> dict[str, Any]:
            topics = data.get("topics") or []
            if not isinstance(topics, list) or not all(isinstance(t, str) for t in topics):
                raise ValueError("topics must be a list of strings")
            clarification = text_field(data, "clarification", required=False)
            return {
                "type": text_field(data, "type"),
                "greeting": text_field(data, "greeting", required=False),
                "analysis": text_field(data, "analysis", required=False) or text_field(data, "summary", required=False),
                "topics": topics,
                "suggested_question_count": max(0, int(data.get("suggestedQuestionCount") or 0)),
                "clarification": clarification or None,
            }

        data: dict[str, Any] = {"content": content[:ANALYSIS_MAX_CHARS]}
        if clarification_answer:
            data["clarificationAnswer"] = clarification_answer
        return await self._call(
            "analyze-document",
            ANALYSIS_PROMPT,
            data,
            model=settings.LLM_MODEL_AUTHORING,
            temperature=0.4,
            max_output_tokens=800,
            validate=validate,
        )

    async def extract_questions(
        self, content: str, count: int = 5, topics: list[str] | None = None
    ) -> list[dict[str, Any]]:
        def validate(data: dict[str, Any]) -> list[dict[str, Any]]:
            items = data["questions"]
            if not isinstance(items, list):
                raise ValueError("questions must be a list")
            questions = []
            for i, item in enumerate(items[:count]):
                if not isinstance(item, dict):
                    raise ValueError("question item must be an object")
                hints = item.get("hints") or []
                if not isinstance(hints, list) or not all(isinstance(h, str) for h in hints):
                    raise ValueError("hints must be a list of strings")
                question_text = text_field(item, "questionText")
                correct_answer = text_field(item, "correctAnswer")
                if not question_text or not correct_answer:
                    raise ValueError("question text and answer are required")
                questions.append(
                    {
                        "question_text": question_text,
                        "correct_answer": correct_answer,
                        "hints": hints[:3],
                        "micro_learning": text_field(item, "microLearning", required=False),
                        "order": i,
                    }
                )
            return questions

        data: dict[str, Any] = {"content": content[:EXTRACTION_MAX_CHARS], "count": count}
        if topics:
            data["topics"] = topics
        return await self._call(
            "extract-questions",
            EXTRACTION_PROMPT,
            data,
            model=settings.LLM_MODEL_AUTHORING,
            temperature=0.5,
            max_output_tokens=2500,
            validate=validate,
        )

    async def regenerate_question(self, payload: dict[str, Any]) -> dict[str, Any]:
        current = payload["currentQuestion"]

        def validate(draft: dict[str, Any]) -> dict[str, Any]:
            merged = {f: draft.get(f, current.get(f)) for f in REGENERABLE_FIELDS}
            # The model is asked to keep these; copy them back regardless
            for field in payload["preserveFields"]:
                merged[field] = current.get(field)
            return CurrentQuestion.model_validate(merged).model_dump()

        return await self._call(
            "regenerate-question",
            REGENERATION_PROMPT,
            payload,
            model=settings.LLM_MODEL_AUTHORING,
            temperature=0.7,
            max_output_tokens=800,
            validate=validate,
        )


    async def generate_variants(
        self, configurations: list[dict[str, Any]], document_text: str = ""
    ) -> list[dict[str, Any]]:
        """Generate question bank items; the reply must hold exactly the requested count."""
        expected = sum(c["variant_count"] for c in configurations)

        def validate(data: dict[str, Any]) -> list[dict[str, Any]]:
            items = data["questions"]
            if not isinstance(items, list):
                raise ValueError("questions must be a list")
            if len(items) != expected:
                raise ValueError(f"Generated {len(items)} questions but expected {expected}")
            questions = []
            for item in items:
                if not isinstance(item, dict):
                    raise ValueError("question item must be an object")
                question = QuestionBankItem(
                    id=str(uuid.uuid4()),
                    title=text_field(item, "title"),
                    answer=text_field(item, "answer"),
                    topic=text_field(item, "topic"),
                    concept=text_field(item, "concept"),
                    difficulty=item["difficulty"],
                    marks=item["marks"],
                    working=text_field(item, "working", required=False) or None,
                    difficulty_reason=text_field(item, "difficultyReason", required=False) or None,
                )
                questions.append(question.model_dump())
            return questions

        data = {
            "documentText": (document_text or "No document text provided.")[:ANALYSIS_MAX_CHARS],
            "configurations": [
                {
                    "topics": c["topics"],
                    "concepts": c["concepts"],
                    "difficulty": c["difficulty"],
                    "marks": c["marks"],
                    "variantCount": c["variant_count"],
                }
                for c in configurations
            ],
        }
        return await self._call(
            "generate-variants",
            VARIANTS_PROMPT,
            data,
            model=settings.LLM_MODEL_AUTHORING,
            temperature=0.5,
            max_output_tokens=4000,
            validate=validate,
        )

    async def evaluate_quality(self, question: str, answer: str, working: str | None = None) -> dict[str, Any]:
        def validate(data: dict[str, Any]) -> dict[str, Any]:
            is_correct = data["isCorrect"]
            if not isinstance(is_correct, bool):
                raise ValueError("isCorrect must be a boolean")
            feedback = text_field(data, "feedback")
            if not feedback:
                raise ValueError("Empty feedback")
            return QualityEvaluation(
                is_correct=is_correct,
                feedback=feedback,
                suggested_improvement=text_field(data, "suggestedImprovement", required=False) or None,
            ).model_dump()

        return await self._call(
            "evaluate-question",
            EVALUATION_PROMPT,
            {"question": question, "answer": answer, "working": working or "None provided."},
            model=settings.LLM_MODEL_GRADING,
            temperature=0.3,
            max_output_tokens=400,
            validate=validate,
        )


def get_assistant() -> Assistant:
    """Dependency returning the configured delegate client."""
    return Assistant(get_llm_client(settings.LLM_PROVIDER))
