from __future__ import annotations

import json
import re
from collections import Counter
from typing import Any

from kidquiz.llm.client import LLMClient
from kidquiz.llm.types import LLMRequest, LLMResponse

_WORD_RE = re.compile(r"[A-Za-z][A-Za-z'-]{3,}")
_SENTENCE_RE = re.compile(r"(?<=[.!?])\s+")


class MockLLMClient(LLMClient):
    """Deterministic stand-in for local development and demos.

    Reads the structured delegate input from ``req.metadata["input"]`` and
    answers with well-formed JSON for each task.
    """

    async def generate(self, req: LLMRequest) -> LLMResponse:
        data = req.metadata.get("input") or {}
        handler = getattr(self, f"_{req.task.replace('-', '_')}", None)
        payload = handler(data) if handler else {"text": "(mock) no handler"}
        return LLMResponse(text=json.dumps(payload, ensure_ascii=False), raw={"provider": "mock"})

    def _grading(self, data: dict[str, Any]) -> dict[str, Any]:
        expected = str(data.get("correctAnswer", "")).strip().casefold()
        given = str(data.get("studentAnswer", "")).strip().casefold()
        if expected and given == expected:
            score = 100
        elif expected and given and (expected in given or given in expected):
            score = 85
        else:
            score = 20
        feedback = "Correct! Well done." if score >= 80 else "Incorrect. Have another look."
        return {"score": score, "isCorrect": score >= 80, "feedback": feedback}

    def _hint(self, data: dict[str, Any]) -> dict[str, Any]:
        return {"hint": "Read the question slowly and think about what fits best!"}

    def _explanation(self, data: dict[str, Any]) -> dict[str, Any]:
        question = str(data.get("questionText", "")).strip()
        return {
            "content": f"Let's learn together! {question} "
            "Think about what you already know. Practice makes you stronger."
        }

    def _analyze_document(self, data: dict[str, Any]) -> dict[str, Any]:
        content = str(data.get("content", ""))
        words = Counter(w.lower() for w in _WORD_RE.findall(content))
        topics = [w for w, _ in words.most_common(3)]
        return {
            "type": "educational",
            "greeting": "Hello! I read your document.",
            "analysis": content[:200].strip(),
            "topics": topics,
            "suggestedQuestionCount": max(1, min(10, len(_SENTENCE_RE.split(content.strip())))),
        }

    def _extract_questions(self, data: dict[str, Any]) -> dict[str, Any]:
        content = str(data.get("content", "")).strip()
        count = int(data.get("count", 5))
        sentences = [s for s in _SENTENCE_RE.split(content) if len(s.split()) >= 3]
        questions = []
        for order, sentence in enumerate(sentences[:count]):
            words = sentence.rstrip(".!?").split()
            answer = words[-1]
            questions.append(
                {
                    "questionText": " ".join(words[:-1]) + " ____?",
                    "correctAnswer": answer,
                    "hints": [
                        f"It starts with '{answer[0]}'.",
                        f"It has {len(answer)} letters.",
                        "Read the sentence again!",
                    ],
                    "microLearning": sentence,
                    "order": order,
                }
            )
        return {"questions": questions}

    def _regenerate_question(self, data: dict[str, Any]) -> dict[str, Any]:
        current = dict(data.get("currentQuestion") or {})
        for field in data.get("regenerateFields") or []:
            if isinstance(current.get(field), str):
                current[field] = f"{current[field]} (revised)"
        return current

    def _generate_variants(self, data: dict[str, Any]) -> dict[str, Any]:
        questions = []
        for cfg in data.get("configurations") or []:
            topics = cfg.get("topics") or ["general"]
            concepts = cfg.get("concepts") or ["basics"]
            difficulty = int(cfg.get("difficulty", 1))
            for n in range(int(cfg.get("variantCount", 1))):
                a, b = n + 1, difficulty + n
                questions.append(
                    {
                        "title": f"What is {a} + {b}?",
                        "answer": str(a + b),
                        "topic": topics[n % len(topics)],
                        "concept": concepts[n % len(concepts)],
                        "difficulty": difficulty,
                        "difficultyReason": "Single-step addition.",
                        "marks": int(cfg.get("marks", 1)),
                        "working": f"{a} + {b} = {a + b}" if difficulty >= 3 else "",
                    }
                )
        return {"questions": questions}

    def _evaluate_question(self, data: dict[str, Any]) -> dict[str, Any]:
        has_answer = bool(str(data.get("answer", "")).strip())
        return {
            "isCorrect": has_answer,
            "feedback": "The question is clear." if has_answer else "The answer is missing.",
            "suggestedImprovement": "",
        }
