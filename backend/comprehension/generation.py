from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from .errors import GenerationError
from .gemini_client import GeminiClient
from .passage import Passage
from .schemas import Question
from .settings import settings

logger = logging.getLogger(__name__)


GENERATION_SYSTEM_PROMPT = (
    "You are an expert educational content creator specializing in reading comprehension assessment. "
    "Generate high-quality questions that:\n\n"
    "REQUIREMENTS:\n"
    "1. Test genuine understanding through synthesis and analysis\n"
    "2. Have SPECIFIC, ANSWERABLE questions (avoid overly broad or vague questions)\n"
    "3. Include varying difficulty levels (easy, medium, hard)\n"
    "4. Expect SHORT but SPECIFIC answers (2-8 words typically)\n"
    "5. Have clear, concrete correct answers that can be found in the passage\n"
    "6. Include detailed explanations referencing the passage\n"
    "7. Avoid questions that are too general or philosophical\n\n"
    "QUESTION QUALITY:\n"
    '- Good: "What is the primary role of the queen bee?" (Answer: "to lay eggs")\n'
    '- Bad: "What does the passage suggest about organization?" (Too vague)\n'
    '- Good: "How do worker bees\' duties change as they age?" (Specific progression)\n'
    '- Bad: "What is the overall message?" (Too broad)\n\n'
    "For each question provide:\n"
    "- question: Clear, specific question text\n"
    "- correctAnswer: Expected answer (SHORT and SPECIFIC)\n"
    "- explanation: Detailed explanation referencing the passage\n"
    "- difficulty: easy, medium, or hard\n"
    "- relevantPassageExcerpt: Short passage excerpt containing the answer\n"
    "- hint: A helpful hint that GUIDES the student to the right section WITHOUT revealing the answer\n\n"
    "Return ONLY valid JSON."
)


def _generation_prompt(passage: Passage, count: int) -> str:
    return (
        f"Generate {count} reading comprehension questions with mixed difficulty for this passage:\n\n"
        f"Title: {passage.title}\n"
        f"Content: {passage.content}\n\n"
        'Return the response as a JSON object of the form {"questions": [...]}.'
    )


def extract_json(text: str) -> Any:
    try:
        return json.loads(text)
    except ValueError:
        pass
    code_block = re.search(r"```(?:json)?\s*([\s\S]*?)\s*```", text)
    if code_block:
        try:
            return json.loads(code_block.group(1))
        except ValueError:
            pass
    for opener, closer in (("{", "}"), ("[", "]")):
        first = text.find(opener)
        last = text.rfind(closer)
        if first != -1 and last > first:
            try:
                return json.loads(text[first : last + 1])
            except ValueError:
                pass
    raise GenerationError("Model did not return valid JSON.")


def _question_records(data: Any) -> List[Any]:
    # The model answers either {"questions": [...]}, {"<anything>": [...]} or a bare list
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        if isinstance(data.get("questions"), list):
            return data["questions"]
        first = next(iter(data.values()), None)
        if isinstance(first, list):
            return first
    raise GenerationError("Model response does not contain a question list.")


def _text(record: Dict[str, Any], *names: str) -> Optional[str]:
    for name in names:
        value = record.get(name)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def parse_questions(data: Any, count: int) -> List[Question]:
    records = _question_records(data)
    if len(records) != count:
        raise GenerationError(f"Expected {count} questions, got {len(records)}.")

    questions: List[Question] = []
    for i, record in enumerate(records):
        if not isinstance(record, dict):
            raise GenerationError(f"Question {i + 1} is not an object.")
        question_text = _text(record, "question", "questionText")
        expected = _text(record, "correctAnswer", "expectedAnswer", "answer")
        if not question_text or not expected:
            raise GenerationError(f"Question {i + 1} is missing its text or answer.")
        difficulty = (_text(record, "difficulty") or "medium").lower()
        try:
            questions.append(
                Question(
                    id=f"q{i + 1}",
                    question_text=question_text,
                    expected_answer=expected,
                    explanation=_text(record, "explanation") or "",
                    difficulty=difficulty,
                    passage_excerpt=_text(record, "relevantPassageExcerpt", "passageExcerpt"),
                    hint=_text(record, "hint"),
                )
            )
        except ValidationError as exc:
            raise GenerationError(f"Invalid question {i + 1}: {exc.errors()[0]['msg']}") from exc
    return questions


class QuestionGenerator:
    def __init__(self, client: GeminiClient, *, count: Optional[int] = None) -> None:
        self.client = client
        self.count = count or settings.question_count

    async def generate(self, passage: Passage) -> List[Question]:
        try:
            raw = await self.client.generate(
                _generation_prompt(passage, self.count),
                system=GENERATION_SYSTEM_PROMPT,
                temperature=0.7,
                json_mode=True,
            )
        except Exception as exc:
            logger.error("Question generation failed for %s: %s", passage.id, exc)
            raise GenerationError("Failed to generate questions") from exc
        if not raw or not raw.strip():
            raise GenerationError("Model returned no content.")
        questions = parse_questions(extract_json(raw), self.count)
        logger.info("Generated %d questions for %s", len(questions), passage.id)
        return questions

    async def aclose(self) -> None:
        await self.client.aclose()
