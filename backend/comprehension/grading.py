"""Grading of one submitted answer.

The coordinator asks a semantic grader first. When that grader fails (network
error, timeout, unusable reply) the configured :class:`GraderUnavailablePolicy`
decides the verdict. The default accepts the answer so that infrastructure
trouble never costs the learner a point.

:class:`LocalMatcherGrader` is a separate strategy for offline use; it is not a
fallback step of the semantic path unless the policy asks for it.
"""
from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Mapping, Optional, Protocol

from .errors import GenerationError, GraderError
from .gemini_client import GeminiClient
from .generation import extract_json
from .matcher import DEFAULT_SHORT_TOKEN_MAX, matches
from .schemas import GradingVerdict, Question
from .settings import settings

logger = logging.getLogger(__name__)

NEUTRAL_FEEDBACK = "We couldn't check this answer right now, so it has been accepted. Compare it with the explanation below."
REJECTED_FEEDBACK = "We couldn't check this answer right now. Compare it with the explanation below."


class GraderUnavailablePolicy(str, Enum):
    ACCEPT_ANSWER = "accept_answer"
    USE_LOCAL_MATCHER = "use_local_matcher"
    REJECT = "reject"


class SemanticGrader(Protocol):
    async def evaluate(
        self,
        *,
        question: str,
        expected_answer: str,
        submitted_text: str,
        passage_excerpt: Optional[str] = None,
    ) -> Mapping[str, Any]: ...


GRADING_SYSTEM_PROMPT = """You are an experienced reading comprehension evaluator. Assess whether the student's answer demonstrates understanding of the key concepts.

Evaluation Guidelines:

ACCEPT answers that:
- Identify the core concept even if simplified (e.g., "to lay eggs" is correct for "the queen bee lays eggs to ensure colony survival")
- Paraphrase accurately using different words
- Cover the main point even if missing secondary details
- Are concise but conceptually correct

REJECT answers that:
- Are incomplete phrases or sentence fragments with no meaning (e.g., "because they are")
- Are too vague to show any specific understanding (e.g., "they do things")
- Contradict the passage
- Are completely off-topic
- Show clear misunderstanding

Key Principle: If a student provides a SHORT but ACCURATE answer that captures the main concept, mark it CORRECT. Only reject if it's too vague to show understanding or is factually wrong.

Return JSON:
{
  "isCorrect": boolean,
  "feedback": "brief explanation"
}"""


def _grading_prompt(question: str, expected_answer: str, submitted_text: str, passage_excerpt: Optional[str]) -> str:
    context = f"Passage Context: {passage_excerpt}\n\n" if passage_excerpt else ""
    return (
        f"Question: {question}\n\n"
        f"Correct Answer: {expected_answer}\n\n"
        f"Student Answer: {submitted_text}\n\n"
        f"{context}"
        "Evaluate: Does this answer demonstrate understanding? Remember: concise correct answers "
        "should be accepted, but vague/incomplete fragments should be rejected."
    )


class GeminiAnswerGrader:
    def __init__(self, client: GeminiClient) -> None:
        self.client = client

    async def evaluate(
        self,
        *,
        question: str,
        expected_answer: str,
        submitted_text: str,
        passage_excerpt: Optional[str] = None,
    ) -> Mapping[str, Any]:
        raw = await self.client.generate(
            _grading_prompt(question, expected_answer, submitted_text, passage_excerpt),
            system=GRADING_SYSTEM_PROMPT,
            temperature=0.3,
            json_mode=True,
        )
        if not raw or not raw.strip():
            raise GraderError("No content returned from grader")
        try:
            data = extract_json(raw)
        except GenerationError as exc:
            raise GraderError(str(exc)) from exc
        if not isinstance(data, dict):
            raise GraderError("Grader reply is not a JSON object")
        return data

    async def aclose(self) -> None:
        await self.client.aclose()


class LocalMatcherGrader:
    """Grades with the deterministic matcher; never touches the network."""

    def __init__(self, short_token_max: int = DEFAULT_SHORT_TOKEN_MAX) -> None:
        self.short_token_max = short_token_max

    def grade(self, question: Question, submitted_text: str) -> Optional[GradingVerdict]:
        text = (submitted_text or "").strip()
        if not text:
            return None
        if matches(text, question.expected_answer, short_token_max=self.short_token_max):
            return GradingVerdict(is_correct=True, feedback="Correct!")
        return GradingVerdict(is_correct=False, feedback=f"The expected answer was: {question.expected_answer}")


def _well_formed(reply: Any) -> Optional[GradingVerdict]:
    if not isinstance(reply, Mapping):
        return None
    is_correct = reply.get("isCorrect")
    feedback = reply.get("feedback")
    if not isinstance(is_correct, bool) or not isinstance(feedback, str):
        return None
    return GradingVerdict(is_correct=is_correct, feedback=feedback)


class GradingCoordinator:
    def __init__(
        self,
        grader: Optional[SemanticGrader] = None,
        *,
        policy: GraderUnavailablePolicy = GraderUnavailablePolicy.ACCEPT_ANSWER,
        timeout: Optional[float] = None,
        local: Optional[LocalMatcherGrader] = None,
    ) -> None:
        self.grader = grader
        self.policy = GraderUnavailablePolicy(policy)
        self.timeout = timeout
        self.local = local or LocalMatcherGrader()

    @classmethod
    def offline(cls, short_token_max: int = DEFAULT_SHORT_TOKEN_MAX) -> "GradingCoordinator":
        return cls(None, local=LocalMatcherGrader(short_token_max))

    @property
    def is_offline(self) -> bool:
        return self.grader is None

    async def grade(self, question: Question, submitted_text: str) -> Optional[GradingVerdict]:
        """Return the verdict for ``submitted_text``, or ``None`` when there is nothing to grade."""
        text = (submitted_text or "").strip()
        if not text:
            return None
        if self.grader is None:
            return self.local.grade(question, text)

        call = self.grader.evaluate(
            question=question.question_text,
            expected_answer=question.expected_answer,
            submitted_text=text,
            passage_excerpt=question.passage_excerpt,
        )
        try:
            if self.timeout is not None:
                reply = await asyncio.wait_for(call, self.timeout)
            else:
                reply = await call
        except Exception as exc:
            logger.warning("Semantic grader failed for %s: %s", question.id, exc)
            return self._unavailable(question, text)

        verdict = _well_formed(reply)
        if verdict is None:
            logger.warning("Semantic grader returned a malformed reply for %s: %r", question.id, reply)
            return self._unavailable(question, text)
        return verdict

    def _unavailable(self, question: Question, text: str) -> GradingVerdict:
        if self.policy is GraderUnavailablePolicy.USE_LOCAL_MATCHER:
            return self.local.grade(question, text)
        if self.policy is GraderUnavailablePolicy.REJECT:
            return GradingVerdict(is_correct=False, feedback=REJECTED_FEEDBACK)
        return GradingVerdict(is_correct=True, feedback=NEUTRAL_FEEDBACK)


def coordinator_from_settings(client_factory=GeminiClient) -> GradingCoordinator:
    local = LocalMatcherGrader(settings.matcher_short_token_max)
    if settings.grader_mode == "local":
        return GradingCoordinator(None, local=local)
    client = client_factory(model=settings.gemini_model_grading or settings.gemini_model)
    return GradingCoordinator(
        GeminiAnswerGrader(client),
        policy=GraderUnavailablePolicy(settings.grader_unavailable_policy),
        timeout=settings.grader_timeout_seconds,
        local=local,
    )
