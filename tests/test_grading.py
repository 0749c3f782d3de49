"""
Unit tests for the grading coordinator and its unavailability policies.
"""
import asyncio

import httpx
import pytest

from comprehension.errors import GraderError
from comprehension.grading import (
    NEUTRAL_FEEDBACK,
    GeminiAnswerGrader,
    GraderUnavailablePolicy,
    GradingCoordinator,
    LocalMatcherGrader,
)
from comprehension.schemas import GradingVerdict, Question

from conftest import BlockingGrader, FakeGrader


QUEEN = Question(
    id="q1",
    question_text="What is the primary role of the queen bee?",
    expected_answer="to lay eggs",
    explanation="The queen lays up to 2000 eggs a day.",
    difficulty="easy",
    passage_excerpt="Her main task is to lay eggs",
)


class TestSemanticPath:
    @pytest.mark.asyncio
    async def test_well_formed_reply_is_returned_verbatim(self):
        grader = FakeGrader({"isCorrect": False, "feedback": "Too vague."})
        coordinator = GradingCoordinator(grader)

        verdict = await coordinator.grade(QUEEN, "  they do things  ")

        assert verdict == GradingVerdict(is_correct=False, feedback="Too vague.")
        assert grader.calls == [
            {
                "question": QUEEN.question_text,
                "expected_answer": "to lay eggs",
                "submitted_text": "they do things",
                "passage_excerpt": "Her main task is to lay eggs",
            }
        ]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["", "   ", "\n"])
    async def test_empty_input_never_reaches_grader(self, text):
        grader = FakeGrader()
        coordinator = GradingCoordinator(grader)

        assert await coordinator.grade(QUEEN, text) is None
        assert grader.calls == []


class TestUnavailablePolicies:
    @pytest.mark.asyncio
    async def test_network_error_accepts_by_default(self):
        coordinator = GradingCoordinator(FakeGrader(httpx.ConnectError("down")))

        verdict = await coordinator.grade(QUEEN, "something")

        assert verdict.is_correct is True
        assert verdict.feedback == NEUTRAL_FEEDBACK

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "reply",
        [
            None,
            {},
            {"isCorrect": "yes", "feedback": "ok"},
            {"isCorrect": True},
            ["isCorrect", True],
        ],
    )
    async def test_malformed_reply_is_treated_as_unavailable(self, reply):
        coordinator = GradingCoordinator(FakeGrader(reply), policy=GraderUnavailablePolicy.REJECT)

        verdict = await coordinator.grade(QUEEN, "lay eggs")

        assert verdict.is_correct is False

    @pytest.mark.asyncio
    async def test_local_matcher_policy(self):
        coordinator = GradingCoordinator(
            FakeGrader(GraderError("empty"), GraderError("empty")),
            policy=GraderUnavailablePolicy.USE_LOCAL_MATCHER,
        )

        assert (await coordinator.grade(QUEEN, "lay eggs")).is_correct is True
        assert (await coordinator.grade(QUEEN, "something")).is_correct is False

    @pytest.mark.asyncio
    async def test_policy_accepts_plain_string(self):
        coordinator = GradingCoordinator(FakeGrader(RuntimeError("boom")), policy="reject")

        assert coordinator.policy is GraderUnavailablePolicy.REJECT
        assert (await coordinator.grade(QUEEN, "lay eggs")).is_correct is False

    @pytest.mark.asyncio
    async def test_timeout_applies_policy(self):
        grader = BlockingGrader()
        coordinator = GradingCoordinator(grader, timeout=0.01)

        verdict = await coordinator.grade(QUEEN, "lay eggs")

        assert verdict.is_correct is True
        assert verdict.feedback == NEUTRAL_FEEDBACK


class TestOfflineGrading:
    @pytest.mark.asyncio
    async def test_offline_coordinator_uses_matcher(self):
        coordinator = GradingCoordinator.offline()

        assert coordinator.is_offline
        assert (await coordinator.grade(QUEEN, "lay eggs")).is_correct is True
        assert (await coordinator.grade(QUEEN, "something")).is_correct is False
        assert await coordinator.grade(QUEEN, " ") is None

    def test_local_grader_feedback_names_expected_answer(self):
        verdict = LocalMatcherGrader().grade(QUEEN, "honey")

        assert verdict.is_correct is False
        assert "to lay eggs" in verdict.feedback


class FakeClient:
    def __init__(self, text):
        self.text = text
        self.prompts = []

    async def generate(self, prompt, **kwargs):
        self.prompts.append((prompt, kwargs))
        return self.text

    async def aclose(self):
        pass


class TestGeminiAnswerGrader:
    @pytest.mark.asyncio
    async def test_parses_json_reply(self):
        client = FakeClient('```json\n{"isCorrect": true, "feedback": "Right."}\n```')
        grader = GeminiAnswerGrader(client)

        reply = await grader.evaluate(
            question=QUEEN.question_text,
            expected_answer=QUEEN.expected_answer,
            submitted_text="lay eggs",
            passage_excerpt=QUEEN.passage_excerpt,
        )

        assert reply == {"isCorrect": True, "feedback": "Right."}
        prompt, kwargs = client.prompts[0]
        assert "Student Answer: lay eggs" in prompt
        assert "Passage Context: Her main task is to lay eggs" in prompt
        assert kwargs["json_mode"] is True

    @pytest.mark.asyncio
    async def test_excerpt_is_optional(self):
        client = FakeClient('{"isCorrect": false, "feedback": "No."}')
        await GeminiAnswerGrader(client).evaluate(question="Q", expected_answer="A", submitted_text="B")

        assert "Passage Context" not in client.prompts[0][0]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["", "not json at all", "[1, 2]"])
    async def test_unusable_reply_raises(self, text):
        with pytest.raises(GraderError):
            await GeminiAnswerGrader(FakeClient(text)).evaluate(
                question="Q", expected_answer="A", submitted_text="B"
            )

    @pytest.mark.asyncio
    async def test_coordinator_absorbs_grader_error(self):
        coordinator = GradingCoordinator(GeminiAnswerGrader(FakeClient("garbage")))

        verdict = await coordinator.grade(QUEEN, "lay eggs")

        assert verdict.is_correct is True
