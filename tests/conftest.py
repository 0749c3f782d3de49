"""
Pytest configuration and shared fixtures.
"""
import asyncio

import pytest

from comprehension.grading import GradingCoordinator
from comprehension.history import HistoryStore
from comprehension.progress import ProgressStore
from comprehension.schemas import Question
from comprehension.session import ReadingSession
from comprehension.storage import MemoryKeyValueStore


SAMPLE_QUESTIONS = [
    ("What is the primary role of the queen bee?", "to lay eggs", "easy"),
    ("What are male bees called?", "drones", "easy"),
    ("How do bees share where flowers are?", "waggle dance", "medium"),
    ("What is fed to a larva to raise a new queen?", "royal jelly", "medium"),
    ("What do the oldest workers do?", "collect nectar and pollen from flowers", "hard"),
    ("What happens to drones in autumn?", "pushed out of the hive", "hard"),
]


def make_questions(count=6):
    return [
        Question(
            id=f"q{i + 1}",
            question_text=text,
            expected_answer=answer,
            explanation=f"The passage says: {answer}.",
            difficulty=difficulty,
        )
        for i, (text, answer, difficulty) in enumerate(SAMPLE_QUESTIONS[:count])
    ]


class FakeGrader:
    """Semantic grader double: replies with the queued results in order."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls = []

    async def evaluate(self, *, question, expected_answer, submitted_text, passage_excerpt=None):
        self.calls.append(
            {
                "question": question,
                "expected_answer": expected_answer,
                "submitted_text": submitted_text,
                "passage_excerpt": passage_excerpt,
            }
        )
        reply = self.replies.pop(0) if self.replies else {"isCorrect": True, "feedback": "ok"}
        if isinstance(reply, Exception):
            raise reply
        return reply


class BlockingGrader:
    """Grader that waits for ``release()`` before replying."""

    def __init__(self, reply=None):
        self.reply = reply or {"isCorrect": True, "feedback": "late"}
        self.started = asyncio.Event()
        self._release = asyncio.Event()
        self.calls = 0

    def release(self):
        self._release.set()

    async def evaluate(self, **kwargs):
        self.calls += 1
        self.started.set()
        await self._release.wait()
        return self.reply


@pytest.fixture
def questions():
    return make_questions()


@pytest.fixture
def kv():
    return MemoryKeyValueStore()


@pytest.fixture
def progress(kv):
    return ProgressStore(kv)


@pytest.fixture
def history(kv):
    return HistoryStore(kv)


@pytest.fixture
def offline_coordinator():
    return GradingCoordinator.offline()


@pytest.fixture
def make_session(questions, progress, history, offline_coordinator):
    def _make(coordinator=None, qs=None):
        clock = iter(range(1_000, 10_000_000, 1_000))
        return ReadingSession(
            qs or questions,
            coordinator or offline_coordinator,
            progress,
            history,
            clock=lambda: next(clock),
        )

    return _make
