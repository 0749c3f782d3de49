from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class Phase(str, Enum):
    ANSWERING = "answering"
    FEEDBACK = "feedback"
    COMPLETE = "complete"


class Question(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    question_text: str
    expected_answer: str
    explanation: str = ""
    difficulty: Difficulty = Difficulty.MEDIUM
    passage_excerpt: Optional[str] = None
    hint: Optional[str] = None
    type: Literal["short-answer"] = "short-answer"


class GradingVerdict(BaseModel):
    is_correct: bool
    feedback: str = ""


class AnswerRecord(BaseModel):
    question_id: str
    submitted_text: str
    verdict: bool
    submitted_at: int  # epoch milliseconds
    feedback: str = ""


class SessionState(BaseModel):
    active_index: int = 0
    answer_log: List[AnswerRecord] = Field(default_factory=list)
    phase: Phase = Phase.ANSWERING

    @property
    def score(self) -> int:
        return sum(1 for record in self.answer_log if record.verdict)


def percentage_of(score: int, total: int) -> int:
    # Halves round up, matching how the scores were always displayed
    if total <= 0:
        return 0
    return (200 * score + total) // (2 * total)


class AttemptSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    completed_at: datetime
    score: int = Field(ge=0)
    total: int = Field(ge=0)
    percentage: int = Field(ge=0, le=100)

    @classmethod
    def from_score(cls, score: int, total: int, completed_at: Optional[datetime] = None) -> "AttemptSummary":
        if not 0 <= score <= total:
            raise ValueError(f"score {score} outside 0..{total}")
        return cls(
            completed_at=completed_at or datetime.now(timezone.utc),
            score=score,
            total=total,
            percentage=percentage_of(score, total),
        )


class HistoryStats(BaseModel):
    count: int = 0
    best: int = 0
    average: int = 0
