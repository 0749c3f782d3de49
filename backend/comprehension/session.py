from __future__ import annotations

import logging
import time
from typing import Callable, List, Optional, Sequence, Tuple

from .grading import GradingCoordinator
from .history import HistoryStore
from .progress import ProgressStore, question_set_key
from .schemas import AnswerRecord, AttemptSummary, GradingVerdict, Phase, Question, SessionState

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


class ReadingSession:
    """One pass through a fixed question set.

    ``answering`` --submit--> ``feedback`` --advance--> ``answering`` | ``complete``.
    ``restart`` returns to the initial state from any phase. Calls made in the
    wrong phase are ignored.

    Only one grading call may be outstanding. Each call is tagged with the
    restart generation and the question id it targets; a reply whose tag no
    longer matches the live state is dropped.
    """

    def __init__(
        self,
        questions: Sequence[Question],
        coordinator: GradingCoordinator,
        progress: ProgressStore,
        history: HistoryStore,
        *,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        if not questions:
            raise ValueError("a session needs at least one question")
        self.questions: Tuple[Question, ...] = tuple(questions)
        self.key = question_set_key(self.questions)
        self.coordinator = coordinator
        self.progress = progress
        self.history = history
        self._clock = clock
        self._generation = 0
        self._pending: Optional[Tuple[int, str]] = None
        self._retired = False
        self.draft = ""
        self.last_verdict: Optional[GradingVerdict] = None
        self.last_summary: Optional[AttemptSummary] = None

        restored = self._restore()
        self._state = restored or SessionState()
        self.resumed = restored is not None

    # --- read-only views ---

    @property
    def state(self) -> SessionState:
        return self._state.model_copy(deep=True)

    @property
    def phase(self) -> Phase:
        return self._state.phase

    @property
    def question_count(self) -> int:
        return len(self.questions)

    @property
    def current_question(self) -> Question:
        return self.questions[self._state.active_index]

    @property
    def score(self) -> int:
        return self._state.score

    @property
    def is_complete(self) -> bool:
        return self._state.phase is Phase.COMPLETE

    @property
    def is_grading(self) -> bool:
        return self._pending is not None

    def answer_for(self, question_id: str) -> Optional[AnswerRecord]:
        for record in self._state.answer_log:
            if record.question_id == question_id:
                return record
        return None

    def set_draft(self, text: str) -> None:
        if self._state.phase is Phase.ANSWERING:
            self.draft = text

    # --- transitions ---

    async def submit(self, text: str) -> Optional[GradingVerdict]:
        text = (text or "").strip()
        if self._state.phase is not Phase.ANSWERING:
            logger.debug("submit ignored in phase %s", self._state.phase.value)
            return None
        if not text or self._pending is not None:
            return None

        question = self.current_question
        tag = (self._generation, question.id)
        self._pending = tag
        try:
            verdict = await self.coordinator.grade(question, text)
        finally:
            if self._pending == tag:
                self._pending = None

        if verdict is None:
            return None
        if (
            tag != (self._generation, self.current_question.id)
            or self._state.phase is not Phase.ANSWERING
        ):
            logger.info("Discarding stale verdict for %s (generation %d)", tag[1], tag[0])
            return None

        submitted_at = self._clock()
        if self._state.answer_log:
            submitted_at = max(submitted_at, self._state.answer_log[-1].submitted_at)
        self._state.answer_log.append(
            AnswerRecord(
                question_id=question.id,
                submitted_text=text,
                verdict=verdict.is_correct,
                submitted_at=submitted_at,
                feedback=verdict.feedback,
            )
        )
        self._state.phase = Phase.FEEDBACK
        self.last_verdict = verdict
        self._checkpoint()
        return verdict

    def advance(self) -> Optional[AttemptSummary]:
        """Move past the feedback for the current question.

        Returns the attempt summary when this finishes the session.
        """
        if self._state.phase is not Phase.FEEDBACK:
            logger.debug("advance ignored in phase %s", self._state.phase.value)
            return None

        if self._state.active_index >= self.question_count - 1:
            summary = AttemptSummary.from_score(self.score, self.question_count)
            self.history.append(summary)
            self._state.phase = Phase.COMPLETE
            self.last_summary = summary
            self._checkpoint()
            logger.info("Session %s complete: %d/%d", self.key, summary.score, summary.total)
            return summary

        self._state.active_index += 1
        self._state.phase = Phase.ANSWERING
        self.draft = ""
        self.last_verdict = None
        self._checkpoint()
        return None

    def restart(self) -> None:
        self._generation += 1
        self._pending = None
        self._state = SessionState()
        self.draft = ""
        self.last_verdict = None
        self.last_summary = None
        self.resumed = False
        self.progress.clear(self.key)

    def retire(self) -> None:
        """Hand the checkpoint over to a newer session for the same question set.

        Any grading call still in flight is discarded and this session never
        writes the checkpoint again. The checkpoint itself is left in place.
        """
        self._generation += 1
        self._pending = None
        self._retired = True

    # --- persistence ---

    def _checkpoint(self) -> None:
        if self._retired:
            return
        self.progress.save(self.key, self._state)

    def _restore(self) -> Optional[SessionState]:
        state = self.progress.load(self.key)
        if state is None:
            return None
        if not self._consistent(state):
            logger.warning("Ignoring checkpoint for %s that does not fit the question set", self.key)
            return None
        if state.phase is Phase.FEEDBACK:
            last = state.answer_log[-1]
            self.last_verdict = GradingVerdict(is_correct=last.verdict, feedback=last.feedback)
        logger.info("Resuming session %s at question %d", self.key, state.active_index + 1)
        return state

    def _consistent(self, state: SessionState) -> bool:
        count = self.question_count
        answered: List[str] = [record.question_id for record in state.answer_log]
        if answered != [q.id for q in self.questions[: len(answered)]]:
            return False
        if not 0 <= state.active_index < count:
            return False
        if state.phase is Phase.ANSWERING:
            return len(answered) == state.active_index
        if state.phase is Phase.FEEDBACK:
            return len(answered) == state.active_index + 1
        return len(answered) == count and state.active_index == count - 1
