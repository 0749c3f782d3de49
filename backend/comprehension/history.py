from __future__ import annotations

import json
import logging
from typing import List

from pydantic import TypeAdapter, ValidationError

from .schemas import AttemptSummary, HistoryStats
from .storage import KeyValueStore

logger = logging.getLogger(__name__)

HISTORY_KEY = "history"

_attempts = TypeAdapter(List[AttemptSummary])


class HistoryStore:
    """Append-only list of completed attempts, oldest first."""

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    def list(self) -> List[AttemptSummary]:
        try:
            raw = self.store.get(HISTORY_KEY)
        except Exception as exc:
            logger.warning("Could not read attempt history: %s", exc)
            return []
        if not raw:
            return []
        try:
            return _attempts.validate_json(raw)
        except ValidationError as exc:
            logger.warning("Discarding corrupt attempt history: %s", exc)
            return []

    def recent_first(self) -> List[AttemptSummary]:
        return list(reversed(self.list()))

    def append(self, summary: AttemptSummary) -> None:
        attempts = self.list()
        attempts.append(summary)
        try:
            self.store.set(HISTORY_KEY, json.dumps([a.model_dump(mode="json") for a in attempts]))
        except Exception as exc:
            logger.warning("Could not save attempt history: %s", exc)

    def clear(self) -> None:
        try:
            self.store.delete(HISTORY_KEY)
        except Exception as exc:
            logger.warning("Could not clear attempt history: %s", exc)

    def stats(self) -> HistoryStats:
        percentages = [a.percentage for a in self.list()]
        if not percentages:
            return HistoryStats()
        count = len(percentages)
        return HistoryStats(
            count=count,
            best=max(percentages),
            # mean rounded half up
            average=(2 * sum(percentages) + count) // (2 * count),
        )
