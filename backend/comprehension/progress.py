from __future__ import annotations

import json
import logging
import time
from typing import Optional, Sequence

from pydantic import ValidationError

from .schemas import Phase, Question, SessionState
from .storage import KeyValueStore

logger = logging.getLogger(__name__)

KEY_PREFIX = "progress:"


def question_set_key(questions: Sequence[Question]) -> str:
    return ",".join(q.id for q in questions)


class ProgressStore:
    """Best-effort checkpoints of an in-flight session.

    Failures on either side are logged and read as "no checkpoint", so a broken
    payload only costs the learner their place, never the session.
    """

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    def save(self, key: str, state: SessionState) -> None:
        document = {
            "key": key,
            "answer_log": [record.model_dump() for record in state.answer_log],
            "active_index": state.active_index,
            "phase": state.phase.value,
            "is_complete": state.phase is Phase.COMPLETE,
            "saved_at": int(time.time() * 1000),
        }
        try:
            self.store.set(KEY_PREFIX + key, json.dumps(document))
        except Exception as exc:
            logger.warning("Could not save checkpoint %s: %s", key, exc)

    def load(self, key: str) -> Optional[SessionState]:
        try:
            raw = self.store.get(KEY_PREFIX + key)
        except Exception as exc:
            logger.warning("Could not read checkpoint %s: %s", key, exc)
            return None
        if raw is None:
            return None
        try:
            document = json.loads(raw)
            if not isinstance(document, dict) or document.get("key") != key:
                raise ValueError("checkpoint key mismatch")
            state = SessionState(
                active_index=document["active_index"],
                answer_log=document["answer_log"],
                phase=document["phase"],
            )
            if bool(document.get("is_complete")) != (state.phase is Phase.COMPLETE):
                raise ValueError("completion flag disagrees with phase")
        except (ValueError, KeyError, TypeError, ValidationError) as exc:
            logger.warning("Discarding corrupt checkpoint %s: %s", key, exc)
            self.clear(key)
            return None
        return state

    def clear(self, key: str) -> None:
        try:
            self.store.delete(KEY_PREFIX + key)
        except Exception as exc:
            logger.warning("Could not clear checkpoint %s: %s", key, exc)
