from __future__ import annotations

import json
import logging
import uuid
from typing import Any, AsyncIterator, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from ..db import SessionLocal
from ..errors import GenerationError
from ..gemini_client import GeminiClient
from ..generation import QuestionGenerator
from ..grading import GradingCoordinator, coordinator_from_settings
from ..history import HistoryStore
from ..passage import DEFAULT_PASSAGE
from ..progress import ProgressStore, question_set_key
from ..schemas import Phase, Question, percentage_of
from ..session import ReadingSession
from ..settings import settings
from ..storage import KeyValueStore, SqlKeyValueStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reading", tags=["reading"])

QUESTIONS_KEY = "questions:current"

_question_list = TypeAdapter(List[Question])


class StartRequest(BaseModel):
    regenerate: bool = False


class SessionRequest(BaseModel):
    session_id: str


class SubmitRequest(BaseModel):
    session_id: str
    text: str


class ValidateAnswerRequest(BaseModel):
    question: str
    correct_answer: str
    user_answer: str
    passage_excerpt: Optional[str] = None


class ValidateAnswerResponse(BaseModel):
    is_correct: bool = Field(serialization_alias="isCorrect")
    feedback: str


_store: Optional[KeyValueStore] = None
_coordinator: Optional[GradingCoordinator] = None
_sessions: Dict[str, ReadingSession] = {}


def get_store() -> KeyValueStore:
    global _store
    if _store is None:
        _store = SqlKeyValueStore(SessionLocal)
    return _store


def get_coordinator() -> GradingCoordinator:
    global _coordinator
    if _coordinator is None:
        try:
            _coordinator = coordinator_from_settings()
        except ValueError as exc:
            logger.warning("Semantic grader unavailable (%s); grading with the local matcher", exc)
            _coordinator = GradingCoordinator.offline(settings.matcher_short_token_max)
    return _coordinator


async def get_generator() -> AsyncIterator[Optional[QuestionGenerator]]:
    try:
        client = GeminiClient()
    except ValueError as exc:
        logger.error("Question generator unavailable: %s", exc)
        yield None
        return
    generator = QuestionGenerator(client)
    try:
        yield generator
    finally:
        await generator.aclose()


async def close_collaborators() -> None:
    global _coordinator
    grader = _coordinator.grader if _coordinator is not None else None
    if grader is not None and hasattr(grader, "aclose"):
        await grader.aclose()
    _coordinator = None
    _sessions.clear()


def _generation_failed(detail: str) -> HTTPException:
    return HTTPException(status_code=503, detail={"error": detail, "retryable": True})


async def _generate(generator: Optional[QuestionGenerator]) -> List[Question]:
    if generator is None:
        raise _generation_failed("Question generator is not configured")
    try:
        return await generator.generate(DEFAULT_PASSAGE)
    except GenerationError as exc:
        raise _generation_failed(str(exc))


def _cached_questions(store: KeyValueStore) -> Optional[List[Question]]:
    try:
        raw = store.get(QUESTIONS_KEY)
    except Exception as exc:
        logger.warning("Could not read cached questions: %s", exc)
        return None
    if not raw:
        return None
    try:
        document = json.loads(raw)
        if document.get("passage_id") != DEFAULT_PASSAGE.id:
            return None
        questions = _question_list.validate_python(document["questions"])
    except (ValueError, KeyError, AttributeError, ValidationError) as exc:
        logger.warning("Discarding corrupt cached questions: %s", exc)
        return None
    return questions or None


def _cache_questions(store: KeyValueStore, questions: List[Question]) -> None:
    document = {"passage_id": DEFAULT_PASSAGE.id, "questions": [q.model_dump(mode="json") for q in questions]}
    try:
        store.set(QUESTIONS_KEY, json.dumps(document))
    except Exception as exc:
        logger.warning("Could not cache questions: %s", exc)


def _retire_sessions(key: str) -> None:
    # A single profile has a single live session per question set
    for sid, existing in list(_sessions.items()):
        if existing.key == key:
            existing.retire()
            del _sessions[sid]


def _replace_questions(store: KeyValueStore, questions: List[Question]) -> None:
    """Cache a newly generated set as the current one.

    Generated ids are always ``q1..qN``, so a checkpoint under the same key
    belongs to the previous set and is dropped along with its live sessions.
    """
    key = question_set_key(questions)
    _retire_sessions(key)
    ProgressStore(store).clear(key)
    _cache_questions(store, questions)


def _question_payload(session: ReadingSession, question: Question) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "id": question.id,
        "text": question.question_text,
        "difficulty": question.difficulty.value,
        "hint": question.hint,
    }
    # The answer is only revealed once the question has been answered
    if session.answer_for(question.id) is not None:
        payload.update(
            expected_answer=question.expected_answer,
            explanation=question.explanation,
            passage_excerpt=question.passage_excerpt,
        )
    return payload


def _session_view(session_id: str, session: ReadingSession) -> Dict[str, Any]:
    state = session.state
    view: Dict[str, Any] = {
        "session_id": session_id,
        "passage_id": DEFAULT_PASSAGE.id,
        "phase": state.phase.value,
        "active_index": state.active_index,
        "question_count": session.question_count,
        "question": _question_payload(session, session.current_question),
        "answers": [record.model_dump() for record in state.answer_log],
        "score": state.score,
        "resumed": session.resumed,
        "grading": session.is_grading,
        "verdict": session.last_verdict.model_dump() if session.last_verdict else None,
        "summary": None,
    }
    if state.phase is Phase.COMPLETE:
        view["summary"] = {
            "score": state.score,
            "total": session.question_count,
            "percentage": percentage_of(state.score, session.question_count),
            "questions": [_question_payload(session, q) for q in session.questions],
        }
    return view


def _get_session(session_id: str) -> ReadingSession:
    session = _sessions.get(session_id)
    if not session:
        raise HTTPException(status_code=404, detail="Session not found")
    return session


@router.get("/passage")
async def get_passage():
    return {
        "id": DEFAULT_PASSAGE.id,
        "title": DEFAULT_PASSAGE.title,
        "content": DEFAULT_PASSAGE.content,
        "chunks": [chunk.model_dump() for chunk in DEFAULT_PASSAGE.chunks],
    }


@router.get("/questions")
async def generate_questions(
    generator: Optional[QuestionGenerator] = Depends(get_generator),
    store: KeyValueStore = Depends(get_store),
):
    questions = await _generate(generator)
    _replace_questions(store, questions)
    return {"questions": [q.model_dump(mode="json") for q in questions]}


@router.post("/validate-answer")
async def validate_answer(req: ValidateAnswerRequest, coordinator: GradingCoordinator = Depends(get_coordinator)):
    if not req.user_answer.strip():
        raise HTTPException(status_code=400, detail="user_answer is required")
    question = Question(
        id="adhoc",
        question_text=req.question,
        expected_answer=req.correct_answer,
        passage_excerpt=req.passage_excerpt,
    )
    verdict = await coordinator.grade(question, req.user_answer)
    response = ValidateAnswerResponse(is_correct=verdict.is_correct, feedback=verdict.feedback)
    return response.model_dump(by_alias=True)


@router.post("/session/start")
async def start_session(
    req: StartRequest,
    store: KeyValueStore = Depends(get_store),
    coordinator: GradingCoordinator = Depends(get_coordinator),
    generator: Optional[QuestionGenerator] = Depends(get_generator),
):
    questions = None if req.regenerate else _cached_questions(store)
    if questions is None:
        questions = await _generate(generator)
        _replace_questions(store, questions)

    # Older handles must stop checkpointing before the new session restores
    _retire_sessions(question_set_key(questions))
    session = ReadingSession(questions, coordinator, ProgressStore(store), HistoryStore(store))
    session_id = uuid.uuid4().hex
    _sessions[session_id] = session
    logger.info("Started reading session %s (resumed=%s)", session_id, session.resumed)
    return _session_view(session_id, session)


@router.get("/session/state")
async def get_state(session_id: str):
    return _session_view(session_id, _get_session(session_id))


@router.post("/session/submit")
async def submit_answer(req: SubmitRequest):
    session = _get_session(req.session_id)
    await session.submit(req.text)
    return _session_view(req.session_id, session)


@router.post("/session/advance")
async def advance(req: SessionRequest):
    session = _get_session(req.session_id)
    session.advance()
    return _session_view(req.session_id, session)


@router.post("/session/restart")
async def restart(req: SessionRequest):
    session = _get_session(req.session_id)
    session.restart()
    return _session_view(req.session_id, session)


@router.get("/history")
async def get_history(store: KeyValueStore = Depends(get_store)):
    history = HistoryStore(store)
    return {
        "attempts": [attempt.model_dump(mode="json") for attempt in history.recent_first()],
        "stats": history.stats().model_dump(),
    }


@router.delete("/history")
async def clear_history(store: KeyValueStore = Depends(get_store)):
    HistoryStore(store).clear()
    return {"ok": True}
