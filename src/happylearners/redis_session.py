import logging
from datetime import datetime, timedelta
from typing import Optional

import redis
from pydantic import BaseModel, ValidationError

from .config import settings
from .session import QuizSession

logger = logging.getLogger(__name__)

redis_client = redis.from_url(settings.REDIS_URL, decode_responses=True)

SESSION_TTL = timedelta(minutes=settings.SESSION_TIMEOUT_MINUTES)


class ActiveQuiz(BaseModel):
    """A running quiz together with its subject and the learner who started it."""

    path: str
    grade: int
    subject_id: str
    learner_id: str
    session: QuizSession


def get_redis():
    return redis_client


def _session_key(session_id: str) -> str:
    return f"{settings.SESSION_KEY_PREFIX}:{session_id}"


def save_quiz(client: redis.Redis, session_id: str, quiz: ActiveQuiz):
    client.set(_session_key(session_id), quiz.model_dump_json(), ex=SESSION_TTL)


def load_quiz(client: redis.Redis, session_id: Optional[str]) -> Optional[ActiveQuiz]:
    """Fetch an in-progress quiz; expired or unreadable ones are dropped."""
    if not session_id:
        return None

    raw = client.get(_session_key(session_id))
    if not raw:
        return None

    try:
        quiz = ActiveQuiz.model_validate_json(raw)
    except ValidationError as e:
        logger.error(f"Dropping unreadable session {session_id}: {e}")
        delete_quiz(client, session_id)
        return None

    if datetime.now() - quiz.session.created_at > SESSION_TTL:
        delete_quiz(client, session_id)
        return None
    return quiz


def delete_quiz(client: redis.Redis, session_id: str):
    client.delete(_session_key(session_id))
