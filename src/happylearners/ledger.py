"""
Progress ledger.

Durable per-learner, per-subject record of completed lessons and quiz
attempts. Every record lives under its own Redis key
``progress:{learner}:{grade}:{subject}`` and is overwritten as a whole on
each mutation, so a failed write can never damage another learner's or
another subject's record.
"""

import logging
from typing import Union

import pandas as pd
from pydantic import ValidationError
from redis import Redis, RedisError

from .config import settings
from .errors import NoActiveLearner, PersistenceFailure
from .models import Attempt, AttemptSummary, ProgressRecord
from .scoring import completion_percent

logger = logging.getLogger(__name__)

Grade = Union[int, str]

ATTEMPT_COLUMNS = ["score", "date", "stars", "mode"]


class ProgressLedger:
    """Reads and appends learner progress in the key-value store."""

    def __init__(self, client: Redis, prefix: str = settings.PROGRESS_KEY_PREFIX):
        self.client = client
        self.prefix = prefix

    def key_for(self, learner_id: str, grade: Grade, subject_id: str) -> str:
        return f"{self.prefix}:{learner_id}:{grade}:{subject_id}"

    def read_record(self, learner_id: str, grade: Grade, subject_id: str) -> ProgressRecord:
        """Return the stored record, or an empty one when nothing is stored."""
        if not learner_id:
            return ProgressRecord()
        key = self.key_for(learner_id, grade, subject_id)
        try:
            raw = self.client.get(key)
        except RedisError as e:
            raise PersistenceFailure(f"Could not read {key}: {e}") from e
        if not raw:
            return ProgressRecord()
        try:
            return ProgressRecord.model_validate_json(raw)
        except ValidationError as e:
            logger.error(f"Ignoring unreadable progress record {key}: {e}")
            return ProgressRecord()

    def mark_lesson_complete(
        self, learner_id: str, grade: Grade, subject_id: str, lesson_id: str
    ) -> bool:
        """Add a lesson to the completed set; returns False if it was already there."""
        self._require_learner(learner_id)
        record = self.read_record(learner_id, grade, subject_id)
        if lesson_id in record.completed_lessons:
            return False
        record.completed_lessons.append(lesson_id)
        self._write(learner_id, grade, subject_id, record)
        logger.info(f"Lesson {lesson_id} completed by {learner_id} [{grade}/{subject_id}]")
        return True

    def record_attempt(
        self, learner_id: str, grade: Grade, subject_id: str, attempt: Attempt
    ) -> ProgressRecord:
        self._require_learner(learner_id)
        record = self.read_record(learner_id, grade, subject_id)
        record.quiz_attempts.append(attempt)
        self._write(learner_id, grade, subject_id, record)
        logger.info(
            f"Attempt recorded for {learner_id} [{grade}/{subject_id}]: "
            f"{attempt.score}% {attempt.stars} stars ({attempt.mode})"
        )
        return record

    def subject_completion(
        self, learner_id: str, grade: Grade, subject_id: str, lesson_count: int
    ) -> int:
        record = self.read_record(learner_id, grade, subject_id)
        return completion_percent(len(record.completed_lessons), lesson_count)

    def clear_learner(self, learner_id: str) -> int:
        """Delete every progress record owned by a learner."""
        self._require_learner(learner_id)
        pattern = f"{self.prefix}:{learner_id}:*"
        try:
            keys = list(self.client.scan_iter(match=pattern))
            if keys:
                self.client.delete(*keys)
        except RedisError as e:
            raise PersistenceFailure(f"Could not clear progress for {learner_id}: {e}") from e
        logger.info(f"Cleared {len(keys)} progress records for {learner_id}")
        return len(keys)

    def _write(self, learner_id: str, grade: Grade, subject_id: str, record: ProgressRecord):
        key = self.key_for(learner_id, grade, subject_id)
        try:
            self.client.set(key, record.model_dump_json(by_alias=True))
        except RedisError as e:
            raise PersistenceFailure(f"Could not write {key}: {e}") from e

    @staticmethod
    def _require_learner(learner_id: str):
        if not learner_id:
            raise NoActiveLearner()


# --- Reporting ---
def attempt_history(record: ProgressRecord) -> pd.DataFrame:
    """Attempts as a table, newest first, with a ``taken_at`` timestamp column."""
    df = pd.DataFrame(
        [attempt.model_dump() for attempt in record.quiz_attempts],
        columns=ATTEMPT_COLUMNS,
    )
    df["taken_at"] = pd.to_datetime(df["date"].astype("int64"), unit="ms")
    return df.iloc[::-1].reset_index(drop=True)


def summarize_attempts(record: ProgressRecord) -> AttemptSummary:
    if not record.quiz_attempts:
        return AttemptSummary()

    df = pd.DataFrame([attempt.model_dump() for attempt in record.quiz_attempts])
    return AttemptSummary(
        attempts=len(df),
        best_score=int(df["score"].max()),
        average_score=round(float(df["score"].mean()), 1),
        latest_score=int(df["score"].iloc[-1]),
        best_stars=int(df["stars"].max()),
        three_star_attempts=int((df["stars"] == 3).sum()),
        by_mode={mode: int(count) for mode, count in df["mode"].value_counts().items()},
    )
