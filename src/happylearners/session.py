"""
Quiz session state machine.

A session walks through its shuffled questions one index at a time:

    awaiting_answer(i) --answer--> awaiting_answer(i+1) | finalizing
    finalizing --finalize--> finalized

Any state except finalized may also be abandoned. Evaluation happens inside
``answer`` and is guarded by the current index, so a response for a question
that was already scored (or not reached yet) is ignored. When the timer is
enabled each question gets a ``Countdown``; every operation first expires
overdue countdowns, scoring those questions as incorrect. Time is passed in
explicitly (seconds since the epoch) so callers and tests control the clock.
"""

import logging
import random
import time
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, Field

from .config import settings
from .errors import (
    EmptyPool,
    InvalidResponse,
    NoActiveLearner,
    SessionClosed,
    SessionNotFinished,
)
from .evaluators import OrderingSelection, check_placement, evaluate, is_supported, missing_targets
from .ledger import Grade, ProgressLedger
from .models import (
    AnswerRecord,
    Attempt,
    Countdown,
    DragMatchQuestion,
    OrderingQuestion,
    Question,
    QuestionView,
    QuizMode,
    QuizResult,
)
from .scoring import score_session

logger = logging.getLogger(__name__)


def _now(now: Optional[float]) -> float:
    return time.time() if now is None else now


class SessionStatus(str, Enum):
    AWAITING_ANSWER = "awaiting_answer"
    FINALIZING = "finalizing"
    FINALIZED = "finalized"
    ABANDONED = "abandoned"


class QuizSession(BaseModel):
    questions: List[Question]
    mode: QuizMode = "subject"
    timer_enabled: bool = False
    time_limit: int = settings.QUESTION_TIME_LIMIT_SECONDS
    index: int = 0
    correct_count: int = 0
    status: SessionStatus = SessionStatus.AWAITING_ANSWER
    answers: List[AnswerRecord] = Field(default_factory=list)
    countdown: Optional[Countdown] = None
    selected_order: List[str] = Field(default_factory=list)
    placements: Dict[str, str] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=datetime.now)
    result: Optional[QuizResult] = None

    @classmethod
    def start(
        cls,
        pool: Sequence[Question],
        mode: QuizMode = "subject",
        timer_enabled: bool = False,
        time_limit: int = settings.QUESTION_TIME_LIMIT_SECONDS,
        now: Optional[float] = None,
        rng: Optional[random.Random] = None,
    ) -> "QuizSession":
        """Shuffle the pool once and enter the first question."""
        if not pool:
            raise EmptyPool(mode)
        questions = list(pool)
        (rng or random).shuffle(questions)

        session = cls(
            questions=questions,
            mode=mode,
            timer_enabled=timer_enabled,
            time_limit=time_limit,
        )
        session._enter(_now(now))
        logger.info(
            f"Quiz started: {session.total} questions [Mode: {mode}, Timer: {timer_enabled}]"
        )
        return session

    @property
    def total(self) -> int:
        return len(self.questions)

    @property
    def current_question(self) -> Optional[Question]:
        if self.status is not SessionStatus.AWAITING_ANSWER:
            return None
        return self.questions[self.index]

    @property
    def is_closed(self) -> bool:
        return self.status in (SessionStatus.FINALIZED, SessionStatus.ABANDONED)

    # --- Learner events ---
    def render(self, now: Optional[float] = None) -> Optional[QuestionView]:
        """Presentation request for the current question, or None once all are scored."""
        now = _now(now)
        self._ensure_open()
        self.expire_overdue(now)
        question = self.current_question
        if question is None:
            return None
        remaining = self.countdown.seconds_remaining(now) if self.countdown else None
        return QuestionView(
            index=self.index,
            total=self.total,
            question=question,
            timer_seconds_remaining=remaining,
        )

    def answer(
        self, index: int, response: Any = None, now: Optional[float] = None
    ) -> Optional[AnswerRecord]:
        """Score the response for ``index`` and advance; stale indexes are ignored."""
        now = _now(now)
        self._ensure_open()
        self.expire_overdue(now)
        if not self._accepts(index):
            return None

        question = self.questions[self.index]
        if response is None and isinstance(question, OrderingQuestion):
            response = list(self.selected_order)
        correct = evaluate(question, response)

        record = self._record(correct, response)
        self._advance(now)
        return record

    def select_item(
        self, index: int, item: str, now: Optional[float] = None
    ) -> Optional[List[str]]:
        """Append one item to the ordering being built for ``index``."""
        now = _now(now)
        self._ensure_open()
        self.expire_overdue(now)
        if not self._accepts(index):
            return None

        question = self.questions[self.index]
        if not isinstance(question, OrderingQuestion):
            raise InvalidResponse(f"Question {index} is not an ordering question")
        self.selected_order = OrderingSelection(question, self.selected_order).select(item)
        return list(self.selected_order)

    def place_item(
        self, index: int, target: str, value: str, now: Optional[float] = None
    ) -> Optional[AnswerRecord]:
        """Drop ``value`` on ``target``; scores the question once every target is filled."""
        now = _now(now)
        self._ensure_open()
        self.expire_overdue(now)
        if not self._accepts(index):
            return None

        question = self.questions[self.index]
        if not isinstance(question, DragMatchQuestion):
            raise InvalidResponse(f"Question {index} is not a drag and match question")
        check_placement(question, target, value)
        self.placements = {**self.placements, target: value}
        if missing_targets(question, self.placements):
            return None
        return self.answer(index, dict(self.placements), now)

    def expire_overdue(self, now: Optional[float] = None) -> int:
        """Score every question whose countdown ran out as incorrect."""
        now = _now(now)
        expired = 0
        while (
            self.status is SessionStatus.AWAITING_ANSWER
            and self.countdown is not None
            and self.countdown.expired(now)
        ):
            deadline = self.countdown.deadline
            logger.info(f"Time is up for question {self.index + 1}/{self.total}")
            self._record(False, None, timed_out=True)
            # The next countdown starts when this one ran out.
            self._advance(deadline)
            expired += 1
        return expired

    # --- Completion ---
    def finalize(
        self,
        ledger: ProgressLedger,
        learner_id: str,
        grade: Grade,
        subject_id: str,
        now: Optional[float] = None,
    ) -> QuizResult:
        """Score the finished session and append the attempt to the learner's progress."""
        self._ensure_open()
        if not learner_id:
            raise NoActiveLearner()
        now = _now(now)
        self.expire_overdue(now)
        if self.status is not SessionStatus.FINALIZING:
            raise SessionNotFinished(self.total - self.index)

        result = score_session(self.correct_count, self.total)
        attempt = Attempt(
            score=result.percentage,
            date=int(now * 1000),
            stars=result.stars,
            mode=self.mode,
        )
        # A failed write leaves the session finalizing so it can be retried.
        ledger.record_attempt(learner_id, grade, subject_id, attempt)

        self.result = result
        self.status = SessionStatus.FINALIZED
        logger.info(
            f"Quiz finished for {learner_id} [{grade}/{subject_id}]: "
            f"{result.correct_count}/{result.total} = {result.percentage}%, {result.stars} stars"
        )
        return result

    def abandon(self) -> None:
        """Discard the session without persisting anything."""
        if self.is_closed:
            return
        self.countdown = None
        self.status = SessionStatus.ABANDONED
        logger.info(f"Quiz abandoned at question {self.index + 1}/{self.total}")

    # --- Internals ---
    def _ensure_open(self):
        if self.is_closed:
            raise SessionClosed(self.status.value)

    def _accepts(self, index: int) -> bool:
        if self.status is SessionStatus.AWAITING_ANSWER and index == self.index:
            return True
        logger.debug(f"Ignoring input for question {index}; current is {self.index}")
        return False

    def _record(
        self, correct: bool, response: Any, timed_out: bool = False, skipped: bool = False
    ) -> AnswerRecord:
        record = AnswerRecord(
            index=self.index,
            kind=self.questions[self.index].type,
            response=response,
            correct=correct,
            timed_out=timed_out,
            skipped=skipped,
        )
        self.answers.append(record)
        if correct:
            self.correct_count += 1
        return record

    def _advance(self, now: float):
        self.countdown = None
        self.index += 1
        self._enter(now)

    def _enter(self, now: float):
        """Make ``index`` the current question, skipping kinds nobody can answer."""
        self.selected_order = []
        self.placements = {}
        while self.index < self.total:
            question = self.questions[self.index]
            if is_supported(question):
                if self.timer_enabled:
                    self.countdown = Countdown(index=self.index, deadline=now + self.time_limit)
                return
            logger.warning(
                f"Skipping question {self.index + 1}/{self.total}: "
                f"unsupported type {question.type!r}"
            )
            self._record(False, None, skipped=True)
            self.index += 1
        self.status = SessionStatus.FINALIZING
