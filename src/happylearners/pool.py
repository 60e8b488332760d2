import logging
from abc import ABC, abstractmethod
from typing import List

from .errors import EmptyPool
from .models import LessonScope, Question, Scope, SubjectDocument, SubjectScope

logger = logging.getLogger(__name__)


# --- Strategy Pattern: Pool Builders ---
class PoolBuilder(ABC):
    """Abstract Base Class for collecting the questions of a quiz scope."""

    @abstractmethod
    def collect(self, subject: SubjectDocument) -> List[Question]:
        pass


class LessonPoolBuilder(PoolBuilder):
    """Lesson quiz: only the questions embedded in one lesson."""

    def __init__(self, lesson_index: int):
        self.lesson_index = lesson_index

    def collect(self, subject: SubjectDocument) -> List[Question]:
        if not (0 <= self.lesson_index < len(subject.lessons)):
            logger.warning(
                f"Lesson index {self.lesson_index} out of range for "
                f"{subject.meta.subject_id} ({len(subject.lessons)} lessons)"
            )
            return []
        return list(subject.lessons[self.lesson_index].quiz)


class SubjectPoolBuilder(PoolBuilder):
    """Exam mode: every lesson's questions, in document order."""

    def collect(self, subject: SubjectDocument) -> List[Question]:
        pool: List[Question] = []
        for lesson in subject.lessons:
            pool.extend(lesson.quiz)
        return pool


class PoolFactory:
    """Factory to select the builder for a scope."""

    @staticmethod
    def create(scope: Scope) -> PoolBuilder:
        if isinstance(scope, LessonScope):
            return LessonPoolBuilder(scope.lesson_index)
        elif isinstance(scope, SubjectScope):
            return SubjectPoolBuilder()
        raise ValueError(f"Unknown quiz scope: {scope!r}")


def build_pool(subject: SubjectDocument, scope: Scope) -> List[Question]:
    """Flatten the questions in scope; raises EmptyPool when there are none."""
    pool = PoolFactory.create(scope).collect(subject)
    if not pool:
        raise EmptyPool(scope.kind)
    return pool
