"""Exceptions raised by the quiz engine and its stores."""


class QuizError(Exception):
    """Base exception for quiz engine errors."""

    pass


class EmptyPool(QuizError):
    """Raised when a scope holds no quiz question."""

    def __init__(self, scope_kind: str):
        self.scope_kind = scope_kind
        super().__init__(f"No quiz questions found for {scope_kind} scope")


class NoActiveLearner(QuizError):
    """Raised when scoring or persisting without an identified learner."""

    def __init__(self):
        super().__init__("Create or select a profile first")


class UnsupportedQuestionKind(QuizError):
    """Raised when evaluating a question whose kind has no evaluator."""

    def __init__(self, kind: str):
        self.kind = kind
        super().__init__(f"Unsupported question type: {kind}")


class PersistenceFailure(QuizError):
    """Raised when the progress store cannot be read or written."""

    pass


class InvalidResponse(QuizError):
    """Raised when a learner response does not fit the question kind."""

    pass


class IncompleteResponse(InvalidResponse):
    """Raised when a drag-match response leaves targets without a value."""

    def __init__(self, missing):
        self.missing = sorted(missing)
        super().__init__(f"No value placed on: {', '.join(self.missing)}")


class SessionClosed(QuizError):
    """Raised when operating on a finalized or abandoned session."""

    def __init__(self, status: str):
        self.status = status
        super().__init__(f"Quiz session is {status}")


class SessionNotFinished(QuizError):
    """Raised when finalizing a session that still has questions to answer."""

    def __init__(self, remaining: int):
        self.remaining = remaining
        super().__init__(f"{remaining} question(s) still to answer")


class SubjectNotFound(QuizError):
    """Raised when the content store has no subject at the given path."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Subject not found: {path}")


class ProfileNotFound(QuizError):
    """Raised when no learner profile has the given id."""

    def __init__(self, profile_id: str):
        self.profile_id = profile_id
        super().__init__(f"Profile not found: {profile_id}")
