import math
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag, field_validator

QuizMode = Literal["lesson", "subject"]

QUESTION_KINDS = (
    "multiple_choice",
    "true_false",
    "fill_in_the_blank",
    "ordering",
    "drag_match",
)


def as_text(value: Any) -> str:
    """Render a content value the way it is shown to the learner."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


# --- Questions ---
class QuestionBase(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    question: str


class MultipleChoiceQuestion(QuestionBase):
    type: Literal["multiple_choice"] = "multiple_choice"
    options: List[Any] = Field(min_length=1)
    answer: Any


class TrueFalseQuestion(QuestionBase):
    type: Literal["true_false"] = "true_false"
    answer: bool


class FillInTheBlankQuestion(QuestionBase):
    type: Literal["fill_in_the_blank"] = "fill_in_the_blank"
    answer: str

    @field_validator("answer", mode="before")
    @classmethod
    def _answer_as_text(cls, value: Any) -> Any:
        if isinstance(value, (int, float)):
            return as_text(value)
        return value


class OrderingQuestion(QuestionBase):
    type: Literal["ordering"] = "ordering"
    items: List[str] = Field(min_length=1)
    answer_order: List[str] = Field(alias="answerOrder", min_length=1)

    @field_validator("items", "answer_order", mode="before")
    @classmethod
    def _items_as_text(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [as_text(item) if isinstance(item, (int, float)) else item for item in value]
        return value


class MatchPair(BaseModel):
    model_config = ConfigDict(frozen=True)

    left: str
    right: str

    @field_validator("left", "right", mode="before")
    @classmethod
    def _side_as_text(cls, value: Any) -> Any:
        if isinstance(value, (int, float)):
            return as_text(value)
        return value


class DragMatchQuestion(QuestionBase):
    type: Literal["drag_match"] = "drag_match"
    pairs: List[MatchPair] = Field(min_length=1)

    @property
    def targets(self) -> List[str]:
        return [pair.right for pair in self.pairs]

    @property
    def values(self) -> List[str]:
        return [pair.left for pair in self.pairs]


class UnsupportedQuestion(BaseModel):
    """A question whose kind no evaluator understands; kept so it can be skipped."""

    model_config = ConfigDict(frozen=True, extra="allow")

    type: str = "unknown"
    question: str = ""


def _question_kind(value: Any) -> str:
    if isinstance(value, dict):
        kind = value.get("type")
    else:
        kind = getattr(value, "type", None)
    return kind if kind in QUESTION_KINDS else "unsupported"


Question = Annotated[
    Union[
        Annotated[MultipleChoiceQuestion, Tag("multiple_choice")],
        Annotated[TrueFalseQuestion, Tag("true_false")],
        Annotated[FillInTheBlankQuestion, Tag("fill_in_the_blank")],
        Annotated[OrderingQuestion, Tag("ordering")],
        Annotated[DragMatchQuestion, Tag("drag_match")],
        Annotated[UnsupportedQuestion, Tag("unsupported")],
    ],
    Discriminator(_question_kind),
]


# --- Content ---
class Lesson(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    content: Optional[str] = None
    image: Optional[str] = None
    quiz: List[Question] = Field(default_factory=list)

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_text(cls, value: Any) -> Any:
        if isinstance(value, int):
            return str(value)
        return value


class SubjectMeta(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    grade: int
    subject_id: str = Field(alias="subjectId")
    label: str


class SubjectDocument(BaseModel):
    model_config = ConfigDict(frozen=True)

    meta: SubjectMeta
    lessons: List[Lesson] = Field(default_factory=list)


class SubjectEntry(BaseModel):
    path: str
    grade: int
    subject_id: str = Field(serialization_alias="subjectId")
    label: str
    lessons: int


# --- Scopes ---
class LessonScope(BaseModel):
    kind: Literal["lesson"] = "lesson"
    lesson_index: int = Field(ge=0)


class SubjectScope(BaseModel):
    kind: Literal["subject"] = "subject"


Scope = Annotated[Union[LessonScope, SubjectScope], Field(discriminator="kind")]


# --- Session ---
class Countdown(BaseModel):
    """Deadline for answering the question at ``index``."""

    index: int
    deadline: float

    def seconds_remaining(self, now: float) -> int:
        return max(0, math.ceil(self.deadline - now))

    def expired(self, now: float) -> bool:
        return now >= self.deadline


class AnswerRecord(BaseModel):
    index: int
    kind: str
    response: Any = None
    correct: bool
    timed_out: bool = False
    skipped: bool = False


class QuestionView(BaseModel):
    index: int
    total: int
    question: Question
    timer_seconds_remaining: Optional[int] = None


class QuizResult(BaseModel):
    percentage: int
    stars: int
    correct_count: int
    total: int
    celebrate: bool
    message: str


# --- Progress ---
class Attempt(BaseModel):
    model_config = ConfigDict(frozen=True)

    score: int = Field(ge=0, le=100)
    date: int
    stars: int = Field(ge=0, le=3)
    mode: QuizMode = "subject"


class ProgressRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    completed_lessons: List[str] = Field(default_factory=list, alias="completedLessons")
    quiz_attempts: List[Attempt] = Field(default_factory=list, alias="quizAttempts")


class AttemptSummary(BaseModel):
    attempts: int = 0
    best_score: Optional[int] = None
    average_score: Optional[float] = None
    latest_score: Optional[int] = None
    best_stars: int = 0
    three_star_attempts: int = 0
    by_mode: Dict[str, int] = Field(default_factory=dict)


class Profile(BaseModel):
    id: str
    name: str
    created: int


# --- API requests ---
class NewProfile(BaseModel):
    name: str = Field(min_length=1)


class LessonCompletion(BaseModel):
    path: str
    lesson_id: str


class AnswerSubmission(BaseModel):
    index: int
    response: Any = None


class ItemSelection(BaseModel):
    index: int
    item: str


class ItemPlacement(BaseModel):
    index: int
    target: str
    value: str
