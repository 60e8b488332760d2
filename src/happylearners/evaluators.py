"""
Answer evaluators.

One pure rule per question kind. Each evaluator receives the question and
the learner response and returns whether the response is correct; a response
of the wrong shape raises InvalidResponse.
"""

from collections import Counter
from typing import Any, Callable, Dict, List, Mapping, Sequence, Type

from .errors import IncompleteResponse, InvalidResponse, UnsupportedQuestionKind
from .models import (
    DragMatchQuestion,
    FillInTheBlankQuestion,
    MultipleChoiceQuestion,
    OrderingQuestion,
    TrueFalseQuestion,
    as_text,
)

Evaluator = Callable[[Any, Any], bool]

_REGISTRY: Dict[Type, Evaluator] = {}


def register(question_type: Type) -> Callable[[Evaluator], Evaluator]:
    """Decorator binding an evaluator to a question model."""

    def decorator(func: Evaluator) -> Evaluator:
        _REGISTRY[question_type] = func
        return func

    return decorator


def is_supported(question: Any) -> bool:
    return type(question) in _REGISTRY


def evaluate(question: Any, response: Any) -> bool:
    """Score a single response; raises UnsupportedQuestionKind for unknown kinds."""
    evaluator = _REGISTRY.get(type(question))
    if evaluator is None:
        raise UnsupportedQuestionKind(getattr(question, "type", type(question).__name__))
    return evaluator(question, response)


@register(MultipleChoiceQuestion)
def evaluate_multiple_choice(question: MultipleChoiceQuestion, response: Any) -> bool:
    # Exact, case-sensitive match of the rendered strings.
    return as_text(response) == as_text(question.answer)


@register(TrueFalseQuestion)
def evaluate_true_false(question: TrueFalseQuestion, response: Any) -> bool:
    if not isinstance(response, bool):
        raise InvalidResponse(f"Expected true or false, got {response!r}")
    return response is question.answer


@register(FillInTheBlankQuestion)
def evaluate_fill_in_the_blank(question: FillInTheBlankQuestion, response: Any) -> bool:
    if not isinstance(response, str):
        raise InvalidResponse(f"Expected typed text, got {response!r}")
    return response.strip().lower() == question.answer.strip().lower()


@register(OrderingQuestion)
def evaluate_ordering(question: OrderingQuestion, response: Any) -> bool:
    if isinstance(response, (str, bytes)) or not isinstance(response, Sequence):
        raise InvalidResponse(f"Expected a sequence of items, got {response!r}")
    return [as_text(item) for item in response] == list(question.answer_order)


@register(DragMatchQuestion)
def evaluate_drag_match(question: DragMatchQuestion, response: Any) -> bool:
    if not isinstance(response, Mapping):
        raise InvalidResponse(f"Expected target to value placements, got {response!r}")
    response = {
        as_text(target): as_text(value) for target, value in response.items() if value is not None
    }
    missing = missing_targets(question, response)
    if missing:
        raise IncompleteResponse(missing)

    declared = {(pair.left, pair.right) for pair in question.pairs}
    targets = set(question.targets)
    matched = sum(1 for target in targets if (response[target], target) in declared)
    # All or nothing: one wrong placement fails the whole question.
    return matched == len(targets)


def missing_targets(question: DragMatchQuestion, placements: Mapping[str, Any]) -> List[str]:
    return [target for target in dict.fromkeys(question.targets) if not placements.get(target)]


def check_placement(question: DragMatchQuestion, target: str, value: str) -> None:
    if target not in question.targets:
        raise InvalidResponse(f"Unknown drop target: {target!r}")
    if value not in question.values:
        raise InvalidResponse(f"Unknown value: {value!r}")


class OrderingSelection:
    """Sequence built by picking the offered items one at a time."""

    def __init__(self, question: OrderingQuestion, selected: Sequence[str] = ()):
        self.question = question
        self.selected: List[str] = list(selected)

    @property
    def remaining(self) -> List[str]:
        used = Counter(self.selected)
        items = []
        for item in self.question.items:
            if used[item] > 0:
                used[item] -= 1
            else:
                items.append(item)
        return items

    def select(self, item: str) -> List[str]:
        if item not in self.remaining:
            raise InvalidResponse(f"Item {item!r} is not available to select")
        self.selected.append(item)
        return list(self.selected)

    @property
    def complete(self) -> bool:
        return len(self.selected) == len(self.question.items)
