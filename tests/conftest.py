"""Shared fixtures: an in-memory Redis, sample subject content, sample pools."""

import random
from typing import Any, Dict, List

import fakeredis
import pytest

from happylearners.ledger import ProgressLedger
from happylearners.models import MultipleChoiceQuestion, SubjectDocument
from happylearners.profiles import ProfileStore

START = 1_700_000_000.0


@pytest.fixture
def redis_client():
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture
def ledger(redis_client) -> ProgressLedger:
    return ProgressLedger(redis_client)


@pytest.fixture
def profiles(redis_client) -> ProfileStore:
    return ProfileStore(redis_client)


@pytest.fixture
def rng() -> random.Random:
    return random.Random(42)


@pytest.fixture
def subject_data() -> Dict[str, Any]:
    """Grade 2 science subject: two quizzed lessons and one reading-only lesson."""
    return {
        "meta": {"grade": 2, "subjectId": "science", "label": "Science"},
        "lessons": [
            {
                "id": "plants",
                "title": "Plants",
                "content": "Plants need water and sun.",
                "quiz": [
                    {
                        "type": "multiple_choice",
                        "question": "What do plants need?",
                        "options": ["Water", "Candy", "Toys"],
                        "answer": "Water",
                    },
                    {
                        "type": "true_false",
                        "question": "Plants can grow without light.",
                        "answer": False,
                    },
                ],
            },
            {
                "id": "animals",
                "title": "Animals",
                "quiz": [
                    {
                        "type": "fill_in_the_blank",
                        "question": "A baby cat is called a ____.",
                        "answer": "Kitten",
                    },
                    {
                        "type": "ordering",
                        "question": "Order the life cycle of a frog.",
                        "items": ["Frog", "Egg", "Tadpole"],
                        "answerOrder": ["Egg", "Tadpole", "Frog"],
                    },
                    {
                        "type": "drag_match",
                        "question": "Match the animal to its home.",
                        "pairs": [
                            {"left": "Bird", "right": "Nest"},
                            {"left": "Bee", "right": "Hive"},
                            {"left": "Fish", "right": "Pond"},
                        ],
                    },
                ],
            },
            {"id": "weather", "title": "Weather", "content": "Rain, sun and snow."},
        ],
    }


@pytest.fixture
def subject(subject_data) -> SubjectDocument:
    return SubjectDocument.model_validate(subject_data)


def make_choice_pool(count: int) -> List[MultipleChoiceQuestion]:
    return [
        MultipleChoiceQuestion(
            question=f"What is {n} + 1?",
            options=[str(n), str(n + 1), str(n + 2)],
            answer=str(n + 1),
        )
        for n in range(count)
    ]


def correct_response(question):
    """The response a learner who knows everything would give."""
    if question.type == "ordering":
        return list(question.answer_order)
    if question.type == "drag_match":
        return {pair.right: pair.left for pair in question.pairs}
    return question.answer
