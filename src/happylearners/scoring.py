from .models import QuizResult

THREE_STARS = 90
TWO_STARS = 70
ONE_STAR = 50


def _round_percent(part: int, whole: int) -> int:
    # Half-up rounding of part/whole*100 without float error.
    return (200 * part + whole) // (2 * whole)


def percentage(correct: int, total: int) -> int:
    if total <= 0:
        raise ValueError("A quiz needs at least one question to be scored")
    return _round_percent(correct, total)


def star_rating(percent: int) -> int:
    if percent >= THREE_STARS:
        return 3
    if percent >= TWO_STARS:
        return 2
    if percent >= ONE_STAR:
        return 1
    return 0


def should_celebrate(stars: int) -> bool:
    return stars == 3


def motivational_message(percent: int) -> str:
    if percent >= THREE_STARS:
        return "Amazing work! You're a superstar!"
    if percent >= TWO_STARS:
        return "Great job, keep going!"
    if percent >= ONE_STAR:
        return "Nice try! A little more practice and you'll ace it!"
    return "Don't worry, try again and you'll improve!"


def score_session(correct: int, total: int) -> QuizResult:
    percent = percentage(correct, total)
    stars = star_rating(percent)
    return QuizResult(
        percentage=percent,
        stars=stars,
        correct_count=correct,
        total=total,
        celebrate=should_celebrate(stars),
        message=motivational_message(percent),
    )


def completion_percent(completed: int, lesson_count: int) -> int:
    """Share of a subject's lessons marked complete."""
    if lesson_count <= 0:
        return 0
    return _round_percent(completed, lesson_count)
