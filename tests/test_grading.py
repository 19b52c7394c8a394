import asyncio
from datetime import datetime, timedelta

import pytest

from mandarin_tutor.db import dump_json
from mandarin_tutor.feedback import FeedbackEnhancer
from mandarin_tutor.grading import few_shot_examples, grade_exercises, overall_score, round_half_up
from mandarin_tutor.models import Lesson

EXERCISES = [
    {"type": "quiz", "question": "“你好”是什么意思？", "answer": "Hello", "options": ["Hello", "Bye", "Thanks", "Sorry"]},
    {"type": "translation", "question": "Translate: Hello, teacher!", "answer": "老师，你好！"},
]


def test_round_half_up() -> None:
    assert round_half_up(62.5) == 63
    assert round_half_up(87.5) == 88
    assert round_half_up(12.4) == 12


def test_overall_score() -> None:
    assert overall_score([]) == 0
    assert overall_score([100, 25]) == 63
    assert overall_score([75, 50, 0]) == 42


def test_grade_exercises_uses_kind_per_exercise() -> None:
    graded = asyncio.run(grade_exercises(EXERCISES, ["hello", "老师，你好。"], FeedbackEnhancer(None)))
    assert [g.result.score for g in graded] == [0, 75]


def test_grade_exercises_requires_one_answer_each() -> None:
    with pytest.raises(ValueError):
        asyncio.run(grade_exercises(EXERCISES, ["Hello"], FeedbackEnhancer(None)))


def _reviewed_lesson(adjusted, comments, updated_at) -> Lesson:
    return Lesson(
        student_name="Mia",
        stage="Stage 1",
        topic="Greetings",
        point="Hello",
        exercises_json=dump_json(EXERCISES),
        answers_json=dump_json(["Hello", "老师你好"]),
        exercise_scores_json=dump_json([100, 100]),
        exercise_feedback_json=dump_json(["Correct! Great job!", "Perfect! Your answer is correct."]),
        tutor_adjusted_scores_json=dump_json(adjusted),
        tutor_comments_json=dump_json(comments),
        updated_at=updated_at,
    )


def test_few_shot_examples_only_include_overridden_scores() -> None:
    now = datetime(2025, 1, 1)
    older = _reviewed_lesson([100, 80], ["", "Punctuation matters here."], now - timedelta(days=1))
    newer = _reviewed_lesson([100, 60], ["", ""], now)
    untouched = _reviewed_lesson([100, 100], ["", ""], now + timedelta(days=1))
    unreviewed = Lesson(student_name="Leo", stage="s", topic="t", point="p", exercises_json="[]")

    examples = few_shot_examples([older, untouched, unreviewed, newer])
    assert [e.score for e in examples] == [60, 80]
    assert examples[0].feedback == "Perfect! Your answer is correct."
    assert examples[1].feedback == "Punctuation matters here."
    assert examples[1].correct_answer == "老师，你好！"
    assert examples[1].student_answer == "老师你好"


def test_few_shot_examples_respect_limit() -> None:
    lessons = [_reviewed_lesson([0, 0], ["", ""], datetime(2025, 1, day)) for day in range(1, 5)]
    assert len(few_shot_examples(lessons, limit=3)) == 3
