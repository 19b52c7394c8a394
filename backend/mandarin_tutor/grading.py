from __future__ import annotations
import logging
import math
from datetime import datetime
from typing import Any, Dict, Iterable, List, Sequence

from .db import load_json
from .evaluator import QuestionKind, evaluate
from .feedback import EnhancedFeedback, FeedbackEnhancer, FewShotExample
from .models import Lesson

logger = logging.getLogger(__name__)

MAX_FEW_SHOT_EXAMPLES = 5


def round_half_up(value: float) -> int:
	return int(math.floor(value + 0.5))


def overall_score(scores: Sequence[int]) -> int:
	if not scores:
		return 0
	return round_half_up(sum(scores) / len(scores))


async def grade_answer(
	enhancer: FeedbackEnhancer,
	*,
	question: str,
	correct_answer: str,
	student_answer: str,
	question_type: str | None,
	examples: Sequence[FewShotExample] = (),
) -> EnhancedFeedback:
	kind = QuestionKind.from_question_type(question_type)
	result = evaluate(correct_answer, student_answer, kind)
	outcome = await enhancer.enhance(
		result,
		question=question,
		correct_answer=correct_answer,
		student_answer=student_answer,
		question_type=question_type,
		examples=examples,
	)
	logger.info("Evaluated %s answer: score=%d feedback=%s", kind.value, outcome.result.score, outcome.source.value)
	return outcome


async def grade_exercises(
	exercises: Sequence[Dict[str, Any]],
	answers: Sequence[str],
	enhancer: FeedbackEnhancer,
	examples: Sequence[FewShotExample] = (),
) -> List[EnhancedFeedback]:
	if len(exercises) != len(answers):
		raise ValueError(f"expected {len(exercises)} answers, got {len(answers)}")
	graded: List[EnhancedFeedback] = []
	# One exercise at a time: the enhancer is rate limited upstream
	for exercise, answer in zip(exercises, answers):
		graded.append(
			await grade_answer(
				enhancer,
				question=str(exercise.get("question") or ""),
				correct_answer=str(exercise.get("answer") or ""),
				student_answer=answer or "",
				question_type=exercise.get("type"),
				examples=examples,
			)
		)
	return graded


def few_shot_examples(lessons: Iterable[Lesson], limit: int = MAX_FEW_SHOT_EXAMPLES) -> List[FewShotExample]:
	"""Collect exercises whose automatic score a tutor overrode, newest lessons first."""
	examples: List[FewShotExample] = []
	ordered = sorted(lessons, key=lambda l: l.updated_at or datetime.min, reverse=True)
	for lesson in ordered:
		adjusted = load_json(lesson.tutor_adjusted_scores_json, [])
		if not adjusted:
			continue
		exercises = load_json(lesson.exercises_json, [])
		answers = load_json(lesson.answers_json, [])
		scores = load_json(lesson.exercise_scores_json, [])
		feedback = load_json(lesson.exercise_feedback_json, [])
		comments = load_json(lesson.tutor_comments_json, [])
		for idx, tutor_score in enumerate(adjusted):
			if idx >= len(exercises) or idx >= len(answers) or idx >= len(scores):
				break
			if tutor_score == scores[idx]:
				continue
			comment = comments[idx] if idx < len(comments) and comments[idx] else ""
			examples.append(
				FewShotExample(
					question=str(exercises[idx].get("question") or ""),
					correct_answer=str(exercises[idx].get("answer") or ""),
					student_answer=str(answers[idx] or ""),
					score=int(tutor_score),
					feedback=comment or (feedback[idx] if idx < len(feedback) else ""),
				)
			)
			if len(examples) >= limit:
				return examples
	return examples
