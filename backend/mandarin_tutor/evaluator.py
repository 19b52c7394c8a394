"""
Rule-based answer scoring for Mandarin exercises.

Scores a student's answer against the reference answer without any network
call. Multiple-choice questions are scored all-or-nothing; free-text answers
(translations, character writing) earn partial credit:

    100  exact match after trimming
     75  same characters, reference has no punctuation but the student added some
     75  same characters and at least one reference punctuation mark present
     50  same characters, none of the reference punctuation present
     25  different characters but at least one character in common
      0  nothing in common

Only CJK ideographs (U+4E00..U+9FFF) and the punctuation set below take part
in the comparison; spaces, Latin letters and digits are ignored.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from enum import Enum
from typing import List, Optional


class QuestionKind(str, Enum):
	CHOICE = "choice"
	FREE_TEXT = "free_text"

	@classmethod
	def from_question_type(cls, question_type: Optional[str]) -> "QuestionKind":
		# Exercises generated for lessons are typed "quiz" (multiple choice) or "translation"
		if (question_type or "").strip().lower() in ("quiz", "choice"):
			return cls.CHOICE
		return cls.FREE_TEXT


class CharacterClass(str, Enum):
	IDEOGRAPH = "ideograph"
	PUNCTUATION = "punctuation"
	OTHER = "other"


PUNCTUATION = frozenset("，。！？；：、（）【】《》" ",.!?;:-\"'()[]{}")

SCORE_TONES = {100: "perfect", 75: "excellent", 50: "good", 25: "needs work", 0: "incorrect"}

CHOICE_CORRECT = "Correct! Great job!"
CHOICE_INCORRECT = "Incorrect."

EXACT_MATCH = "Perfect! Your answer is exactly correct."
IDEOGRAPHS_ONLY_MATCH = "Perfect! Your answer is correct."
EXTRA_PUNCTUATION = "Excellent! Your Chinese characters are correct, but you have extra punctuation that should be removed."
PARTIAL_PUNCTUATION = "Great! Your Chinese characters are correct and you have some correct punctuation. Just need to match all punctuation exactly."
WRONG_PUNCTUATION = "Good! Your Chinese characters are correct, but the punctuation needs to match the correct answer."
SOME_OVERLAP = "You have some correct characters, but the answer needs more work. Keep practicing!"
NO_OVERLAP = "The answer is incorrect. Please review the correct answer and try again."


@dataclass(frozen=True)
class EvaluationResult:
	score: int
	feedback: str

	def with_feedback(self, feedback: str) -> "EvaluationResult":
		"""Return a new result with rewritten feedback; the score is never touched."""
		return replace(self, feedback=feedback)

	def to_dict(self) -> dict:
		return {"score": self.score, "feedback": self.feedback}


def classify_char(ch: str) -> CharacterClass:
	if "\u4e00" <= ch <= "\u9fff":
		return CharacterClass.IDEOGRAPH
	if ch in PUNCTUATION:
		return CharacterClass.PUNCTUATION
	return CharacterClass.OTHER


def extract_ideographs(text: str) -> str:
	return "".join(ch for ch in text if classify_char(ch) is CharacterClass.IDEOGRAPH)


def extract_punctuation(text: str) -> List[str]:
	return [ch for ch in text if classify_char(ch) is CharacterClass.PUNCTUATION]


def _score_choice(correct: str, student: str) -> EvaluationResult:
	if correct == student:
		return EvaluationResult(100, CHOICE_CORRECT)
	return EvaluationResult(0, CHOICE_INCORRECT)


def _score_free_text(correct: str, student: str) -> EvaluationResult:
	if correct == student:
		return EvaluationResult(100, EXACT_MATCH)

	correct_chars = extract_ideographs(correct)
	student_chars = extract_ideographs(student)
	correct_punct = extract_punctuation(correct)
	student_punct = extract_punctuation(student)

	# Two answers without any ideographs compare equal here; punctuation decides the score.
	if correct_chars == student_chars:
		if not correct_punct:
			if not student_punct:
				return EvaluationResult(100, IDEOGRAPHS_ONLY_MATCH)
			return EvaluationResult(75, EXTRA_PUNCTUATION)
		if any(p in student_punct for p in correct_punct):
			return EvaluationResult(75, PARTIAL_PUNCTUATION)
		return EvaluationResult(50, WRONG_PUNCTUATION)

	if correct_chars and student_chars and any(ch in student_chars for ch in correct_chars):
		return EvaluationResult(25, SOME_OVERLAP)
	return EvaluationResult(0, NO_OVERLAP)


def evaluate(correct_answer: str, student_answer: str, kind: QuestionKind = QuestionKind.FREE_TEXT) -> EvaluationResult:
	correct = correct_answer.strip()
	student = student_answer.strip()
	if kind is QuestionKind.CHOICE:
		return _score_choice(correct, student)
	return _score_free_text(correct, student)
