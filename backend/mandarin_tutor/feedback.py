"""
AI rewording of rule-based feedback.

The enhancer only ever changes the feedback text. Every failure (missing key,
timeout, rate limit, empty or malformed reply) yields the rule-based result
unchanged, tagged with ``FeedbackSource.RULE``.
"""

from __future__ import annotations
import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, Optional, Protocol, Sequence

from .evaluator import SCORE_TONES, EvaluationResult
from .gemini_client import GeminiClient
from .retry import call_with_retry
from .settings import settings

logger = logging.getLogger(__name__)


class TextGenerator(Protocol):
	async def generate(self, prompt: str, *, max_output_tokens: Optional[int] = None) -> str: ...


class FeedbackSource(str, Enum):
	AI = "ai"
	RULE = "rule"


@dataclass(frozen=True)
class EnhancedFeedback:
	result: EvaluationResult
	source: FeedbackSource

	@property
	def enhanced(self) -> bool:
		return self.source is FeedbackSource.AI


@dataclass(frozen=True)
class FewShotExample:
	"""A scoring instance a tutor has already corrected."""
	question: str
	correct_answer: str
	student_answer: str
	score: int
	feedback: str


RUBRIC = (
	"- 100%: Exact match (text and punctuation)\n"
	"- 75%: Chinese characters match + any correct punctuation\n"
	"- 50%: Chinese characters match but punctuation all different\n"
	"- 25%: Any overlap between student and correct answer\n"
	"- 0%: No overlap"
)


def build_feedback_prompt(
	result: EvaluationResult,
	*,
	question: str,
	correct_answer: str,
	student_answer: str,
	question_type: Optional[str],
	examples: Sequence[FewShotExample] = (),
) -> str:
	lines = [
		"You are an IGCSE Mandarin teacher. Provide brief, encouraging feedback for a student's answer.",
		"",
		f"Question: {question}",
		f"Question Type: {question_type or 'general'}",
		f"Correct Answer: {correct_answer}",
		f"Student's Answer: {student_answer}",
		f"Score: {result.score}% ({SCORE_TONES.get(result.score, 'scored')})",
		"",
		"The score has already been calculated using rule-based criteria:",
		RUBRIC,
	]
	if examples:
		lines += ["", "Here is how the tutor has marked similar answers before:"]
		for ex in examples:
			lines.append(
				f"- Question: {ex.question} | Correct: {ex.correct_answer} | Student: {ex.student_answer} | "
				f"Tutor score: {ex.score}% | Tutor feedback: {ex.feedback}"
			)
	lines += [
		"",
		"Provide a brief, encouraging feedback message (1-2 sentences) that:",
		"1. Acknowledges what the student got right",
		"2. Gently points out what needs improvement",
		"3. Is encouraging and supportive",
		"",
		"Return ONLY the feedback text, no JSON, no quotes, just the feedback message.",
	]
	return "\n".join(lines)


class FeedbackEnhancer:
	def __init__(
		self,
		client: Optional[TextGenerator],
		*,
		timeout: Optional[float] = None,
		retries: Optional[int] = None,
		retry_delay: Optional[float] = None,
	) -> None:
		self.client = client
		self.timeout = settings.feedback_timeout_seconds if timeout is None else timeout
		self.retries = settings.feedback_retries if retries is None else retries
		self.retry_delay = settings.ai_retry_delay_seconds if retry_delay is None else retry_delay

	async def enhance(
		self,
		result: EvaluationResult,
		*,
		question: str,
		correct_answer: str,
		student_answer: str,
		question_type: Optional[str] = None,
		examples: Sequence[FewShotExample] = (),
	) -> EnhancedFeedback:
		if self.client is None:
			return EnhancedFeedback(result, FeedbackSource.RULE)
		prompt = build_feedback_prompt(
			result,
			question=question,
			correct_answer=correct_answer,
			student_answer=student_answer,
			question_type=question_type,
			examples=examples,
		)
		client = self.client
		try:
			text = await asyncio.wait_for(
				call_with_retry(
					lambda: client.generate(prompt, max_output_tokens=200),
					retries=self.retries,
					delay=self.retry_delay,
				),
				timeout=self.timeout,
			)
		except Exception as e:
			logger.warning("Could not enhance feedback with AI, using rule-based feedback: %r", e)
			return EnhancedFeedback(result, FeedbackSource.RULE)
		text = text.strip() if isinstance(text, str) else ""
		if not text:
			return EnhancedFeedback(result, FeedbackSource.RULE)
		return EnhancedFeedback(result.with_feedback(text), FeedbackSource.AI)


async def get_feedback_enhancer() -> AsyncIterator[FeedbackEnhancer]:
	if not settings.gemini_api_key:
		yield FeedbackEnhancer(None)
		return
	client = GeminiClient(timeout=settings.feedback_timeout_seconds)
	try:
		yield FeedbackEnhancer(client)
	finally:
		await client.aclose()
