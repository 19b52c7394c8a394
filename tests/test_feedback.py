import asyncio

from conftest import FakeGemini

from mandarin_tutor.evaluator import evaluate
from mandarin_tutor.feedback import (
    FeedbackEnhancer,
    FeedbackSource,
    FewShotExample,
    build_feedback_prompt,
)


def _enhance(enhancer: FeedbackEnhancer, correct: str, student: str, **kwargs):
    result = evaluate(correct, student)
    return result, asyncio.run(
        enhancer.enhance(result, question="Translate: hello", correct_answer=correct, student_answer=student, **kwargs)
    )


class SlowGemini(FakeGemini):
    async def generate(self, prompt, **kwargs):
        await asyncio.sleep(1)
        return "too late"


def test_without_client_keeps_rule_feedback() -> None:
    result, outcome = _enhance(FeedbackEnhancer(None), "你好", "你好。")
    assert outcome.source is FeedbackSource.RULE
    assert outcome.result == result
    assert not outcome.enhanced


def test_ai_text_replaces_feedback_but_not_score() -> None:
    fake = FakeGemini("  Lovely characters! Just drop the full stop.  ")
    result, outcome = _enhance(FeedbackEnhancer(fake, retry_delay=0), "你好", "你好。")
    assert outcome.source is FeedbackSource.AI
    assert outcome.result.score == result.score == 75
    assert outcome.result.feedback == "Lovely characters! Just drop the full stop."


def test_failure_falls_back_to_rule_feedback() -> None:
    fake = FakeGemini(error=RuntimeError("boom"))
    result, outcome = _enhance(FeedbackEnhancer(fake, retry_delay=0), "你好", "再见")
    assert outcome.source is FeedbackSource.RULE
    assert outcome.result == result
    assert fake.calls == 1


def test_rate_limit_is_retried_once() -> None:
    fake = FakeGemini(error=RuntimeError("429 RESOURCE_EXHAUSTED"))
    _, outcome = _enhance(FeedbackEnhancer(fake, retries=1, retry_delay=0), "你好", "你好")
    assert outcome.source is FeedbackSource.RULE
    assert outcome.result.score == 100
    assert fake.calls == 2


def test_timeout_falls_back() -> None:
    result, outcome = _enhance(FeedbackEnhancer(SlowGemini(), timeout=0.01, retry_delay=0), "你好，", "你好！")
    assert outcome.source is FeedbackSource.RULE
    assert outcome.result == result
    assert outcome.result.score == 50


def test_blank_ai_reply_is_ignored() -> None:
    result, outcome = _enhance(FeedbackEnhancer(FakeGemini("   "), retry_delay=0), "你好", "你")
    assert outcome.source is FeedbackSource.RULE
    assert outcome.result == result


def test_score_is_stable_whether_or_not_ai_is_available() -> None:
    _, with_ai = _enhance(FeedbackEnhancer(FakeGemini("Nice!"), retry_delay=0), "我爱你。", "我爱他。")
    _, broken = _enhance(FeedbackEnhancer(FakeGemini(error=RuntimeError("down")), retry_delay=0), "我爱你。", "我爱他。")
    _, without = _enhance(FeedbackEnhancer(None), "我爱你。", "我爱他。")
    assert with_ai.result.score == broken.result.score == without.result.score == 25


def test_prompt_mentions_score_and_examples() -> None:
    example = FewShotExample(
        question="Write: thank you",
        correct_answer="谢谢",
        student_answer="谢",
        score=50,
        feedback="Half there, add the second 谢.",
    )
    prompt = build_feedback_prompt(
        evaluate("谢谢", "谢"),
        question="Write: thank you",
        correct_answer="谢谢",
        student_answer="谢",
        question_type="translation",
        examples=[example],
    )
    assert "Score: 25% (needs work)" in prompt
    assert "Question Type: translation" in prompt
    assert "Tutor score: 50%" in prompt
    assert "Half there" in prompt
