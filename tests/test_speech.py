import asyncio
import base64

import pytest
from conftest import FakeGemini

from mandarin_tutor.speech import is_single_character, prepare_speech_text, synthesize_speech


class FakeOpenAI:
    def __init__(self, audio=b"mp3-bytes", error=None):
        self.audio = audio
        self.error = error
        self.inputs = []

    async def synthesize(self, text):
        self.inputs.append(text)
        if self.error is not None:
            raise self.error
        return self.audio


def test_prepare_strips_markdown_and_truncates() -> None:
    assert prepare_speech_text("**你好** #1_") == "你好 1"
    assert len(prepare_speech_text("好" * 600)) == 500


def test_single_character_detection() -> None:
    assert is_single_character("好")
    assert not is_single_character("你好")
    assert not is_single_character("a")
    # Late additions to the unified block are spoken through the sentence path
    assert not is_single_character("\u9fa6")
    assert is_single_character("\u9fa5")


def test_empty_text_is_rejected() -> None:
    with pytest.raises(ValueError):
        asyncio.run(synthesize_speech("  ** ", FakeGemini()))


def test_single_character_prefers_openai() -> None:
    gemini, openai = FakeGemini(), FakeOpenAI()
    result = asyncio.run(synthesize_speech("好", gemini, openai))
    assert result.format == "openai"
    assert result.mime_type == "audio/mpeg"
    assert base64.b64decode(result.audio_data) == b"mp3-bytes"
    assert openai.inputs == ["好"]
    assert gemini.calls == 0


def test_openai_failure_falls_back_to_gemini_with_repeated_character() -> None:
    gemini, openai = FakeGemini(audio="R0VNSU5J"), FakeOpenAI(error=RuntimeError("down"))
    result = asyncio.run(synthesize_speech("好", gemini, openai))
    assert result.format == "gemini"
    assert result.audio_data == "R0VNSU5J"
    assert gemini.prompts == ["好，好"]


def test_phrases_go_straight_to_gemini() -> None:
    gemini, openai = FakeGemini(), FakeOpenAI()
    result = asyncio.run(synthesize_speech("你好吗？", gemini, openai))
    assert result.format == "gemini"
    assert openai.inputs == []
    assert gemini.prompts == ["你好吗？"]


def test_result_serialises_to_camel_case() -> None:
    result = asyncio.run(synthesize_speech("谢谢", FakeGemini(audio="QQ==")))
    assert result.to_dict() == {"audioData": "QQ==", "format": "gemini", "mimeType": "audio/L16;rate=24000"}
