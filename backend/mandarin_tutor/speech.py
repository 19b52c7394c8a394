from __future__ import annotations
import base64
import logging
import re
from dataclasses import asdict, dataclass
from typing import Optional

import httpx

from .gemini_client import GeminiClient
from .retry import call_with_retry
from .settings import settings

logger = logging.getLogger(__name__)

MAX_SPEECH_CHARS = 500
# Ideographs up to U+9FA5 only; the scoring range runs to U+9FFF
SINGLE_CHARACTER_RE = re.compile(r"[\u4e00-\u9fa5]")


@dataclass(frozen=True)
class SpeechResult:
	audio_data: str  # base64
	format: str
	mime_type: str

	def to_dict(self) -> dict:
		data = asdict(self)
		return {"audioData": data["audio_data"], "format": data["format"], "mimeType": data["mime_type"]}


class OpenAISpeechClient:
	"""Minimal client for OpenAI's /audio/speech endpoint."""

	def __init__(self, api_key: Optional[str] = None, *, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
		self.api_key = api_key or settings.openai_api_key
		if not self.api_key:
			raise ValueError("OPENAI_API_KEY is not configured")
		self._client = httpx.AsyncClient(timeout=30, transport=transport)

	async def synthesize(self, text: str) -> bytes:
		r = await self._client.post(
			f"{settings.openai_base_url.rstrip('/')}/audio/speech",
			headers={"Authorization": f"Bearer {self.api_key}"},
			json={"model": settings.openai_tts_model, "voice": settings.openai_tts_voice, "input": text},
		)
		r.raise_for_status()
		return r.content

	async def aclose(self) -> None:
		await self._client.aclose()


def prepare_speech_text(text: str) -> str:
	return re.sub(r"[*#_]", "", text or "")[:MAX_SPEECH_CHARS].strip()


def is_single_character(text: str) -> bool:
	return len(text) == 1 and SINGLE_CHARACTER_RE.match(text) is not None


async def synthesize_speech(
	text: str,
	gemini: GeminiClient,
	openai: Optional[OpenAISpeechClient] = None,
	*,
	retry_delay: Optional[float] = None,
) -> SpeechResult:
	speech_text = prepare_speech_text(text)
	if not speech_text:
		raise ValueError("Text to convert is empty")

	single = is_single_character(speech_text)
	# OpenAI pronounces isolated characters more reliably than Gemini
	if single and openai is not None:
		try:
			audio = await openai.synthesize(speech_text)
			return SpeechResult(base64.b64encode(audio).decode("ascii"), "openai", "audio/mpeg")
		except Exception as e:
			logger.warning("OpenAI TTS failed, falling back to Gemini: %s", e)

	final_text = f"{speech_text}，{speech_text}" if single else speech_text
	audio_b64 = await call_with_retry(
		lambda: gemini.generate_speech(final_text),
		retries=1,
		delay=settings.ai_retry_delay_seconds if retry_delay is None else retry_delay,
	)
	# Gemini returns raw 24kHz 16-bit PCM
	return SpeechResult(audio_b64, "gemini", "audio/L16;rate=24000")
