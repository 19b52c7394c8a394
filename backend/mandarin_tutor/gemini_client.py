from __future__ import annotations
import logging
import httpx
from typing import Any, AsyncIterator, Dict, List, Optional
from fastapi import HTTPException
from .settings import settings

logger = logging.getLogger(__name__)


class GeminiResponseError(RuntimeError):
	"""Gemini answered, but not with the content we asked for."""


class GeminiClient:
	def __init__(
		self,
		api_key: Optional[str] = None,
		*,
		base_url: Optional[str] = None,
		model: Optional[str] = None,
		timeout: float = 30,
		transport: Optional[httpx.AsyncBaseTransport] = None,
	) -> None:
		self.api_key = api_key or settings.gemini_api_key
		if not self.api_key:
			raise ValueError("GEMINI_API_KEY is not configured")
		self.model = model or settings.gemini_model
		self.provider = settings.gemini_provider
		self._base_url = base_url
		self._client = httpx.AsyncClient(timeout=timeout, transport=transport)
		self._fallback_client: Optional[httpx.AsyncClient] = None
		self._fallback_enabled = bool(settings.openrouter_api_key)
		self._openrouter_api_key = settings.openrouter_api_key
		self._openrouter_model = settings.openrouter_model
		self._openrouter_base_url = settings.openrouter_base_url
		self._openrouter_headers = {
			"Authorization": f"Bearer {self._openrouter_api_key}" if self._openrouter_api_key else "",
			"Content-Type": "application/json",
			"HTTP-Referer": settings.openrouter_referer,
			"X-Title": settings.openrouter_title,
		}
		if self._fallback_enabled:
			self._fallback_client = httpx.AsyncClient(timeout=timeout, transport=transport)

	def endpoint_for(self, model: str) -> str:
		if self._base_url:
			return self._base_url
		if self.provider == "vertex":
			region = settings.vertex_region
			project = settings.vertex_project or "placeholder-project"
			return (
				f"https://{region}-aiplatform.googleapis.com/v1/projects/{project}/locations/{region}/publishers/google/models/{model}:generateContent"
			)
		return f"https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

	async def generate(
		self,
		prompt: str,
		*,
		system_instruction: Optional[str] = None,
		max_output_tokens: Optional[int] = None,
		response_mime_type: Optional[str] = None,
	) -> str:
		payload: Dict[str, Any] = {"contents": [{"parts": [{"text": prompt}]}]}
		if system_instruction:
			payload["systemInstruction"] = {"parts": [{"text": system_instruction}]}
		generation_config: Dict[str, Any] = {}
		if max_output_tokens is not None:
			generation_config["maxOutputTokens"] = max_output_tokens
		if response_mime_type:
			generation_config["responseMimeType"] = response_mime_type
		if generation_config:
			payload["generationConfig"] = generation_config
		return await self._generate_text(payload, fallback_messages=[{"role": "user", "content": prompt}], system_instruction=system_instruction)

	async def chat(self, message: str, history: List[Dict[str, str]], *, system_instruction: Optional[str] = None) -> str:
		contents = [{"role": h["role"], "parts": [{"text": h["text"]}]} for h in history]
		contents.append({"role": "user", "parts": [{"text": message}]})
		payload: Dict[str, Any] = {"contents": contents}
		if system_instruction:
			payload["systemInstruction"] = {"parts": [{"text": system_instruction}]}
		# OpenRouter speaks the OpenAI dialect: "model" turns become "assistant"
		fallback_messages = [
			{"role": "assistant" if h["role"] == "model" else "user", "content": h["text"]} for h in history
		]
		fallback_messages.append({"role": "user", "content": message})
		return await self._generate_text(payload, fallback_messages=fallback_messages, system_instruction=system_instruction)

	async def generate_image(self, prompt: str, *, model: Optional[str] = None) -> Optional[str]:
		"""Return base64 image data, or None when the model answered without an image."""
		data = await self._post(self.endpoint_for(model or settings.gemini_image_model), {"contents": [{"parts": [{"text": prompt}]}]})
		for candidate in data.get("candidates") or []:
			for part in (candidate.get("content") or {}).get("parts") or []:
				inline = part.get("inlineData") or part.get("inline_data")
				if inline and inline.get("data"):
					return inline["data"]
		return None

	async def generate_speech(self, text: str, *, voice: Optional[str] = None, model: Optional[str] = None) -> str:
		payload: Dict[str, Any] = {
			"contents": [{"parts": [{"text": text}]}],
			"generationConfig": {
				"responseModalities": ["AUDIO"],
				"speechConfig": {
					"voiceConfig": {"prebuiltVoiceConfig": {"voiceName": voice or settings.gemini_tts_voice}},
				},
			},
		}
		data = await self._post(self.endpoint_for(model or settings.gemini_tts_model), payload)
		candidates = data.get("candidates") or []
		if not candidates:
			raise GeminiResponseError("No candidates in response")
		candidate = candidates[0]
		finish_reason = candidate.get("finishReason")
		if finish_reason and finish_reason != "STOP":
			raise GeminiResponseError(f"TTS request finished with reason: {finish_reason}")
		parts = (candidate.get("content") or {}).get("parts") or []
		audio = (parts[0].get("inlineData") or {}).get("data") if parts else None
		if not audio:
			raise GeminiResponseError("No audio data in response")
		return audio

	async def _post(self, url: str, payload: Dict[str, Any]) -> Dict[str, Any]:
		params: Dict[str, Any] = {}
		headers: Dict[str, str] = {}
		if self.provider == "vertex":
			headers["x-goog-api-key"] = self.api_key
		else:
			params["key"] = self.api_key
		r = await self._client.post(url, params=params, headers=headers, json=payload)
		r.raise_for_status()
		try:
			return r.json()
		except ValueError as exc:
			raise GeminiResponseError(f"Unexpected Gemini response: {r.text}") from exc

	async def _generate_text(
		self,
		payload: Dict[str, Any],
		*,
		fallback_messages: List[Dict[str, str]],
		system_instruction: Optional[str],
	) -> str:
		last_error: Optional[Exception] = None
		try:
			data = await self._post(self.endpoint_for(self.model), payload)
			try:
				candidate = data["candidates"][0]
				parts = (candidate.get("content") or {}).get("parts") or []
				text = "".join(part.get("text", "") for part in parts)
			except (KeyError, IndexError, TypeError, AttributeError):
				last_error = GeminiResponseError(f"Unexpected Gemini response: {data}")
			else:
				# A candidate cut off by MAX_TOKENS or SAFETY carries no text; callers substitute their own default
				if not text:
					logger.warning("Gemini returned no text (finishReason=%s)", candidate.get("finishReason"))
				return text
		except (httpx.HTTPError, GeminiResponseError) as err:
			last_error = err
		if not self._fallback_enabled:
			raise last_error
		logger.warning("Gemini call failed (%s); falling back to OpenRouter", last_error)
		if system_instruction:
			fallback_messages = [{"role": "system", "content": system_instruction}, *fallback_messages]
		return await self._fallback_generate(fallback_messages, last_error)

	async def aclose(self) -> None:
		await self._client.aclose()
		if self._fallback_client is not None:
			await self._fallback_client.aclose()

	async def _fallback_generate(self, messages: List[Dict[str, str]], primary_error: Optional[Exception]) -> str:
		if not self._fallback_client or not self._openrouter_api_key:
			raise primary_error or RuntimeError("Fallback requested but OpenRouter is not configured")
		headers = {k: v for k, v in self._openrouter_headers.items() if v}
		payload: Dict[str, Any] = {
			"model": self._openrouter_model,
			"messages": messages,
		}
		try:
			r = await self._fallback_client.post(
				self._openrouter_base_url,
				headers=headers,
				json=payload,
			)
			r.raise_for_status()
			data = r.json()
			return data["choices"][0]["message"]["content"]
		except Exception as fallback_err:
			if primary_error is not None:
				raise RuntimeError(
					f"Gemini primary call failed ({primary_error}); fallback via OpenRouter also failed"
				) from fallback_err
			raise fallback_err


async def get_gemini_client() -> AsyncIterator[GeminiClient]:
	try:
		client = GeminiClient()
	except ValueError as e:
		raise HTTPException(status_code=500, detail=str(e))
	try:
		yield client
	finally:
		await client.aclose()
