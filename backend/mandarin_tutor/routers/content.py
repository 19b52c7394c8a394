"""
Content generation endpoints.

Thin wrappers around Gemini for lesson material, exercises, vocabulary,
tutor chat, illustrations and speech. Generation calls retry on rate limits;
any other provider failure is reported as 502.
"""

from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Dict, List, Literal, Optional

import httpx
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from ..gemini_client import GeminiClient, GeminiResponseError, get_gemini_client
from ..json_utils import safe_json_parse
from ..retry import call_with_retry
from ..settings import settings
from ..speech import OpenAISpeechClient, synthesize_speech

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/content", tags=["content"])

MATERIAL_FALLBACK = "## Error\nNo content generated."
CHAT_FALLBACK = "I didn't catch that."


class LessonTarget(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    stage: str
    topic: str
    point: str
    learning_material_context: Optional[str] = Field(default=None, alias="learningMaterialContext")


class VocabularyRequest(BaseModel):
    category: str


class WordRequest(BaseModel):
    character: str


class ChatTurn(BaseModel):
    role: Literal["user", "model"]
    text: str


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    context_material: str = Field(default="", alias="contextMaterial")
    history: List[ChatTurn] = Field(default_factory=list)


class ImageRequest(BaseModel):
    context: str


class SpeechRequest(BaseModel):
    text: str


async def get_openai_speech_client() -> AsyncIterator[Optional[OpenAISpeechClient]]:
    if not settings.openai_api_key:
        yield None
        return
    client = OpenAISpeechClient()
    try:
        yield client
    finally:
        await client.aclose()


async def _with_retry(fn):
    try:
        return await call_with_retry(fn, retries=settings.ai_retry_attempts, delay=settings.ai_retry_delay_seconds)
    except (httpx.HTTPError, GeminiResponseError, RuntimeError) as e:
        logger.error("Gemini call failed: %s", e)
        raise HTTPException(status_code=502, detail=f"AI provider error: {e}")


def is_vocabulary_mode(stage: str, topic: str, point: str) -> bool:
    foundations = "Stage 1" in stage or "Foundations" in stage
    return foundations and ("vocabulary" in topic.lower() or "vocabulary" in point.lower())


def build_material_prompt(stage: str, topic: str, point: str) -> str:
    return f"""
You are a friendly and enthusiastic IGCSE Mandarin tutor speaking to a teenager. Make learning fun and easy to understand.

Generate learning material for:
- Stage: {stage}
- Topic: {topic}
- Learning Point: {point}

Guidelines:
- Simple, conversational English with short sentences; be encouraging.
- Use markdown headers (##, ###) and put "---" on its own line between major sections.
- Give at least 3-5 examples for every concept, formatted as **Characters (Pinyin)** - *English meaning*.
- Use relatable, real-world example sentences for teenagers.
- Start with a friendly introduction and end each section with a short "Key Takeaway".
- Every time you use Chinese text, provide characters, pinyin and English.
""".strip()


def build_exercises_prompt(stage: str, topic: str, point: str, context: str) -> str:
    if is_vocabulary_mode(stage, topic, point):
        rules = """
VOCABULARY MODE: focus strictly on reading and writing characters.
Select ONLY the 4 most important words from the material. For EACH word generate exactly 3 exercises:
1. Reading (meaning): type "quiz"; show the characters; 4 options, one correct English meaning.
2. Reading (pinyin): type "quiz"; show the characters; 4 options, one correct pinyin, distractors with similar sounds/tones.
3. Writing (recall): type "translation"; show English and pinyin; answer is the Chinese character(s).
""".strip()
    else:
        rules = """
1. Identify up to 5 key sub-points. For EACH generate 3 exercises: an easy multiple-choice quiz,
   a medium translation or fill-in-the-blank, and a hard composition or complex translation.
2. Add 3 extra mixed-practice exercises.
""".strip()
    return f"""
You are an expert IGCSE Mandarin tutor.
Context:
- Stage: {stage}
- Topic: {topic}
- Learning Point: {point}
- Learning Material:
{context[:5000]}

Task: generate practice exercises based on the learning material.

{rules}

The "question" field should be in Simplified Chinese where appropriate, and "questionTranslation" MUST give the English translation.

Return a single JSON object, no markdown:
{{"exercises": [
  {{"type": "quiz", "question": "请选择...", "questionTranslation": "Select the...", "answer": "Answer", "options": ["A", "B", "C", "D"]}},
  {{"type": "translation", "question": "请写出...", "questionTranslation": "Write the...", "answer": "Model Answer"}}
]}}
""".strip()


def build_vocabulary_prompt(category: str) -> str:
    return (
        f'Generate a list of 12 common, essential Mandarin vocabulary words for the category: "{category}".\n'
        "Target level: IGCSE / HSK 2-3.\n"
        "Return ONLY a JSON array of objects with keys: character (Simplified Chinese), pinyin (with tone marks), meaning (English).\n"
        "Output format: STRICT JSON array. NO markdown. NO trailing commas."
    )


def build_word_prompt(character: str) -> str:
    return (
        f'For the Chinese word "{character}", provide pinyin (with tone marks), meaning (English), '
        "exampleSentenceCh (a Chinese sentence using it) and exampleSentenceEn (its English translation).\n"
        f'Return JSON: {{"character": "{character}", "pinyin": "...", "meaning": "...", '
        '"exampleSentenceCh": "...", "exampleSentenceEn": "..."}'
    )


def build_chat_instruction(context_material: str) -> str:
    return (
        "You are a friendly and helpful Mandarin tutor for a teenager.\n"
        "The student is currently interacting with this content:\n---\n"
        f"{context_material[:4000]}\n---\n"
        "Answer their questions about this material or Mandarin in general. Keep answers brief, encouraging, and clear."
    )


def build_image_prompt(context: str) -> str:
    return (
        "Draw a simple, friendly, flat-design illustration (vector art style, solid colors) for a Mandarin Chinese "
        f"educational app. Context: {context[:150]}. The image should be culturally neutral or positive, suitable for "
        "teenagers. No text in the image. White background preferred."
    )


def extract_exercises(parsed: Any) -> List[Dict[str, Any]]:
    if isinstance(parsed, dict) and isinstance(parsed.get("exercises"), list):
        items = parsed["exercises"]
    elif isinstance(parsed, list):
        items = parsed
    else:
        return []
    return [item for item in items if isinstance(item, dict)]


@router.post("/material")
async def generate_material(req: LessonTarget, client: GeminiClient = Depends(get_gemini_client)):
    prompt = build_material_prompt(req.stage, req.topic, req.point)
    text = await _with_retry(lambda: client.generate(prompt, max_output_tokens=6000))
    return {"result": text or MATERIAL_FALLBACK}


@router.post("/exercises")
async def generate_exercises(req: LessonTarget, client: GeminiClient = Depends(get_gemini_client)):
    prompt = build_exercises_prompt(req.stage, req.topic, req.point, req.learning_material_context or "")
    text = await _with_retry(
        lambda: client.generate(prompt, max_output_tokens=8192, response_mime_type="application/json")
    )
    return {"result": extract_exercises(safe_json_parse(text or "", {"exercises": []}))}


@router.post("/vocabulary")
async def generate_vocabulary(req: VocabularyRequest, client: GeminiClient = Depends(get_gemini_client)):
    prompt = build_vocabulary_prompt(req.category)
    text = await _with_retry(lambda: client.generate(prompt, response_mime_type="application/json"))
    parsed = safe_json_parse(text or "[]", [])
    return {"result": parsed if isinstance(parsed, list) else []}


@router.post("/word")
async def generate_word_details(req: WordRequest, client: GeminiClient = Depends(get_gemini_client)):
    prompt = build_word_prompt(req.character)
    text = await _with_retry(lambda: client.generate(prompt, response_mime_type="application/json"))
    parsed = safe_json_parse(text or "{}", None)
    return {"result": parsed if isinstance(parsed, dict) else None}


@router.post("/chat")
async def chat(req: ChatRequest, client: GeminiClient = Depends(get_gemini_client)):
    instruction = build_chat_instruction(req.context_material)
    history = [turn.model_dump() for turn in req.history]
    text = await _with_retry(lambda: client.chat(req.message, history, system_instruction=instruction))
    return {"result": text or CHAT_FALLBACK}


@router.post("/image")
async def generate_image(req: ImageRequest, client: GeminiClient = Depends(get_gemini_client)):
    prompt = build_image_prompt(req.context)
    data = await _with_retry(lambda: client.generate_image(prompt))
    return {"result": f"data:image/png;base64,{data}" if data else None}


@router.post("/speech")
async def generate_speech(
    req: SpeechRequest,
    client: GeminiClient = Depends(get_gemini_client),
    openai: Optional[OpenAISpeechClient] = Depends(get_openai_speech_client),
):
    try:
        result = await synthesize_speech(req.text, client, openai)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except (httpx.HTTPError, GeminiResponseError, RuntimeError) as e:
        logger.error("Speech synthesis failed: %s", e)
        raise HTTPException(status_code=502, detail=f"AI provider error: {e}")
    return {"result": result.to_dict()}
