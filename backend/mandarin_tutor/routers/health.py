from fastapi import APIRouter
from ..settings import settings

router = APIRouter(tags=["health"])


@router.get("/health")
def health():
	return {
		"status": "ok",
		"geminiConfigured": bool(settings.gemini_api_key),
		"openaiConfigured": bool(settings.openai_api_key),
	}
