from __future__ import annotations
import json
import logging
import re
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def clean_json_string(text: str) -> str:
	"""Trim model output down to the JSON document it most likely contains."""
	if not text:
		return "{}"
	clean = text.strip().replace("```json", "").replace("```", "")
	first_brace = clean.find("{")
	first_bracket = clean.find("[")
	if first_brace == -1 and first_bracket == -1:
		return text
	if first_brace == -1:
		start = first_bracket
	elif first_bracket == -1:
		start = first_brace
	else:
		start = min(first_brace, first_bracket)
	end = clean.rfind("}") if clean[start] == "{" else clean.rfind("]")
	if end > start:
		clean = clean[start:end + 1]
	# Line comments and trailing commas are common in LLM output
	clean = re.sub(r"//.*$", "", clean, flags=re.MULTILINE)
	clean = re.sub(r",(\s*[\]}])", r"\1", clean)
	return clean


def safe_json_parse(text: str, fallback: T) -> Any | T:
	try:
		return json.loads(clean_json_string(text))
	except ValueError as exc:
		logger.error("JSON parse failed: %s", exc)
		return fallback
