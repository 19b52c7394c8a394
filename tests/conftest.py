import os
import sys

sys.path.append(os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "backend"))

# Keep the app off the developer's database and AI accounts
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
for key in ("GEMINI_API_KEY", "OPENAI_API_KEY", "OPENROUTER_API_KEY"):
    os.environ[key] = ""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from mandarin_tutor.db import Base, get_db
from mandarin_tutor.feedback import FeedbackEnhancer, get_feedback_enhancer
from mandarin_tutor.gemini_client import get_gemini_client
from mandarin_tutor.main import app
from mandarin_tutor.routers.content import get_openai_speech_client

SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class FakeGemini:
    """Stands in for GeminiClient; records prompts and replays canned output."""

    def __init__(self, text="", *, error=None, image=None, audio="UENNREFUQQ=="):
        self.text = text
        self.error = error
        self.image = image
        self.audio = audio
        self.prompts = []
        self.calls = 0

    async def _reply(self, value):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return value

    async def generate(self, prompt, **kwargs):
        self.prompts.append(prompt)
        return await self._reply(self.text)

    async def chat(self, message, history, *, system_instruction=None):
        self.prompts.append(system_instruction)
        return await self._reply(self.text)

    async def generate_image(self, prompt, **kwargs):
        self.prompts.append(prompt)
        return await self._reply(self.image)

    async def generate_speech(self, text, **kwargs):
        self.prompts.append(text)
        return await self._reply(self.audio)

    async def aclose(self):
        pass


@pytest.fixture(scope="function")
def session():
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def gemini():
    return FakeGemini()


@pytest.fixture(scope="function")
def enhancer():
    """Rule-based only by default; tests swap in an AI-backed enhancer when needed."""
    return FeedbackEnhancer(None)


@pytest.fixture(scope="function")
def client(session, gemini, enhancer):
    def override_get_db():
        try:
            yield session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_gemini_client] = lambda: gemini
    app.dependency_overrides[get_feedback_enhancer] = lambda: enhancer
    app.dependency_overrides[get_openai_speech_client] = lambda: None
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
