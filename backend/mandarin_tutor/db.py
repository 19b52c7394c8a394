from __future__ import annotations
import json
from typing import Any
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from .settings import settings


DATABASE_URL = settings.database_url or "sqlite:///./tutor.db"

_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, connect_args=_connect_args, future=True)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
Base = declarative_base()


def get_db():
	db = SessionLocal()
	try:
		yield db
	finally:
		db.close()


# JSON snapshots are stored in Text columns
def dump_json(value: Any) -> str | None:
	if value is None:
		return None
	return json.dumps(value, ensure_ascii=False)


def load_json(raw: str | None, default: Any = None) -> Any:
	if not raw:
		return default
	try:
		return json.loads(raw)
	except ValueError:
		return default
