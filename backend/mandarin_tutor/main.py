import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .db import Base, engine
from .settings import settings
from .routers import health, evaluate, content, lessons

logging.basicConfig(
	level=settings.log_level.upper(),
	format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

app = FastAPI(title="IGCSE Mandarin Tutor API")
app.add_middleware(
	CORSMiddleware,
	allow_origins=settings.cors_origin_list,
	allow_methods=["GET", "POST", "PUT", "OPTIONS"],
	allow_headers=["Content-Type"],
)
app.include_router(health.router)
app.include_router(evaluate.router)
app.include_router(content.router)
app.include_router(lessons.router)


@app.on_event("startup")
async def startup_event():
	# Initialize DB schema
	Base.metadata.create_all(bind=engine)
