from __future__ import annotations
from datetime import datetime
from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text, UniqueConstraint
from .db import Base


class Student(Base):
	__tablename__ = "students"
	id = Column(Integer, primary_key=True, autoincrement=True)
	name = Column(String(128), unique=True, index=True, nullable=False)
	stage = Column(String(128), nullable=True)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class Lesson(Base):
	__tablename__ = "lessons"
	id = Column(Integer, primary_key=True, autoincrement=True)
	student_name = Column(String(128), index=True, nullable=False)
	stage = Column(String(128), nullable=False)
	topic = Column(String(256), nullable=False)
	point = Column(String(256), nullable=False)
	material = Column(Text, nullable=True)
	exercises_json = Column(Text, nullable=False, default="[]")
	# Filled in when the student submits
	answers_json = Column(Text, nullable=True)
	exercise_scores_json = Column(Text, nullable=True)
	exercise_feedback_json = Column(Text, nullable=True)
	# Filled in when a tutor reviews the automatic marking
	tutor_adjusted_scores_json = Column(Text, nullable=True)
	tutor_comments_json = Column(Text, nullable=True)
	tutor_overall_comment = Column(Text, nullable=True)
	score = Column(Integer, nullable=True)
	completed = Column(Boolean, default=False, nullable=False)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class VocabProgress(Base):
	__tablename__ = "vocab_progress"
	__table_args__ = (UniqueConstraint("student_name", "category", "word", name="uq_vocab_student_word"),)
	id = Column(Integer, primary_key=True, autoincrement=True)
	student_name = Column(String(128), index=True, nullable=False)
	category = Column(String(128), nullable=False)
	word = Column(String(64), nullable=False)
	pinyin = Column(String(128), nullable=True)
	meaning = Column(String(256), nullable=True)
	status = Column(String(32), default="learning", nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
