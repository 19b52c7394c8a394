from __future__ import annotations
import logging
from collections import defaultdict
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..db import dump_json, get_db, load_json
from ..feedback import FeedbackEnhancer, get_feedback_enhancer
from ..grading import few_shot_examples, grade_exercises, overall_score, round_half_up
from ..models import Lesson, Student, VocabProgress

logger = logging.getLogger(__name__)

router = APIRouter(tags=["lessons"])


class StudentIn(BaseModel):
	name: str
	stage: Optional[str] = None


class StudentOut(BaseModel):
	id: int
	name: str
	stage: Optional[str] = None


class Exercise(BaseModel):
	model_config = ConfigDict(populate_by_name=True, extra="allow")

	type: str = "translation"
	question: str
	question_translation: Optional[str] = Field(default=None, alias="questionTranslation")
	answer: str
	options: Optional[List[str]] = None


class LessonIn(BaseModel):
	model_config = ConfigDict(populate_by_name=True)

	student_name: str = Field(alias="studentName")
	stage: str
	topic: str
	point: str
	material: Optional[str] = None
	exercises: List[Exercise] = Field(default_factory=list)


class SubmitRequest(BaseModel):
	answers: List[str]


class ReviewRequest(BaseModel):
	model_config = ConfigDict(populate_by_name=True)

	scores: List[int]
	comments: List[str] = Field(default_factory=list)
	overall_comment: str = Field(default="", alias="overallComment")


class VocabIn(BaseModel):
	model_config = ConfigDict(populate_by_name=True)

	student_name: str = Field(alias="studentName")
	category: str
	word: str
	pinyin: Optional[str] = None
	meaning: Optional[str] = None
	status: str = "learning"


def _lesson_to_dict(row: Lesson) -> Dict[str, Any]:
	return {
		"id": row.id,
		"studentName": row.student_name,
		"stage": row.stage,
		"topic": row.topic,
		"point": row.point,
		"material": row.material,
		"exercises": load_json(row.exercises_json, []),
		"answers": load_json(row.answers_json),
		"exerciseScores": load_json(row.exercise_scores_json),
		"exerciseFeedback": load_json(row.exercise_feedback_json),
		"tutorAdjustedScores": load_json(row.tutor_adjusted_scores_json),
		"tutorComments": load_json(row.tutor_comments_json),
		"tutorOverallComment": row.tutor_overall_comment,
		"score": row.score,
		"completed": bool(row.completed),
	}


def _vocab_to_dict(row: VocabProgress) -> Dict[str, Any]:
	return {
		"studentName": row.student_name,
		"category": row.category,
		"word": row.word,
		"pinyin": row.pinyin,
		"meaning": row.meaning,
		"status": row.status,
	}


def _get_lesson(db: Session, lesson_id: int) -> Lesson:
	row = db.get(Lesson, lesson_id)
	if row is None:
		raise HTTPException(status_code=404, detail="lesson not found")
	return row


@router.post("/students", response_model=StudentOut, status_code=201)
def create_student(req: StudentIn, db: Session = Depends(get_db)):
	name = (req.name or "").strip()
	if not name:
		raise HTTPException(status_code=400, detail="name is required")
	row = Student(name=name, stage=req.stage)
	db.add(row)
	try:
		db.commit()
	except IntegrityError:
		db.rollback()
		raise HTTPException(status_code=409, detail="student already exists")
	db.refresh(row)
	return StudentOut(id=row.id, name=row.name, stage=row.stage)


@router.get("/students", response_model=List[StudentOut])
def list_students(db: Session = Depends(get_db)):
	rows = db.query(Student).order_by(Student.name).all()
	return [StudentOut(id=r.id, name=r.name, stage=r.stage) for r in rows]


@router.get("/students/{name}", response_model=StudentOut)
def find_student(name: str, db: Session = Depends(get_db)):
	row = db.query(Student).filter(Student.name == name).first()
	if row is None:
		raise HTTPException(status_code=404, detail="student not found")
	return StudentOut(id=row.id, name=row.name, stage=row.stage)


@router.post("/lessons", status_code=201)
def assign_lesson(req: LessonIn, db: Session = Depends(get_db)):
	row = Lesson(
		student_name=req.student_name,
		stage=req.stage,
		topic=req.topic,
		point=req.point,
		material=req.material,
		exercises_json=dump_json([e.model_dump(by_alias=True, exclude_none=True) for e in req.exercises]),
	)
	db.add(row)
	db.commit()
	db.refresh(row)
	return _lesson_to_dict(row)


@router.get("/lessons")
def list_lessons(student: Optional[str] = None, db: Session = Depends(get_db)):
	q = db.query(Lesson)
	if student:
		q = q.filter(Lesson.student_name == student)
	return [_lesson_to_dict(r) for r in q.order_by(Lesson.id).all()]


@router.get("/lessons/{lesson_id}")
def get_lesson(lesson_id: int, db: Session = Depends(get_db)):
	return _lesson_to_dict(_get_lesson(db, lesson_id))


def _prepare_submission(db: Session, lesson_id: int, answers: List[str]):
	row = _get_lesson(db, lesson_id)
	exercises = load_json(row.exercises_json, [])
	if len(answers) != len(exercises):
		raise HTTPException(status_code=400, detail=f"expected {len(exercises)} answers, got {len(answers)}")
	reviewed = db.query(Lesson).filter(Lesson.tutor_adjusted_scores_json.isnot(None)).all()
	return row, exercises, few_shot_examples(reviewed)


def _store_submission(db: Session, row: Lesson, answers: List[str], graded) -> Dict[str, Any]:
	scores = [g.result.score for g in graded]
	row.answers_json = dump_json(answers)
	row.exercise_scores_json = dump_json(scores)
	row.exercise_feedback_json = dump_json([g.result.feedback for g in graded])
	# A resubmission discards any earlier tutor review
	row.tutor_adjusted_scores_json = None
	row.tutor_comments_json = None
	row.score = overall_score(scores)
	row.completed = True
	db.add(row)
	db.commit()
	db.refresh(row)
	logger.info("Lesson %s submitted by %s: score=%s", row.id, row.student_name, row.score)
	return _lesson_to_dict(row)


@router.post("/lessons/{lesson_id}/submit")
async def submit_lesson(
	lesson_id: int,
	req: SubmitRequest,
	db: Session = Depends(get_db),
	enhancer: FeedbackEnhancer = Depends(get_feedback_enhancer),
):
	# Session work stays off the event loop; only the AI calls are awaited directly
	row, exercises, examples = await run_in_threadpool(_prepare_submission, db, lesson_id, req.answers)
	graded = await grade_exercises(exercises, req.answers, enhancer, examples)
	return await run_in_threadpool(_store_submission, db, row, req.answers, graded)


@router.put("/lessons/{lesson_id}/review")
def review_lesson(lesson_id: int, req: ReviewRequest, db: Session = Depends(get_db)):
	row = _get_lesson(db, lesson_id)
	exercises = load_json(row.exercises_json, [])
	if len(req.scores) != len(exercises):
		raise HTTPException(status_code=400, detail=f"expected {len(exercises)} scores, got {len(req.scores)}")
	if any(s < 0 or s > 100 for s in req.scores):
		raise HTTPException(status_code=400, detail="scores must be between 0 and 100")
	comments = list(req.comments) + [""] * (len(exercises) - len(req.comments))
	row.tutor_adjusted_scores_json = dump_json(req.scores)
	row.tutor_comments_json = dump_json(comments[: len(exercises)])
	row.tutor_overall_comment = req.overall_comment
	row.score = overall_score(req.scores)
	db.add(row)
	db.commit()
	db.refresh(row)
	return _lesson_to_dict(row)


@router.get("/progress")
def progress(db: Session = Depends(get_db)):
	stats: Dict[str, Dict[str, Any]] = {}

	def _entry(name: str) -> Dict[str, Any]:
		if name not in stats:
			stats[name] = {"totalLessons": 0, "completedLessons": 0, "averageScore": 0, "vocab": defaultdict(list)}
		return stats[name]

	completed_scores: Dict[str, List[int]] = defaultdict(list)
	for lesson in db.query(Lesson).order_by(Lesson.id).all():
		entry = _entry(lesson.student_name)
		entry["totalLessons"] += 1
		if lesson.completed:
			entry["completedLessons"] += 1
			completed_scores[lesson.student_name].append(lesson.score or 0)
	for v in db.query(VocabProgress).order_by(VocabProgress.id).all():
		_entry(v.student_name)["vocab"][v.category].append(_vocab_to_dict(v))

	for name, scores in completed_scores.items():
		stats[name]["averageScore"] = round_half_up(sum(scores) / len(scores))
	return {name: {**entry, "vocab": dict(entry["vocab"])} for name, entry in sorted(stats.items())}


@router.put("/vocab")
def upsert_vocab(req: VocabIn, db: Session = Depends(get_db)):
	row = (
		db.query(VocabProgress)
		.filter(
			VocabProgress.student_name == req.student_name,
			VocabProgress.category == req.category,
			VocabProgress.word == req.word,
		)
		.first()
	)
	if row is None:
		row = VocabProgress(student_name=req.student_name, category=req.category, word=req.word)
	row.pinyin = req.pinyin
	row.meaning = req.meaning
	row.status = req.status
	db.add(row)
	db.commit()
	db.refresh(row)
	return _vocab_to_dict(row)


@router.get("/vocab")
def list_vocab(student: Optional[str] = None, db: Session = Depends(get_db)):
	q = db.query(VocabProgress)
	if student:
		q = q.filter(VocabProgress.student_name == student)
	return [_vocab_to_dict(r) for r in q.order_by(VocabProgress.id).all()]
