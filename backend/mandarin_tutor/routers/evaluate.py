from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from ..feedback import FeedbackEnhancer, get_feedback_enhancer
from ..grading import grade_answer

router = APIRouter(tags=["evaluate"])


class EvaluateRequest(BaseModel):
	model_config = ConfigDict(populate_by_name=True)

	question: Optional[str] = None
	# Absent and null are rejected; an empty string is a valid (wrong) answer
	correct_answer: Optional[str] = Field(default=None, alias="correctAnswer")
	student_answer: Optional[str] = Field(default=None, alias="studentAnswer")
	question_type: Optional[str] = Field(default=None, alias="questionType")


class EvaluationOut(BaseModel):
	score: int
	feedback: str


class EvaluateResponse(BaseModel):
	result: EvaluationOut


@router.post("/evaluate", response_model=EvaluateResponse)
async def evaluate_answer(req: EvaluateRequest, enhancer: FeedbackEnhancer = Depends(get_feedback_enhancer)):
	if req.correct_answer is None or req.student_answer is None:
		raise HTTPException(status_code=400, detail="Missing required parameters: correctAnswer, studentAnswer")
	outcome = await grade_answer(
		enhancer,
		question=req.question or "",
		correct_answer=req.correct_answer,
		student_answer=req.student_answer,
		question_type=req.question_type,
	)
	return EvaluateResponse(result=EvaluationOut(**outcome.result.to_dict()))
