from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.core.rate_limit import rate_limit
from app.core.security import get_current_user
from app.db.session import get_db
from app.models.user import User
from app.schemas.quiz import (
    QuizResponse,
    QuizResultResponse,
    QuizStartRequest,
    SubmitAnswerRequest,
    SubmitAnswerResponse,
    quiz_to_response,
    result_to_response,
)
from app.schemas.ranking import RankingResponse
from app.services.question_generator import QuestionGenerator, get_question_generator
from app.services.quiz_lifecycle import QuizService
from app.services.ranking import RankingService

router = APIRouter(prefix="/quiz", tags=["quiz"])


def _parse_quiz_id(quiz_id: str) -> uuid.UUID:
    try:
        return uuid.UUID(quiz_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail="invalid quiz id") from e


@router.post("/start", response_model=QuizResponse)
def start_quiz(
    body: QuizStartRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    generator: QuestionGenerator = Depends(get_question_generator),
    _: object = rate_limit(key_prefix="quiz_start", limit=10, window_seconds=60),
):
    quiz = QuizService(db, generator).create_quiz(user.id, body.category)
    return quiz_to_response(quiz)


@router.get("/rankings/category/{category}", response_model=RankingResponse)
def category_rankings(category: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return RankingService(db).category_ranking(category, user.id)


@router.get("/rankings/overall", response_model=RankingResponse)
def overall_rankings(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return RankingService(db).overall_ranking(user.id)


@router.get("/{quiz_id}", response_model=QuizResponse)
def get_quiz(quiz_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    quiz = QuizService(db).get_quiz(_parse_quiz_id(quiz_id))
    if quiz.user_id != user.id:
        raise HTTPException(status_code=403, detail="forbidden")
    return quiz_to_response(quiz)


@router.post("/{quiz_id}/submit", response_model=SubmitAnswerResponse)
def submit_answer(
    quiz_id: str,
    body: SubmitAnswerRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    _: object = rate_limit(key_prefix="quiz_submit", limit=60, window_seconds=60),
):
    qid = _parse_quiz_id(quiz_id)
    service = QuizService(db)
    if service.get_quiz(qid).user_id != user.id:
        raise HTTPException(status_code=403, detail="forbidden")
    return service.submit_answer(qid, body.question_id, body.answer)


@router.get("/{quiz_id}/result", response_model=QuizResultResponse)
def get_quiz_result(quiz_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    result = QuizService(db).get_result(_parse_quiz_id(quiz_id))
    if result.user_id != user.id and result.user.parent_id != user.id:
        raise HTTPException(status_code=403, detail="forbidden")
    return result_to_response(result)
