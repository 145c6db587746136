from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from app.models.quiz import Category, QuestionType, QuizStatus


class QuizStartRequest(BaseModel):
    category: str


class QuizQuestionPublic(BaseModel):
    id: int
    type: QuestionType
    question: str
    options: list[str]
    category: Category
    # Revealed only once the quiz is completed.
    correct_answer: str | None = None


class QuizAnswerOut(BaseModel):
    question_id: int
    user_answer: str
    is_correct: bool
    category: Category


class QuizResponse(BaseModel):
    id: str
    user_id: str
    passage: str
    questions: list[QuizQuestionPublic]
    answers: list[QuizAnswerOut]
    total_questions: int
    current_question: int
    status: QuizStatus


class SubmitAnswerRequest(BaseModel):
    question_id: int
    answer: str = Field(min_length=1, max_length=500)


class SubmitAnswerResponse(BaseModel):
    is_correct: bool
    progress: float
    completed: bool


class CategoryScore(BaseModel):
    correct: int
    total: int
    score: float


class QuizResultResponse(BaseModel):
    id: str
    quiz_id: str
    user_id: str
    total_questions: int
    correct_answers: int
    category_analysis: dict[Category, CategoryScore]
    overall_score: float
    created_at: datetime


def quiz_to_response(quiz) -> QuizResponse:
    reveal = quiz.status == QuizStatus.completed
    return QuizResponse(
        id=str(quiz.id),
        user_id=str(quiz.user_id),
        passage=quiz.passage,
        questions=[
            QuizQuestionPublic(
                id=int(q["id"]),
                type=q["type"],
                question=q["question"],
                options=list(q.get("options") or []),
                category=q["category"],
                correct_answer=q.get("correct_answer") if reveal else None,
            )
            for q in (quiz.questions or [])
        ],
        answers=[QuizAnswerOut.model_validate(a) for a in (quiz.answers or [])],
        total_questions=int(quiz.total_questions),
        current_question=int(quiz.current_question),
        status=quiz.status,
    )


def result_to_response(result) -> QuizResultResponse:
    return QuizResultResponse(
        id=str(result.id),
        quiz_id=str(result.quiz_id),
        user_id=str(result.user_id),
        total_questions=int(result.total_questions),
        correct_answers=int(result.correct_answers),
        category_analysis=result.category_analysis or {},
        overall_score=float(result.overall_score),
        created_at=result.created_at,
    )
