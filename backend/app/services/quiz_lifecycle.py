from __future__ import annotations

import logging
import uuid
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.errors import Conflict, InvalidState, NotFound
from app.models.quiz import TOTAL_QUESTIONS, Quiz, QuizResult, QuizStatus
from app.models.user import User, UserRole
from app.services.question_generator import QuestionGenerator
from app.services.ranking import RankingService, parse_category

log = logging.getLogger(__name__)


def summarize_answers(answers: list[dict[str, Any]], *, total_questions: int) -> dict[str, Any]:
    """Score a finished answer list: correct count, overall percentage and a per-category breakdown."""

    correct_answers = sum(1 for a in answers if a.get("is_correct"))
    overall_score = correct_answers * 100 / total_questions if total_questions else 0.0

    analysis: dict[str, dict[str, Any]] = {}
    for a in answers:
        stats = analysis.setdefault(str(a.get("category")), {"correct": 0, "total": 0, "score": 0.0})
        stats["total"] += 1
        if a.get("is_correct"):
            stats["correct"] += 1
        stats["score"] = stats["correct"] * 100 / stats["total"]

    return {
        "correct_answers": correct_answers,
        "overall_score": float(overall_score),
        "category_analysis": analysis,
    }


class QuizService:
    def __init__(self, db: Session, generator: QuestionGenerator | None = None):
        self.db = db
        self.generator = generator
        self.ranking = RankingService(db)

    def create_quiz(self, user_id: uuid.UUID, category: str) -> Quiz:
        user = self.db.scalar(select(User).where(User.id == user_id))
        if user is None:
            raise NotFound("user not found")

        cat = parse_category(category)
        if self.generator is None:
            raise RuntimeError("QuizService.create_quiz requires a question generator")

        generated = self.generator.generate(age=int(user.age), category=cat)

        quiz = Quiz(
            user_id=user.id,
            passage=generated.passage,
            questions=list(generated.questions),
            answers=[],
            total_questions=TOTAL_QUESTIONS,
            current_question=0,
            status=QuizStatus.in_progress,
        )
        self.db.add(quiz)
        self.db.commit()
        self.db.refresh(quiz)
        log.info("quiz created: quiz_id=%s user_id=%s category=%s", quiz.id, user.id, cat.value)
        return quiz

    def get_quiz(self, quiz_id: uuid.UUID) -> Quiz:
        quiz = self.db.scalar(select(Quiz).where(Quiz.id == quiz_id))
        if quiz is None:
            raise NotFound(f"quiz {quiz_id} not found")
        return quiz

    def submit_answer(self, quiz_id: uuid.UUID, question_id: int, answer: str) -> dict[str, Any]:
        # Row lock serializes concurrent submissions for the same quiz.
        quiz = self.db.scalar(select(Quiz).where(Quiz.id == quiz_id).with_for_update())
        if quiz is None:
            raise NotFound(f"quiz {quiz_id} not found")

        if quiz.status == QuizStatus.completed:
            raise InvalidState("quiz is already completed")

        question = next((q for q in (quiz.questions or []) if int(q.get("id")) == int(question_id)), None)
        if question is None:
            raise NotFound(f"question {question_id} not found")

        if any(int(a.get("question_id")) == int(question_id) for a in (quiz.answers or [])):
            raise Conflict("question already answered")

        is_correct = question.get("correct_answer") == answer

        # JSON columns are not mutation-tracked: assign a new list.
        quiz.answers = [
            *(quiz.answers or []),
            {
                "question_id": int(question_id),
                "user_answer": answer,
                "is_correct": is_correct,
                "category": question.get("category"),
            },
        ]
        quiz.current_question = int(quiz.current_question or 0) + 1
        progress = quiz.current_question * 100 / TOTAL_QUESTIONS

        completed = quiz.current_question == TOTAL_QUESTIONS
        if completed:
            quiz.status = QuizStatus.completed
            self.db.commit()

            user = self.db.scalar(select(User).where(User.id == quiz.user_id))
            if user is None:
                log.warning("quiz completed but owner is gone, result skipped: quiz_id=%s user_id=%s", quiz.id, quiz.user_id)
            else:
                self._generate_result(quiz, user)
        else:
            self.db.commit()

        return {
            "is_correct": is_correct,
            "progress": float(progress),
            "completed": completed,
        }

    def _generate_result(self, quiz: Quiz, user: User) -> QuizResult:
        existing = self.db.scalar(select(QuizResult).where(QuizResult.quiz_id == quiz.id))
        if existing is not None:
            return existing

        summary = summarize_answers(list(quiz.answers or []), total_questions=int(quiz.total_questions))
        result = QuizResult(
            quiz_id=quiz.id,
            user_id=user.id,
            total_questions=int(quiz.total_questions),
            correct_answers=summary["correct_answers"],
            category_analysis=summary["category_analysis"],
            overall_score=summary["overall_score"],
        )
        self.db.add(result)
        self.db.flush()

        self.ranking.record_result(result)
        self.db.commit()
        log.info(
            "quiz result stored: quiz_id=%s user_id=%s overall_score=%.1f",
            quiz.id,
            user.id,
            result.overall_score,
        )
        return result

    def get_result(self, quiz_id: uuid.UUID) -> QuizResult:
        result = self.db.scalar(select(QuizResult).where(QuizResult.quiz_id == quiz_id))
        if result is None:
            raise NotFound(f"result for quiz {quiz_id} not found")
        return result

    def student_progress(self, student_email: str) -> list[QuizResult]:
        student = self.db.scalar(select(User).where(User.email == student_email, User.role == UserRole.student))
        if student is None:
            raise NotFound("student not found")

        return list(
            self.db.scalars(
                select(QuizResult).where(QuizResult.user_id == student.id).order_by(QuizResult.created_at.asc())
            )
        )

    def student_best_scores(self, student_email: str) -> dict[str, float]:
        user = self.db.scalar(select(User).where(User.email == student_email))
        if user is None:
            raise NotFound("user not found")

        return self.ranking.best_scores(user.id)
