import enum
import uuid
from datetime import datetime

from sqlalchemy import JSON, DateTime, Enum, Float, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.models.user import User


TOTAL_QUESTIONS = 10

# Best-score index scope for the overall leaderboard; every other scope is a Category value.
OVERALL_SCOPE = "overall"


class Category(str, enum.Enum):
    four_char_idiom = "사자성어"
    classical_idiom = "고사성어"
    grammar = "문법"
    reading = "독해"
    vocabulary = "어휘"


class QuizStatus(str, enum.Enum):
    in_progress = "in_progress"
    completed = "completed"


class QuestionType(str, enum.Enum):
    multiple_choice = "multiple-choice"
    true_false = "true-false"


class Quiz(Base):
    __tablename__ = "quizzes"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), index=True)

    passage: Mapped[str] = mapped_column(Text, default="")
    # [{id, type, question, options, correct_answer, category}]
    questions: Mapped[list[dict]] = mapped_column(JSON, default=list)
    # [{question_id, user_answer, is_correct, category}]
    answers: Mapped[list[dict]] = mapped_column(JSON, default=list)

    total_questions: Mapped[int] = mapped_column(Integer, default=TOTAL_QUESTIONS)
    current_question: Mapped[int] = mapped_column(Integer, default=0)
    status: Mapped[QuizStatus] = mapped_column(Enum(QuizStatus), index=True, default=QuizStatus.in_progress)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)


class QuizResult(Base):
    __tablename__ = "quiz_results"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    quiz_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("quizzes.id", ondelete="CASCADE"))
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), index=True)

    total_questions: Mapped[int] = mapped_column(Integer)
    correct_answers: Mapped[int] = mapped_column(Integer)
    # {category: {correct, total, score}}
    category_analysis: Mapped[dict] = mapped_column(JSON, default=dict)
    overall_score: Mapped[float] = mapped_column(Float, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    user: Mapped[User] = relationship()

    __table_args__ = (UniqueConstraint("quiz_id", name="uq_quiz_results_quiz_id"),)


class QuizBestScore(Base):
    __tablename__ = "quiz_best_scores"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), index=True)
    scope: Mapped[str] = mapped_column(String(20), index=True)

    score: Mapped[float] = mapped_column(Float)
    result_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("quiz_results.id", ondelete="CASCADE"))
    achieved_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))

    user: Mapped[User] = relationship()

    __table_args__ = (
        UniqueConstraint("user_id", "scope", name="uq_quiz_best_scores_user_scope"),
        Index("ix_quiz_best_scores_scope_score", "scope", "score"),
    )
