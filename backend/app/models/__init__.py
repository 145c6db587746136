from app.models.user import User, UserRole
from app.models.quiz import Category, Quiz, QuizBestScore, QuizResult, QuizStatus
from app.models.audit_event import AccountAuditEvent, AuditEventType

__all__ = [
    "User",
    "UserRole",
    "Category",
    "Quiz",
    "QuizStatus",
    "QuizResult",
    "QuizBestScore",
    "AccountAuditEvent",
    "AuditEventType",
]
