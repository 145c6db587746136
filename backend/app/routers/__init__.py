from app.routers import auth, health, parent, quiz

__all__ = [
    "auth",
    "health",
    "parent",
    "quiz",
]
