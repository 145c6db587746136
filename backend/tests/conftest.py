import sys
from pathlib import Path
import uuid
import time

import pytest
from fastapi.testclient import TestClient

backend_dir = Path(__file__).resolve().parents[1]
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.db.base import Base
from app.db import session as session_module
from app.main import create_app
from app.models.quiz import TOTAL_QUESTIONS, Category, QuestionType
from app.services.question_generator import GeneratedQuiz, get_question_generator

# Import models so that they are registered in Base.metadata before create_all.
import app.models  # noqa: F401


class _MemoryRedis:
    def __init__(self):
        self._data: dict[str, tuple[str, float | None]] = {}

    def ping(self):
        return True

    def _now(self) -> float:
        return time.time()

    def _get_entry(self, key: str):
        v = self._data.get(key)
        if not v:
            return None
        value, exp = v
        if exp is not None and exp <= self._now():
            self._data.pop(key, None)
            return None
        return value, exp

    def get(self, key: str):
        entry = self._get_entry(key)
        return entry[0] if entry else None

    def incr(self, key: str):
        cur = self.get(key)
        n = int(cur or 0) + 1
        _, exp = self._data.get(key, ("", None))
        self._data[key] = (str(n), exp)
        return n

    def expire(self, key: str, seconds: int):
        entry = self._get_entry(key)
        if not entry:
            return False
        value, _ = entry
        self._data[key] = (value, self._now() + int(seconds))
        return True

    def ttl(self, key: str):
        entry = self._get_entry(key)
        if not entry:
            return -2
        _, exp = entry
        if exp is None:
            return -1
        return max(0, int(exp - self._now()))

    def clear(self):
        self._data.clear()


class FakeQuestionGenerator:
    """Deterministic generator: questions 1-5 multiple-choice (answer "가"), 6-10 O/X (answer "O")."""

    def __init__(self):
        self.calls: list[tuple[int, Category]] = []

    def generate(self, *, age: int, category: Category) -> GeneratedQuiz:
        self.calls.append((age, category))
        questions = []
        for i in range(1, TOTAL_QUESTIONS + 1):
            if i <= 5:
                questions.append(
                    {
                        "id": i,
                        "type": QuestionType.multiple_choice.value,
                        "question": f"{i}번 문제의 알맞은 답은?",
                        "options": ["가", "나", "다", "라"],
                        "correct_answer": "가",
                        "category": category.value,
                    }
                )
            else:
                questions.append(
                    {
                        "id": i,
                        "type": QuestionType.true_false.value,
                        "question": f"{i}번 문장은 맞습니까?",
                        "options": ["O", "X"],
                        "correct_answer": "O",
                        "category": category.value,
                    }
                )
        return GeneratedQuiz(passage="봄이 오면 들판에 꽃이 핀다.", questions=questions)


def _make_engine():
    return create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


# Configure test DB (SQLite in-memory) at import time so all tests importing
# app.db.session.SessionLocal will get the patched version.
_engine = _make_engine()
Base.metadata.create_all(bind=_engine)
session_module.engine = _engine
session_module.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_engine)


# Stub Redis at import time (rate limiting + readiness probe).
_mem_redis = _MemoryRedis()
import app.core.redis_client as redis_client_module

redis_client_module.get_redis = lambda: _mem_redis

import app.core.rate_limit as rate_limit_module
rate_limit_module.get_redis = lambda: _mem_redis

import app.routers.health as health_router_module
health_router_module.get_redis = lambda: _mem_redis


@pytest.fixture(autouse=True)
def _reset_rate_limits():
    _mem_redis.clear()
    yield


@pytest.fixture()
def fake_generator():
    return FakeQuestionGenerator()


@pytest.fixture()
def client(fake_generator):
    app = create_app()

    # Ensure app dependencies use our session factory.
    def _get_db_override():
        db = session_module.SessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[session_module.get_db] = _get_db_override
    app.dependency_overrides[get_question_generator] = lambda: fake_generator
    return TestClient(app)


@pytest.fixture()
def db():
    with session_module.SessionLocal() as session:
        yield session


@pytest.fixture()
def isolated_db():
    """A private empty database, for tests that assert on global leaderboards."""

    engine = _make_engine()
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    with factory() as session:
        yield session
    engine.dispose()


@pytest.fixture()
def make_user():
    from app.core.security import hash_password
    from app.models.user import User, UserRole

    def _make(db, *, role: UserRole = UserRole.student, age: int = 10, nick_name: str | None = None, password: str = "testpass123"):
        suffix = uuid.uuid4().hex[:8]
        user = User(
            email=f"{role.value}_{suffix}@example.com",
            nick_name=nick_name or f"u_{suffix}",
            age=age,
            role=role,
            password_hash=hash_password(password),
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


def _signup_and_signin(client, *, role: str, age: int = 10) -> dict:
    email = f"{role}_{uuid.uuid4().hex[:8]}@example.com"
    password = "testpass123"
    r = client.post(
        "/auth/signup",
        json={"email": email, "password": password, "nick_name": f"n_{uuid.uuid4().hex[:6]}", "age": age, "role": role},
    )
    assert r.status_code == 201

    r = client.post("/auth/signin", json={"email": email, "password": password})
    assert r.status_code == 200
    body = r.json()
    return {
        "email": email,
        "password": password,
        "access_token": body["access_token"],
        "refresh_token": body["refresh_token"],
        "headers": {"Authorization": f"Bearer {body['access_token']}"},
    }


@pytest.fixture()
def student(client):
    return _signup_and_signin(client, role="student")


@pytest.fixture()
def parent(client):
    return _signup_and_signin(client, role="parent", age=40)


@pytest.fixture()
def new_account(client):
    def _new(role: str = "student", age: int = 10) -> dict:
        return _signup_and_signin(client, role=role, age=age)

    return _new
