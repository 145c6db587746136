import json

import httpx
import pytest

from app.core.config import settings
from app.core.errors import GenerationFailure
from app.models.quiz import Category
from app.services.question_generator import OpenAIQuestionGenerator, parse_questions, strip_passage_preamble


def _questions(*, mc: int = 5, tf: int = 5, key: str = "correctAnswer") -> list[dict]:
    out = []
    for i in range(1, mc + 1):
        out.append({"id": i, "type": "4지선다형", "question": f"질문 {i}", "options": ["가", "나", "다", "라"], key: "나"})
    for i in range(mc + 1, mc + tf + 1):
        out.append({"id": i, "type": "O/X 퀴즈", "question": f"질문 {i}", "options": ["O", "X"], key: "X"})
    return out


def _raw(questions: list[dict]) -> str:
    return json.dumps({"questions": questions}, ensure_ascii=False)


def test_parse_questions_ok_and_retags_category():
    qs = _questions()
    qs[0]["category"] = "문법"

    out = parse_questions(_raw(qs), category=Category.reading)

    assert len(out) == 10
    assert [q["type"] for q in out] == ["multiple-choice"] * 5 + ["true-false"] * 5
    assert all(q["category"] == "독해" for q in out)
    assert out[0]["correct_answer"] == "나"


def test_parse_questions_accepts_fenced_json_and_snake_case():
    raw = "결과입니다.\n```json\n" + _raw(_questions(key="correct_answer")) + "\n```"

    out = parse_questions(raw, category=Category.vocabulary)

    assert len(out) == 10


@pytest.mark.parametrize(
    "questions",
    [
        _questions(mc=4, tf=5),
        _questions(mc=6, tf=4),
        _questions(mc=5, tf=6),
    ],
)
def test_parse_questions_rejects_wrong_mix(questions):
    with pytest.raises(GenerationFailure):
        parse_questions(_raw(questions), category=Category.grammar)


def test_parse_questions_rejects_answer_outside_options():
    qs = _questions()
    qs[2]["correctAnswer"] = "마"
    with pytest.raises(GenerationFailure):
        parse_questions(_raw(qs), category=Category.grammar)


def test_parse_questions_rejects_duplicate_ids():
    qs = _questions()
    qs[1]["id"] = 1
    with pytest.raises(GenerationFailure):
        parse_questions(_raw(qs), category=Category.grammar)


def test_parse_questions_rejects_garbage():
    with pytest.raises(GenerationFailure):
        parse_questions("not-json", category=Category.grammar)
    with pytest.raises(GenerationFailure):
        parse_questions('{"items": []}', category=Category.grammar)


def test_strip_passage_preamble():
    assert strip_passage_preamble("다음은 지문입니다. 옛날에 호랑이가 살았다.") == "옛날에 호랑이가 살았다."
    assert strip_passage_preamble("  옛날에 호랑이가 살았다.  ") == "옛날에 호랑이가 살았다."


class _Resp:
    def __init__(self, payload: dict):
        self._payload = payload

    def raise_for_status(self):
        return None

    def json(self):
        return self._payload


def _chat_reply(content: str) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


class _ClientOk:
    requests: list[dict] = []

    def __init__(self, *args, **kwargs):
        self._replies = [
            _chat_reply("요청하신 지문입니다. 토끼가 숲속을 뛰어다녔다."),
            _chat_reply(_raw(_questions())),
        ]

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def post(self, url, json, headers=None):
        _ClientOk.requests.append({"url": url, "json": json, "headers": headers})
        return _Resp(self._replies.pop(0))


class _ClientTimeout:
    def __init__(self, *args, **kwargs):
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def post(self, url, json, headers=None):
        raise httpx.ReadTimeout("timed out")


class _ClientBadJson:
    def __init__(self, *args, **kwargs):
        self._replies = [_chat_reply("토끼가 숲속을 뛰어다녔다."), _chat_reply("not-json")]

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def post(self, url, json, headers=None):
        return _Resp(self._replies.pop(0))


def _configure(monkeypatch):
    monkeypatch.setattr(settings, "llm_enabled", True)
    monkeypatch.setattr(settings, "llm_base_url", "http://llm/v1")
    monkeypatch.setattr(settings, "llm_model", "dummy")
    monkeypatch.setattr(settings, "llm_api_key", "sk-test")


def test_generate_ok(monkeypatch):
    _configure(monkeypatch)
    import app.services.question_generator as gen_mod

    _ClientOk.requests = []
    monkeypatch.setattr(gen_mod.httpx, "Client", _ClientOk)

    quiz = OpenAIQuestionGenerator.from_settings().generate(age=8, category=Category.four_char_idiom)

    assert quiz.passage == "토끼가 숲속을 뛰어다녔다."
    assert len(quiz.questions) == 10
    assert all(q["category"] == "사자성어" for q in quiz.questions)

    assert len(_ClientOk.requests) == 2
    first = _ClientOk.requests[0]
    assert first["url"] == "http://llm/v1/chat/completions"
    assert first["json"]["model"] == "dummy"
    assert first["headers"]["Authorization"] == "Bearer sk-test"
    assert "8세" in first["json"]["messages"][0]["content"]
    assert "토끼가 숲속을 뛰어다녔다." in _ClientOk.requests[1]["json"]["messages"][0]["content"]


def test_generate_timeout(monkeypatch):
    _configure(monkeypatch)
    import app.services.question_generator as gen_mod

    monkeypatch.setattr(gen_mod.httpx, "Client", _ClientTimeout)

    with pytest.raises(GenerationFailure):
        OpenAIQuestionGenerator.from_settings().generate(age=10, category=Category.grammar)


def test_generate_bad_json(monkeypatch):
    _configure(monkeypatch)
    import app.services.question_generator as gen_mod

    monkeypatch.setattr(gen_mod.httpx, "Client", _ClientBadJson)

    with pytest.raises(GenerationFailure):
        OpenAIQuestionGenerator.from_settings().generate(age=10, category=Category.grammar)


def test_generate_not_configured(monkeypatch):
    _configure(monkeypatch)
    monkeypatch.setattr(settings, "llm_api_key", None)
    import app.services.question_generator as gen_mod

    monkeypatch.setattr(gen_mod.httpx, "Client", _ClientTimeout)

    with pytest.raises(GenerationFailure, match="not configured"):
        OpenAIQuestionGenerator.from_settings().generate(age=10, category=Category.grammar)
