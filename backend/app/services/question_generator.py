from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Protocol

import httpx
from pydantic import AliasChoices, BaseModel, Field, ValidationError

from app.core.config import settings
from app.core.errors import GenerationFailure
from app.models.quiz import TOTAL_QUESTIONS, Category, QuestionType

log = logging.getLogger(__name__)

MULTIPLE_CHOICE_COUNT = 5
TRUE_FALSE_COUNT = 5

# The model tends to open with "…입니다." before the actual passage.
_PREAMBLE_RE = re.compile(r"^.*?입니다\.\s*")

_TYPE_ALIASES: dict[str, QuestionType] = {
    "multiple-choice": QuestionType.multiple_choice,
    "multiple_choice": QuestionType.multiple_choice,
    "multiplechoice": QuestionType.multiple_choice,
    "mcq": QuestionType.multiple_choice,
    "4지선다": QuestionType.multiple_choice,
    "4지선다형": QuestionType.multiple_choice,
    "사지선다": QuestionType.multiple_choice,
    "사지선다형": QuestionType.multiple_choice,
    "객관식": QuestionType.multiple_choice,
    "true-false": QuestionType.true_false,
    "true_false": QuestionType.true_false,
    "truefalse": QuestionType.true_false,
    "ox": QuestionType.true_false,
    "o/x": QuestionType.true_false,
    "o/x퀴즈": QuestionType.true_false,
    "ox퀴즈": QuestionType.true_false,
    "진위형": QuestionType.true_false,
}


class GeneratedQuestion(BaseModel):
    id: int
    type: str
    question: str
    options: list[str]
    correct_answer: str = Field(validation_alias=AliasChoices("correctAnswer", "correct_answer"))
    category: str | None = None


class GeneratedQuizPayload(BaseModel):
    questions: list[GeneratedQuestion]


@dataclass(frozen=True)
class GeneratedQuiz:
    passage: str
    questions: list[dict[str, Any]]


class QuestionGenerator(Protocol):
    def generate(self, *, age: int, category: Category) -> GeneratedQuiz: ...


def strip_passage_preamble(text: str) -> str:
    return _PREAMBLE_RE.sub("", (text or "").strip(), count=1).strip()


def _extract_json(text: str) -> dict[str, Any] | None:
    if not text:
        return None

    s = text.strip()
    if s.startswith("{") and s.endswith("}"):
        try:
            return json.loads(s)
        except json.JSONDecodeError:
            pass

    m = re.search(r"\{[\s\S]*\}", s)
    if not m:
        return None

    try:
        obj = json.loads(m.group(0))
    except json.JSONDecodeError:
        return None
    return obj if isinstance(obj, dict) else None


def _question_type(q: GeneratedQuestion) -> QuestionType | None:
    key = re.sub(r"\s+", "", (q.type or "")).lower()
    qtype = _TYPE_ALIASES.get(key)
    if qtype is not None:
        return qtype
    # Unknown label: fall back to the option count.
    if len(q.options) == 4:
        return QuestionType.multiple_choice
    if len(q.options) == 2:
        return QuestionType.true_false
    return None


def parse_questions(raw: str, *, category: Category) -> list[dict[str, Any]]:
    """Turn the model's JSON reply into the stored question list.

    Every question is re-tagged with the requested category. Raises GenerationFailure
    unless the payload holds exactly five multiple-choice and five true/false questions.
    """

    obj = _extract_json(raw)
    if not obj:
        raise GenerationFailure("question payload is not valid JSON")

    try:
        payload = GeneratedQuizPayload.model_validate(obj)
    except ValidationError as e:
        raise GenerationFailure("question payload does not match the expected schema") from e

    if len(payload.questions) != TOTAL_QUESTIONS:
        raise GenerationFailure(f"expected {TOTAL_QUESTIONS} questions, got {len(payload.questions)}")

    out: list[dict[str, Any]] = []
    seen_ids: set[int] = set()
    counts = {QuestionType.multiple_choice: 0, QuestionType.true_false: 0}
    for q in payload.questions:
        if q.id in seen_ids:
            raise GenerationFailure(f"duplicate question id {q.id}")
        seen_ids.add(q.id)

        qtype = _question_type(q)
        if qtype is None:
            raise GenerationFailure(f"unknown question type for question {q.id}")
        expected_options = 4 if qtype == QuestionType.multiple_choice else 2
        if len(q.options) != expected_options:
            raise GenerationFailure(f"question {q.id} must have {expected_options} options")
        if q.correct_answer not in q.options:
            raise GenerationFailure(f"question {q.id} correct answer is not one of its options")
        if not q.question.strip():
            raise GenerationFailure(f"question {q.id} has an empty prompt")

        counts[qtype] += 1
        out.append(
            {
                "id": q.id,
                "type": qtype.value,
                "question": q.question.strip(),
                "options": list(q.options),
                "correct_answer": q.correct_answer,
                "category": category.value,
            }
        )

    if counts[QuestionType.multiple_choice] != MULTIPLE_CHOICE_COUNT or counts[QuestionType.true_false] != TRUE_FALSE_COUNT:
        raise GenerationFailure(
            "expected 5 multiple-choice and 5 true/false questions, got "
            f"{counts[QuestionType.multiple_choice]} and {counts[QuestionType.true_false]}"
        )
    return out


def _passage_prompt(*, age: int, category: Category) -> str:
    return (
        f"사용자의 나이는 {int(age)}세입니다. "
        f"이 나이에 맞는 쉬운 수준으로 '{category.value}' 문제를 만들 수 있는 한국어 지문을 100자 이내로 작성하세요. "
        "지문만 출력하세요."
    )


def _questions_prompt(*, passage: str, category: Category) -> str:
    return (
        "다음 지문을 바탕으로 서로 다른 질문 10개를 만드세요.\n"
        "- 4지선다형 5개 (options 4개)\n"
        '- O/X 퀴즈 5개 (options는 ["O", "X"])\n'
        "question과 options에는 영어를 쓰지 마세요. correctAnswer는 options 중 하나와 정확히 같아야 합니다.\n"
        "Markdown 없이 다음 JSON만 반환하세요:\n"
        '{"questions": [{"id": number, "type": string, "question": string, '
        '"options": array, "correctAnswer": string, "category": string}]}\n'
        f"카테고리: {category.value}\n"
        f"지문: {passage}"
    )


class OpenAIQuestionGenerator:
    """Question generator backed by an OpenAI-compatible chat completions endpoint."""

    def __init__(
        self,
        *,
        base_url: str,
        model: str,
        api_key: str | None,
        enabled: bool = True,
        timeout: httpx.Timeout | None = None,
        temperature: float = 0.7,
    ):
        self.base_url = (base_url or "").rstrip("/")
        self.model = model
        self.api_key = (api_key or "").strip()
        self.enabled = enabled
        self.timeout = timeout or httpx.Timeout(10.0)
        self.temperature = temperature

    @classmethod
    def from_settings(cls) -> "OpenAIQuestionGenerator":
        return cls(
            base_url=settings.llm_base_url,
            model=settings.llm_model,
            api_key=settings.llm_api_key,
            enabled=bool(settings.llm_enabled),
            timeout=httpx.Timeout(
                connect=float(settings.llm_timeout_connect),
                read=float(settings.llm_timeout_read),
                write=float(settings.llm_timeout_write),
                pool=3.0,
            ),
            temperature=float(settings.llm_temperature),
        )

    def _chat(self, client: httpx.Client, content: str) -> str:
        payload = {
            "model": self.model,
            "stream": False,
            "messages": [{"role": "user", "content": content}],
            "temperature": self.temperature,
        }
        try:
            r = client.post(
                self.base_url + "/chat/completions",
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
            r.raise_for_status()
            data = r.json()
        except (httpx.HTTPError, ValueError) as e:
            log.warning("question generator request failed: %s", type(e).__name__)
            raise GenerationFailure("question generator request failed") from e

        choices = (data or {}).get("choices") or []
        content_out = ((choices[0] or {}).get("message") or {}).get("content") if choices else None
        if not isinstance(content_out, str) or not content_out.strip():
            raise GenerationFailure("question generator returned an empty reply")
        return content_out

    def generate(self, *, age: int, category: Category) -> GeneratedQuiz:
        if not self.enabled or not self.api_key:
            raise GenerationFailure("question generator is not configured")

        with httpx.Client(timeout=self.timeout) as client:
            passage = strip_passage_preamble(self._chat(client, _passage_prompt(age=age, category=category)))
            if not passage:
                raise GenerationFailure("question generator returned an empty passage")
            raw_questions = self._chat(client, _questions_prompt(passage=passage, category=category))

        questions = parse_questions(raw_questions, category=category)
        log.info("generated quiz: category=%s passage_len=%s", category.value, len(passage))
        return GeneratedQuiz(passage=passage, questions=questions)


def get_question_generator() -> QuestionGenerator:
    return OpenAIQuestionGenerator.from_settings()
