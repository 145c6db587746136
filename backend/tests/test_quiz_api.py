import uuid

from app.core.errors import GenerationFailure
from app.services.question_generator import get_question_generator


def _start(client, headers, category: str = "어휘") -> dict:
    r = client.post("/quiz/start", json={"category": category}, headers=headers)
    assert r.status_code == 200, r.text
    return r.json()


def _submit(client, headers, quiz_id: str, question_id: int, answer: str):
    return client.post(f"/quiz/{quiz_id}/submit", json={"question_id": question_id, "answer": answer}, headers=headers)


def _finish(client, headers, quiz: dict, *, correct: int) -> list[dict]:
    out = []
    for i, q in enumerate(quiz["questions"]):
        answer = ("가" if q["type"] == "multiple-choice" else "O") if i < correct else "X"
        r = _submit(client, headers, quiz["id"], q["id"], answer)
        assert r.status_code == 200, r.text
        out.append(r.json())
    return out


def test_start_quiz_hides_answers(client, student, fake_generator):
    quiz = _start(client, student["headers"], "사자성어")

    assert quiz["status"] == "in_progress"
    assert quiz["current_question"] == 0
    assert quiz["total_questions"] == 10
    assert quiz["passage"]
    assert len(quiz["questions"]) == 10
    assert all(q["correct_answer"] is None for q in quiz["questions"])
    assert all(q["category"] == "사자성어" for q in quiz["questions"])
    assert len(fake_generator.calls) == 1


def test_start_quiz_requires_auth(client):
    r = client.post("/quiz/start", json={"category": "어휘"})
    assert r.status_code == 401
    assert r.json()["error_code"] == "unauthorized"


def test_start_quiz_unknown_category(client, student):
    r = client.post("/quiz/start", json={"category": "수학"}, headers=student["headers"])
    assert r.status_code == 400
    body = r.json()
    assert body["ok"] is False
    assert body["error_code"] == "invalid_argument"
    assert body["request_id"]


def test_start_quiz_generation_failure(client, student):
    class _Broken:
        def generate(self, *, age, category):
            raise GenerationFailure("question generator request failed")

    client.app.dependency_overrides[get_question_generator] = lambda: _Broken()

    r = client.post("/quiz/start", json={"category": "문법"}, headers=student["headers"])

    assert r.status_code == 502
    assert r.json()["error_code"] == "generation_failed"


def test_full_quiz_flow(client, student):
    h = student["headers"]
    quiz = _start(client, h, "어휘")

    replies = _finish(client, h, quiz, correct=7)

    assert [r["completed"] for r in replies] == [False] * 9 + [True]
    assert [r["progress"] for r in replies] == [10.0 * n for n in range(1, 11)]
    assert sum(r["is_correct"] for r in replies) == 7

    r = client.get(f"/quiz/{quiz['id']}", headers=h)
    assert r.status_code == 200
    done = r.json()
    assert done["status"] == "completed"
    assert done["current_question"] == len(done["answers"]) == 10
    assert all(q["correct_answer"] is not None for q in done["questions"])

    r = client.get(f"/quiz/{quiz['id']}/result", headers=h)
    assert r.status_code == 200
    result = r.json()
    assert result["correct_answers"] == 7
    assert result["overall_score"] == 70.0
    assert result["category_analysis"] == {"어휘": {"correct": 7, "total": 10, "score": 70.0}}


def test_duplicate_and_late_submissions(client, student):
    h = student["headers"]
    quiz = _start(client, h)
    first = quiz["questions"][0]

    assert _submit(client, h, quiz["id"], first["id"], "가").status_code == 200

    r = _submit(client, h, quiz["id"], first["id"], "나")
    assert r.status_code == 409
    assert r.json()["error_code"] == "conflict"

    r = _submit(client, h, quiz["id"], 999, "가")
    assert r.status_code == 404

    for q in quiz["questions"][1:]:
        _submit(client, h, quiz["id"], q["id"], "O")

    r = _submit(client, h, quiz["id"], first["id"], "가")
    assert r.status_code == 409
    assert r.json()["error_code"] == "invalid_state"


def test_result_before_completion_is_not_found(client, student):
    quiz = _start(client, student["headers"])
    r = client.get(f"/quiz/{quiz['id']}/result", headers=student["headers"])
    assert r.status_code == 404
    assert r.json()["error_code"] == "not_found"


def test_quiz_is_private_to_its_owner(client, student, new_account):
    other = new_account("student")
    quiz = _start(client, student["headers"])

    assert client.get(f"/quiz/{quiz['id']}", headers=other["headers"]).status_code == 403
    r = _submit(client, other["headers"], quiz["id"], quiz["questions"][0]["id"], "가")
    assert r.status_code == 403

    _finish(client, student["headers"], quiz, correct=10)
    assert client.get(f"/quiz/{quiz['id']}/result", headers=other["headers"]).status_code == 403


def test_parent_can_read_child_result(client, student, parent):
    r = client.post("/parent/child", json={"student_email": student["email"]}, headers=parent["headers"])
    assert r.status_code == 200

    quiz = _start(client, student["headers"], "독해")
    _finish(client, student["headers"], quiz, correct=4)

    r = client.get(f"/quiz/{quiz['id']}/result", headers=parent["headers"])
    assert r.status_code == 200
    assert r.json()["overall_score"] == 40.0


def test_invalid_and_unknown_quiz_ids(client, student):
    h = student["headers"]
    r = client.get("/quiz/not-a-uuid", headers=h)
    assert r.status_code == 400

    r = client.get(f"/quiz/{uuid.uuid4()}", headers=h)
    assert r.status_code == 404
    assert r.json()["error_code"] == "not_found"


def test_rankings_include_current_user(client, student):
    h = student["headers"]
    quiz = _start(client, h, "고사성어")
    _finish(client, h, quiz, correct=8)

    r = client.get("/quiz/rankings/category/고사성어", headers=h)
    assert r.status_code == 200
    body = r.json()
    assert body["current_user"]["score"] == 80.0
    assert body["current_user"]["rank"] >= 1
    assert body["total_participants"] >= 1
    ranks = [row["rank"] for row in body["rankings"]]
    assert ranks == sorted(ranks)

    r = client.get("/quiz/rankings/overall", headers=h)
    assert r.status_code == 200
    assert r.json()["current_user"]["score"] == 80.0


def test_rankings_without_results(client, new_account):
    fresh = new_account("student")

    r = client.get("/quiz/rankings/overall", headers=fresh["headers"])
    assert r.status_code == 200
    me = r.json()["current_user"]
    assert me["rank"] is None
    assert me["score"] == 0.0


def test_rankings_unknown_category(client, student):
    r = client.get("/quiz/rankings/category/수학", headers=student["headers"])
    assert r.status_code == 400
    assert r.json()["error_code"] == "invalid_argument"
