from datetime import timedelta
from io import BytesIO
import json

from openpyxl import Workbook

from lms.services.exam_service import utcnow

from conftest import T0


def _question(text="2 + 2 = ?", correct="B", points=2, options=("3", "4", "5")):
    return {"question_text": text, "question_type": "MULTIPLE_CHOICE", "options": list(options), "correct_answer": correct, "points": points}


def test_teacher_creates_fills_and_publishes_exam(client, login_as, seed):
    world = seed(questions=[])
    login_as(world.teacher)

    res = client.post("/api/exams", json={
        "teaching_assignment_id": str(world.assignment.id),
        "title": "Quiz 1",
        "start_time": (T0 + timedelta(days=1)).isoformat(),
        "duration_minutes": 45,
        "max_violations": 5,
    })
    assert res.status_code == 201
    exam = res.json()
    assert exam["is_active"] is False
    assert exam["is_randomized"] is True
    assert exam["question_count"] == 0

    # an empty exam cannot be published
    res = client.post(f"/api/exams/{exam['id']}/publish")
    assert res.status_code == 400

    res = client.post(f"/api/exams/{exam['id']}/questions", json={"questions": [
        _question(),
        {"question_text": "Explain gravity", "question_type": "ESSAY", "points": 10, "correct_answer": "A"},
    ]})
    assert res.status_code == 201
    created = res.json()
    assert [q["order_index"] for q in created] == [0, 1]
    assert created[1]["correct_answer"] is None

    res = client.post(f"/api/exams/{exam['id']}/questions", json={"questions": [_question("3 + 3 = ?", "A", 1, ("6", "7"))]})
    assert res.json()[0]["order_index"] == 2

    res = client.post(f"/api/exams/{exam['id']}/publish")
    assert res.status_code == 200
    assert res.json()["is_active"] is True
    assert res.json()["question_count"] == 3

    res = client.post(f"/api/exams/{exam['id']}/unpublish")
    assert res.json()["is_active"] is False


def test_invalid_questions_are_rejected(client, login_as, seed):
    world = seed(questions=[])
    login_as(world.teacher)
    url = f"/api/exams/{world.exam.id}/questions"

    # answer letter outside the option range
    assert client.post(url, json={"questions": [_question(correct="D")]}).status_code == 422
    # single option
    assert client.post(url, json={"questions": [_question(correct="A", options=("only",))]}).status_code == 422
    # empty batch
    assert client.post(url, json={"questions": []}).status_code == 422
    # non-positive points
    assert client.post(url, json={"questions": [_question(points=0)]}).status_code == 422


def test_update_question_keeps_answer_consistent(client, login_as, seed):
    world = seed()
    login_as(world.teacher)
    q1 = world.questions[0]
    url = f"/api/exams/{world.exam.id}/questions/{q1.id}"

    res = client.put(url, json={"correct_answer": "C", "points": 7})
    assert res.status_code == 200
    assert res.json()["correct_answer"] == "C"
    assert res.json()["points"] == 7

    # shrinking options so the answer no longer points at one
    res = client.put(url, json={"options": ["yes", "no"]})
    assert res.status_code == 400


def test_create_exam_on_foreign_assignment_is_forbidden(client, login_as, seed):
    world = seed()
    login_as(world.other_teacher)
    res = client.post("/api/exams", json={
        "teaching_assignment_id": str(world.assignment.id),
        "title": "Not mine",
        "start_time": T0.isoformat(),
        "duration_minutes": 30,
    })
    assert res.status_code == 403


def test_exam_validation(client, login_as, seed):
    world = seed()
    login_as(world.teacher)
    payload = {
        "teaching_assignment_id": str(world.assignment.id),
        "title": "Bad",
        "start_time": T0.isoformat(),
        "duration_minutes": 0,
    }
    assert client.post("/api/exams", json=payload).status_code == 422
    payload.update(duration_minutes=30, max_violations=0)
    assert client.post("/api/exams", json=payload).status_code == 422


def test_teacher_only_manages_own_exams(client, login_as, seed):
    world = seed()

    login_as(world.other_teacher)
    assert client.get(f"/api/exams/{world.exam.id}").status_code == 403
    assert client.put(f"/api/exams/{world.exam.id}", json={"title": "Hijacked"}).status_code == 403
    assert client.delete(f"/api/exams/{world.exam.id}").status_code == 403
    assert client.get("/api/exams").json() == []

    login_as(world.teacher)
    listed = client.get("/api/exams").json()
    assert [e["id"] for e in listed] == [str(world.exam.id)]
    assert listed[0]["question_count"] == 2

    login_as(world.admin)
    assert client.get(f"/api/exams/{world.exam.id}").status_code == 200
    assert client.put(f"/api/exams/{world.exam.id}", json={"title": "Final"}).json()["title"] == "Final"


def test_students_cannot_manage_exams(client, login_as, seed):
    world = seed()
    login_as(world.student)
    assert client.get("/api/exams").status_code == 403
    assert client.post(f"/api/exams/{world.exam.id}/publish").status_code == 403
    assert client.post(f"/api/exams/{world.exam.id}/questions", json={"questions": [_question()]}).status_code == 403


def test_student_sees_active_exam_without_answers(client, login_as, seed):
    world = seed()
    login_as(world.student)

    res = client.get(f"/api/exams/{world.exam.id}")
    assert res.status_code == 200
    assert res.json()["question_count"] == 2

    res = client.get(f"/api/exams/{world.exam.id}/questions")
    assert res.status_code == 200
    questions = res.json()
    assert [q["question_text"] for q in questions] == ["2 + 3 = ?", "Capital of Indonesia?"]
    assert all("correct_answer" not in q for q in questions)

    login_as(world.teacher)
    staff_view = client.get(f"/api/exams/{world.exam.id}/questions").json()
    assert [q["correct_answer"] for q in staff_view] == ["B", "A"]


def test_student_does_not_see_inactive_exam(client, login_as, seed):
    world = seed(is_active=False)
    login_as(world.student)
    assert client.get(f"/api/exams/{world.exam.id}").status_code == 404
    assert client.get(f"/api/exams/{world.exam.id}/questions").status_code == 404


def test_delete_exam_blocked_once_attempted(client, login_as, seed):
    world = seed(start_time=utcnow() - timedelta(minutes=5))
    untouched = seed(questions=[])

    login_as(world.student)
    assert client.post("/api/exam-submissions", json={"exam_id": str(world.exam.id)}).status_code == 200

    login_as(world.teacher)
    res = client.delete(f"/api/exams/{world.exam.id}")
    assert res.status_code == 409
    assert "unpublish" in res.json()["detail"]
    res = client.delete(f"/api/exams/{world.exam.id}/questions/{world.questions[0].id}")
    assert res.status_code == 409

    login_as(untouched.teacher)
    assert client.delete(f"/api/exams/{untouched.exam.id}").status_code == 204
    assert client.get(f"/api/exams/{untouched.exam.id}").status_code == 404


def test_delete_question_before_any_attempt(client, login_as, seed):
    world = seed()
    login_as(world.teacher)
    q1, q2 = world.questions

    assert client.delete(f"/api/exams/{world.exam.id}/questions/{q1.id}").status_code == 204
    remaining = client.get(f"/api/exams/{world.exam.id}/questions").json()
    assert [q["id"] for q in remaining] == [str(q2.id)]
    assert client.delete(f"/api/exams/{world.exam.id}/questions/{q1.id}").status_code == 404


def test_excel_upload_preview(client, login_as, seed):
    world = seed()
    login_as(world.teacher)

    wb = Workbook()
    ws = wb.active
    ws.append(["question_text", "question_type", "options(json)", "correct_answer", "points", "image_url"])
    ws.append(["What is 2+2?", "MULTIPLE_CHOICE", json.dumps(["3", "4"]), "B", 1, None])
    f = BytesIO()
    wb.save(f)

    res = client.post(
        f"/api/exams/{world.exam.id}/questions/upload",
        files={"file": ("questions.xlsx", f.getvalue(), "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet")},
    )
    assert res.status_code == 200
    body = res.json()
    assert body["total"] == 1
    assert body["preview"][0]["correct_answer"] == "B"

    res = client.post(f"/api/exams/{world.exam.id}/questions/upload", files={"file": ("questions.csv", b"a,b", "text/csv")})
    assert res.status_code == 400
