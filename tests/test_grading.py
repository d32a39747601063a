from urllib.parse import urlparse

import pytest

from app import messages
from models import create_assignment, create_submission, create_video, get_submission


@pytest.fixture()
def pending_submission(make_user):
    teacher = make_user("teacher", "teacher@example.com")
    other_teacher = make_user("teacher", "other@example.com")
    student = make_user("student", "student@example.com")
    video = create_video(
        title="Bài 3",
        description="",
        url="https://cdn.example.com/lesson3.mp4",
        duration=120,
        uploaded_by=teacher.id,
        teacher_id=teacher.id,
    )
    assignment = create_assignment(
        video_id=video["id"],
        title="Luyện tập",
        description="",
        created_by=teacher.id,
        teacher_id=teacher.id,
    )
    submission = create_submission(
        assignment_id=assignment["id"],
        student_id=student.id,
        student_name=student.name,
        student_email=student.email,
        teacher_id=teacher.id,
        content="Bài làm",
    )
    return teacher, other_teacher, submission


def test_grade_submission_via_api(client, login, pending_submission):
    teacher, _other, submission = pending_submission
    login("teacher@example.com")

    response = client.post(
        f"/api/submissions/{submission['id']}/grade",
        json={"score": 8.5, "feedback": "  Tốt lắm  "},
    )

    assert response.status_code == 200
    payload = response.get_json()
    assert payload["score"] == 8.5
    assert payload["feedback"] == "Tốt lắm"
    assert payload["graded_by"] == teacher.id
    assert payload["graded_at"] is not None


@pytest.mark.parametrize("score", [-1, 10.5, 7.3, "abc", None])
def test_invalid_scores_are_rejected(client, login, pending_submission, score):
    _teacher, _other, submission = pending_submission
    login("teacher@example.com")

    response = client.post(f"/api/submissions/{submission['id']}/grade", json={"score": score})

    assert response.status_code == 400
    assert response.get_json()["error"] == messages.INVALID_SCORE
    assert get_submission(submission["id"])["score"] is None


def test_boundary_scores_are_accepted(client, login, pending_submission):
    _teacher, _other, submission = pending_submission
    login("teacher@example.com")

    for score in (0, 10, "9.5"):
        response = client.post(f"/api/submissions/{submission['id']}/grade", json={"score": score})
        assert response.status_code == 200


def test_only_owning_teacher_may_grade(client, login, pending_submission):
    _teacher, _other, submission = pending_submission
    login("other@example.com")

    response = client.post(f"/api/submissions/{submission['id']}/grade", json={"score": 5})

    assert response.status_code == 403
    assert get_submission(submission["id"])["score"] is None


def test_grading_unknown_submission(client, login, pending_submission):
    login("teacher@example.com")
    response = client.post("/api/submissions/9999/grade", json={"score": 5})
    assert response.status_code == 404


def test_student_cannot_grade(client, login, pending_submission):
    _teacher, _other, submission = pending_submission
    login("student@example.com")
    response = client.post(f"/api/submissions/{submission['id']}/grade", json={"score": 5})
    assert response.status_code == 403


def test_pending_filter_hides_graded_submissions(client, login, pending_submission):
    _teacher, _other, submission = pending_submission
    login("teacher@example.com")

    pending = client.get("/api/teacher/submissions").get_json()["submissions"]
    assert [entry["id"] for entry in pending] == [submission["id"]]

    client.post(f"/api/submissions/{submission['id']}/grade", json={"score": 9})

    assert client.get("/api/teacher/submissions?status=pending").get_json()["submissions"] == []
    graded = client.get("/api/teacher/submissions?status=all").get_json()["submissions"]
    assert graded[0]["score"] == 9.0
    rejected = client.get("/api/teacher/submissions?status=late")
    assert rejected.status_code == 400
    assert rejected.get_json()["error"] == messages.INVALID_STATUS_FILTER


def test_grade_form_redirects_to_submissions_tab(client, login, pending_submission):
    _teacher, _other, submission = pending_submission
    login("teacher@example.com")

    response = client.post(
        f"/teacher/submissions/{submission['id']}/grade",
        data={"score": "7.5", "feedback": ""},
    )

    assert response.status_code == 302
    location = urlparse(response.headers["Location"])
    assert location.path == "/teacher"
    assert "tab=submissions" in location.query
    graded = get_submission(submission["id"])
    assert graded["score"] == 7.5
    assert graded["feedback"] is None


def test_student_sees_grade_in_submission_list(client, login, pending_submission):
    _teacher, _other, submission = pending_submission
    login("teacher@example.com")
    client.post(f"/api/submissions/{submission['id']}/grade", json={"score": 6, "feedback": "Cố gắng"})
    client.get("/logout")

    login("student@example.com")
    entries = client.get("/api/student/submissions").get_json()["submissions"]

    assert entries[0]["score"] == 6.0
    assert entries[0]["feedback"] == "Cố gắng"
