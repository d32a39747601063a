import csv
import datetime
import io

import pytest

from app import messages
from models import (
    create_assignment,
    create_submission,
    create_video,
    grade_submission,
    list_assignments_for_video,
    list_courses,
    upsert_watch_progress,
)


@pytest.fixture()
def classroom(make_user):
    teacher = make_user("teacher", "teacher@example.com", name="Co Hoa")
    other_teacher = make_user("teacher", "other@example.com")
    alice = make_user("student", "alice@example.com", name="Alice")
    bob = make_user("student", "bob@example.com", name="=cmd|' /C calc'!A0")
    video = create_video(
        title="Bài 1",
        description="",
        url="https://cdn.example.com/1.mp4",
        duration=600,
        uploaded_by=teacher.id,
        teacher_id=teacher.id,
    )
    assignment = create_assignment(
        video_id=video["id"],
        title="Bài tập 1",
        description="",
        created_by=teacher.id,
        teacher_id=teacher.id,
    )
    upsert_watch_progress(
        student_id=alice.id,
        student_name=alice.name,
        student_email=alice.email,
        video_id=video["id"],
        video_title=video["title"],
        teacher_id=teacher.id,
        watch_time=600,
        completed=True,
    )
    submission = create_submission(
        assignment_id=assignment["id"],
        student_id=alice.id,
        student_name=alice.name,
        student_email=alice.email,
        teacher_id=teacher.id,
        content="Bài làm",
    )
    grade_submission(submission["id"], score=9.0, feedback=None, graded_by=teacher.id)
    old = create_submission(
        assignment_id=assignment["id"],
        student_id=bob.id,
        student_name=bob.name,
        student_email=bob.email,
        teacher_id=teacher.id,
        content="Cũ",
        submitted_at=datetime.datetime.utcnow() - datetime.timedelta(days=20),
    )
    return teacher, other_teacher, alice, bob, video, assignment, old


def test_teacher_stats_week(client, login, classroom):
    _teacher, _other, alice, bob, *_rest = classroom
    login("teacher@example.com")

    payload = client.get("/api/teacher/stats?period=week").get_json()

    assert payload["period"] == "week"
    rows = {row["id"]: row for row in payload["students"]}
    assert rows[alice.id]["total_watch_time"] == 600
    assert rows[alice.id]["videos_completed"] == 1
    assert rows[alice.id]["assignments_submitted"] == 1
    assert rows[alice.id]["average_score"] == 9.0
    assert rows[bob.id]["assignments_submitted"] == 0


def test_teacher_stats_month_includes_older_submissions(client, login, classroom):
    _teacher, _other, _alice, bob, *_rest = classroom
    login("teacher@example.com")

    payload = client.get("/api/teacher/stats?period=month").get_json()

    rows = {row["id"]: row for row in payload["students"]}
    assert rows[bob.id]["assignments_submitted"] == 1


def test_teacher_stats_rejects_unknown_period(client, login, classroom):
    login("teacher@example.com")
    response = client.get("/api/teacher/stats?period=year")

    assert response.status_code == 400
    assert response.get_json()["error"] == messages.INVALID_PERIOD


def test_other_teacher_sees_no_activity(client, login, classroom):
    _teacher, _other, alice, *_rest = classroom
    login("other@example.com")

    rows = {row["id"]: row for row in client.get("/api/teacher/stats").get_json()["students"]}

    assert rows[alice.id]["total_watch_time"] == 0
    assert rows[alice.id]["average_score"] is None


def test_teacher_page_tabs_render(client, login, classroom):
    login("teacher@example.com")

    students_tab = client.get("/teacher").get_data(as_text=True)
    assert "Alice" in students_tab
    assert "0h 10p" in students_tab

    submissions_tab = client.get("/teacher?tab=submissions").get_data(as_text=True)
    assert "Cũ" in submissions_tab
    assert "Bài làm" not in submissions_tab

    all_tab = client.get("/teacher?tab=submissions&status=all").get_data(as_text=True)
    assert "Bài làm" in all_tab

    videos_tab = client.get("/teacher?tab=videos").get_data(as_text=True)
    assert "Bài tập 1" in videos_tab


def test_export_csv_escapes_formulas(client, login, classroom):
    _teacher, _other, alice, bob, *_rest = classroom
    login("teacher@example.com")

    response = client.get("/api/teacher/export?period=month")

    assert response.status_code == 200
    assert response.mimetype == "text/csv"
    assert "academy_stats_month_" in response.headers["Content-Disposition"]
    rows = list(csv.DictReader(io.StringIO(response.get_data(as_text=True))))
    by_email = {row["email"]: row for row in rows}
    assert by_email["alice@example.com"]["average_score"] == "9.0"
    assert by_email["alice@example.com"]["total_watch_time"] == "600"
    assert by_email["bob@example.com"]["name"].startswith("'=")
    assert by_email["bob@example.com"]["average_score"] == ""


def test_create_and_delete_assignment(client, login, classroom):
    _teacher, _other, _alice, _bob, video, *_rest = classroom
    login("teacher@example.com")

    response = client.post(
        "/teacher/assignments",
        data={
            "video_id": str(video["id"]),
            "title": "Bài tập 2",
            "description": "Nghe và chép",
            "due_date": "2030-01-15",
        },
    )
    assert response.status_code == 302

    created = [entry for entry in list_assignments_for_video(video["id"]) if entry["title"] == "Bài tập 2"]
    assert len(created) == 1
    assert created[0]["due_date"].date() == datetime.date(2030, 1, 15)

    client.post(f"/teacher/assignments/{created[0]['id']}/delete")
    assert [entry["title"] for entry in list_assignments_for_video(video["id"])] == ["Bài tập 1"]


def test_assignment_title_is_required(client, login, classroom):
    _teacher, _other, _alice, _bob, video, *_rest = classroom
    login("teacher@example.com")

    response = client.post(
        "/teacher/assignments",
        data={"video_id": str(video["id"]), "title": " "},
        follow_redirects=True,
    )

    assert messages.ASSIGNMENT_TITLE_REQUIRED in response.get_data(as_text=True)
    assert len(list_assignments_for_video(video["id"])) == 1


def test_other_teacher_cannot_add_assignment_to_video(client, login, classroom):
    _teacher, _other, _alice, _bob, video, *_rest = classroom
    login("other@example.com")

    client.post("/teacher/assignments", data={"video_id": str(video["id"]), "title": "X"})

    assert len(list_assignments_for_video(video["id"])) == 1


def test_assignments_api_lists_by_video(client, login, classroom):
    _teacher, _other, _alice, _bob, video, assignment, _old = classroom
    login("alice@example.com")

    payload = client.get(f"/api/videos/{video['id']}/assignments").get_json()

    assert [entry["id"] for entry in payload["assignments"]] == [assignment["id"]]
    assert client.get("/api/videos/9999/assignments").status_code == 404


def test_create_course(client, login, classroom):
    teacher, *_rest = classroom
    login("teacher@example.com")

    client.post("/teacher/courses", data={"title": "Tiếng Anh 6", "description": "Cơ bản"})

    assert [course["title"] for course in list_courses(teacher_id=teacher.id)] == ["Tiếng Anh 6"]
    payload = client.get("/api/courses").get_json()
    assert payload["courses"][0]["title"] == "Tiếng Anh 6"


def test_bad_due_date_is_reported_in_vietnamese(client, login, classroom):
    _teacher, _other, _alice, _bob, video, *_rest = classroom
    login("teacher@example.com")

    response = client.post(
        "/teacher/assignments",
        data={"video_id": str(video["id"]), "title": "Bài tập 2", "due_date": "15/01/2030"},
        follow_redirects=True,
    )

    assert messages.INVALID_DATE.format(field="Hạn nộp") in response.get_data(as_text=True)
    assert len(list_assignments_for_video(video["id"])) == 1


def _fail(*args, **kwargs):
    raise RuntimeError("database is locked")


def test_assignment_write_failure_is_flashed(client, login, classroom, monkeypatch):
    _teacher, _other, _alice, _bob, video, assignment, _old = classroom
    login("teacher@example.com")
    monkeypatch.setattr("app.routes.create_assignment", _fail)
    monkeypatch.setattr("app.routes.delete_assignment", _fail)

    created = client.post(
        "/teacher/assignments",
        data={"video_id": str(video["id"]), "title": "Bài tập 2"},
        follow_redirects=True,
    )
    deleted = client.post(f"/teacher/assignments/{assignment['id']}/delete", follow_redirects=True)

    assert created.status_code == 200
    assert messages.ASSIGNMENT_SAVE_FAILED in created.get_data(as_text=True)
    assert deleted.status_code == 200
    assert messages.ASSIGNMENT_DELETE_FAILED in deleted.get_data(as_text=True)
    assert [entry["id"] for entry in list_assignments_for_video(video["id"])] == [assignment["id"]]


def test_course_write_failure_is_flashed(client, login, classroom, monkeypatch):
    teacher, *_rest = classroom
    login("teacher@example.com")
    monkeypatch.setattr("app.routes.create_course", _fail)

    response = client.post("/teacher/courses", data={"title": "Tiếng Anh 7"}, follow_redirects=True)

    assert response.status_code == 200
    assert messages.COURSE_SAVE_FAILED in response.get_data(as_text=True)
    assert list_courses(teacher_id=teacher.id) == []
