"""Data access layer for the E-Learning Academy without external ORM dependencies."""

from __future__ import annotations

import datetime
import os
import sqlite3
from typing import Iterable, Optional, Sequence
from urllib.parse import urlparse

import psycopg
from flask_login import UserMixin
from psycopg import errors as pg_errors
from psycopg.rows import dict_row

from config.settings import get_settings

_connection: Optional[object] = None
_backend: Optional[str] = None  # "sqlite" or "postgres"

VALID_ROLES = ("student", "teacher", "admin")
DEFAULT_VIDEO_TITLE = "Video học tập"


class EmailInUseError(ValueError):
    """Raised when a user is created with an email that is already registered."""


class User(UserMixin):
    """Flask-Login compatible user wrapper."""

    def __init__(
        self,
        *,
        id: int,
        email: str,
        password_hash: str,
        role: str,
        name: str,
        created_at: datetime.datetime,
    ) -> None:
        self.id = id
        self.email = email
        self.password_hash = password_hash
        self.role = role
        self.name = name
        self.created_at = created_at

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<User id={self.id} role={self.role} email={self.email!r}>"


def _resolve_default_sqlite_path() -> str:
    root_dir = os.path.dirname(os.path.dirname(__file__))
    return os.path.join(root_dir, "academy_dev.sqlite")


def _normalize_sqlite_path(database_url: str) -> str:
    parsed = urlparse(database_url)
    path = parsed.path or ""
    if path.startswith("/"):
        path = path[1:]
    if path in {"", ":memory:"}:
        return ":memory:"
    if parsed.netloc:
        path = os.path.join(parsed.netloc, path)
    return path or _resolve_default_sqlite_path()


def get_connection():
    """Return a singleton database connection."""
    global _connection, _backend
    if _connection is not None:
        return _connection

    settings = get_settings()
    database_url = settings.DATABASE_URL or f"sqlite:///{_resolve_default_sqlite_path()}"

    if database_url.startswith("postgres://"):
        database_url = database_url.replace("postgres://", "postgresql://", 1)

    if database_url.startswith("sqlite"):
        conn = sqlite3.connect(
            _normalize_sqlite_path(database_url),
            detect_types=sqlite3.PARSE_DECLTYPES,
            check_same_thread=False,
        )
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON;")
        _connection = conn
        _backend = "sqlite"
    else:
        _connection = psycopg.connect(database_url, row_factory=dict_row)
        _backend = "postgres"

    return _connection


def reset_engine() -> None:
    """Reset the current database connection (used in tests)."""
    global _connection, _backend
    if _connection is not None:
        _connection.close()
    _connection = None
    _backend = None


_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS users (
        id {pk},
        email VARCHAR(255) UNIQUE NOT NULL,
        password_hash VARCHAR(255) NOT NULL,
        role VARCHAR(16) NOT NULL CHECK (role IN ('student', 'teacher', 'admin')),
        name VARCHAR(255) NOT NULL,
        created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS courses (
        id {pk},
        title VARCHAR(255) NOT NULL,
        description TEXT NOT NULL DEFAULT '',
        teacher_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS videos (
        id {pk},
        title VARCHAR(255) NOT NULL,
        description TEXT NOT NULL DEFAULT '',
        storage_path TEXT NULL,
        url TEXT NULL,
        thumbnail_url TEXT NULL,
        duration INTEGER NOT NULL DEFAULT 0 CHECK (duration >= 0),
        uploaded_by INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        teacher_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        course_id INTEGER NULL REFERENCES courses(id) ON DELETE SET NULL,
        uploaded_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
    );
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_videos_teacher ON videos (teacher_id);
    """,
    """
    CREATE TABLE IF NOT EXISTS assignments (
        id {pk},
        video_id INTEGER NOT NULL REFERENCES videos(id) ON DELETE CASCADE,
        title VARCHAR(255) NOT NULL,
        description TEXT NOT NULL DEFAULT '',
        due_date TIMESTAMP NULL,
        created_by INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        teacher_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
    );
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_assignments_video ON assignments (video_id);
    """,
    """
    CREATE TABLE IF NOT EXISTS submissions (
        id {pk},
        assignment_id INTEGER NOT NULL REFERENCES assignments(id) ON DELETE CASCADE,
        student_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        teacher_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        student_name VARCHAR(255) NOT NULL,
        student_email VARCHAR(255) NOT NULL,
        content TEXT NOT NULL DEFAULT '',
        audio_storage_path TEXT NULL,
        submitted_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
        score {float} NULL CHECK (score IS NULL OR (score >= 0 AND score <= 10)),
        feedback TEXT NULL,
        graded_by INTEGER NULL REFERENCES users(id) ON DELETE SET NULL,
        graded_at TIMESTAMP NULL
    );
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_submissions_student ON submissions (student_id);
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_submissions_teacher ON submissions (teacher_id);
    """,
    """
    CREATE TABLE IF NOT EXISTS submission_attachments (
        id {pk},
        submission_id INTEGER NOT NULL REFERENCES submissions(id) ON DELETE CASCADE,
        name VARCHAR(255) NOT NULL,
        storage_path TEXT NOT NULL,
        content_type VARCHAR(255) NOT NULL DEFAULT 'application/octet-stream',
        size INTEGER NOT NULL DEFAULT 0
    );
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_attachments_submission
    ON submission_attachments (submission_id);
    """,
    """
    CREATE TABLE IF NOT EXISTS watch_progress (
        student_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        video_id INTEGER NOT NULL REFERENCES videos(id) ON DELETE CASCADE,
        teacher_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        student_name VARCHAR(255) NOT NULL,
        student_email VARCHAR(255) NOT NULL,
        video_title VARCHAR(255) NOT NULL,
        watch_time INTEGER NOT NULL DEFAULT 0 CHECK (watch_time >= 0),
        completed BOOLEAN NOT NULL DEFAULT FALSE,
        last_watched_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
        PRIMARY KEY (student_id, video_id)
    );
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_watch_progress_teacher ON watch_progress (teacher_id);
    """,
)


def init_db() -> None:
    """Create all tables if they do not already exist."""
    conn = get_connection()
    if _backend == "postgres":
        placeholders = {"pk": "SERIAL PRIMARY KEY", "float": "DOUBLE PRECISION"}
    else:
        placeholders = {"pk": "INTEGER PRIMARY KEY AUTOINCREMENT", "float": "REAL"}
    cur = conn.cursor()
    try:
        for statement in _SCHEMA:
            cur.execute(statement.format(**placeholders))
        conn.commit()
    finally:
        cur.close()


def _adapt(query: str) -> str:
    if _backend == "sqlite":
        return query.replace("%s", "?")
    return query


def _execute_fetchone(query: str, params: tuple) -> Optional[dict]:
    conn = get_connection()
    cur = conn.cursor()
    try:
        cur.execute(_adapt(query), params)
        row = cur.fetchone()
        if row is None:
            return None
        return dict(row)
    finally:
        cur.close()


def _execute_fetchall(query: str, params: tuple = ()) -> list[dict]:
    conn = get_connection()
    cur = conn.cursor()
    try:
        cur.execute(_adapt(query), params)
        return [dict(row) for row in cur.fetchall() or []]
    finally:
        cur.close()


def _execute_write(query: str, params: tuple) -> int:
    """Run an UPDATE/DELETE and return the affected row count."""
    conn = get_connection()
    cur = conn.cursor()
    try:
        cur.execute(_adapt(query), params)
        affected = cur.rowcount
        conn.commit()
        return int(affected or 0)
    except Exception:
        conn.rollback()
        raise
    finally:
        cur.close()


def _insert_returning_id(cur, query: str, params: tuple) -> int:
    """Run an INSERT on an open cursor without committing."""
    if _backend == "postgres":
        cur.execute(query.rstrip().rstrip(";") + " RETURNING id;", params)
        new_id = cur.fetchone()["id"]
    else:
        cur.execute(_adapt(query), params)
        new_id = cur.lastrowid
    if new_id is None:
        raise RuntimeError("Row was created but no identifier returned.")
    return int(new_id)


def _execute_insert(query: str, params: tuple) -> int:
    """Run an INSERT and return the new row identifier."""
    conn = get_connection()
    cur = conn.cursor()
    try:
        new_id = _insert_returning_id(cur, query, params)
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        cur.close()
    return new_id


def _to_datetime(value: object) -> Optional[datetime.datetime]:
    if value in (None, ""):
        return None
    if isinstance(value, datetime.datetime):
        return value
    if isinstance(value, datetime.date):
        return datetime.datetime.combine(value, datetime.datetime.min.time())
    if isinstance(value, str):
        return datetime.datetime.fromisoformat(value)
    raise TypeError(f"Unsupported timestamp value: {value!r}")


def _placeholders(count: int) -> str:
    return ", ".join(["%s"] * count)


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


def _row_to_user(row: Optional[dict]) -> Optional[User]:
    if not row:
        return None

    return User(
        id=row["id"],
        email=row["email"],
        password_hash=row["password_hash"],
        role=row["role"],
        name=row["name"],
        created_at=_to_datetime(row.get("created_at")),
    )


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def get_user_by_id(user_id: int) -> Optional[User]:
    row = _execute_fetchone("SELECT * FROM users WHERE id = %s", (user_id,))
    return _row_to_user(row)


def get_user_by_email(email: str) -> Optional[User]:
    normalized = normalize_email(email)
    if not normalized:
        return None
    row = _execute_fetchone("SELECT * FROM users WHERE email = %s", (normalized,))
    return _row_to_user(row)


def create_user(
    *,
    name: str,
    email: str,
    password_hash: str,
    role: str,
) -> User:
    normalized_role = role.lower()
    if normalized_role not in VALID_ROLES:
        raise ValueError(f"Unknown role: {role!r}")

    try:
        new_id = _execute_insert(
            """
            INSERT INTO users (name, email, password_hash, role, created_at)
            VALUES (%s, %s, %s, %s, %s);
            """,
            (
                name.strip(),
                normalize_email(email),
                password_hash,
                normalized_role,
                datetime.datetime.utcnow(),
            ),
        )
    except (sqlite3.IntegrityError, pg_errors.UniqueViolation) as exc:
        raise EmailInUseError(normalize_email(email)) from exc

    user = get_user_by_id(new_id)
    if user is None:
        raise RuntimeError("Failed to retrieve created user.")
    return user


def list_users_by_role(role: str) -> list[User]:
    rows = _execute_fetchall(
        "SELECT * FROM users WHERE role = %s ORDER BY name ASC, id ASC",
        (role,),
    )
    return [user for user in (_row_to_user(row) for row in rows) if user is not None]


# ---------------------------------------------------------------------------
# Courses
# ---------------------------------------------------------------------------


def create_course(*, title: str, description: str, teacher_id: int) -> dict[str, object]:
    course_id = _execute_insert(
        """
        INSERT INTO courses (title, description, teacher_id, created_at)
        VALUES (%s, %s, %s, %s);
        """,
        (title, description, teacher_id, datetime.datetime.utcnow()),
    )
    row = _execute_fetchone("SELECT * FROM courses WHERE id = %s", (course_id,))
    if row is None:
        raise RuntimeError("Failed to retrieve created course.")
    return row


def list_courses(teacher_id: Optional[int] = None) -> list[dict[str, object]]:
    if teacher_id is None:
        return _execute_fetchall("SELECT * FROM courses ORDER BY created_at DESC, id DESC")
    return _execute_fetchall(
        "SELECT * FROM courses WHERE teacher_id = %s ORDER BY created_at DESC, id DESC",
        (teacher_id,),
    )


# ---------------------------------------------------------------------------
# Videos
# ---------------------------------------------------------------------------


def _normalize_video(row: Optional[dict]) -> Optional[dict[str, object]]:
    if not row:
        return None
    row["title"] = row.get("title") or DEFAULT_VIDEO_TITLE
    row["description"] = row.get("description") or ""
    row["duration"] = int(row.get("duration") or 0)
    row["uploaded_at"] = _to_datetime(row.get("uploaded_at"))
    return row


def create_video(
    *,
    title: str,
    description: str,
    uploaded_by: int,
    teacher_id: int,
    storage_path: Optional[str] = None,
    url: Optional[str] = None,
    duration: int = 0,
    course_id: Optional[int] = None,
    thumbnail_url: Optional[str] = None,
    uploaded_at: Optional[datetime.datetime] = None,
) -> dict[str, object]:
    """Insert a video row; either ``storage_path`` or ``url`` locates the media."""
    if not storage_path and not url:
        raise ValueError("Video cần có tệp hoặc đường dẫn.")
    video_id = _execute_insert(
        """
        INSERT INTO videos (
            title, description, storage_path, url, thumbnail_url, duration,
            uploaded_by, teacher_id, course_id, uploaded_at
        )
        VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s);
        """,
        (
            title or DEFAULT_VIDEO_TITLE,
            description,
            storage_path,
            url,
            thumbnail_url,
            max(0, int(duration)),
            uploaded_by,
            teacher_id,
            course_id,
            uploaded_at or datetime.datetime.utcnow(),
        ),
    )
    video = get_video(video_id)
    if video is None:
        raise RuntimeError("Failed to retrieve created video.")
    return video


def get_video(video_id: int) -> Optional[dict[str, object]]:
    return _normalize_video(_execute_fetchone("SELECT * FROM videos WHERE id = %s", (video_id,)))


def list_videos(teacher_id: Optional[int] = None) -> list[dict[str, object]]:
    """Return videos newest first, optionally limited to one teacher."""
    if teacher_id is None:
        rows = _execute_fetchall("SELECT * FROM videos ORDER BY uploaded_at DESC, id DESC")
    else:
        rows = _execute_fetchall(
            "SELECT * FROM videos WHERE teacher_id = %s ORDER BY uploaded_at DESC, id DESC",
            (teacher_id,),
        )
    return [_normalize_video(row) for row in rows]


def update_video(
    video_id: int,
    *,
    title: Optional[str] = None,
    description: Optional[str] = None,
    duration: Optional[int] = None,
) -> bool:
    assignments: list[str] = []
    params: list[object] = []
    if title is not None:
        assignments.append("title = %s")
        params.append(title)
    if description is not None:
        assignments.append("description = %s")
        params.append(description)
    if duration is not None:
        assignments.append("duration = %s")
        params.append(max(0, int(duration)))
    if not assignments:
        return get_video(video_id) is not None
    params.append(video_id)
    updated = _execute_write(
        f"UPDATE videos SET {', '.join(assignments)} WHERE id = %s;",
        tuple(params),
    )
    return updated > 0


def delete_video(video_id: int) -> bool:
    """Delete a video; assignments, submissions and progress cascade."""
    return _execute_write("DELETE FROM videos WHERE id = %s;", (video_id,)) > 0


def count_viewers_by_video() -> dict[int, int]:
    """Return the number of distinct students with progress on each video."""
    rows = _execute_fetchall(
        """
        SELECT video_id, COUNT(DISTINCT student_id) AS viewers
        FROM watch_progress
        GROUP BY video_id;
        """
    )
    return {int(row["video_id"]): int(row["viewers"] or 0) for row in rows}


# ---------------------------------------------------------------------------
# Assignments
# ---------------------------------------------------------------------------


def _normalize_assignment(row: Optional[dict]) -> Optional[dict[str, object]]:
    if not row:
        return None
    row["created_at"] = _to_datetime(row.get("created_at"))
    row["due_date"] = _to_datetime(row.get("due_date"))
    return row


def create_assignment(
    *,
    video_id: int,
    title: str,
    description: str,
    created_by: int,
    teacher_id: int,
    due_date: Optional[datetime.datetime] = None,
    created_at: Optional[datetime.datetime] = None,
) -> dict[str, object]:
    assignment_id = _execute_insert(
        """
        INSERT INTO assignments (
            video_id, title, description, due_date, created_by, teacher_id, created_at
        )
        VALUES (%s, %s, %s, %s, %s, %s, %s);
        """,
        (
            video_id,
            title,
            description,
            due_date,
            created_by,
            teacher_id,
            created_at or datetime.datetime.utcnow(),
        ),
    )
    assignment = get_assignment(assignment_id)
    if assignment is None:
        raise RuntimeError("Failed to retrieve created assignment.")
    return assignment


def get_assignment(assignment_id: int) -> Optional[dict[str, object]]:
    return _normalize_assignment(
        _execute_fetchone("SELECT * FROM assignments WHERE id = %s", (assignment_id,))
    )


def list_assignments_for_video(video_id: int) -> list[dict[str, object]]:
    """Return a video's assignments oldest first."""
    rows = _execute_fetchall(
        "SELECT * FROM assignments WHERE video_id = %s ORDER BY created_at ASC, id ASC",
        (video_id,),
    )
    return [_normalize_assignment(row) for row in rows]


def delete_assignment(assignment_id: int) -> bool:
    return _execute_write("DELETE FROM assignments WHERE id = %s;", (assignment_id,)) > 0


# ---------------------------------------------------------------------------
# Submissions
# ---------------------------------------------------------------------------


def _normalize_submission(row: dict) -> dict[str, object]:
    row["content"] = row.get("content") or ""
    row["submitted_at"] = _to_datetime(row.get("submitted_at"))
    row["graded_at"] = _to_datetime(row.get("graded_at"))
    score = row.get("score")
    row["score"] = float(score) if score is not None else None
    row.setdefault("attachments", [])
    return row


def _load_attachments(submission_ids: Sequence[int]) -> dict[int, list[dict[str, object]]]:
    if not submission_ids:
        return {}
    rows = _execute_fetchall(
        f"""
        SELECT * FROM submission_attachments
        WHERE submission_id IN ({_placeholders(len(submission_ids))})
        ORDER BY id ASC;
        """,
        tuple(submission_ids),
    )
    grouped: dict[int, list[dict[str, object]]] = {}
    for row in rows:
        grouped.setdefault(int(row["submission_id"]), []).append(row)
    return grouped


def _with_attachments(rows: Iterable[dict]) -> list[dict[str, object]]:
    submissions = [_normalize_submission(row) for row in rows]
    attachments = _load_attachments([int(entry["id"]) for entry in submissions])
    for entry in submissions:
        entry["attachments"] = attachments.get(int(entry["id"]), [])
    return submissions


def create_submission(
    *,
    assignment_id: int,
    student_id: int,
    student_name: str,
    student_email: str,
    teacher_id: int,
    content: str,
    attachments: Sequence[dict[str, object]] = (),
    audio_storage_path: Optional[str] = None,
    submitted_at: Optional[datetime.datetime] = None,
) -> dict[str, object]:
    """Insert a submission together with its attachment rows.

    Both inserts share one transaction; a failing attachment leaves no
    submission behind.
    """
    conn = get_connection()
    cur = conn.cursor()
    try:
        submission_id = _insert_returning_id(
            cur,
            """
            INSERT INTO submissions (
                assignment_id, student_id, teacher_id, student_name, student_email,
                content, audio_storage_path, submitted_at
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s);
            """,
            (
                assignment_id,
                student_id,
                teacher_id,
                student_name,
                student_email,
                content,
                audio_storage_path,
                submitted_at or datetime.datetime.utcnow(),
            ),
        )
        for attachment in attachments:
            cur.execute(
                _adapt(
                    """
                    INSERT INTO submission_attachments (
                        submission_id, name, storage_path, content_type, size
                    )
                    VALUES (%s, %s, %s, %s, %s);
                    """
                ),
                (
                    submission_id,
                    attachment["name"],
                    attachment["storage_path"],
                    attachment.get("content_type") or "application/octet-stream",
                    int(attachment.get("size") or 0),
                ),
            )
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        cur.close()

    submission = get_submission(submission_id)
    if submission is None:
        raise RuntimeError("Failed to retrieve created submission.")
    return submission


def get_submission(submission_id: int) -> Optional[dict[str, object]]:
    row = _execute_fetchone(
        """
        SELECT s.*, a.title AS assignment_title, a.video_id AS video_id
        FROM submissions s
        JOIN assignments a ON a.id = s.assignment_id
        WHERE s.id = %s
        """,
        (submission_id,),
    )
    if row is None:
        return None
    return _with_attachments([row])[0]


def list_submissions_for_student(student_id: int) -> list[dict[str, object]]:
    """Return a student's submissions newest first."""
    rows = _execute_fetchall(
        """
        SELECT s.*, a.title AS assignment_title, a.video_id AS video_id
        FROM submissions s
        JOIN assignments a ON a.id = s.assignment_id
        WHERE s.student_id = %s
        ORDER BY s.submitted_at DESC, s.id DESC
        """,
        (student_id,),
    )
    return _with_attachments(rows)


def list_submissions_for_teacher(
    teacher_id: int,
    *,
    pending_only: bool = False,
) -> list[dict[str, object]]:
    """Return submissions addressed to a teacher, newest first."""
    query = """
        SELECT s.*, a.title AS assignment_title, a.video_id AS video_id
        FROM submissions s
        JOIN assignments a ON a.id = s.assignment_id
        WHERE s.teacher_id = %s
    """
    if pending_only:
        query += " AND s.score IS NULL"
    query += " ORDER BY s.submitted_at DESC, s.id DESC"
    return _with_attachments(_execute_fetchall(query, (teacher_id,)))


def grade_submission(
    submission_id: int,
    *,
    score: float,
    feedback: Optional[str],
    graded_by: int,
    graded_at: Optional[datetime.datetime] = None,
) -> bool:
    if score < 0 or score > 10:
        raise ValueError("Điểm phải nằm trong khoảng 0-10.")
    updated = _execute_write(
        """
        UPDATE submissions
        SET score = %s, feedback = %s, graded_by = %s, graded_at = %s
        WHERE id = %s;
        """,
        (
            float(score),
            feedback,
            graded_by,
            graded_at or datetime.datetime.utcnow(),
            submission_id,
        ),
    )
    return updated > 0


# ---------------------------------------------------------------------------
# Watch progress
# ---------------------------------------------------------------------------


def _normalize_progress(row: Optional[dict]) -> Optional[dict[str, object]]:
    if not row:
        return None
    row["watch_time"] = int(row.get("watch_time") or 0)
    row["completed"] = bool(row.get("completed"))
    row["last_watched_at"] = _to_datetime(row.get("last_watched_at"))
    return row


def upsert_watch_progress(
    *,
    student_id: int,
    student_name: str,
    student_email: str,
    video_id: int,
    video_title: str,
    teacher_id: int,
    watch_time: int,
    completed: bool,
    last_watched_at: Optional[datetime.datetime] = None,
) -> dict[str, object]:
    """Merge-write the progress record keyed by (student, video).

    Completion is sticky: once a record is completed a later write cannot
    clear it.
    """
    conn = get_connection()
    cur = conn.cursor()
    try:
        cur.execute(
            _adapt(
                """
                INSERT INTO watch_progress (
                    student_id, video_id, teacher_id, student_name, student_email,
                    video_title, watch_time, completed, last_watched_at
                )
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
                ON CONFLICT (student_id, video_id) DO UPDATE SET
                    teacher_id = excluded.teacher_id,
                    student_name = excluded.student_name,
                    student_email = excluded.student_email,
                    video_title = excluded.video_title,
                    watch_time = excluded.watch_time,
                    completed = (excluded.completed OR watch_progress.completed),
                    last_watched_at = excluded.last_watched_at;
                """
            ),
            (
                student_id,
                video_id,
                teacher_id,
                student_name,
                student_email,
                video_title,
                max(0, int(watch_time)),
                bool(completed),
                last_watched_at or datetime.datetime.utcnow(),
            ),
        )
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        cur.close()

    progress = get_watch_progress(student_id, video_id)
    if progress is None:
        raise RuntimeError("Failed to retrieve watch progress.")
    return progress


def get_watch_progress(student_id: int, video_id: int) -> Optional[dict[str, object]]:
    return _normalize_progress(
        _execute_fetchone(
            "SELECT * FROM watch_progress WHERE student_id = %s AND video_id = %s",
            (student_id, video_id),
        )
    )


def list_watch_progress_for_teacher(teacher_id: int) -> list[dict[str, object]]:
    rows = _execute_fetchall(
        "SELECT * FROM watch_progress WHERE teacher_id = %s ORDER BY last_watched_at DESC",
        (teacher_id,),
    )
    return [_normalize_progress(row) for row in rows]


def list_watch_progress_for_student(student_id: int) -> list[dict[str, object]]:
    rows = _execute_fetchall(
        "SELECT * FROM watch_progress WHERE student_id = %s ORDER BY last_watched_at DESC",
        (student_id,),
    )
    return [_normalize_progress(row) for row in rows]
