from __future__ import annotations

import csv
import datetime
import io
import logging
import time
import uuid
from functools import wraps
from typing import Callable, Optional, Sequence

from flask import (
    Blueprint,
    Response,
    flash,
    jsonify,
    redirect,
    render_template,
    request,
    url_for,
)
from flask_login import current_user, login_required, login_user, logout_user
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from config.settings import get_settings
from app import messages
from app.services import storage
from app.services.demo_accounts import load_demo_accounts
from app.services.engagement import (
    InvalidPlayerEvent,
    WatchTracker,
    completion_percent,
    is_completed,
    parse_player_batch,
)
from app.services.stats import compute_student_stats, parse_period, summarize_students
from app.utils.formatting import isoformat_or_none
from models import (
    EmailInUseError,
    create_assignment,
    create_course,
    create_submission,
    create_user,
    create_video,
    count_viewers_by_video,
    delete_assignment,
    delete_video,
    get_assignment,
    get_submission,
    get_user_by_email,
    get_video,
    get_watch_progress,
    grade_submission,
    list_assignments_for_video,
    list_courses,
    list_submissions_for_student,
    list_submissions_for_teacher,
    list_users_by_role,
    list_videos,
    list_watch_progress_for_student,
    list_watch_progress_for_teacher,
    update_video,
    upsert_watch_progress,
)
from .security import hash_password, is_valid_email, validate_registration, verify_password

logger = logging.getLogger(__name__)

bp = Blueprint("core", __name__)

ROLE_ROUTES = {
    "student": "core.student_page",
    "teacher": "core.teacher_page",
    "admin": "core.admin_page",
}

ALLOWED_VIDEO_EXTENSIONS = {"mp4", "mov", "avi"}


def _role_home(role: str) -> str:
    return url_for(ROLE_ROUTES.get(role, "core.login"))


def _is_api_request() -> bool:
    return request.path.startswith("/api/")


def role_required(*allowed_roles: str) -> Callable:
    """Ensure the current user has one of the provided roles.

    Pages send a user with the wrong role to their own home page; API
    endpoints answer 403.
    """

    def decorator(view: Callable) -> Callable:
        @wraps(view)
        @login_required
        def wrapped(*args, **kwargs):
            if current_user.role not in allowed_roles:
                if _is_api_request():
                    return jsonify({"error": messages.FORBIDDEN}), 403
                return redirect(_role_home(current_user.role))
            return view(*args, **kwargs)

        return wrapped

    return decorator


# ---------------------------------------------------------------------------
# Parsing and serialization helpers
# ---------------------------------------------------------------------------


def _field_label(field_name: str) -> str:
    return messages.FIELD_LABELS.get(field_name, field_name)


def _parse_optional_int(
    value: object,
    field_name: str,
    *,
    min_value: Optional[int] = None,
) -> Optional[int]:
    """Parse optional integer from a form, query or JSON payload."""
    if value in (None, "", "null"):
        return None
    try:
        result = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        raise ValueError(messages.INVALID_NUMBER.format(field=_field_label(field_name)))
    if min_value is not None and result < min_value:
        raise ValueError(
            messages.NUMBER_TOO_SMALL.format(field=_field_label(field_name), min_value=min_value)
        )
    return result


def _parse_optional_date(value: object, field_name: str) -> Optional[datetime.datetime]:
    """Parse optional ISO-8601 date or datetime string."""
    if value in (None, "", "null"):
        return None
    if isinstance(value, str):
        try:
            return datetime.datetime.fromisoformat(value)
        except ValueError as exc:
            raise ValueError(messages.INVALID_DATE.format(field=_field_label(field_name))) from exc
    raise ValueError(messages.INVALID_DATE.format(field=_field_label(field_name)))


def _parse_score(value: object) -> float:
    """Scores are 0-10 in steps of 0.5."""
    try:
        score = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        raise ValueError(messages.INVALID_SCORE)
    if score != score or score < 0 or score > 10 or (score * 2) != int(score * 2):
        raise ValueError(messages.INVALID_SCORE)
    return score


def _media_url(storage_path: Optional[str], fallback: Optional[str] = None) -> Optional[str]:
    if not storage_path:
        return fallback
    try:
        return storage.presigned_url(storage_path)
    except (storage.StorageConfigurationError, storage.StorageError) as exc:
        logger.warning("Could not build download URL for %s: %s", storage_path, exc)
        return fallback


def _serialize_video(video: dict[str, object], viewers: Optional[int] = None) -> dict[str, object]:
    payload = {
        "id": video["id"],
        "title": video["title"],
        "description": video["description"],
        "url": _media_url(video.get("storage_path"), video.get("url")),
        "thumbnail_url": video.get("thumbnail_url"),
        "duration": video["duration"],
        "uploaded_by": video["uploaded_by"],
        "uploaded_at": isoformat_or_none(video.get("uploaded_at")),
        "course_id": video.get("course_id"),
        "teacher_id": video["teacher_id"],
    }
    if viewers is not None:
        payload["views"] = viewers
    return payload


def _serialize_assignment(assignment: dict[str, object]) -> dict[str, object]:
    return {
        "id": assignment["id"],
        "video_id": assignment["video_id"],
        "title": assignment["title"],
        "description": assignment["description"],
        "due_date": isoformat_or_none(assignment.get("due_date")),
        "created_by": assignment["created_by"],
        "created_at": isoformat_or_none(assignment.get("created_at")),
        "teacher_id": assignment["teacher_id"],
    }


def _serialize_submission(submission: dict[str, object]) -> dict[str, object]:
    return {
        "id": submission["id"],
        "assignment_id": submission["assignment_id"],
        "assignment_title": submission.get("assignment_title"),
        "video_id": submission.get("video_id"),
        "student_id": submission["student_id"],
        "student_name": submission["student_name"],
        "student_email": submission["student_email"],
        "content": submission["content"],
        "audio_url": _media_url(submission.get("audio_storage_path")),
        "audio_storage_path": submission.get("audio_storage_path"),
        "attachments": [
            {
                "id": attachment["id"],
                "name": attachment["name"],
                "download_url": _media_url(attachment["storage_path"]),
                "content_type": attachment["content_type"],
                "size": attachment["size"],
            }
            for attachment in submission.get("attachments", [])
        ],
        "submitted_at": isoformat_or_none(submission.get("submitted_at")),
        "score": submission.get("score"),
        "feedback": submission.get("feedback"),
        "graded_by": submission.get("graded_by"),
        "graded_at": isoformat_or_none(submission.get("graded_at")),
        "teacher_id": submission["teacher_id"],
    }


def _serialize_progress(
    progress: Optional[dict[str, object]],
    video: dict[str, object],
) -> dict[str, object]:
    watch_time = int(progress["watch_time"]) if progress else 0
    return {
        "video_id": video["id"],
        "watch_time": watch_time,
        "completed": bool(progress["completed"]) if progress else False,
        "percent": completion_percent(watch_time, int(video["duration"])),
        "last_watched_at": isoformat_or_none(progress.get("last_watched_at")) if progress else None,
    }


def _latest_submission_by_assignment(
    submissions: Sequence[dict[str, object]],
) -> dict[int, dict[str, object]]:
    """Index submissions (newest first) by assignment; the newest wins."""
    indexed: dict[int, dict[str, object]] = {}
    for entry in submissions:
        indexed.setdefault(int(entry["assignment_id"]), entry)
    return indexed


def _can_manage_video(video: dict[str, object]) -> bool:
    return current_user.role == "admin" or video["teacher_id"] == current_user.id


# ---------------------------------------------------------------------------
# Public pages and authentication
# ---------------------------------------------------------------------------


@bp.get("/")
def index():
    if current_user.is_authenticated:
        return redirect(_role_home(current_user.role))
    return redirect(url_for("core.login"))


@bp.get("/health")
def health():
    return jsonify({"status": "ok", "service": "academy"}), 200


@bp.route("/login", methods=["GET", "POST"])
def login():
    if current_user.is_authenticated:
        return redirect(_role_home(current_user.role))

    error: Optional[str] = None
    form_data = {"email": ""}

    if request.method == "POST":
        email = request.form.get("email", "").strip()
        password = request.form.get("password", "")
        form_data["email"] = email

        if not email or not password:
            error = messages.MISSING_FIELDS
        elif not is_valid_email(email):
            error = messages.INVALID_EMAIL
        else:
            try:
                user = get_user_by_email(email)
            except Exception:
                logger.error("Login lookup failed for %s", email, exc_info=True)
                user = None
                error = messages.LOGIN_FAILED
            if error is None:
                if user is None:
                    error = messages.USER_NOT_FOUND
                elif not verify_password(password, user.password_hash):
                    error = messages.WRONG_PASSWORD
                else:
                    login_user(user)
                    logger.info("User %s logged in as %s", user.id, user.role)
                    return redirect(_role_home(user.role))

    return render_template(
        "login.html",
        error=error,
        form_data=form_data,
        demo_accounts=load_demo_accounts(),
    )


@bp.route("/register", methods=["GET", "POST"])
def register():
    if current_user.is_authenticated:
        return redirect(_role_home(current_user.role))

    error: Optional[str] = None
    form_data = {"name": "", "email": "", "role": "student"}

    if request.method == "POST":
        cleaned, error = validate_registration(request.form)
        form_data.update(
            {"name": cleaned["name"], "email": cleaned["email"], "role": cleaned["role"]}
        )
        if error is None:
            try:
                create_user(
                    name=cleaned["name"],
                    email=cleaned["email"],
                    password_hash=hash_password(cleaned["password"]),
                    role=cleaned["role"],
                )
            except EmailInUseError:
                error = messages.EMAIL_IN_USE
            except ValueError:
                error = messages.INVALID_ROLE
            except Exception:
                logger.error("Signup failed for %s", cleaned["email"], exc_info=True)
                error = messages.SIGNUP_FAILED
            else:
                flash(messages.SIGNUP_SUCCESS, "success")
                return redirect(url_for("core.login"))

    return render_template("register.html", error=error, form_data=form_data)


@bp.get("/logout")
@login_required
def logout():
    logout_user()
    flash(messages.LOGGED_OUT, "info")
    return redirect(url_for("core.login"))


@bp.get("/api/demo-accounts")
def api_demo_accounts():
    accounts = load_demo_accounts()
    return jsonify(
        {
            "accounts": [
                {
                    "email": account.email,
                    "password": account.password,
                    "role": account.role,
                    "name": account.name,
                }
                for account in accounts
            ]
        }
    )


# ---------------------------------------------------------------------------
# Student
# ---------------------------------------------------------------------------


def _select_video(
    videos: Sequence[dict[str, object]],
    requested_id: Optional[int],
) -> Optional[dict[str, object]]:
    """Return the requested video, falling back to the newest one."""
    if not videos:
        return None
    if requested_id is not None:
        for video in videos:
            if video["id"] == requested_id:
                return video
    return videos[0]


@bp.get("/student")
@role_required("student")
def student_page():
    videos = list_videos()
    try:
        requested_id = _parse_optional_int(request.args.get("video_id"), "video_id")
    except ValueError:
        requested_id = None
    selected = _select_video(videos, requested_id)

    assignments: list[dict[str, object]] = []
    progress_payload: Optional[dict[str, object]] = None
    video_url: Optional[str] = None
    if selected is not None:
        assignments = list_assignments_for_video(int(selected["id"]))
        progress = get_watch_progress(current_user.id, int(selected["id"]))
        progress_payload = _serialize_progress(progress, selected)
        video_url = _media_url(selected.get("storage_path"), selected.get("url"))

    submissions = _latest_submission_by_assignment(
        list_submissions_for_student(current_user.id)
    )
    return render_template(
        "student.html",
        videos=videos,
        selected_video=selected,
        video_url=video_url,
        assignments=assignments,
        submissions={
            assignment_id: _serialize_submission(entry)
            for assignment_id, entry in submissions.items()
        },
        progress=progress_payload,
        sync_seconds=get_settings().PROGRESS_SYNC_SECONDS,
    )


@bp.get("/api/student/videos")
@role_required("student")
def api_student_videos():
    return jsonify({"videos": [_serialize_video(video) for video in list_videos()]})


@bp.get("/api/videos/<int:video_id>/assignments")
@login_required
def api_video_assignments(video_id: int):
    if get_video(video_id) is None:
        return jsonify({"error": messages.VIDEO_NOT_FOUND}), 404
    return jsonify(
        {
            "assignments": [
                _serialize_assignment(entry) for entry in list_assignments_for_video(video_id)
            ]
        }
    )


@bp.get("/api/student/submissions")
@role_required("student")
def api_student_submissions():
    submissions = list_submissions_for_student(current_user.id)
    return jsonify({"submissions": [_serialize_submission(entry) for entry in submissions]})


@bp.get("/api/progress/<int:video_id>")
@role_required("student")
def api_get_progress(video_id: int):
    video = get_video(video_id)
    if video is None:
        return jsonify({"error": messages.VIDEO_NOT_FOUND}), 404
    progress = get_watch_progress(current_user.id, video_id)
    return jsonify(_serialize_progress(progress, video))


@bp.post("/api/progress/<int:video_id>")
@role_required("student")
def api_record_progress(video_id: int):
    """Replay a batch of player events and merge-write the progress record."""
    video = get_video(video_id)
    if video is None:
        return jsonify({"error": messages.VIDEO_NOT_FOUND}), 404

    try:
        playing, visible, events = parse_player_batch(request.get_json(silent=True))
    except InvalidPlayerEvent as exc:
        logger.warning("Rejected progress batch for video %s: %s", video_id, exc)
        return jsonify({"error": messages.INVALID_PROGRESS_BATCH}), 400

    stored = get_watch_progress(current_user.id, video_id)
    initial_watch_time = int(stored["watch_time"]) if stored else 0
    tracker = WatchTracker(
        initial_watch_time,
        sync_seconds=get_settings().PROGRESS_SYNC_SECONDS,
        playing=playing,
        visible=visible,
    )
    try:
        syncs = tracker.replay(events)
    except InvalidPlayerEvent as exc:
        logger.warning("Rejected progress batch for video %s: %s", video_id, exc)
        return jsonify({"error": messages.INVALID_PROGRESS_BATCH}), 400

    completed = is_completed(tracker.watch_time, int(video["duration"]), ended=tracker.completed)
    progress = stored
    changed = tracker.watch_time != initial_watch_time or (
        completed and not (stored and stored["completed"])
    )
    if changed:
        try:
            progress = upsert_watch_progress(
                student_id=current_user.id,
                student_name=current_user.name,
                student_email=current_user.email,
                video_id=video_id,
                video_title=str(video["title"]),
                teacher_id=int(video["teacher_id"]),
                watch_time=tracker.watch_time,
                completed=completed,
            )
        except Exception:
            logger.error("Failed to save watch progress for video %s", video_id, exc_info=True)
            return jsonify({"error": messages.PROGRESS_SAVE_FAILED}), 500

    payload = _serialize_progress(progress, video)
    payload["saved"] = changed
    payload["syncs"] = [sync.reason for sync in syncs]
    return jsonify(payload)


def _store_upload(item: FileStorage, key: str, content_type: str) -> int:
    size = storage.stream_size(item.stream)
    storage.upload_fileobj(item.stream, key, content_type=content_type)
    return size


def _submit_assignment(assignment_id: int) -> dict[str, object]:
    """Validate and store a submission from the current request.

    Raises LookupError for unknown assignments and ValueError for invalid
    input; storage failures propagate as storage errors.
    """
    assignment = get_assignment(assignment_id)
    if assignment is None:
        raise LookupError(messages.ASSIGNMENT_NOT_FOUND)

    content = request.form.get("content", "")
    files = [item for item in request.files.getlist("files") if item and item.filename]
    audio = request.files.get("audio")
    if audio is not None and not audio.filename:
        audio = None

    if not content.strip() and not files and audio is None:
        raise ValueError(messages.EMPTY_SUBMISSION)

    limit_mb = get_settings().MAX_ATTACHMENT_MB
    for item in files + ([audio] if audio is not None else []):
        if storage.stream_size(item.stream) > limit_mb * 1024 * 1024:
            raise ValueError(messages.ATTACHMENT_TOO_LARGE.format(name=item.filename, limit=limit_mb))

    if files or audio is not None:
        storage.require_bucket()
    prefix = f"submissions/{assignment_id}/{current_user.id}/{uuid.uuid4().hex}"

    attachments: list[dict[str, object]] = []
    seen_names: set[str] = set()
    for index, item in enumerate(files):
        name = secure_filename(item.filename or "") or f"file-{index + 1}"
        if name in seen_names:
            continue
        seen_names.add(name)
        content_type = item.mimetype or "application/octet-stream"
        key = f"{prefix}/{name}"
        size = _store_upload(item, key, content_type)
        attachments.append(
            {"name": name, "storage_path": key, "content_type": content_type, "size": size}
        )

    audio_storage_path: Optional[str] = None
    if audio is not None:
        audio_name = secure_filename(
            request.form.get("audio_file_name") or audio.filename or ""
        ) or f"audio-{int(time.time() * 1000)}.webm"
        audio_storage_path = f"{prefix}/{audio_name}"
        _store_upload(audio, audio_storage_path, "audio/webm")

    submission = create_submission(
        assignment_id=assignment_id,
        student_id=current_user.id,
        student_name=current_user.name,
        student_email=current_user.email,
        teacher_id=int(assignment["teacher_id"]),
        content=content,
        attachments=attachments,
        audio_storage_path=audio_storage_path,
    )
    logger.info(
        "Student %s submitted assignment %s (%s attachment(s), audio=%s)",
        current_user.id,
        assignment_id,
        len(attachments),
        audio_storage_path is not None,
    )
    return submission


@bp.post("/student/assignments/<int:assignment_id>/submit")
@role_required("student")
def student_submit_assignment(assignment_id: int):
    assignment = get_assignment(assignment_id)
    video_id = assignment["video_id"] if assignment else None
    try:
        _submit_assignment(assignment_id)
    except (LookupError, ValueError) as exc:
        flash(exc.args[0], "error")
    except Exception:
        logger.error("Failed to submit assignment %s", assignment_id, exc_info=True)
        flash(messages.SUBMISSION_FAILED, "error")
    else:
        flash(messages.SUBMISSION_SUCCESS, "success")
    return redirect(url_for("core.student_page", video_id=video_id))


@bp.post("/api/assignments/<int:assignment_id>/submissions")
@role_required("student")
def api_submit_assignment(assignment_id: int):
    try:
        submission = _submit_assignment(assignment_id)
    except LookupError as exc:
        return jsonify({"error": exc.args[0]}), 404
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400
    except Exception:
        logger.error("Failed to submit assignment %s", assignment_id, exc_info=True)
        return jsonify({"error": messages.SUBMISSION_FAILED}), 500
    return jsonify(_serialize_submission(submission)), 201


@bp.get("/api/student/stats")
@role_required("student")
def api_student_stats():
    try:
        period = parse_period(request.args.get("period"))
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400
    stats = compute_student_stats(
        current_user.id,
        period,
        list_watch_progress_for_student(current_user.id),
        list_submissions_for_student(current_user.id),
    )
    return jsonify(stats.to_dict())


# ---------------------------------------------------------------------------
# Teacher
# ---------------------------------------------------------------------------


def _teacher_student_rows(teacher_id: int, period: str) -> list[dict[str, object]]:
    return summarize_students(
        list_users_by_role("student"),
        list_watch_progress_for_teacher(teacher_id),
        list_submissions_for_teacher(teacher_id),
        period,
    )


@bp.get("/teacher")
@role_required("teacher")
def teacher_page():
    tab = request.args.get("tab", "students")
    if tab not in {"students", "submissions", "videos"}:
        tab = "students"
    try:
        period = parse_period(request.args.get("period"))
    except ValueError:
        period = "week"
    show_all = request.args.get("status") == "all"

    videos = list_videos(teacher_id=current_user.id)
    return render_template(
        "teacher.html",
        tab=tab,
        period=period,
        show_all=show_all,
        students=_teacher_student_rows(current_user.id, period),
        submissions=[
            _serialize_submission(entry)
            for entry in list_submissions_for_teacher(current_user.id, pending_only=not show_all)
        ],
        videos=videos,
        assignments_by_video={
            video["id"]: list_assignments_for_video(int(video["id"])) for video in videos
        },
        courses=list_courses(teacher_id=current_user.id),
    )


@bp.get("/api/teacher/stats")
@role_required("teacher")
def api_teacher_stats():
    try:
        period = parse_period(request.args.get("period"))
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400
    return jsonify({"period": period, "students": _teacher_student_rows(current_user.id, period)})


@bp.get("/api/teacher/submissions")
@role_required("teacher")
def api_teacher_submissions():
    raw_status = str(request.args.get("status") or "pending").strip().lower()
    if raw_status not in {"pending", "all"}:
        return jsonify({"error": messages.INVALID_STATUS_FILTER}), 400
    submissions = list_submissions_for_teacher(
        current_user.id, pending_only=raw_status == "pending"
    )
    return jsonify({"submissions": [_serialize_submission(entry) for entry in submissions]})


def _grade(submission_id: int, score_raw: object, feedback_raw: object) -> dict[str, object]:
    submission = get_submission(submission_id)
    if submission is None:
        raise LookupError(messages.SUBMISSION_NOT_FOUND)
    if submission["teacher_id"] != current_user.id:
        raise PermissionError(messages.FORBIDDEN)
    score = _parse_score(score_raw)
    feedback = str(feedback_raw or "").strip() or None
    grade_submission(submission_id, score=score, feedback=feedback, graded_by=current_user.id)
    logger.info("Teacher %s graded submission %s with %s", current_user.id, submission_id, score)
    return get_submission(submission_id) or submission


@bp.post("/teacher/submissions/<int:submission_id>/grade")
@role_required("teacher")
def teacher_grade_submission(submission_id: int):
    try:
        _grade(submission_id, request.form.get("score"), request.form.get("feedback"))
    except (LookupError, PermissionError, ValueError) as exc:
        flash(exc.args[0], "error")
    except Exception:
        logger.error("Failed to grade submission %s", submission_id, exc_info=True)
        flash(messages.GRADE_FAILED, "error")
    else:
        flash(messages.GRADE_SUCCESS, "success")
    return redirect(url_for("core.teacher_page", tab="submissions"))


@bp.post("/api/submissions/<int:submission_id>/grade")
@role_required("teacher")
def api_grade_submission(submission_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        graded = _grade(submission_id, payload.get("score"), payload.get("feedback"))
    except LookupError as exc:
        return jsonify({"error": exc.args[0]}), 404
    except PermissionError as exc:
        return jsonify({"error": exc.args[0]}), 403
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400
    return jsonify(_serialize_submission(graded))


@bp.post("/teacher/assignments")
@role_required("teacher")
def teacher_create_assignment():
    title = request.form.get("title", "").strip()
    description = request.form.get("description", "").strip()
    try:
        video_id = _parse_optional_int(request.form.get("video_id"), "video_id", min_value=1)
        due_date = _parse_optional_date(request.form.get("due_date"), "due_date")
    except ValueError as exc:
        flash(str(exc), "error")
        return redirect(url_for("core.teacher_page", tab="videos"))

    video = get_video(video_id) if video_id is not None else None
    if video is None or not _can_manage_video(video):
        flash(messages.VIDEO_NOT_FOUND, "error")
    elif not title:
        flash(messages.ASSIGNMENT_TITLE_REQUIRED, "error")
    else:
        try:
            create_assignment(
                video_id=int(video["id"]),
                title=title,
                description=description,
                due_date=due_date,
                created_by=current_user.id,
                teacher_id=current_user.id,
            )
        except Exception:
            logger.error("Creating assignment for video %s failed", video["id"], exc_info=True)
            flash(messages.ASSIGNMENT_SAVE_FAILED, "error")
        else:
            flash(messages.ASSIGNMENT_CREATED, "success")
    return redirect(url_for("core.teacher_page", tab="videos"))


@bp.post("/teacher/assignments/<int:assignment_id>/delete")
@role_required("teacher")
def teacher_delete_assignment(assignment_id: int):
    assignment = get_assignment(assignment_id)
    if assignment is None:
        flash(messages.ASSIGNMENT_NOT_FOUND, "error")
    elif assignment["teacher_id"] != current_user.id:
        flash(messages.FORBIDDEN, "error")
    else:
        try:
            delete_assignment(assignment_id)
        except Exception:
            logger.error("Deleting assignment %s failed", assignment_id, exc_info=True)
            flash(messages.ASSIGNMENT_DELETE_FAILED, "error")
        else:
            flash(messages.ASSIGNMENT_DELETED, "success")
    return redirect(url_for("core.teacher_page", tab="videos"))


@bp.post("/teacher/courses")
@role_required("teacher")
def teacher_create_course():
    title = request.form.get("title", "").strip()
    if not title:
        flash(messages.COURSE_TITLE_REQUIRED, "error")
    else:
        try:
            create_course(
                title=title,
                description=request.form.get("description", "").strip(),
                teacher_id=current_user.id,
            )
        except Exception:
            logger.error("Creating course for teacher %s failed", current_user.id, exc_info=True)
            flash(messages.COURSE_SAVE_FAILED, "error")
        else:
            flash(messages.COURSE_CREATED, "success")
    return redirect(url_for("core.teacher_page", tab="videos"))


@bp.get("/api/courses")
@role_required("teacher", "admin")
def api_list_courses():
    teacher_id = current_user.id if current_user.role == "teacher" else None
    courses = list_courses(teacher_id=teacher_id)
    return jsonify(
        {
            "courses": [
                {
                    "id": course["id"],
                    "title": course["title"],
                    "description": course["description"],
                    "teacher_id": course["teacher_id"],
                    "created_at": isoformat_or_none(course.get("created_at")),
                }
                for course in courses
            ]
        }
    )


@bp.get("/api/teacher/export")
@role_required("teacher")
def api_teacher_export():
    try:
        period = parse_period(request.args.get("period"))
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400
    rows = _teacher_student_rows(current_user.id, period)
    response = Response(_build_stats_csv(rows), mimetype="text/csv")
    timestamp = datetime.datetime.utcnow().strftime("%Y%m%d_%H%M%S")
    response.headers["Content-Disposition"] = (
        f'attachment; filename="academy_stats_{period}_{timestamp}.csv"'
    )
    return response


def _build_stats_csv(rows: Sequence[dict[str, object]]) -> str:
    """Return CSV string for a collection of per-student stats rows."""
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(
        [
            "id",
            "name",
            "email",
            "period",
            "total_watch_time",
            "videos_completed",
            "assignments_submitted",
            "average_score",
        ]
    )
    for entry in rows:
        average = entry.get("average_score")
        writer.writerow(
            [
                entry.get("id"),
                _csv_safe(entry.get("name")),
                _csv_safe(entry.get("email")),
                entry.get("period"),
                entry.get("total_watch_time", 0),
                entry.get("videos_completed", 0),
                entry.get("assignments_submitted", 0),
                "" if average is None else average,
            ]
        )
    return output.getvalue()


def _csv_safe(value: object) -> object:
    """Escape values that could be interpreted as formulas by spreadsheet apps."""
    if isinstance(value, str) and value and value[0] in {"=", "+", "-", "@"}:
        return f"'{value}"
    return value


# ---------------------------------------------------------------------------
# Video management (admin and teachers)
# ---------------------------------------------------------------------------


def _allowed_video(filename: str) -> bool:
    return "." in filename and filename.rsplit(".", 1)[1].lower() in ALLOWED_VIDEO_EXTENSIONS


def _create_video_from_request() -> dict[str, object]:
    """Upload the posted video (or register its URL) and insert the row."""
    form = request.form
    title = form.get("title", "").strip()
    description = form.get("description", "").strip()
    external_url = form.get("url", "").strip() or None
    duration = _parse_optional_int(form.get("duration"), "duration", min_value=0) or 0
    course_id = _parse_optional_int(form.get("course_id"), "course_id", min_value=1)

    teacher_id = current_user.id
    if current_user.role == "admin":
        requested_teacher = _parse_optional_int(form.get("teacher_id"), "teacher_id", min_value=1)
        if requested_teacher is not None:
            teacher_id = requested_teacher

    upload = request.files.get("file")
    storage_path: Optional[str] = None
    if upload is not None and upload.filename:
        filename = secure_filename(upload.filename)
        if not filename or not _allowed_video(filename):
            raise ValueError(messages.VIDEO_UNSUPPORTED_TYPE)
        limit_mb = get_settings().MAX_VIDEO_UPLOAD_MB
        if storage.stream_size(upload.stream) > limit_mb * 1024 * 1024:
            raise ValueError(messages.VIDEO_TOO_LARGE.format(limit=limit_mb))
        storage_path = f"videos/{teacher_id}/{int(time.time())}_{filename}"
        storage.upload_fileobj(
            upload.stream,
            storage_path,
            content_type=upload.mimetype or "video/mp4",
        )
        title = title or filename.rsplit(".", 1)[0]
    elif not external_url:
        raise ValueError(messages.VIDEO_SOURCE_REQUIRED)

    video = create_video(
        title=title,
        description=description,
        storage_path=storage_path,
        url=None if storage_path else external_url,
        duration=duration,
        course_id=course_id,
        uploaded_by=current_user.id,
        teacher_id=teacher_id,
    )
    logger.info("User %s added video %s (%s)", current_user.id, video["id"], storage_path or external_url)
    return video


@bp.get("/admin")
@role_required("admin")
def admin_page():
    viewers = count_viewers_by_video()
    videos = list_videos()
    return render_template(
        "admin.html",
        videos=videos,
        viewers=viewers,
        teachers=list_users_by_role("teacher"),
        courses=list_courses(),
        max_size_mb=get_settings().MAX_VIDEO_UPLOAD_MB,
        allowed_extensions=sorted(ALLOWED_VIDEO_EXTENSIONS),
    )


@bp.post("/videos/upload")
@role_required("teacher", "admin")
def upload_video():
    try:
        _create_video_from_request()
    except ValueError as exc:
        flash(str(exc), "error")
    except storage.StorageConfigurationError:
        flash(messages.STORAGE_NOT_CONFIGURED, "error")
    except Exception:
        logger.error("Video upload failed", exc_info=True)
        flash(messages.VIDEO_UPLOAD_FAILED, "error")
    else:
        flash(messages.VIDEO_UPLOAD_SUCCESS, "success")
    return redirect(_role_home(current_user.role))


@bp.post("/api/videos")
@role_required("teacher", "admin")
def api_upload_video():
    try:
        video = _create_video_from_request()
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400
    except storage.StorageConfigurationError:
        return jsonify({"error": messages.STORAGE_NOT_CONFIGURED}), 500
    except Exception:
        logger.error("Video upload failed", exc_info=True)
        return jsonify({"error": messages.VIDEO_UPLOAD_FAILED}), 500
    return jsonify(_serialize_video(video)), 201


@bp.get("/api/videos")
@role_required("teacher", "admin")
def api_list_videos():
    viewers = count_viewers_by_video()
    teacher_id = current_user.id if current_user.role == "teacher" else None
    return jsonify(
        {
            "videos": [
                _serialize_video(video, viewers.get(int(video["id"]), 0))
                for video in list_videos(teacher_id=teacher_id)
            ]
        }
    )


@bp.post("/videos/<int:video_id>/edit")
@role_required("teacher", "admin")
def edit_video(video_id: int):
    video = get_video(video_id)
    if video is None:
        flash(messages.VIDEO_NOT_FOUND, "error")
        return redirect(_role_home(current_user.role))
    if not _can_manage_video(video):
        flash(messages.FORBIDDEN, "error")
        return redirect(_role_home(current_user.role))

    try:
        duration = _parse_optional_int(request.form.get("duration"), "duration", min_value=0)
    except ValueError as exc:
        flash(str(exc), "error")
        return redirect(_role_home(current_user.role))

    title = request.form.get("title")
    try:
        update_video(
            video_id,
            title=title.strip() if title and title.strip() else None,
            description=request.form.get("description"),
            duration=duration,
        )
    except Exception:
        logger.error("Updating video %s failed", video_id, exc_info=True)
        flash(messages.VIDEO_UPDATE_FAILED, "error")
    else:
        flash(messages.VIDEO_UPDATED, "success")
    return redirect(_role_home(current_user.role))


def _remove_video(video: dict[str, object]) -> None:
    delete_video(int(video["id"]))
    if video.get("storage_path"):
        try:
            storage.delete_object(str(video["storage_path"]))
        except (storage.StorageConfigurationError, storage.StorageError):
            logger.warning("Video %s deleted but its object was left in storage", video["id"])


@bp.post("/videos/<int:video_id>/delete")
@role_required("teacher", "admin")
def remove_video(video_id: int):
    video = get_video(video_id)
    if video is None:
        flash(messages.VIDEO_NOT_FOUND, "error")
    elif not _can_manage_video(video):
        flash(messages.FORBIDDEN, "error")
    else:
        _remove_video(video)
        flash(messages.VIDEO_DELETED, "success")
    return redirect(_role_home(current_user.role))


@bp.delete("/api/videos/<int:video_id>")
@role_required("teacher", "admin")
def api_delete_video(video_id: int):
    video = get_video(video_id)
    if video is None:
        return jsonify({"error": messages.VIDEO_NOT_FOUND}), 404
    if not _can_manage_video(video):
        return jsonify({"error": messages.FORBIDDEN}), 403
    _remove_video(video)
    return jsonify({"success": True})
