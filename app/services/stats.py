from __future__ import annotations

import datetime
from dataclasses import asdict, dataclass
from typing import Iterable, Optional, Sequence

from app import messages

PERIOD_DAYS = {"week": 7, "month": 30}


@dataclass(slots=True)
class StudentStats:
    user_id: int
    period: str
    start_date: datetime.datetime
    end_date: datetime.datetime
    total_watch_time: int
    videos_completed: int
    assignments_submitted: int
    average_score: Optional[float] = None

    def to_dict(self) -> dict[str, object]:
        payload = asdict(self)
        payload["start_date"] = self.start_date.isoformat()
        payload["end_date"] = self.end_date.isoformat()
        return payload


def parse_period(value: object, default: str = "week") -> str:
    if value in (None, ""):
        return default
    normalized = str(value).strip().lower()
    if normalized not in PERIOD_DAYS:
        raise ValueError(messages.INVALID_PERIOD)
    return normalized


def period_window(
    period: str,
    now: Optional[datetime.datetime] = None,
) -> tuple[datetime.datetime, datetime.datetime]:
    """Return the trailing ``(start, end)`` window for a period."""
    if period not in PERIOD_DAYS:
        raise ValueError(messages.INVALID_PERIOD)
    end = now or datetime.datetime.utcnow()
    return end - datetime.timedelta(days=PERIOD_DAYS[period]), end


def _in_window(value: object, start: datetime.datetime, end: datetime.datetime) -> bool:
    return isinstance(value, datetime.datetime) and start <= value <= end


def compute_student_stats(
    user_id: int,
    period: str,
    progress: Iterable[dict[str, object]],
    submissions: Iterable[dict[str, object]],
    now: Optional[datetime.datetime] = None,
) -> StudentStats:
    """Aggregate one student's progress and submissions over a trailing window.

    Records belonging to other students are ignored, so callers may pass the
    whole collection. Assignments submitted more than once count once. The
    average score covers graded submissions in the window and is None when
    there are none.
    """
    start, end = period_window(period, now)

    total_watch_time = 0
    videos_completed = 0
    for entry in progress:
        if entry.get("student_id") != user_id:
            continue
        if not _in_window(entry.get("last_watched_at"), start, end):
            continue
        total_watch_time += int(entry.get("watch_time") or 0)
        if entry.get("completed"):
            videos_completed += 1

    submitted_assignments: set[object] = set()
    scores: list[float] = []
    for entry in submissions:
        if entry.get("student_id") != user_id:
            continue
        if not _in_window(entry.get("submitted_at"), start, end):
            continue
        submitted_assignments.add(entry.get("assignment_id"))
        score = entry.get("score")
        if score is not None:
            scores.append(float(score))

    average_score = round(sum(scores) / len(scores), 2) if scores else None

    return StudentStats(
        user_id=user_id,
        period=period,
        start_date=start,
        end_date=end,
        total_watch_time=total_watch_time,
        videos_completed=videos_completed,
        assignments_submitted=len(submitted_assignments),
        average_score=average_score,
    )


def summarize_students(
    students: Sequence[object],
    progress: Sequence[dict[str, object]],
    submissions: Sequence[dict[str, object]],
    period: str,
    now: Optional[datetime.datetime] = None,
) -> list[dict[str, object]]:
    """Return one row per student (name, email and stats), sorted by name."""
    rows: list[dict[str, object]] = []
    for student in students:
        stats = compute_student_stats(
            student.id, period, progress, submissions, now=now
        )
        rows.append(
            {
                "id": student.id,
                "name": student.name,
                "email": student.email,
                **stats.to_dict(),
            }
        )
    rows.sort(key=lambda row: (str(row["name"]).lower(), row["id"]))
    return rows


def score_tier(average_score: Optional[float]) -> str:
    """Badge tier used to colour average scores."""
    if average_score is None:
        return "none"
    if average_score >= 9:
        return "excellent"
    if average_score >= 8:
        return "good"
    return "fair"
