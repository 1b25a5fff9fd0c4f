"""Statistics derived from persisted records.

All functions here are pure: they take already-fetched values and never
touch the session. Empty inputs produce zero-valued results instead of
raising or returning ``None``.
"""
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Protocol

from .models import AttendanceStatus

GRADE_BUCKETS = ("A", "B", "C", "D", "F")


class ReportLike(Protocol):
    semester: int
    gpa: float
    created_at: datetime


def round_percent(value: float) -> float:
    """Round half-up on ``value * 100``, then scale back to two decimals."""
    cents = Decimal(float(value) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return float(cents / 100)


def percentage(part: int, whole: int) -> float:
    if whole <= 0:
        return 0.0
    return round_percent(part / whole * 100)


def mean(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return sum(values) / len(values)


def _status(value) -> AttendanceStatus:
    return value if isinstance(value, AttendanceStatus) else AttendanceStatus(value)


def attendance_rate(statuses: Iterable[AttendanceStatus | str]) -> float:
    statuses = [_status(s) for s in statuses]
    present = sum(1 for s in statuses if s == AttendanceStatus.PRESENT)
    return percentage(present, len(statuses))


@dataclass(frozen=True)
class AttendanceBreakdown:
    total: int = 0
    present: int = 0
    absent: int = 0
    late: int = 0
    rate: float = 0.0


def attendance_breakdown(statuses: Iterable[AttendanceStatus | str]) -> AttendanceBreakdown:
    statuses = [_status(s) for s in statuses]
    present = statuses.count(AttendanceStatus.PRESENT)
    return AttendanceBreakdown(
        total=len(statuses),
        present=present,
        absent=statuses.count(AttendanceStatus.ABSENT),
        late=statuses.count(AttendanceStatus.LATE),
        rate=percentage(present, len(statuses)),
    )


def grade_bucket(grade: float) -> str:
    if grade >= 90:
        return "A"
    if grade >= 80:
        return "B"
    if grade >= 70:
        return "C"
    if grade >= 60:
        return "D"
    return "F"


@dataclass(frozen=True)
class GradeDistribution:
    counts: dict[str, int] = field(default_factory=lambda: dict.fromkeys(GRADE_BUCKETS, 0))
    average: float = 0.0
    total: int = 0


def grade_distribution(grades: Iterable[float]) -> GradeDistribution:
    grades = [float(g) for g in grades]
    counts = dict.fromkeys(GRADE_BUCKETS, 0)
    for grade in grades:
        counts[grade_bucket(grade)] += 1
    return GradeDistribution(counts=counts, average=round_percent(mean(grades)), total=len(grades))


def latest_per_semester(reports: Iterable[ReportLike]) -> list[ReportLike]:
    latest: dict[int, ReportLike] = {}
    for report in reports:
        current = latest.get(report.semester)
        if current is None or report.created_at >= current.created_at:
            latest[report.semester] = report
    return [latest[semester] for semester in sorted(latest)]


def gpa_average(reports: Iterable[ReportLike]) -> float:
    return round_percent(mean([r.gpa for r in latest_per_semester(reports)]))


def completion_rate(grades: Iterable[float | None]) -> float:
    grades = list(grades)
    graded = sum(1 for g in grades if g is not None)
    return percentage(graded, len(grades))


def course_progress(assignment_grades: Iterable[float | None]) -> float:
    """Share of a course's assignments that carry a grade for the student.

    ``assignment_grades`` holds one entry per assignment: the student's grade,
    or ``None`` when not submitted or not yet graded.
    """
    return completion_rate(assignment_grades)


def computed_gpa(grades: Iterable[float | None], statuses: Iterable[AttendanceStatus | str]) -> float:
    # 4.0 scale: 60% assignment average, 40% attendance.
    graded = [float(g) for g in grades if g is not None]
    statuses = [_status(s) for s in statuses]
    assignment_score = mean(graded) / 100 * 4
    present_ratio = statuses.count(AttendanceStatus.PRESENT) / len(statuses) if statuses else 0.0
    return round_percent(assignment_score * 0.6 + present_ratio * 4 * 0.4)
