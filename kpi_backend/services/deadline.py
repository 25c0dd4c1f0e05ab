"""
Review deadline computation.

Given the period an evaluation covers and the moment it was created, work out
how much time is left before the period ends and chain the four stage
deadlines (self, manager, HR review, final confirmation) accordingly.
"""
import calendar
from dataclasses import dataclass, field, asdict
from datetime import date, datetime, timedelta
from typing import Dict, Optional

STAGES = ("self_eval", "manager_eval", "hr_review", "final_confirm")

TIME_MODE_STANDARD = "standard"
TIME_MODE_COMPRESSED = "compressed"
TIME_MODE_EMERGENCY = "emergency"
TIME_MODE_INSUFFICIENT = "insufficient"
TIME_MODE_CUSTOM = "custom"


@dataclass
class DeadlineDays:
    self_eval: int = 0
    manager_eval: int = 0
    hr_review: int = 0
    final_confirm: int = 0

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, int]]) -> "DeadlineDays":
        data = data or {}
        return cls(**{stage: int(data.get(stage, 0)) for stage in STAGES})

    @property
    def total(self) -> int:
        return self.self_eval + self.manager_eval + self.hr_review + self.final_confirm


@dataclass
class TimeThreshold:
    standard: int = 0
    compressed: int = 0
    emergency: int = 0

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, int]]) -> "TimeThreshold":
        data = data or {}
        return cls(
            standard=int(data.get("standard", 0)),
            compressed=int(data.get("compressed", 0)),
            emergency=int(data.get("emergency", 0)),
        )


@dataclass
class DeadlineSet:
    period_end: datetime
    time_mode: str
    is_valid: bool = True
    message: str = ""
    self_eval_deadline: Optional[datetime] = None
    manager_eval_deadline: Optional[datetime] = None
    hr_review_deadline: Optional[datetime] = None
    final_confirm_deadline: Optional[datetime] = None

    def to_dict(self) -> dict:
        return asdict(self)


def calculate_period_end(
    period: str,
    year: int,
    month: Optional[int] = None,
    quarter: Optional[int] = None,
    today: Optional[date] = None,
) -> datetime:
    """Last day of the review period (midnight). Unknown periods are treated as yearly."""
    today = today or date.today()
    if period == "monthly":
        if month is None:
            year, month = today.year, today.month
        last_day = calendar.monthrange(year, month)[1]
        return datetime(year, month, last_day)
    if period == "quarterly":
        if quarter is None:
            year, quarter = today.year, (today.month - 1) // 3 + 1
        end_month = quarter * 3
        return datetime(year, end_month, calendar.monthrange(year, end_month)[1])
    return datetime(year, 12, 31)


def format_period(period: str, year: int, month: Optional[int] = None, quarter: Optional[int] = None) -> str:
    if period == "monthly" and month:
        return f"{year}-{month:02d}"
    if period == "quarterly" and quarter:
        return f"{year}-Q{quarter}"
    return str(year)


@dataclass
class DeadlineCalculator:
    period: str
    created_at: datetime
    year: int
    month: Optional[int] = None
    quarter: Optional[int] = None
    standard_days: DeadlineDays = field(default_factory=DeadlineDays)
    compressed_days: DeadlineDays = field(default_factory=DeadlineDays)
    minimum_days: DeadlineDays = field(default_factory=DeadlineDays)
    threshold: TimeThreshold = field(default_factory=TimeThreshold)

    def period_end(self) -> datetime:
        return calculate_period_end(self.period, self.year, self.month, self.quarter, today=self.created_at.date())

    def available_days(self) -> int:
        return int((self.period_end() - self.created_at).total_seconds() // 86400)

    def calculate(self) -> DeadlineSet:
        period_end = self.period_end()
        available = self.available_days()

        if available < self.minimum_days.total:
            return DeadlineSet(
                period_end=period_end,
                time_mode=TIME_MODE_INSUFFICIENT,
                is_valid=False,
                message="Not enough time left in this period; schedule the review for the next one",
            )

        if available < self.threshold.emergency:
            mode, days = TIME_MODE_EMERGENCY, self.minimum_days
        elif available < self.threshold.compressed:
            mode, days = TIME_MODE_COMPRESSED, self.compressed_days
        else:
            mode, days = TIME_MODE_STANDARD, self.standard_days

        self_eval = self.created_at + timedelta(days=days.self_eval)
        manager_eval = self_eval + timedelta(days=days.manager_eval)
        hr_review = manager_eval + timedelta(days=days.hr_review)
        final_confirm = hr_review + timedelta(days=days.final_confirm)

        return DeadlineSet(
            period_end=period_end,
            time_mode=mode,
            self_eval_deadline=self_eval,
            manager_eval_deadline=manager_eval,
            hr_review_deadline=hr_review,
            final_confirm_deadline=final_confirm,
        )

    def custom_deadlines(
        self,
        self_eval: datetime,
        manager_eval: datetime,
        hr_review: datetime,
        final_confirm: datetime,
    ) -> DeadlineSet:
        result = DeadlineSet(
            period_end=self.period_end(),
            time_mode=TIME_MODE_CUSTOM,
            self_eval_deadline=self_eval,
            manager_eval_deadline=manager_eval,
            hr_review_deadline=hr_review,
            final_confirm_deadline=final_confirm,
        )
        error = self.validate_custom(result)
        if error:
            result.is_valid = False
            result.message = error
        return result

    def validate_custom(self, deadlines: DeadlineSet) -> Optional[str]:
        """Return an error message, or None when the custom schedule is acceptable."""
        if deadlines.self_eval_deadline > deadlines.manager_eval_deadline:
            return "Self-evaluation deadline cannot be after the manager deadline"
        if deadlines.manager_eval_deadline > deadlines.hr_review_deadline:
            return "Manager deadline cannot be after the HR review deadline"
        if deadlines.hr_review_deadline > deadlines.final_confirm_deadline:
            return "HR review deadline cannot be after the final confirmation deadline"
        if deadlines.self_eval_deadline < self.created_at:
            return "Self-evaluation deadline cannot be before the creation time"
        if deadlines.final_confirm_deadline > deadlines.period_end:
            return "Final confirmation cannot be after the end of the review period"

        gaps = [
            ("Self-evaluation", self.created_at, deadlines.self_eval_deadline, self.minimum_days.self_eval),
            ("Manager evaluation", deadlines.self_eval_deadline, deadlines.manager_eval_deadline, self.minimum_days.manager_eval),
            ("HR review", deadlines.manager_eval_deadline, deadlines.hr_review_deadline, self.minimum_days.hr_review),
            ("Final confirmation", deadlines.hr_review_deadline, deadlines.final_confirm_deadline, self.minimum_days.final_confirm),
        ]
        for label, start, end, minimum in gaps:
            if (end - start).total_seconds() / 86400 < minimum:
                return f"{label} needs at least {minimum} day(s)"
        return None


def is_overdue(deadline: Optional[datetime], now: Optional[datetime] = None) -> bool:
    if deadline is None:
        return False
    return (now or datetime.now()) > deadline


def remaining_days(deadline: Optional[datetime], now: Optional[datetime] = None) -> int:
    if deadline is None:
        return 0
    remaining = (deadline - (now or datetime.now())).total_seconds() / 86400
    return max(int(remaining), 0)
