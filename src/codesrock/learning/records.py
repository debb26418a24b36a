"""Records for courses, resources, training sessions and evaluations."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

EVALUATION_IN_PROGRESS = "in-progress"
EVALUATION_SUBMITTED = "submitted"
EVALUATION_APPROVED = "approved"
EVALUATION_REJECTED = "rejected"
REVIEW_OUTCOMES = (EVALUATION_APPROVED, EVALUATION_REJECTED)


@dataclass
class CourseRecord:
    id: str
    title: str
    category: str = ""
    xp_reward: int = 0
    completion_count: int = 0
    is_active: bool = True


@dataclass
class VideoProgressRecord:
    user_id: str
    course_id: str
    watch_percentage: int = 0
    completed: bool = False
    completed_at: datetime | None = None
    xp_awarded: bool = False
    last_watched_at: datetime | None = None


@dataclass
class ResourceRecord:
    id: str
    title: str
    xp_reward: int = 0
    download_count: int = 0
    is_active: bool = True
    average_rating: float = 0.0
    rating_count: int = 0


@dataclass
class DownloadRecord:
    user_id: str
    resource_id: str
    downloaded_at: datetime
    xp_awarded: bool = False
    downloaded: bool = True
    rating: int | None = None
    review: str = ""


@dataclass
class TrainingSessionRecord:
    id: str
    title: str
    status: str = "scheduled"
    max_participants: int = 50
    current_participants: int = 0
    xp_reward: int = 0
    is_active: bool = True
    start_time: datetime | None = None


@dataclass
class RegistrationRecord:
    user_id: str
    session_id: str
    registered_at: datetime
    attended: bool = False
    attended_duration: int = 0
    xp_awarded: bool = False
    rating: int | None = None
    feedback: str = ""


@dataclass
class EvaluationRecord:
    id: str
    title: str
    checklist_items: list[dict[str, Any]]
    total_points: int
    passing_score: int = 70
    is_active: bool = True

    def score(self, completed_items: list[str]) -> int:
        """Points for the checklist items named in ``completed_items``; unknown ids score nothing."""
        points = {str(item.get("id")): int(item.get("points", 0)) for item in self.checklist_items}
        return sum(points.get(item_id, 0) for item_id in set(completed_items))


@dataclass
class UserEvaluationRecord:
    id: str
    user_id: str
    evaluation_id: str
    completed_items: list[str] = field(default_factory=list)
    score: int = 0
    percentage: int = 0
    status: str = EVALUATION_IN_PROGRESS
    submitted_at: datetime | None = None
    reviewed_at: datetime | None = None
    reviewed_by: str | None = None
    feedback: str = ""
    certificate_id: str | None = None
    created_at: datetime | None = None


@dataclass
class CertificateRecord:
    id: str
    user_id: str
    evaluation_id: str
    title: str
    recipient_name: str
    certificate_number: str
    issued_at: datetime


@dataclass
class CourseProgressSummary:
    total_courses: int
    in_progress: int
    completed: int

    @property
    def not_started(self) -> int:
        return max(self.total_courses - self.in_progress - self.completed, 0)


@dataclass
class EvaluationHistoryEntry:
    """A user's attempt with the evaluation title and, once approved, the certificate number."""

    attempt: UserEvaluationRecord
    evaluation_title: str
    certificate_number: str | None = None
