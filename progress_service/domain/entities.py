from dataclasses import dataclass
from datetime import date, datetime


@dataclass(frozen=True)
class PageProgress:
    learner_id: str
    page_id: int
    viewed: bool
    completed: bool
    completed_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class CourseProgress:
    learner_id: str
    course_id: int
    percent_complete: int
    completed: bool
    completed_count: int = 0
    total_pages: int = 0
    completed_at: datetime | None = None
    last_page_id: int | None = None
    last_accessed_at: datetime | None = None


@dataclass(frozen=True)
class StreakState:
    learner_id: str
    current_streak: int = 0
    longest_streak: int = 0
    last_activity_date: date | None = None


@dataclass(frozen=True)
class AchievementDefinition:
    code: str
    name: str
    predicate: str
    threshold: int
    description: str | None = None
    icon: str | None = None
    category: str | None = None
    points: int = 10


@dataclass(frozen=True)
class AchievementUnlock:
    learner_id: str
    code: str
    unlocked_at: datetime


@dataclass(frozen=True)
class Certificate:
    learner_id: str
    course_id: int
    certificate_number: str
    completed_at: datetime


@dataclass(frozen=True)
class LearnerStats:
    current_streak: int = 0
    longest_streak: int = 0
    lessons_completed: int = 0
    certificates_earned: int = 0
    comments_posted: int = 0
