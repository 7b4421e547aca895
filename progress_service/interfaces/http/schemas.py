from datetime import date, datetime

from pydantic import BaseModel, Field

class MarkPageReq(BaseModel):
    page_id: int = Field(gt=0)
    course_id: int = Field(gt=0)
    completed: bool = True

class CertificateOut(BaseModel):
    certificate_number: str
    course_id: int
    completed_at: datetime
    class Config: from_attributes = True

class MarkPageResp(BaseModel):
    completed_count: int
    total_pages: int
    percent_complete: int
    course_completed: bool
    certificate: CertificateOut | None = None
    new_certificate: bool = False
    certificate_error: str | None = None

class CourseProgressOut(BaseModel):
    course_id: int
    percent_complete: int
    completed: bool
    completed_at: datetime | None = None
    last_page_id: int | None = None
    last_accessed_at: datetime | None = None
    class Config: from_attributes = True

class CourseProgressResp(BaseModel):
    completed_pages: dict[int, bool]
    total_pages: int
    completed_count: int
    percent_complete: int
    course_progress: CourseProgressOut | None = None

class CertificateResp(BaseModel):
    certificate: CertificateOut
    new_certificate: bool

class StreakResp(BaseModel):
    current_streak: int
    longest_streak: int
    last_activity_date: date | None = None
    is_active_today: bool
    streak_broken: bool
    class Config: from_attributes = True

class AchievementOut(BaseModel):
    code: str
    name: str
    description: str | None = None
    icon: str | None = None
    category: str | None = None
    points: int
    earned: bool
    earned_at: datetime | None = None

class AchievementsResp(BaseModel):
    achievements: list[AchievementOut]
    total_points: int
    earned_count: int
    total_count: int

class UnlockOut(BaseModel):
    code: str
    unlocked_at: datetime
    class Config: from_attributes = True

class StatsOut(BaseModel):
    current_streak: int
    longest_streak: int
    lessons_completed: int
    certificates_earned: int
    comments_posted: int
    class Config: from_attributes = True

class AchievementCheckResp(BaseModel):
    new_achievements: list[UnlockOut]
    stats: StatsOut
