from dataclasses import dataclass, field
from typing import Any

from ..domain.entities import AchievementUnlock, Certificate, CourseProgress, PageProgress, StreakState
from ..domain.errors import SideEffectFailure
from ..domain.progress import CourseAggregate


@dataclass(frozen=True)
class StepResult:
    step: str
    value: Any = None
    error: SideEffectFailure | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class MarkPageResult:
    page: PageProgress
    course_progress: CourseProgress
    steps: list[StepResult] = field(default_factory=list)
    certificate: Certificate | None = None
    new_certificate: bool = False

    @property
    def streak(self) -> StreakState | None:
        for s in self.steps:
            if s.step == "streak" and s.ok:
                return s.value
        return None

    @property
    def unlocked(self) -> list[AchievementUnlock]:
        return [u for s in self.steps if s.step == "achievements" and s.ok for u in s.value]

    @property
    def failures(self) -> list[SideEffectFailure]:
        return [s.error for s in self.steps if not s.ok]

    @property
    def certificate_error(self) -> SideEffectFailure | None:
        return next((f for f in self.failures if f.step == "certificate"), None)


@dataclass(frozen=True)
class CourseProgressView:
    aggregate: CourseAggregate
    course_progress: CourseProgress | None
