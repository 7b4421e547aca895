from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

import structlog

from ...domain.achievements import is_satisfied
from ...domain.clock import utcnow
from ...domain.entities import AchievementDefinition, AchievementUnlock, LearnerStats
from ...domain.errors import require_learner_id
from .issue_certificate import ICertificateRepository
from .record_page_completion import IPageProgressRepository
from .register_activity import IStreakRepository

logger = structlog.get_logger()


class IAchievementRepository:
    def list_definitions(self) -> list[AchievementDefinition]: ...
    def list_unlocks(self, learner_id: str) -> list[AchievementUnlock]: ...
    def unlock(self, learner_id: str, code: str, now: datetime) -> AchievementUnlock | None: ...


class ICommentStore:
    def count_comments(self, learner_id: str) -> int: ...


@dataclass(frozen=True)
class AchievementStatus:
    definition: AchievementDefinition
    earned: bool
    earned_at: datetime | None = None


@dataclass(frozen=True)
class AchievementOverview:
    achievements: list[AchievementStatus] = field(default_factory=list)
    total_points: int = 0
    earned_count: int = 0
    total_count: int = 0


class AchievementEvaluator:
    def __init__(self, achievements: IAchievementRepository, streaks: IStreakRepository,
                 pages: IPageProgressRepository, certificates: ICertificateRepository,
                 comments: ICommentStore, clock: Callable[[], datetime] = utcnow):
        self.achievements = achievements
        self.streaks = streaks
        self.pages = pages
        self.certificates = certificates
        self.comments = comments
        self.clock = clock

    def snapshot(self, learner_id: str) -> LearnerStats:
        streak = self.streaks.get(learner_id)
        return LearnerStats(
            current_streak=streak.current_streak if streak else 0,
            longest_streak=streak.longest_streak if streak else 0,
            lessons_completed=self.pages.count_completed(learner_id),
            certificates_earned=self.certificates.count(learner_id),
            comments_posted=self.comments.count_comments(learner_id),
        )

    def evaluate_and_unlock(self, learner_id: str) -> list[AchievementUnlock]:
        """Unlock every achievement whose threshold the learner now meets.

        Returns only the unlocks created by this call. An insert that loses to a
        concurrent evaluation is skipped silently.
        """
        require_learner_id(learner_id)
        stats = self.snapshot(learner_id)
        earned = {u.code for u in self.achievements.list_unlocks(learner_id)}
        now = self.clock()

        unlocked = []
        for definition in self.achievements.list_definitions():
            if definition.code in earned:
                continue
            try:
                passed = is_satisfied(definition, stats)
            except KeyError:
                logger.warning("achievement_predicate_unknown", code=definition.code,
                               predicate=definition.predicate)
                continue
            if not passed:
                continue
            unlock = self.achievements.unlock(learner_id, definition.code, now)
            if unlock is None:
                continue
            logger.info("achievement_unlocked", learner_id=learner_id, code=definition.code)
            unlocked.append(unlock)
        return unlocked

    def overview(self, learner_id: str) -> AchievementOverview:
        require_learner_id(learner_id)
        definitions = self.achievements.list_definitions()
        earned = {u.code: u.unlocked_at for u in self.achievements.list_unlocks(learner_id)}
        statuses = [AchievementStatus(d, d.code in earned, earned.get(d.code)) for d in definitions]
        return AchievementOverview(
            achievements=statuses,
            total_points=sum(s.definition.points for s in statuses if s.earned),
            earned_count=sum(1 for s in statuses if s.earned),
            total_count=len(statuses),
        )
