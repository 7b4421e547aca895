from datetime import date, datetime, timezone, tzinfo

import structlog

from ...domain import streak as streak_rules
from ...domain.clock import local_date
from ...domain.entities import StreakState
from ...domain.errors import SideEffectFailure, require_learner_id

logger = structlog.get_logger()


class IStreakRepository:
    def get(self, learner_id: str) -> StreakState | None: ...
    def create(self, state: StreakState) -> bool: ...
    def compare_and_swap(self, expected_last_activity: date | None, state: StreakState) -> bool: ...


class StreakTracker:
    """Daily activity streak.

    Every write is conditional on the `last_activity_date` that was read, so two
    concurrent completions on the same day cannot both extend the streak: the
    loser re-reads, sees today's date and becomes a no-op.
    """

    def __init__(self, repo: IStreakRepository, tz: tzinfo = timezone.utc, max_attempts: int = 5):
        self.repo = repo
        self.tz = tz
        self.max_attempts = max_attempts

    def register_activity(self, learner_id: str, now: datetime) -> StreakState:
        require_learner_id(learner_id)
        today = local_date(now, self.tz)
        for attempt in range(1, self.max_attempts + 1):
            current = self.repo.get(learner_id)
            if current is None:
                state = streak_rules.start(learner_id, today)
                if self.repo.create(state):
                    logger.info("streak_started", learner_id=learner_id)
                    return state
                continue

            state = streak_rules.advance(current, today)
            if state is current:
                return current
            if self.repo.compare_and_swap(current.last_activity_date, state):
                logger.info("streak_updated", learner_id=learner_id,
                            current_streak=state.current_streak,
                            longest_streak=state.longest_streak)
                return state
            logger.debug("streak_conflict", learner_id=learner_id, attempt=attempt)

        raise SideEffectFailure("streak", "Streak update kept conflicting",
                                {"learner_id": learner_id, "attempts": self.max_attempts})

    def current(self, learner_id: str, now: datetime) -> streak_rules.StreakView:
        require_learner_id(learner_id)
        return streak_rules.view(self.repo.get(learner_id), local_date(now, self.tz))
