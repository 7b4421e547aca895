from dataclasses import dataclass, replace
from datetime import date

from .entities import StreakState


@dataclass(frozen=True)
class StreakView:
    current_streak: int
    longest_streak: int
    last_activity_date: date | None
    is_active_today: bool
    streak_broken: bool


def start(learner_id: str, today: date) -> StreakState:
    return StreakState(learner_id=learner_id, current_streak=1, longest_streak=1, last_activity_date=today)


def advance(state: StreakState, today: date) -> StreakState:
    """Next streak state after activity on `today`.

    Same day returns `state` itself. A gap of exactly one day extends the
    streak; any other gap (including a negative one from clock skew) resets
    it to 1.
    """
    last = state.last_activity_date
    if last == today:
        return state
    if last is not None and (today - last).days == 1:
        current = state.current_streak + 1
    else:
        current = 1
    return replace(
        state,
        current_streak=current,
        longest_streak=max(state.longest_streak, current),
        last_activity_date=today,
    )


def view(state: StreakState | None, today: date) -> StreakView:
    # хранимое состояние не трогаем, просто показываем 0 для прерванного стрика
    if state is None or state.last_activity_date is None:
        longest = state.longest_streak if state else 0
        return StreakView(0, longest, None, False, False)
    days_since = (today - state.last_activity_date).days
    # дата из будущего (сдвиг часов) считается разрывом, как в advance()
    broken = days_since > 1 or days_since < 0
    return StreakView(
        current_streak=0 if broken else state.current_streak,
        longest_streak=state.longest_streak,
        last_activity_date=state.last_activity_date,
        is_active_today=days_since == 0,
        streak_broken=broken,
    )
