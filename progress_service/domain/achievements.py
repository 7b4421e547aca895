"""Static achievement catalog and the fixed set of threshold predicates."""
from typing import Callable

from .entities import AchievementDefinition, LearnerStats

LESSONS = "lessons_completed_at_least"
STREAK = "streak_at_least"
CERTIFICATES = "certificates_at_least"
COMMENTS = "comments_at_least"

PREDICATES: dict[str, Callable[[LearnerStats, int], bool]] = {
    LESSONS: lambda s, n: s.lessons_completed >= n,
    # стрик засчитываем и по текущему, и по рекордному значению
    STREAK: lambda s, n: s.current_streak >= n or s.longest_streak >= n,
    CERTIFICATES: lambda s, n: s.certificates_earned >= n,
    COMMENTS: lambda s, n: s.comments_posted >= n,
}


def is_satisfied(definition: AchievementDefinition, stats: LearnerStats) -> bool:
    predicate = PREDICATES.get(definition.predicate)
    if predicate is None:
        raise KeyError(f"unknown achievement predicate {definition.predicate!r}")
    return predicate(stats, definition.threshold)


def _a(code, name, description, icon, category, points, predicate, threshold):
    return AchievementDefinition(
        code=code, name=name, description=description, icon=icon,
        category=category, points=points, predicate=predicate, threshold=threshold,
    )


DEFAULT_ACHIEVEMENTS: list[AchievementDefinition] = [
    _a("first_lesson", "First Steps", "Complete your first lesson", "🎯", "completion", 10, LESSONS, 1),
    _a("lessons_5", "Getting Started", "Complete 5 lessons", "📚", "completion", 25, LESSONS, 5),
    _a("lessons_10", "Dedicated Learner", "Complete 10 lessons", "🌟", "completion", 50, LESSONS, 10),
    _a("lessons_25", "Knowledge Seeker", "Complete 25 lessons", "🏆", "completion", 100, LESSONS, 25),
    _a("lessons_50", "Scholar", "Complete 50 lessons", "🎓", "completion", 200, LESSONS, 50),
    _a("lessons_100", "Master Learner", "Complete 100 lessons", "👑", "completion", 500, LESSONS, 100),
    _a("streak_3", "On a Roll", "Maintain a 3-day learning streak", "🔥", "streak", 25, STREAK, 3),
    _a("streak_7", "Week Warrior", "Maintain a 7-day learning streak", "💪", "streak", 50, STREAK, 7),
    _a("streak_14", "Two Week Champion", "Maintain a 14-day learning streak", "⚡", "streak", 100, STREAK, 14),
    _a("streak_30", "Monthly Master", "Maintain a 30-day learning streak", "🌙", "streak", 250, STREAK, 30),
    _a("first_certificate", "Certified", "Earn your first certificate", "📜", "certificate", 100, CERTIFICATES, 1),
    _a("certificates_3", "Triple Certified", "Earn 3 certificates", "🏅", "certificate", 300, CERTIFICATES, 3),
    _a("certificates_5", "Expert", "Earn 5 certificates", "🌟", "certificate", 500, CERTIFICATES, 5),
    _a("first_comment", "Voice Heard", "Post your first comment", "💬", "engagement", 10, COMMENTS, 1),
    _a("comments_10", "Active Participant", "Post 10 comments", "🗣️", "engagement", 50, COMMENTS, 10),
]
