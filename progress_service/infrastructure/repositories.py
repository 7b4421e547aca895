from datetime import date, datetime
from typing import Iterable

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from ..application.use_cases.evaluate_achievements import IAchievementRepository
from ..application.use_cases.issue_certificate import ICertificateRepository
from ..application.use_cases.recompute_course_progress import ICourseProgressRepository
from ..application.use_cases.record_page_completion import IPageProgressRepository
from ..application.use_cases.register_activity import IStreakRepository
from ..domain.entities import (AchievementDefinition, AchievementUnlock, Certificate, CourseProgress,
                               PageProgress, StreakState)
from .db import insert_for, translate_db_errors
from .models import (AchievementORM, AchievementUnlockORM, CertificateORM, CourseProgressORM,
                     PageProgressORM, StreakORM)


def page_to_domain(r: PageProgressORM) -> PageProgress:
    return PageProgress(learner_id=r.learner_id, page_id=r.page_id, viewed=r.viewed,
                        completed=r.completed, completed_at=r.completed_at, updated_at=r.updated_at)


def course_to_domain(r: CourseProgressORM) -> CourseProgress:
    return CourseProgress(
        learner_id=r.learner_id, course_id=r.course_id, percent_complete=r.percent_complete,
        completed=r.completed, completed_count=r.completed_count, total_pages=r.total_pages,
        completed_at=r.completed_at, last_page_id=r.last_page_id, last_accessed_at=r.last_accessed_at,
    )


def streak_to_domain(r: StreakORM) -> StreakState:
    return StreakState(learner_id=r.learner_id, current_streak=r.current_streak,
                       longest_streak=r.longest_streak, last_activity_date=r.last_activity_date)


def achievement_to_domain(r: AchievementORM) -> AchievementDefinition:
    return AchievementDefinition(code=r.code, name=r.name, predicate=r.predicate, threshold=r.threshold,
                                 description=r.description, icon=r.icon, category=r.category, points=r.points)


def certificate_to_domain(r: CertificateORM) -> Certificate:
    return Certificate(learner_id=r.learner_id, course_id=r.course_id,
                       certificate_number=r.certificate_number, completed_at=r.completed_at)


# Все чтения идут с populate_existing: upsert'ы выполняются мимо ORM,
# и объект из identity map сессии иначе остался бы устаревшим.

class PageProgressRepository(IPageProgressRepository):
    def __init__(self, db: Session): self.db = db

    @translate_db_errors
    def get(self, learner_id: str, page_id: int) -> PageProgress | None:
        row = (self.db.query(PageProgressORM).populate_existing()
               .filter(PageProgressORM.learner_id == learner_id, PageProgressORM.page_id == page_id)
               .first())
        return page_to_domain(row) if row else None

    @translate_db_errors
    def upsert(self, learner_id: str, page_id: int, completed: bool,
               completed_at: datetime | None, now: datetime) -> PageProgress:
        values = {"viewed": True, "completed": completed, "completed_at": completed_at, "updated_at": now}
        stmt = insert_for(self.db, PageProgressORM).values(learner_id=learner_id, page_id=page_id, **values)
        stmt = stmt.on_conflict_do_update(index_elements=["learner_id", "page_id"], set_=values)
        self.db.execute(stmt)
        return PageProgress(learner_id=learner_id, page_id=page_id, **values)

    @translate_db_errors
    def list_for_pages(self, learner_id: str, page_ids: Iterable[int]) -> list[PageProgress]:
        rows = (self.db.query(PageProgressORM).populate_existing()
                .filter(PageProgressORM.learner_id == learner_id, PageProgressORM.page_id.in_(list(page_ids)))
                .all())
        return [page_to_domain(r) for r in rows]

    @translate_db_errors
    def count_completed(self, learner_id: str) -> int:
        return (self.db.query(func.count(PageProgressORM.id))
                .filter(PageProgressORM.learner_id == learner_id, PageProgressORM.completed.is_(True))
                .scalar()) or 0


class CourseProgressRepository(ICourseProgressRepository):
    def __init__(self, db: Session): self.db = db

    @translate_db_errors
    def get(self, learner_id: str, course_id: int) -> CourseProgress | None:
        row = (self.db.query(CourseProgressORM).populate_existing()
               .filter(CourseProgressORM.learner_id == learner_id, CourseProgressORM.course_id == course_id)
               .first())
        return course_to_domain(row) if row else None

    @translate_db_errors
    def save(self, progress: CourseProgress) -> CourseProgress:
        values = {
            "percent_complete": progress.percent_complete,
            "completed": progress.completed,
            "completed_count": progress.completed_count,
            "total_pages": progress.total_pages,
            "completed_at": progress.completed_at,
            "last_page_id": progress.last_page_id,
            "last_accessed_at": progress.last_accessed_at,
        }
        stmt = insert_for(self.db, CourseProgressORM).values(
            learner_id=progress.learner_id, course_id=progress.course_id, **values)
        stmt = stmt.on_conflict_do_update(index_elements=["learner_id", "course_id"], set_=values)
        self.db.execute(stmt)
        return progress


class StreakRepository(IStreakRepository):
    def __init__(self, db: Session): self.db = db

    @translate_db_errors
    def get(self, learner_id: str) -> StreakState | None:
        row = self.db.query(StreakORM).populate_existing().filter(StreakORM.learner_id == learner_id).first()
        return streak_to_domain(row) if row else None

    @translate_db_errors
    def create(self, state: StreakState) -> bool:
        stmt = insert_for(self.db, StreakORM).values(
            learner_id=state.learner_id,
            current_streak=state.current_streak,
            longest_streak=state.longest_streak,
            last_activity_date=state.last_activity_date,
        ).on_conflict_do_nothing(index_elements=["learner_id"])
        return self.db.execute(stmt).rowcount == 1

    @translate_db_errors
    def compare_and_swap(self, expected_last_activity: date | None, state: StreakState) -> bool:
        if expected_last_activity is None:
            same_day = StreakORM.last_activity_date.is_(None)
        else:
            same_day = StreakORM.last_activity_date == expected_last_activity
        stmt = (update(StreakORM.__table__)
                .where(StreakORM.learner_id == state.learner_id, same_day)
                .values(current_streak=state.current_streak,
                        longest_streak=state.longest_streak,
                        last_activity_date=state.last_activity_date))
        return self.db.execute(stmt).rowcount == 1


class AchievementRepository(IAchievementRepository):
    def __init__(self, db: Session): self.db = db

    @translate_db_errors
    def list_definitions(self) -> list[AchievementDefinition]:
        rows = (self.db.query(AchievementORM)
                .order_by(AchievementORM.category, AchievementORM.points, AchievementORM.id)
                .all())
        return [achievement_to_domain(r) for r in rows]

    @translate_db_errors
    def list_unlocks(self, learner_id: str) -> list[AchievementUnlock]:
        rows = (self.db.query(AchievementORM.code, AchievementUnlockORM.unlocked_at)
                .join(AchievementUnlockORM, AchievementUnlockORM.achievement_id == AchievementORM.id)
                .filter(AchievementUnlockORM.learner_id == learner_id)
                .order_by(AchievementUnlockORM.unlocked_at, AchievementUnlockORM.id)
                .all())
        return [AchievementUnlock(learner_id=learner_id, code=code, unlocked_at=at) for code, at in rows]

    @translate_db_errors
    def unlock(self, learner_id: str, code: str, now: datetime) -> AchievementUnlock | None:
        achievement_id = self.db.query(AchievementORM.id).filter(AchievementORM.code == code).scalar()
        if achievement_id is None:
            return None
        stmt = insert_for(self.db, AchievementUnlockORM).values(
            learner_id=learner_id, achievement_id=achievement_id, unlocked_at=now,
        ).on_conflict_do_nothing(index_elements=["learner_id", "achievement_id"])
        if self.db.execute(stmt).rowcount != 1:
            return None
        return AchievementUnlock(learner_id=learner_id, code=code, unlocked_at=now)

    @translate_db_errors
    def seed(self, definitions: Iterable[AchievementDefinition]) -> list[str]:
        """Insert catalog entries that are missing; existing codes are left as they are."""
        added = []
        for d in definitions:
            stmt = insert_for(self.db, AchievementORM).values(
                code=d.code, name=d.name, description=d.description, icon=d.icon,
                category=d.category, points=d.points, predicate=d.predicate, threshold=d.threshold,
            ).on_conflict_do_nothing(index_elements=["code"])
            if self.db.execute(stmt).rowcount == 1:
                added.append(d.code)
        return added


class CertificateRepository(ICertificateRepository):
    def __init__(self, db: Session): self.db = db

    @translate_db_errors
    def get(self, learner_id: str, course_id: int) -> Certificate | None:
        row = (self.db.query(CertificateORM)
               .filter(CertificateORM.learner_id == learner_id, CertificateORM.course_id == course_id)
               .first())
        return certificate_to_domain(row) if row else None

    @translate_db_errors
    def create(self, certificate: Certificate) -> bool:
        # без target: конфликт и по (learner, course), и по номеру сертификата
        stmt = insert_for(self.db, CertificateORM).values(
            learner_id=certificate.learner_id,
            course_id=certificate.course_id,
            certificate_number=certificate.certificate_number,
            completed_at=certificate.completed_at,
        ).on_conflict_do_nothing()
        return self.db.execute(stmt).rowcount == 1

    @translate_db_errors
    def count(self, learner_id: str) -> int:
        return (self.db.query(func.count(CertificateORM.id))
                .filter(CertificateORM.learner_id == learner_id)
                .scalar()) or 0

    @translate_db_errors
    def list_for_learner(self, learner_id: str) -> list[Certificate]:
        rows = (self.db.query(CertificateORM)
                .filter(CertificateORM.learner_id == learner_id)
                .order_by(CertificateORM.completed_at.desc(), CertificateORM.id.desc())
                .all())
        return [certificate_to_domain(r) for r in rows]
