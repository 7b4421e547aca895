from datetime import datetime
from typing import Callable
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from ..application.use_cases.evaluate_achievements import AchievementEvaluator
from ..application.use_cases.issue_certificate import CertificateIssuer
from ..application.use_cases.mark_page import CompletionOrchestrator
from ..application.use_cases.recompute_course_progress import ModuleAggregator
from ..application.use_cases.record_page_completion import ProgressLedger
from ..application.use_cases.register_activity import StreakTracker
from ..config import settings
from ..domain.certificates import generate_certificate_number
from ..domain.clock import utcnow
from .collaborators import SqlCommentStore, SqlContentCatalog, SqlLearnerDirectory
from .db import SessionUnitOfWork
from .repositories import (AchievementRepository, CertificateRepository, CourseProgressRepository,
                           PageProgressRepository, StreakRepository)


def build_orchestrator(db: Session, clock: Callable[[], datetime] = utcnow) -> CompletionOrchestrator:
    catalog = SqlContentCatalog(db)
    pages = PageProgressRepository(db)
    streak_repo = StreakRepository(db)
    certificate_repo = CertificateRepository(db)

    return CompletionOrchestrator(
        uow=SessionUnitOfWork(db),
        ledger=ProgressLedger(pages, catalog, SqlLearnerDirectory(db)),
        aggregator=ModuleAggregator(pages, CourseProgressRepository(db), catalog),
        streaks=StreakTracker(streak_repo, ZoneInfo(settings.STREAK_TIMEZONE), settings.STREAK_CAS_RETRIES),
        achievements=AchievementEvaluator(AchievementRepository(db), streak_repo, pages,
                                          certificate_repo, SqlCommentStore(db), clock),
        certificates=CertificateIssuer(
            certificate_repo,
            lambda now: generate_certificate_number(now, settings.CERTIFICATE_PREFIX),
            settings.CERTIFICATE_NUMBER_RETRIES,
        ),
        catalog=catalog,
        clock=clock,
    )
