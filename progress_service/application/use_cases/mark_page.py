from datetime import datetime
from typing import Callable

import structlog

from ...domain.clock import utcnow
from ...domain.errors import NotFound, SideEffectFailure, ValidationError, require_id, require_learner_id
from ..dto import CourseProgressView, MarkPageResult, StepResult
from .evaluate_achievements import AchievementEvaluator
from .issue_certificate import CertificateIssuer, IssueOutcome
from .recompute_course_progress import ModuleAggregator
from .record_page_completion import IContentCatalog, ProgressLedger
from .register_activity import StreakTracker

logger = structlog.get_logger()


class IUnitOfWork:
    def commit(self) -> None: ...
    def rollback(self) -> None: ...


class CompletionOrchestrator:
    """Entry point for "learner marked a page complete/incomplete".

    The ledger write and the aggregate recompute are committed together and any
    error there fails the call. Streak and achievement updates run afterwards,
    each in its own transaction; their failures are logged and dropped.
    Certificate issuance also runs isolated, but its outcome (or error) is part
    of the result.
    """

    def __init__(self, uow: IUnitOfWork, ledger: ProgressLedger, aggregator: ModuleAggregator,
                 streaks: StreakTracker, achievements: AchievementEvaluator,
                 certificates: CertificateIssuer, catalog: IContentCatalog,
                 clock: Callable[[], datetime] = utcnow):
        self.uow = uow
        self.ledger = ledger
        self.aggregator = aggregator
        self.streaks = streaks
        self.achievements = achievements
        self.certificates = certificates
        self.catalog = catalog
        self.clock = clock

    def mark_page(self, learner_id: str, page_id: int, course_id: int, completed: bool = True) -> MarkPageResult:
        require_learner_id(learner_id)
        require_id("page_id", page_id)
        require_id("course_id", course_id)
        now = self.clock()

        try:
            self._require_page_in_course(page_id, course_id)
            page = self.ledger.record_page_completion(learner_id, page_id, completed, now)
            progress = self.aggregator.recompute_course_progress(learner_id, course_id, page_id, now)
            self.uow.commit()
        except Exception:
            self.uow.rollback()
            raise

        result = MarkPageResult(page=page, course_progress=progress)
        if completed:
            result.steps.append(self._isolated("streak", learner_id, self.streaks.register_activity, learner_id, now))
            result.steps.append(self._isolated("achievements", learner_id, self.achievements.evaluate_and_unlock, learner_id))

        if progress.completed:
            issued = self._isolated("certificate", learner_id, self.certificates.issue, learner_id, course_id, progress, now)
            result.steps.append(issued)
            if issued.ok:
                result.certificate = issued.value.certificate
                result.new_certificate = issued.value.created
            if result.new_certificate:
                # чтобы достижения за сертификаты открылись в этом же вызове
                result.steps.append(self._isolated("achievements", learner_id, self.achievements.evaluate_and_unlock, learner_id))
        return result

    def retry_certificate(self, learner_id: str, course_id: int) -> IssueOutcome:
        """Issue the certificate for an already finished course; safe to repeat."""
        require_learner_id(learner_id)
        require_id("course_id", course_id)
        now = self.clock()

        try:
            self.require_learner(learner_id)
            progress = self.aggregator.recompute_course_progress(learner_id, course_id, None, now)
            if progress.total_pages == 0:
                raise ValidationError("Course has no pages", {"course_id": course_id})
            if not progress.completed:
                raise ValidationError("Course not complete", {
                    "completed_count": progress.completed_count,
                    "total_pages": progress.total_pages,
                })
            outcome = self.certificates.issue(learner_id, course_id, progress, now)
            self.uow.commit()
        except Exception:
            self.uow.rollback()
            raise

        if outcome.created:
            self._isolated("achievements", learner_id, self.achievements.evaluate_and_unlock, learner_id)
        return outcome

    def course_progress(self, learner_id: str, course_id: int) -> CourseProgressView:
        require_learner_id(learner_id)
        require_id("course_id", course_id)
        self.require_learner(learner_id)
        return CourseProgressView(
            aggregate=self.aggregator.current(learner_id, course_id),
            course_progress=self.aggregator.courses.get(learner_id, course_id),
        )

    def require_learner(self, learner_id: str) -> None:
        if not self.ledger.learners.learner_exists(learner_id):
            raise NotFound("Learner not found", {"learner_id": learner_id})

    def _require_page_in_course(self, page_id: int, course_id: int) -> None:
        if not self.catalog.course_exists(course_id):
            raise NotFound("Course not found", {"course_id": course_id})
        owner = self.catalog.page_course(page_id)
        if owner is None:
            raise NotFound("Page not found", {"page_id": page_id})
        if owner != course_id:
            raise NotFound("Page not found in course", {"page_id": page_id, "course_id": course_id})

    def _isolated(self, step: str, learner_id: str, fn, *args) -> StepResult:
        try:
            value = fn(*args)
            self.uow.commit()
            return StepResult(step, value)
        except Exception as exc:
            self.uow.rollback()
            logger.warning("side_effect_failed", step=step, learner_id=learner_id, exc_info=exc)
            if isinstance(exc, SideEffectFailure):
                return StepResult(step, error=exc)
            return StepResult(step, error=SideEffectFailure(step, str(exc) or exc.__class__.__name__))
