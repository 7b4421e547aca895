from dataclasses import dataclass
from datetime import datetime
from typing import Callable

import structlog

from ...domain.certificates import generate_certificate_number
from ...domain.entities import Certificate, CourseProgress
from ...domain.errors import SideEffectFailure

logger = structlog.get_logger()


class ICertificateRepository:
    def get(self, learner_id: str, course_id: int) -> Certificate | None: ...
    def create(self, certificate: Certificate) -> bool: ...
    def count(self, learner_id: str) -> int: ...
    def list_for_learner(self, learner_id: str) -> list[Certificate]: ...


@dataclass(frozen=True)
class IssueOutcome:
    certificate: Certificate | None
    created: bool = False


class CertificateIssuer:
    def __init__(self, repo: ICertificateRepository,
                 number_factory: Callable[[datetime], str] = generate_certificate_number,
                 max_attempts: int = 3):
        self.repo = repo
        self.number_factory = number_factory
        self.max_attempts = max_attempts

    def issue_if_eligible(self, learner_id: str, course_id: int, course_progress: CourseProgress,
                          now: datetime) -> Certificate | None:
        return self.issue(learner_id, course_id, course_progress, now).certificate

    def issue(self, learner_id: str, course_id: int, course_progress: CourseProgress,
              now: datetime) -> IssueOutcome:
        if not course_progress.completed:
            return IssueOutcome(None)

        existing = self.repo.get(learner_id, course_id)
        if existing is not None:
            return IssueOutcome(existing)

        for _ in range(self.max_attempts):
            candidate = Certificate(
                learner_id=learner_id,
                course_id=course_id,
                certificate_number=self.number_factory(now),
                completed_at=now,
            )
            if self.repo.create(candidate):
                logger.info("certificate_issued", learner_id=learner_id, course_id=course_id,
                            certificate_number=candidate.certificate_number)
                return IssueOutcome(candidate, created=True)
            # вставка не прошла: либо параллельный вызов уже выдал сертификат,
            # либо совпал номер, тогда пробуем новый
            winner = self.repo.get(learner_id, course_id)
            if winner is not None:
                return IssueOutcome(winner)

        raise SideEffectFailure("certificate", "Could not allocate a unique certificate number",
                                {"learner_id": learner_id, "course_id": course_id})

    def list_for_learner(self, learner_id: str) -> list[Certificate]:
        return self.repo.list_for_learner(learner_id)
