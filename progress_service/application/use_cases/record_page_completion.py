from datetime import datetime
from typing import Iterable

import structlog

from ...domain.entities import PageProgress
from ...domain.errors import NotFound, require_id, require_learner_id

logger = structlog.get_logger()


class IContentCatalog:
    def course_exists(self, course_id: int) -> bool: ...
    def page_course(self, page_id: int) -> int | None: ...
    def list_pages(self, course_id: int) -> list[tuple[int, int]]: ...


class ILearnerDirectory:
    def learner_exists(self, learner_id: str) -> bool: ...


class IPageProgressRepository:
    def get(self, learner_id: str, page_id: int) -> PageProgress | None: ...
    def upsert(self, learner_id: str, page_id: int, completed: bool,
               completed_at: datetime | None, now: datetime) -> PageProgress: ...
    def list_for_pages(self, learner_id: str, page_ids: Iterable[int]) -> list[PageProgress]: ...
    def count_completed(self, learner_id: str) -> int: ...


class ProgressLedger:
    """Per-(learner, page) completion record."""

    def __init__(self, repo: IPageProgressRepository, catalog: IContentCatalog, learners: ILearnerDirectory):
        self.repo = repo
        self.catalog = catalog
        self.learners = learners

    def record_page_completion(self, learner_id: str, page_id: int, completed: bool,
                               now: datetime) -> PageProgress:
        require_learner_id(learner_id)
        require_id("page_id", page_id)
        if not self.learners.learner_exists(learner_id):
            raise NotFound("Learner not found", {"learner_id": learner_id})
        if self.catalog.page_course(page_id) is None:
            raise NotFound("Page not found", {"page_id": page_id})

        existing = self.repo.get(learner_id, page_id)
        if not completed:
            completed_at = None
        elif existing is not None and existing.completed and existing.completed_at is not None:
            # повторное "завершить" не сдвигает время завершения
            completed_at = existing.completed_at
        else:
            completed_at = now
        row = self.repo.upsert(learner_id, page_id, completed, completed_at, now)
        logger.info("page_marked", learner_id=learner_id, page_id=page_id, completed=completed)
        return row
