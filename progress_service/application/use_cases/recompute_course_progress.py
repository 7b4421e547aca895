from datetime import datetime

from ...domain.entities import CourseProgress
from ...domain.errors import NotFound, require_id, require_learner_id
from ...domain.progress import CourseAggregate, aggregate
from .record_page_completion import IContentCatalog, IPageProgressRepository


class ICourseProgressRepository:
    def get(self, learner_id: str, course_id: int) -> CourseProgress | None: ...
    def save(self, progress: CourseProgress) -> CourseProgress: ...


class ModuleAggregator:
    """Materialized per-(learner, course) progress, rebuilt from the ledger on every call."""

    def __init__(self, pages: IPageProgressRepository, courses: ICourseProgressRepository,
                 catalog: IContentCatalog):
        self.pages = pages
        self.courses = courses
        self.catalog = catalog

    def current(self, learner_id: str, course_id: int) -> CourseAggregate:
        require_learner_id(learner_id)
        require_id("course_id", course_id)
        if not self.catalog.course_exists(course_id):
            raise NotFound("Course not found", {"course_id": course_id})
        page_ids = [page_id for page_id, _ in self.catalog.list_pages(course_id)]
        rows = self.pages.list_for_pages(learner_id, page_ids) if page_ids else []
        return aggregate(page_ids, rows)

    def recompute_course_progress(self, learner_id: str, course_id: int, last_page_id: int | None,
                                  now: datetime) -> CourseProgress:
        agg = self.current(learner_id, course_id)
        previous = self.courses.get(learner_id, course_id)

        completed_at = previous.completed_at if previous is not None else None
        if agg.completed and completed_at is None:
            completed_at = now
        if last_page_id is None and previous is not None:
            last_page_id = previous.last_page_id

        return self.courses.save(CourseProgress(
            learner_id=learner_id,
            course_id=course_id,
            percent_complete=agg.percent_complete,
            completed=agg.completed,
            completed_count=agg.completed_count,
            total_pages=agg.total_pages,
            completed_at=completed_at,
            last_page_id=last_page_id,
            last_accessed_at=now,
        ))
