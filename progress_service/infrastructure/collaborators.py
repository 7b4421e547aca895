"""Read-only adapters over tables owned by the courses, auth and comments services."""
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..application.use_cases.evaluate_achievements import ICommentStore
from ..application.use_cases.record_page_completion import IContentCatalog, ILearnerDirectory
from .db import translate_db_errors
from .models import CommentORM, CourseORM, LearnerORM, PageORM, SectionORM


class SqlContentCatalog(IContentCatalog):
    def __init__(self, db: Session): self.db = db

    @translate_db_errors
    def course_exists(self, course_id: int) -> bool:
        return self.db.query(CourseORM.id).filter(CourseORM.id == course_id).first() is not None

    @translate_db_errors
    def page_course(self, page_id: int) -> int | None:
        return (self.db.query(SectionORM.course_id)
                .join(PageORM, PageORM.section_id == SectionORM.id)
                .filter(PageORM.id == page_id)
                .scalar())

    @translate_db_errors
    def list_pages(self, course_id: int) -> list[tuple[int, int]]:
        rows = (self.db.query(PageORM.id, PageORM.section_id)
                .join(SectionORM, PageORM.section_id == SectionORM.id)
                .filter(SectionORM.course_id == course_id)
                .order_by(SectionORM.order, SectionORM.id, PageORM.order, PageORM.id)
                .all())
        return [(page_id, section_id) for page_id, section_id in rows]


class SqlLearnerDirectory(ILearnerDirectory):
    def __init__(self, db: Session): self.db = db

    @translate_db_errors
    def learner_exists(self, learner_id: str) -> bool:
        return self.db.query(LearnerORM.id).filter(LearnerORM.id == learner_id).first() is not None


class SqlCommentStore(ICommentStore):
    def __init__(self, db: Session): self.db = db

    @translate_db_errors
    def count_comments(self, learner_id: str) -> int:
        return (self.db.query(func.count(CommentORM.id))
                .filter(CommentORM.learner_id == learner_id)
                .scalar()) or 0
