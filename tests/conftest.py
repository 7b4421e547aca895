import os
import sys
from datetime import datetime, timezone

import pytest

CURRENT_DIR = os.path.dirname(__file__)
SERVICE_ROOT = os.path.dirname(CURRENT_DIR)
if SERVICE_ROOT not in sys.path:
    sys.path.insert(0, SERVICE_ROOT)

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from progress_service.domain.achievements import DEFAULT_ACHIEVEMENTS
from progress_service.infrastructure import db as database
from progress_service.infrastructure.models import Base, CourseORM, LearnerORM, PageORM, SectionORM
from progress_service.infrastructure.repositories import AchievementRepository
from progress_service.infrastructure.wiring import build_orchestrator

# Тестовая БД в памяти; StaticPool, чтобы все сессии видели одни и те же таблицы
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"
test_engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

# Переопределяем engine в infrastructure.db для тестов
database.engine = test_engine
database.SessionLocal = TestingSessionLocal

LEARNER_ID = "learner-1"


class FakeClock:
    """Управляемые "текущие" часы для сценариев со стриками."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, *args):
        self.now = datetime(*args, tzinfo=timezone.utc)


def make_course(db, section_sizes=(4,), title="Python Basics") -> tuple[int, list[int]]:
    """Создает курс с разделами указанных размеров; возвращает (course_id, page_ids по порядку)."""
    course = CourseORM(title=title)
    db.add(course)
    db.flush()
    page_ids = []
    for s_order, size in enumerate(section_sizes):
        section = SectionORM(course_id=course.id, title=f"Section {s_order + 1}", order=s_order)
        db.add(section)
        db.flush()
        for p_order in range(size):
            page = PageORM(section_id=section.id, title=f"Page {p_order + 1}", order=p_order)
            db.add(page)
            db.flush()
            page_ids.append(page.id)
    db.commit()
    return course.id, page_ids


@pytest.fixture
def db():
    # Создаем таблицы и каталог достижений перед каждым тестом
    Base.metadata.drop_all(bind=test_engine)
    Base.metadata.create_all(bind=test_engine)
    session = TestingSessionLocal()
    AchievementRepository(session).seed(DEFAULT_ACHIEVEMENTS)
    session.commit()
    yield session
    session.close()
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def clock():
    return FakeClock(datetime(2025, 12, 4, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def learner(db):
    db.add(LearnerORM(id=LEARNER_ID, email="test@example.com"))
    db.commit()
    return LEARNER_ID


@pytest.fixture
def course(db):
    """Курс из 4 страниц в двух разделах."""
    return make_course(db, (2, 2))


@pytest.fixture
def engine(db, clock):
    return build_orchestrator(db, clock)
