import random
from datetime import datetime, timezone

import pytest
from sqlalchemy import func
from sqlalchemy.exc import OperationalError

from conftest import make_course
from progress_service.domain.errors import NotFound, TransientPersistenceError
from progress_service.domain.progress import percent_of
from progress_service.infrastructure.db import translate_db_errors
from progress_service.infrastructure.models import CourseProgressORM, PageProgressORM


def _count(db, model, **filters):
    q = db.query(func.count(model.id))
    for key, value in filters.items():
        q = q.filter(getattr(model, key) == value)
    return q.scalar()


def test_record_creates_row(engine, db, learner, course, clock):
    """Тест первой отметки страницы"""
    _, pages = course
    row = engine.ledger.record_page_completion(learner, pages[0], True, clock())
    db.commit()
    assert row.viewed is True
    assert row.completed is True
    assert row.completed_at == clock()
    assert _count(db, PageProgressORM, learner_id=learner) == 1


def test_record_is_upsert(engine, db, learner, course, clock):
    """Тест идемпотентности: повторные отметки не создают вторую строку"""
    _, pages = course
    first = engine.ledger.record_page_completion(learner, pages[0], True, clock())
    clock.set(2025, 12, 4, 13, 0)
    second = engine.ledger.record_page_completion(learner, pages[0], True, clock())
    db.commit()
    assert _count(db, PageProgressORM, learner_id=learner, page_id=pages[0]) == 1
    # время завершения фиксируется при первой отметке
    assert second.completed_at.replace(tzinfo=None) == first.completed_at.replace(tzinfo=None)


def test_uncomplete_clears_completed_at(engine, db, learner, course, clock):
    """Тест снятия отметки: completed_at обнуляется, viewed остается"""
    _, pages = course
    engine.ledger.record_page_completion(learner, pages[0], True, clock())
    row = engine.ledger.record_page_completion(learner, pages[0], False, clock())
    db.commit()
    assert row.completed is False
    assert row.completed_at is None
    assert row.viewed is True
    stored = engine.ledger.repo.get(learner, pages[0])
    assert stored.completed is False
    assert stored.completed_at is None


def test_record_unknown_page(engine, learner, clock):
    with pytest.raises(NotFound):
        engine.ledger.record_page_completion(learner, 999, True, clock())


def test_record_unknown_learner(engine, course, clock):
    _, pages = course
    with pytest.raises(NotFound):
        engine.ledger.record_page_completion("ghost", pages[0], True, clock())


def test_mark_page_idempotent(engine, db, learner, course):
    """Тест: N одинаковых вызовов дают один ряд и тот же процент"""
    course_id, pages = course
    results = [engine.mark_page(learner, pages[0], course_id, True) for _ in range(3)]
    assert {r.course_progress.percent_complete for r in results} == {25}
    assert _count(db, PageProgressORM, learner_id=learner) == 1
    assert _count(db, CourseProgressORM, learner_id=learner) == 1


def test_aggregate_consistent_under_any_order(engine, db, learner):
    """Тест согласованности агрегата при случайных отметках/снятиях"""
    course_id, pages = make_course(db, (3, 2, 3))
    rng = random.Random(7)
    done = set()
    for _ in range(60):
        page = rng.choice(pages)
        completed = rng.random() < 0.6
        result = engine.mark_page(learner, page, course_id, completed)
        (done.add if completed else done.discard)(page)

        progress = result.course_progress
        assert progress.completed_count == len(done)
        assert progress.total_pages == len(pages)
        assert progress.percent_complete == percent_of(len(done), len(pages))
        assert progress.completed == (len(done) == len(pages))


def test_aggregate_rounding_three_pages(engine, db, learner):
    course_id, pages = make_course(db, (3,))
    assert engine.mark_page(learner, pages[0], course_id).course_progress.percent_complete == 33
    assert engine.mark_page(learner, pages[1], course_id).course_progress.percent_complete == 67


def test_aggregate_scoped_to_course(engine, db, learner):
    """Тест: прогресс другого курса не влияет на агрегат"""
    course_a, pages_a = make_course(db, (2,), title="A")
    course_b, pages_b = make_course(db, (2,), title="B")
    engine.mark_page(learner, pages_a[0], course_a)
    engine.mark_page(learner, pages_a[1], course_a)
    result = engine.mark_page(learner, pages_b[0], course_b)
    assert result.course_progress.percent_complete == 50
    assert result.course_progress.completed is False


def test_course_progress_view(engine, learner, course):
    course_id, pages = course
    engine.mark_page(learner, pages[0], course_id)
    engine.mark_page(learner, pages[1], course_id, False)
    view = engine.course_progress(learner, course_id)
    assert view.aggregate.completed_pages == {pages[0]: True, pages[1]: False}
    assert view.aggregate.completed_count == 1
    assert view.aggregate.percent_complete == 25
    assert view.course_progress.last_page_id == pages[1]


def test_course_progress_empty_course(engine, db, learner):
    """Тест курса без страниц: 0% и не завершен"""
    course_id, _ = make_course(db, ())
    view = engine.course_progress(learner, course_id)
    assert view.aggregate.total_pages == 0
    assert view.aggregate.percent_complete == 0
    assert view.course_progress is None


def test_translate_db_errors():
    """Тест: потеря соединения превращается в TransientPersistenceError"""
    @translate_db_errors
    def broken():
        raise OperationalError("SELECT 1", {}, Exception("server closed the connection"))

    with pytest.raises(TransientPersistenceError):
        broken()


def test_translate_db_errors_passes_through_other_errors():
    @translate_db_errors
    def broken():
        raise ValueError("not a db error")

    with pytest.raises(ValueError):
        broken()
