from unittest.mock import Mock

import pytest
from sqlalchemy import func
from sqlalchemy.exc import OperationalError

from conftest import make_course
from progress_service.domain.errors import (NotFound, SideEffectFailure, TransientPersistenceError,
                                            ValidationError)
from progress_service.infrastructure.models import (AchievementUnlockORM, CertificateORM,
                                                    CourseProgressORM, PageProgressORM)
from progress_service.infrastructure.repositories import StreakRepository


def _count(db, model, **filters):
    q = db.query(func.count(model.id))
    for key, value in filters.items():
        q = q.filter(getattr(model, key) == value)
    return q.scalar()


def test_mark_page_result_shape(engine, learner, course):
    """Тест полного результата отметки"""
    course_id, pages = course
    result = engine.mark_page(learner, pages[0], course_id)
    assert result.page.completed is True
    assert result.course_progress.percent_complete == 25
    assert result.course_progress.last_page_id == pages[0]
    assert result.streak.current_streak == 1
    assert [s.step for s in result.steps] == ["streak", "achievements"]
    assert result.failures == []
    assert result.certificate is None


def test_uncomplete_skips_side_effects(engine, learner, course):
    course_id, pages = course
    engine.mark_page(learner, pages[0], course_id)
    result = engine.mark_page(learner, pages[0], course_id, False)
    assert result.steps == []
    assert result.course_progress.percent_complete == 0


def test_page_from_other_course(engine, db, learner, course):
    """Тест: страница другого курса дает NotFound, ничего не записано"""
    course_id, _ = course
    _, other_pages = make_course(db, (1,), title="Other")
    with pytest.raises(NotFound) as exc:
        engine.mark_page(learner, other_pages[0], course_id)
    assert exc.value.message == "Page not found in course"
    assert _count(db, PageProgressORM) == 0


@pytest.mark.parametrize("missing", ["course", "page"])
def test_unknown_course_or_page(engine, learner, course, missing):
    course_id, pages = course
    args = (pages[0], 999) if missing == "course" else (999, course_id)
    with pytest.raises(NotFound):
        engine.mark_page(learner, *args)


def test_unknown_learner(engine, db, course):
    course_id, pages = course
    with pytest.raises(NotFound):
        engine.mark_page("ghost", pages[0], course_id)
    assert _count(db, PageProgressORM) == 0


@pytest.mark.parametrize("learner_id,page_id,course_id", [
    ("", 1, 1),
    ("learner-1", 0, 1),
    ("learner-1", 1, -5),
])
def test_invalid_arguments(engine, learner_id, page_id, course_id):
    with pytest.raises(ValidationError):
        engine.mark_page(learner_id, page_id, course_id)


def test_ledger_failure_aborts_call(engine, db, learner, course):
    """Тест: ошибка записи ledger'а: вызов падает, строк нет"""
    course_id, pages = course
    engine.ledger.repo.upsert = Mock(side_effect=TransientPersistenceError("Database unavailable"))
    with pytest.raises(TransientPersistenceError):
        engine.mark_page(learner, pages[0], course_id)
    assert _count(db, PageProgressORM) == 0
    assert _count(db, CourseProgressORM) == 0
    assert StreakRepository(db).get(learner) is None


def test_aggregate_failure_rolls_back_ledger(engine, db, learner, course):
    """Тест: ledger и агрегат фиксируются вместе"""
    course_id, pages = course
    engine.aggregator.courses.save = Mock(side_effect=TransientPersistenceError("Database unavailable"))
    with pytest.raises(TransientPersistenceError):
        engine.mark_page(learner, pages[0], course_id)
    assert _count(db, PageProgressORM) == 0


def test_streak_failure_is_isolated(engine, db, learner, course):
    """Тест изоляции: стрик упал, прогресс и достижения сохранены"""
    course_id, pages = course
    engine.streaks.register_activity = Mock(side_effect=RuntimeError("boom"))
    result = engine.mark_page(learner, pages[0], course_id)

    assert result.course_progress.percent_complete == 25
    assert result.streak is None
    assert [f.step for f in result.failures] == ["streak"]
    assert isinstance(result.failures[0], SideEffectFailure)
    assert [u.code for u in result.unlocked] == ["first_lesson"]
    assert _count(db, PageProgressORM, learner_id=learner, completed=True) == 1


def test_achievement_failure_is_isolated(engine, db, learner, course):
    course_id, pages = course
    engine.achievements.evaluate_and_unlock = Mock(side_effect=TransientPersistenceError("Database unavailable"))
    result = engine.mark_page(learner, pages[0], course_id)
    assert result.streak.current_streak == 1
    assert [f.step for f in result.failures] == ["achievements"]
    assert _count(db, AchievementUnlockORM) == 0
    assert _count(db, CourseProgressORM) == 1


def test_certificate_failure_reported(engine, db, learner, course):
    """Тест: сертификат не выдан, частичный успех с certificate_error"""
    course_id, pages = course
    engine.certificates.repo.get = Mock(return_value=None)
    engine.certificates.repo.create = Mock(return_value=False)
    for page in pages:
        result = engine.mark_page(learner, page, course_id)

    assert result.course_progress.completed is True
    assert result.certificate is None
    assert result.certificate_error is not None
    assert result.certificate_error.step == "certificate"
    assert _count(db, CertificateORM) == 0
    assert _count(db, CourseProgressORM, completed=True) == 1


def test_certificate_retry_after_failure(engine, db, learner, course):
    """Тест: после сбоя сертификат выдается повторным вызовом"""
    course_id, pages = course
    real_create = engine.certificates.repo.create
    engine.certificates.repo.create = Mock(side_effect=TransientPersistenceError("Database unavailable"))
    for page in pages:
        failed = engine.mark_page(learner, page, course_id)
    assert failed.certificate_error is not None

    engine.certificates.repo.create = real_create
    outcome = engine.retry_certificate(learner, course_id)
    assert outcome.created is True
    assert _count(db, CertificateORM, learner_id=learner) == 1
    codes = {u.code for u in engine.achievements.achievements.list_unlocks(learner)}
    assert "first_certificate" in codes


def test_retry_certificate_incomplete(engine, learner, course):
    course_id, pages = course
    engine.mark_page(learner, pages[0], course_id)
    with pytest.raises(ValidationError) as exc:
        engine.retry_certificate(learner, course_id)
    assert exc.value.message == "Course not complete"


def test_retry_certificate_empty_course(engine, db, learner):
    course_id, _ = make_course(db, ())
    with pytest.raises(ValidationError) as exc:
        engine.retry_certificate(learner, course_id)
    assert exc.value.message == "Course has no pages"
    assert _count(db, CertificateORM) == 0


def test_remark_completed_course_does_not_reissue(engine, db, learner, course):
    """Тест: повторная отметка в завершенном курсе возвращает тот же сертификат"""
    course_id, pages = course
    for page in pages:
        first = engine.mark_page(learner, page, course_id)
    again = engine.mark_page(learner, pages[0], course_id)
    assert first.new_certificate is True
    assert again.new_certificate is False
    assert again.certificate.certificate_number == first.certificate.certificate_number
    assert [s.step for s in again.steps].count("achievements") == 1


def test_commit_failure_is_transient(engine, db, learner, course, monkeypatch):
    """Тест: обрыв соединения на commit превращается в TransientPersistenceError"""
    def broken_commit():
        raise OperationalError("COMMIT", {}, Exception("server closed the connection"))

    monkeypatch.setattr(db, "commit", broken_commit)
    course_id, pages = course
    with pytest.raises(TransientPersistenceError):
        engine.mark_page(learner, pages[0], course_id)
    monkeypatch.undo()
    assert _count(db, PageProgressORM) == 0
