from datetime import datetime
from typing import Callable

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ....domain.clock import utcnow
from ....domain.errors import NotFound, ProgressError, TransientPersistenceError, ValidationError
from ....infrastructure.db import get_db
from ....infrastructure.metrics import (achievements_unlocked_total, certificates_issued_total,
                                        record_mark_page)
from ....infrastructure.wiring import build_orchestrator
from ..authz import get_learner_id
from ..schemas import (AchievementCheckResp, AchievementOut, AchievementsResp, CertificateOut,
                       CertificateResp, CourseProgressOut, CourseProgressResp, MarkPageReq,
                       MarkPageResp, StatsOut, StreakResp, UnlockOut)

router = APIRouter(prefix="/api/progress", tags=["progress"])


def get_clock() -> Callable[[], datetime]:
    return utcnow


def _http_error(e: ProgressError) -> HTTPException:
    if isinstance(e, NotFound):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    if isinstance(e, ValidationError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    if isinstance(e, TransientPersistenceError):
        # клиент может просто повторить запрос
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message,
                             headers={"Retry-After": "1"})
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=e.message)


@router.get("/health")
def health(): return {"status": "ok"}


@router.post("", response_model=MarkPageResp)
def mark_page(
    payload: MarkPageReq,
    learner_id: str = Depends(get_learner_id),
    db: Session = Depends(get_db),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    engine = build_orchestrator(db, clock)
    try:
        result = engine.mark_page(learner_id, payload.page_id, payload.course_id, payload.completed)
    except ProgressError as e:
        raise _http_error(e) from e
    record_mark_page(result)

    progress = result.course_progress
    cert_error = result.certificate_error
    return MarkPageResp(
        completed_count=progress.completed_count,
        total_pages=progress.total_pages,
        percent_complete=progress.percent_complete,
        course_completed=progress.completed,
        certificate=CertificateOut.model_validate(result.certificate) if result.certificate else None,
        new_certificate=result.new_certificate,
        certificate_error=cert_error.message if cert_error else None,
    )


@router.get("/courses/{course_id}", response_model=CourseProgressResp)
def course_progress(
    course_id: int,
    learner_id: str = Depends(get_learner_id),
    db: Session = Depends(get_db),
):
    try:
        view = build_orchestrator(db).course_progress(learner_id, course_id)
    except ProgressError as e:
        raise _http_error(e) from e
    agg = view.aggregate
    return CourseProgressResp(
        completed_pages=agg.completed_pages,
        total_pages=agg.total_pages,
        completed_count=agg.completed_count,
        percent_complete=agg.percent_complete,
        course_progress=CourseProgressOut.model_validate(view.course_progress) if view.course_progress else None,
    )


@router.post("/courses/{course_id}/certificate", response_model=CertificateResp)
def issue_certificate(
    course_id: int,
    learner_id: str = Depends(get_learner_id),
    db: Session = Depends(get_db),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    try:
        outcome = build_orchestrator(db, clock).retry_certificate(learner_id, course_id)
    except ProgressError as e:
        raise _http_error(e) from e
    if outcome.created:
        certificates_issued_total.inc()
    return CertificateResp(certificate=CertificateOut.model_validate(outcome.certificate),
                           new_certificate=outcome.created)


@router.get("/certificates", response_model=list[CertificateOut])
def my_certificates(
    learner_id: str = Depends(get_learner_id),
    db: Session = Depends(get_db),
):
    engine = build_orchestrator(db)
    try:
        engine.require_learner(learner_id)
        rows = engine.certificates.list_for_learner(learner_id)
    except ProgressError as e:
        raise _http_error(e) from e
    return [CertificateOut.model_validate(r) for r in rows]


@router.get("/streak", response_model=StreakResp)
def my_streak(
    learner_id: str = Depends(get_learner_id),
    db: Session = Depends(get_db),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    engine = build_orchestrator(db, clock)
    try:
        engine.require_learner(learner_id)
        view = engine.streaks.current(learner_id, clock())
    except ProgressError as e:
        raise _http_error(e) from e
    return StreakResp.model_validate(view)


@router.get("/achievements", response_model=AchievementsResp)
def my_achievements(
    learner_id: str = Depends(get_learner_id),
    db: Session = Depends(get_db),
):
    engine = build_orchestrator(db)
    try:
        engine.require_learner(learner_id)
        overview = engine.achievements.overview(learner_id)
    except ProgressError as e:
        raise _http_error(e) from e
    return AchievementsResp(
        achievements=[
            AchievementOut(
                code=s.definition.code, name=s.definition.name, description=s.definition.description,
                icon=s.definition.icon, category=s.definition.category, points=s.definition.points,
                earned=s.earned, earned_at=s.earned_at,
            )
            for s in overview.achievements
        ],
        total_points=overview.total_points,
        earned_count=overview.earned_count,
        total_count=overview.total_count,
    )


@router.post("/achievements/check", response_model=AchievementCheckResp)
def check_achievements(
    learner_id: str = Depends(get_learner_id),
    db: Session = Depends(get_db),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    engine = build_orchestrator(db, clock)
    try:
        engine.require_learner(learner_id)
        unlocked = engine.achievements.evaluate_and_unlock(learner_id)
        engine.uow.commit()
        stats = engine.achievements.snapshot(learner_id)
    except ProgressError as e:
        engine.uow.rollback()
        raise _http_error(e) from e
    for u in unlocked:
        achievements_unlocked_total.labels(code=u.code).inc()
    return AchievementCheckResp(
        new_achievements=[UnlockOut.model_validate(u) for u in unlocked],
        stats=StatsOut.model_validate(stats),
    )
