from dataclasses import dataclass, field
from typing import Iterable, Sequence

from .entities import PageProgress


@dataclass(frozen=True)
class CourseAggregate:
    completed_count: int
    total_pages: int
    percent_complete: int
    completed: bool
    completed_pages: dict[int, bool] = field(default_factory=dict)


def percent_of(completed: int, total: int) -> int:
    """Целый процент с округлением half-up (1/8 -> 13, а не 12).

    100 только для полностью пройденного курса: 199 из 200 дает 99.
    """
    if total <= 0:
        return 0
    percent = (completed * 200 + total) // (2 * total)
    return percent if completed >= total else min(percent, 99)


def aggregate(page_ids: Sequence[int], rows: Iterable[PageProgress]) -> CourseAggregate:
    """Recompute course progress from ledger rows.

    Rows for pages outside `page_ids` are ignored, so the caller may pass the
    learner's whole ledger.
    """
    page_set = set(page_ids)
    completed_pages = {r.page_id: r.completed for r in rows if r.page_id in page_set}
    completed_count = sum(1 for done in completed_pages.values() if done)
    total = len(page_set)
    return CourseAggregate(
        completed_count=completed_count,
        total_pages=total,
        percent_complete=percent_of(completed_count, total),
        completed=total > 0 and completed_count == total,
        completed_pages=completed_pages,
    )
