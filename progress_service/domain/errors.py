"""Ошибки движка прогресса.

Роутер переводит их в HTTP-ответы, сами use case'ы про HTTP ничего не знают.
"""


class ProgressError(Exception):
    """Base class for engine errors."""

    code = "progress_error"

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class NotFound(ProgressError):
    """Learner, page or course does not exist."""

    code = "not_found"


class ValidationError(ProgressError):
    """Malformed identifiers or a request the current state cannot satisfy."""

    code = "validation_error"


class TransientPersistenceError(ProgressError):
    """The store is unavailable; the caller may retry."""

    code = "transient_persistence_error"


class SideEffectFailure(ProgressError):
    """A streak, achievement or certificate step failed after the primary write."""

    code = "side_effect_failure"

    def __init__(self, step: str, message: str, details: dict | None = None):
        self.step = step
        super().__init__(message, details)


def require_learner_id(learner_id) -> str:
    if not isinstance(learner_id, str) or not learner_id.strip() or len(learner_id) > 255:
        raise ValidationError("Malformed learner id", {"learner_id": learner_id})
    return learner_id


def require_id(name: str, value) -> int:
    # bool является подклассом int, его не пропускаем
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(f"Malformed {name}", {name: value})
    return value
