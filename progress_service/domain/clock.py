from datetime import date, datetime, timezone, tzinfo


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def local_date(now: datetime, tz: tzinfo) -> date:
    """Календарная дата момента `now` в зоне `tz`; naive-время считаем UTC."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(tz).date()
