from prometheus_client import Counter, Histogram, generate_latest
from fastapi import Response

# Метрики для HTTP запросов
http_requests_total = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status']
)

http_request_duration_seconds = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint']
)

# Метрики движка прогресса
page_marks_total = Counter('page_marks_total', 'Pages marked complete/incomplete', ['completed'])
side_effect_failures_total = Counter(
    'side_effect_failures_total',
    'Isolated streak/achievement/certificate steps that failed',
    ['step']
)
achievements_unlocked_total = Counter('achievements_unlocked_total', 'Achievements unlocked', ['code'])
certificates_issued_total = Counter('certificates_issued_total', 'Certificates minted')


def record_mark_page(result) -> None:
    page_marks_total.labels(completed=str(result.page.completed).lower()).inc()
    for failure in result.failures:
        side_effect_failures_total.labels(step=failure.step).inc()
    for unlock in result.unlocked:
        achievements_unlocked_total.labels(code=unlock.code).inc()
    if result.new_certificate:
        certificates_issued_total.inc()


def metrics_endpoint():
    """Endpoint для Prometheus метрик"""
    return Response(content=generate_latest(), media_type="text/plain")
