"""
Prometheus metrics endpoint.

Unauthenticated, following standard Prometheus practice. Exposes the
private registry fed by ``@BaseService.measure_operation``, the booking
lock and the maintenance job.
"""

from fastapi import APIRouter, Response

from ..monitoring.prometheus_metrics import prometheus_metrics

router = APIRouter()


@router.get("/metrics/prometheus", include_in_schema=False)
def get_prometheus_metrics() -> Response:
    return Response(
        content=prometheus_metrics.get_metrics(),
        media_type=prometheus_metrics.get_content_type(),
    )
