"""
Prometheus metrics endpoint
"""
from fastapi import APIRouter, Response

from ..metrics import get_content_type, get_metrics

router = APIRouter(tags=["Metrics"])


@router.get("/metrics", summary="Prometheus metrics", include_in_schema=False)
def prometheus_metrics() -> Response:
    """Metrics in Prometheus exposition format"""
    return Response(content=get_metrics(), media_type=get_content_type())
