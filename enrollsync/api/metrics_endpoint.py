"""Prometheus metrics endpoint.

Scraped by Prometheus; returns plain text in the exposition format:

  # HELP enrollment_mutations_total Enrollment mutations applied through catalog primitives
  # TYPE enrollment_mutations_total counter
  enrollment_mutations_total{action="enroll",trigger="checkout"} 12.0

In production, restrict access to /metrics (internal port or network
policy); per-trigger mutation rates reveal business volume.
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter(tags=["observability"])


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    """Expose all Prometheus metrics in text exposition format."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
