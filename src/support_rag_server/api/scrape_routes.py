"""
Scrape Routes

Triggers a scrape of the support page and reports the validated FAQs.
A scrape that exhausts its retries answers with the ScrapeError status and
the last underlying cause in `detail`.
"""

import time
from datetime import datetime, timezone
from typing import Annotated, Any, Dict, Literal, Optional

from fastapi import APIRouter, Body, Depends, status

from .dependencies import get_scrape_orchestrator
from .models import ScrapeRequest, ScrapeResponse, ScrapeStats
from ..config import settings
from ..ingestion.models import SUPPORT_CATEGORIES
from ..ingestion.orchestrator import ScrapeOrchestrator

router = APIRouter(prefix="/scrape", tags=["scrape"])


@router.post(
    "",
    response_model=ScrapeResponse,
    summary="Scrape the support page into a validated snapshot",
    status_code=status.HTTP_200_OK,
)
async def scrape(
    orchestrator: Annotated[ScrapeOrchestrator, Depends(get_scrape_orchestrator)],
    req: Annotated[Optional[ScrapeRequest], Body()] = None,
) -> ScrapeResponse:
    req = req or ScrapeRequest()
    start = time.perf_counter()

    result = await orchestrator.scrape_with_retry(
        max_retries=req.max_retries or settings.scrape_max_retries,
        save_raw=req.save_to_file,
        save_processed=req.save_to_file,
        filename=req.filename,
    )
    snapshot = result.snapshot
    distribution = snapshot.category_distribution()

    return ScrapeResponse(
        message="Support page scraped successfully",
        metadata=snapshot.metadata,
        stats=ScrapeStats(
            total_faqs=len(snapshot.faqs),
            categories=list(distribution),
            category_distribution=distribution,
            duration_ms=round((time.perf_counter() - start) * 1000, 3),
        ),
        saved_file=str(result.processed_file) if result.processed_file else None,
        faqs=list(snapshot.faqs),
    )


@router.get("", summary="Scrape service health, status, or usage")
async def scrape_info(
    orchestrator: Annotated[ScrapeOrchestrator, Depends(get_scrape_orchestrator)],
    action: Optional[Literal["health", "status"]] = None,
) -> Dict[str, Any]:
    timestamp = datetime.now(timezone.utc).isoformat()

    if action == "health":
        healthy = await orchestrator.content_health()
        return {
            "success": healthy,
            "message": (
                "Scraping service is healthy"
                if healthy
                else "Content service is unreachable"
            ),
            "timestamp": timestamp,
        }

    if action == "status":
        return {
            "success": True,
            "status": "ready",
            "capabilities": {
                "targetUrl": settings.support_url,
                "supportedCategories": list(SUPPORT_CATEGORIES),
                "maxRetries": settings.scrape_max_retries,
                "snapshotFailurePolicy": settings.snapshot_failure_policy,
            },
            "timestamp": timestamp,
        }

    return {
        "success": True,
        "message": "Support Scraping API",
        "usage": {
            "POST": "Trigger scraping of the support page",
            "GET?action=health": "Check content service health",
            "GET?action=status": "Get service status and capabilities",
        },
        "timestamp": timestamp,
    }
