"""Synchronization statistics endpoints."""

from typing import Any, Dict

from fastapi import APIRouter, Depends

from api.dependencies import get_stats
from core.observability.metrics import SyncStatsCollector


router = APIRouter()


@router.get("/sync")
async def sync_metrics(stats: SyncStatsCollector = Depends(get_stats)) -> Dict[str, Any]:
    """Outcome counts, run counts and timings since startup."""
    return stats.get_summary()
