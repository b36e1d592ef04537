"""
Observability Module for the Reconciliation Engine

Provides:
- Structured logging with correlation IDs
- Injected statistics collection (outcomes, runs, processing times)
"""

from core.observability.metrics import (
    SyncStatsCollector,
    TimingMetrics,
)

from core.observability.logging import (
    configure_logging,
    get_logger,
    CorrelationContext,
    with_correlation,
)

__all__ = [
    # Statistics
    "SyncStatsCollector",
    "TimingMetrics",
    # Logging
    "configure_logging",
    "get_logger",
    "CorrelationContext",
    "with_correlation",
]
