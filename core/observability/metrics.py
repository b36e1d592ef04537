"""
Statistics Collection for Invoice Synchronization

Collects:
- Per-invoice outcomes (created, skipped, error)
- Skip reasons (policy, already_linked) and error kinds
- Bulk runs (sync_many / sync_all_existing) started and completed
- Processing times per stage (average, p95)

The collector is an ordinary object handed to the Synchronizer by its
owner (the FastAPI app, a script, a test). There is no process-wide
instance, so two collectors never share counts.
"""

import statistics
from collections import defaultdict, deque
from dataclasses import dataclass, field
from datetime import datetime
from threading import Lock
from typing import Any, Deque, Dict, Optional


# =============================================================================
# Metric Data Classes
# =============================================================================

@dataclass
class OutcomeMetrics:
    """Per-invoice outcome counters."""
    created: int = 0
    skipped: int = 0
    errors: int = 0

    skip_reasons: Dict[str, int] = field(default_factory=lambda: defaultdict(int))
    error_kinds: Dict[str, int] = field(default_factory=lambda: defaultdict(int))


@dataclass
class RunMetrics:
    """Bulk run counters."""
    started: int = 0
    completed: int = 0
    by_operation: Dict[str, Dict[str, int]] = field(
        default_factory=lambda: defaultdict(lambda: {"started": 0, "completed": 0})
    )
    last_completed_at: Optional[datetime] = None


@dataclass
class TimingMetrics:
    """Rolling processing-time samples, overall and per stage."""
    max_samples: int = 1000
    samples: Deque[float] = field(default_factory=deque)
    by_stage: Dict[str, Deque[float]] = field(default_factory=dict)

    def __post_init__(self):
        self.samples = deque(self.samples, maxlen=self.max_samples)

    def _window(self, stage: Optional[str]) -> Deque[float]:
        if stage is None:
            return self.samples
        return self.by_stage.get(stage, deque())

    def add_sample(self, duration_ms: float, stage: Optional[str] = None):
        self.samples.append(duration_ms)
        if stage:
            self.by_stage.setdefault(stage, deque(maxlen=self.max_samples)).append(duration_ms)

    def count(self, stage: Optional[str] = None) -> int:
        return len(self._window(stage))

    def get_average(self, stage: Optional[str] = None) -> float:
        window = self._window(stage)
        return statistics.mean(window) if window else 0.0

    def get_p95(self, stage: Optional[str] = None) -> float:
        ordered = sorted(self._window(stage))
        if not ordered:
            return 0.0
        return ordered[min(int(len(ordered) * 0.95), len(ordered) - 1)]

    def describe(self, stage: Optional[str] = None) -> Dict[str, float]:
        return {"average_ms": self.get_average(stage), "p95_ms": self.get_p95(stage)}


# =============================================================================
# Collector
# =============================================================================

class SyncStatsCollector:
    """
    Thread-safe statistics collector for synchronization runs.

    Usage:
        stats = SyncStatsCollector()
        synchronizer = Synchronizer(repository, config, stats=stats)
        ...
        stats.get_summary()
    """

    def __init__(self):
        self._lock = Lock()
        self._init_state()

    def _init_state(self):
        self.outcomes = OutcomeMetrics()
        self.runs = RunMetrics()
        self.timings = TimingMetrics()

    def reset(self):
        """Drop every counter and sample."""
        with self._lock:
            self._init_state()

    # =========================================================================
    # Outcomes
    # =========================================================================

    def record_created(self):
        with self._lock:
            self.outcomes.created += 1

    def record_skipped(self, reason: str):
        with self._lock:
            self.outcomes.skipped += 1
            self.outcomes.skip_reasons[reason] += 1

    def record_error(self, kind: str):
        with self._lock:
            self.outcomes.errors += 1
            self.outcomes.error_kinds[kind] += 1

    # =========================================================================
    # Runs
    # =========================================================================

    def record_run_started(self, operation: str):
        with self._lock:
            self.runs.started += 1
            self.runs.by_operation[operation]["started"] += 1

    def record_run_completed(self, operation: str, duration_ms: float = None):
        with self._lock:
            self.runs.completed += 1
            self.runs.by_operation[operation]["completed"] += 1
            self.runs.last_completed_at = datetime.utcnow()
            if duration_ms is not None:
                self.timings.add_sample(duration_ms, f"run.{operation}")

    # =========================================================================
    # Timing
    # =========================================================================

    def record_processing_time(self, stage: str, duration_ms: float):
        """Record a processing time sample."""
        with self._lock:
            self.timings.add_sample(duration_ms, stage)

    def get_timing_stats(self, stage: str = None) -> Dict[str, float]:
        """Get timing statistics for a stage."""
        with self._lock:
            return {**self.timings.describe(stage), "sample_count": self.timings.count(stage)}

    # =========================================================================
    # Summary
    # =========================================================================

    def get_summary(self) -> Dict[str, Any]:
        """Get a summary of all statistics."""
        with self._lock:
            return {
                "outcomes": {
                    "created": self.outcomes.created,
                    "skipped": self.outcomes.skipped,
                    "errors": self.outcomes.errors,
                    "skip_reasons": dict(self.outcomes.skip_reasons),
                    "error_kinds": dict(self.outcomes.error_kinds),
                },
                "runs": {
                    "started": self.runs.started,
                    "completed": self.runs.completed,
                    "by_operation": {k: dict(v) for k, v in self.runs.by_operation.items()},
                    "last_completed_at": (
                        self.runs.last_completed_at.isoformat()
                        if self.runs.last_completed_at else None
                    ),
                },
                "timings": {
                    "overall": self.timings.describe(),
                    "by_stage": {stage: self.timings.describe(stage) for stage in self.timings.by_stage},
                },
            }
