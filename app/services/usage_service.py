"""
Monthly scan counter against the upstream free tier.

The counter is keyed by calendar month (YYYY-MM, UTC) and resets on the
first read after a month rollover. Every scan also appends a ScanRecord to
a capped log used for the dashboard breakdowns.
"""

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

from pydantic import ValidationError

from app.config import settings
from app.schemas.usage import ConfidenceBucket, DailyUsage, ScanRecord, UsageReport, UsageStats
from app.services.state_store import StateStore

logger = logging.getLogger(__name__)

USAGE_KEY = "usage"

CONFIDENCE_RANGES = (
    (0.0, 0.2, "0-20%"),
    (0.2, 0.4, "20-40%"),
    (0.4, 0.6, "40-60%"),
    (0.6, 0.8, "60-80%"),
    (0.8, 1.0, "80-100%"),
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UsageService:
    def __init__(self, store: StateStore, now: Callable[[], datetime] = _utcnow):
        self.store = store
        self.now = now
        self.free_tier_limit = settings.usage_free_tier_limit
        self._lock = threading.Lock()

    def _initial(self) -> UsageStats:
        now = self.now()
        return UsageStats(
            current_month=now.strftime("%Y-%m"),
            last_reset=now.isoformat(),
            free_tier_limit=self.free_tier_limit,
        )

    def _load(self) -> UsageStats:
        raw = self.store.get(USAGE_KEY)
        if not raw:
            stats = self._initial()
            self.store.set(USAGE_KEY, stats.model_dump())
            return stats
        try:
            return UsageStats.model_validate(raw)
        except ValidationError as e:
            logger.error(f"[USAGE] Stored stats invalid, starting over: {e.error_count()} errors")
            return self._initial()

    def get_stats(self) -> UsageStats:
        """Current stats, rolling the monthly counter over when the month changed."""
        with self._lock:
            return self._rolled_over(self._load())

    def _rolled_over(self, stats: UsageStats) -> UsageStats:
        now = self.now()
        month = now.strftime("%Y-%m")
        if stats.current_month != month:
            logger.info(f"[USAGE] Month rollover {stats.current_month} -> {month}; monthly counter reset")
            stats = stats.model_copy(update={
                "monthly_scans": 0,
                "current_month": month,
                "last_reset": now.isoformat(),
            })
            self.store.set(USAGE_KEY, stats.model_dump())
        return stats

    def increment(self, file_type: str, file_name: str, confidence: float, prediction: str) -> UsageStats:
        with self._lock:
            stats = self._rolled_over(self._load())
            record = ScanRecord(
                date=self.now().isoformat(),
                file_type=file_type,
                file_name=file_name,
                confidence=confidence,
                prediction=prediction,
            )
            stats = stats.model_copy(update={
                "total_scans": stats.total_scans + 1,
                "monthly_scans": stats.monthly_scans + 1,
                "scan_history": ([record] + stats.scan_history)[:settings.usage_history_limit],
            })
            self.store.set(USAGE_KEY, stats.model_dump())

        logger.info(f"[USAGE] Scan recorded: {stats.monthly_scans}/{self.free_tier_limit} this month")
        return stats

    # ------------------------------------------------------------------ #
    # Derived views                                                       #
    # ------------------------------------------------------------------ #

    def remaining_scans(self, stats: Optional[UsageStats] = None) -> int:
        stats = stats or self.get_stats()
        return max(0, self.free_tier_limit - stats.monthly_scans)

    def usage_percentage(self, stats: Optional[UsageStats] = None) -> float:
        stats = stats or self.get_stats()
        return min(100.0, stats.monthly_scans / self.free_tier_limit * 100)

    def can_make_scan(self, stats: Optional[UsageStats] = None) -> bool:
        return self.remaining_scans(stats) > 0

    def monthly_usage_by_file_type(self, stats: Optional[UsageStats] = None) -> Dict[str, int]:
        stats = stats or self.get_stats()
        usage: Dict[str, int] = {}
        for scan in stats.scan_history:
            if scan.date[:7] == stats.current_month:
                kind = scan.file_type.split("/")[0]
                usage[kind] = usage.get(kind, 0) + 1
        return usage

    def confidence_distribution(self, stats: Optional[UsageStats] = None) -> List[ConfidenceBucket]:
        stats = stats or self.get_stats()
        buckets = []
        for low, high, label in CONFIDENCE_RANGES:
            # the top bucket is closed so a score of exactly 1.0 is counted
            count = sum(
                1 for scan in stats.scan_history
                if low <= scan.confidence < high or (high == 1.0 and scan.confidence == 1.0)
            )
            buckets.append(ConfidenceBucket(range=label, count=count))
        return buckets

    def prediction_stats(self, stats: Optional[UsageStats] = None) -> Dict[str, int]:
        stats = stats or self.get_stats()
        predictions: Dict[str, int] = {}
        for scan in stats.scan_history:
            predictions[scan.prediction] = predictions.get(scan.prediction, 0) + 1
        return predictions

    def weekly_usage(self, stats: Optional[UsageStats] = None) -> List[DailyUsage]:
        """Scans per day for the last 7 days, oldest first, labelled MM-DD."""
        stats = stats or self.get_stats()
        today = self.now().date()
        days = [(today - timedelta(days=offset)).isoformat() for offset in range(6, -1, -1)]
        return [
            DailyUsage(day=day[5:], count=sum(1 for scan in stats.scan_history if scan.date[:10] == day))
            for day in days
        ]

    def report(self) -> UsageReport:
        stats = self.get_stats()
        return UsageReport(
            stats=stats,
            remaining_scans=self.remaining_scans(stats),
            usage_percentage=self.usage_percentage(stats),
            can_make_scan=self.can_make_scan(stats),
            monthly_by_file_type=self.monthly_usage_by_file_type(stats),
            confidence_distribution=self.confidence_distribution(stats),
            prediction_stats=self.prediction_stats(stats),
            weekly_usage=self.weekly_usage(stats),
        )
