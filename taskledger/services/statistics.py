"""Weekly statistics derived from the points ledger."""

from datetime import date, timedelta

from taskledger.core.clock import Clock
from taskledger.core.logging import span
from taskledger.domain.history import HistoryEntry, HistoryStatus
from taskledger.models.service_models import WeeklyStatistics
from taskledger.services.ledger import PointsLedger, compute_balance


def get_week_bounds(day: date) -> tuple[date, date]:
    """Return the Monday and Sunday of the week containing ``day``."""
    monday = day - timedelta(days=day.weekday())
    return monday, monday + timedelta(days=6)


def summarize_week(
    entries: list[HistoryEntry],
    *,
    user_id: str,
    week_of: date,
    warning_threshold: int,
) -> WeeklyStatistics:
    """Build weekly statistics from a user's ledger entries (pure)."""
    start, end = get_week_bounds(week_of)
    in_week = [
        entry
        for entry in entries
        if entry.assigned_to == user_id and start.isoformat() <= entry.date <= end.isoformat()
    ]

    verified = [e for e in in_week if e.status == HistoryStatus.VERIFIED and e.redemption_id is None]
    missed = [e for e in in_week if e.status == HistoryStatus.MISSED]

    return WeeklyStatistics(
        user_id=user_id,
        week_start=start.isoformat(),
        week_end=end.isoformat(),
        verified_count=len(verified),
        missed_count=len(missed),
        missed_responsibility_count=sum(1 for e in missed if e.is_responsibility),
        points_earned=sum(e.points for e in verified),
        balance=compute_balance(entries, user_id),
        warning=len(missed) > warning_threshold,
        warning_threshold=warning_threshold,
    )


class StatisticsService:
    """Reads the ledger and summarizes it per week."""

    def __init__(self, *, ledger: PointsLedger, clock: Clock, warning_threshold: int) -> None:
        self._ledger = ledger
        self._clock = clock
        self._warning_threshold = warning_threshold

    async def weekly_statistics(self, user_id: str, *, week_of: date | None = None) -> WeeklyStatistics:
        with span("statistics.weekly"):
            entries = await self._ledger.entries_for(user_id)
            return summarize_week(
                entries,
                user_id=user_id,
                week_of=week_of or self._clock.today_date(),
                warning_threshold=self._warning_threshold,
            )
