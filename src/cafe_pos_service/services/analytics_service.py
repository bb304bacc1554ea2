"""Analytics service for sales aggregations over completed transactions."""

import logging
from collections.abc import Callable
from datetime import UTC, datetime, time, timedelta, tzinfo
from decimal import Decimal

from cafe_pos_service.models.analytics_models import DailySales, MenuItemRanking, WeekdaySales
from cafe_pos_service.repositories.menu_repositories import MenuItemRepository
from cafe_pos_service.repositories.transaction_repositories import TransactionRepository

logger = logging.getLogger(__name__)

WEEKDAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday"]
TRAILING_DAYS = 30


def _utc_now() -> datetime:
    return datetime.now(UTC)


class AnalyticsService:
    """Read-only sales reports.

    Transactions are bucketed by their completion time converted to the
    café's local timezone, so "Monday" means the café's Monday.
    """

    def __init__(
        self,
        transaction_repository: TransactionRepository,
        menu_item_repository: MenuItemRepository,
        timezone: tzinfo = UTC,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        """Initialize the AnalyticsService.

        Args:
            transaction_repository: Source of completed transactions
            menu_item_repository: Lookup for menu item names in rankings
            timezone: Café local timezone used for day boundaries
            clock: Returns the current time
        """
        self.transaction_repository = transaction_repository
        self.menu_item_repository = menu_item_repository
        self.timezone = timezone
        self.clock = clock

    async def get_weekly_sales(self) -> list[WeekdaySales]:
        """Sales totals for Monday through Friday of the current week.

        Returns:
            Five entries in weekday order, zero-filled
        """
        today = self.clock().astimezone(self.timezone).date()
        monday = today - timedelta(days=today.weekday())
        start = datetime.combine(monday, time.min, tzinfo=self.timezone)
        end = datetime.combine(monday + timedelta(days=4), time.max, tzinfo=self.timezone)

        totals = {day: Decimal("0") for day in WEEKDAYS}
        for transaction in self.transaction_repository.list_completed(
            start=start.astimezone(UTC), end=end.astimezone(UTC)
        ):
            if transaction.completed_at is None:
                continue
            weekday = transaction.completed_at.astimezone(self.timezone).weekday()
            if weekday < len(WEEKDAYS):
                totals[WEEKDAYS[weekday]] += transaction.total

        return [WeekdaySales(day=day, total=total) for day, total in totals.items()]

    async def get_monthly_sales(self) -> list[DailySales]:
        """Sales totals per calendar date over the trailing 30 days.

        Returns:
            One entry per date that had sales, oldest first
        """
        now = self.clock()
        start = now - timedelta(days=TRAILING_DAYS)

        totals: dict[str, Decimal] = {}
        for transaction in self.transaction_repository.list_completed(
            start=start.astimezone(UTC), end=now.astimezone(UTC)
        ):
            if transaction.completed_at is None:
                continue
            date_key = transaction.completed_at.astimezone(self.timezone).date().isoformat()
            totals[date_key] = totals.get(date_key, Decimal("0")) + transaction.total

        return [DailySales(date=date, total=totals[date]) for date in sorted(totals)]

    async def get_menu_item_ranking(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[MenuItemRanking]:
        """Units sold and revenue per menu item, most units first.

        Revenue is the sum of discounted line totals. Lines whose menu item
        no longer exists are left out.

        Args:
            start: Optional inclusive lower bound on completion time
            end: Optional inclusive upper bound on completion time
        """
        stats: dict[str, MenuItemRanking] = {}
        missing: set[str] = set()

        for transaction in self.transaction_repository.list_completed(start=start, end=end):
            for line in transaction.items:
                if line.menu_item_id in missing:
                    continue

                if line.menu_item_id not in stats:
                    menu_item = self.menu_item_repository.get_item(line.menu_item_id)
                    if menu_item is None:
                        missing.add(line.menu_item_id)
                        continue
                    stats[line.menu_item_id] = MenuItemRanking(
                        menu_item_id=menu_item.id, name=menu_item.name
                    )

                entry = stats[line.menu_item_id]
                entry.quantity += line.quantity
                entry.revenue += line.item_total

        if missing:
            logger.debug(f"Ranking skipped {len(missing)} deleted menu items")

        return sorted(stats.values(), key=lambda r: r.quantity, reverse=True)
