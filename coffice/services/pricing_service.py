"""
Reservation pricing engine.

Turns a resource price list and a half-open interval into an integer price.

* Monthly tier: bookings of at least ``pricing_monthly_threshold_days`` on
  a resource with a monthly rate are split by calendar month. Whole months
  cost the monthly rate; partial months are prorated by covered days.
* A booking of at most 24 hours is one segment, even across midnight. It
  costs ``hourly x ceil(hours)``, or the cheaper of that and the daily
  rate once it exceeds ``pricing_daily_threshold_hours``.
* Longer bookings are split at local midnights (business timezone) and
  each day is priced the same way. The duration is rounded up once and
  the whole hours are spread over the days.
* With a weekly rate, each run of seven full days costs at most that rate.

Subscription free hours come off the earliest day segments before the
billable price is computed. All rounding is ROUND_HALF_UP.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
import math
from typing import List, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from coffice.core.config import settings
from coffice.core.exceptions import ValidationException
from coffice.domain.intervals import ensure_aware
from coffice.models.reservation import PricingTier
from coffice.models.resource import Resource
from coffice.services.base import BaseService

HOUR = timedelta(hours=1)
DAY = timedelta(days=1)


def round_half_up(value: Decimal) -> int:
    """Round to the nearest whole unit, halves away from zero."""
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def ceil_hours(duration: timedelta) -> int:
    return math.ceil(duration / HOUR)


def ceil_days(duration: timedelta) -> int:
    return math.ceil(duration / DAY)


@dataclass(frozen=True)
class PriceSegment:
    """One priced slice of a booking (a day, a seven-day block or a month)."""

    start: datetime
    end: datetime
    tier: str
    hours: int
    free_hours: int
    amount: int


@dataclass(frozen=True)
class PriceQuote:
    base_price: int
    billable_price: int
    tier: str
    billable_hours: int
    free_hours_applied: int
    segments: List[PriceSegment] = field(default_factory=list)

    @property
    def subscription_discount(self) -> int:
        return self.base_price - self.billable_price


@dataclass(frozen=True)
class _DaySlice:
    start: datetime
    end: datetime
    hours: int
    full_day: bool


class PricingService(BaseService):
    """Compute base and billable prices for a resource booking."""

    def __init__(
        self,
        db: Session,
        *,
        tz: Optional[ZoneInfo] = None,
        daily_threshold_hours: Optional[int] = None,
        monthly_threshold_days: Optional[int] = None,
    ) -> None:
        super().__init__(db)
        self.tz = tz or settings.tz
        self.daily_threshold_hours = (
            daily_threshold_hours
            if daily_threshold_hours is not None
            else settings.pricing_daily_threshold_hours
        )
        self.monthly_threshold_days = (
            monthly_threshold_days
            if monthly_threshold_days is not None
            else settings.pricing_monthly_threshold_days
        )

    @BaseService.measure_operation("pricing.quote")
    def quote(
        self, resource: Resource, start: datetime, end: datetime, free_hours: int = 0
    ) -> PriceQuote:
        try:
            start = ensure_aware(start, "start")
            end = ensure_aware(end, "end")
        except ValueError as exc:
            raise ValidationException(str(exc), code="NAIVE_DATETIME") from exc
        if start >= end:
            raise ValidationException(
                "Reservation start must be before its end",
                code="INVALID_INTERVAL",
                details={"start": start.isoformat(), "end": end.isoformat()},
            )
        if free_hours < 0:
            raise ValidationException(
                "free_hours must be non-negative",
                code="NEGATIVE_FREE_HOURS",
                details={"free_hours": free_hours},
            )

        if self._uses_monthly_tier(resource, start, end):
            segments = self._price_months(resource, start, end)
            total = sum(segment.amount for segment in segments)
            return PriceQuote(
                base_price=total,
                billable_price=total,
                tier=PricingTier.MONTHLY.value,
                billable_hours=ceil_hours(end - start),
                free_hours_applied=0,
                segments=segments,
            )

        days = self.slice_booking(start, end)
        base_segments = self._price_days(resource, days, [0] * len(days))

        free_per_day = self._allocate_free_hours(days, free_hours)
        if any(free_per_day):
            billable_segments = self._price_days(resource, days, free_per_day)
        else:
            billable_segments = base_segments

        base_price = sum(segment.amount for segment in base_segments)
        billable_price = min(sum(segment.amount for segment in billable_segments), base_price)
        applied = sum(free_per_day)
        total_hours = sum(day.hours for day in days)

        return PriceQuote(
            base_price=base_price,
            billable_price=billable_price,
            tier=self._dominant_tier(base_segments),
            billable_hours=total_hours - applied,
            free_hours_applied=applied,
            segments=billable_segments,
        )

    # Splitting

    def slice_booking(self, start: datetime, end: datetime) -> List[_DaySlice]:
        """One slice for bookings up to a day long, per-day slices beyond that."""
        if end - start > DAY:
            return self.split_days(start, end)
        local = start.astimezone(self.tz)
        at_midnight = (local.hour, local.minute, local.second, local.microsecond) == (0, 0, 0, 0)
        return [
            _DaySlice(
                start=start,
                end=end,
                hours=ceil_hours(end - start),
                full_day=at_midnight and end - start == DAY,
            )
        ]

    def split_days(self, start: datetime, end: datetime) -> List[_DaySlice]:
        """Cut ``[start, end)`` at local midnights.

        Slice hours add up to ``ceil(end - start)``: each boundary is rounded
        up from the booking start, not from the slice start.
        """
        slices: List[_DaySlice] = []
        cursor = start
        while cursor < end:
            local = cursor.astimezone(self.tz)
            day_start = datetime(local.year, local.month, local.day, tzinfo=self.tz)
            next_day = day_start.date() + DAY
            next_midnight = datetime(
                next_day.year, next_day.month, next_day.day, tzinfo=self.tz
            ).astimezone(timezone.utc)
            seg_end = min(end, next_midnight)
            hours = ceil_hours(seg_end - start) - ceil_hours(cursor - start)
            if hours == 0 and slices:
                # tail already paid for by the previous slice's rounding
                slices[-1] = replace(slices[-1], end=seg_end)
            else:
                full_day = local == day_start and seg_end == next_midnight
                slices.append(_DaySlice(start=cursor, end=seg_end, hours=hours, full_day=full_day))
            cursor = seg_end
        return slices

    def split_months(self, start: datetime, end: datetime) -> List[Tuple[datetime, datetime, bool, int]]:
        """Cut ``[start, end)`` at local month starts: (start, end, whole_month, days_in_month)."""
        pieces: List[Tuple[datetime, datetime, bool, int]] = []
        cursor = start
        while cursor < end:
            local = cursor.astimezone(self.tz)
            month_start = datetime(local.year, local.month, 1, tzinfo=self.tz)
            year, month = (local.year + 1, 1) if local.month == 12 else (local.year, local.month + 1)
            next_month = datetime(year, month, 1, tzinfo=self.tz).astimezone(timezone.utc)
            seg_end = min(end, next_month)
            whole = local == month_start and seg_end == next_month
            days_in_month = calendar.monthrange(local.year, local.month)[1]
            pieces.append((cursor, seg_end, whole, days_in_month))
            cursor = seg_end
        return pieces

    # Tier pricing

    def _uses_monthly_tier(self, resource: Resource, start: datetime, end: datetime) -> bool:
        return bool(resource.monthly_rate) and (end - start) >= timedelta(
            days=self.monthly_threshold_days
        )

    def _price_months(self, resource: Resource, start: datetime, end: datetime) -> List[PriceSegment]:
        monthly_rate = int(resource.monthly_rate or 0)
        segments: List[PriceSegment] = []
        for seg_start, seg_end, whole, days_in_month in self.split_months(start, end):
            if whole:
                amount = monthly_rate
            else:
                covered = min(ceil_days(seg_end - seg_start), days_in_month)
                amount = round_half_up(Decimal(monthly_rate) * covered / days_in_month)
            segments.append(
                PriceSegment(
                    start=seg_start,
                    end=seg_end,
                    tier=PricingTier.MONTHLY.value,
                    hours=ceil_hours(seg_end - seg_start),
                    free_hours=0,
                    amount=amount,
                )
            )
        return segments

    def _price_day(self, resource: Resource, hours: int) -> Tuple[int, str]:
        hourly_total = int(resource.hourly_rate) * hours
        daily_rate = resource.daily_rate
        if daily_rate is None or hours <= self.daily_threshold_hours:
            return hourly_total, PricingTier.HOURLY.value
        if int(daily_rate) < hourly_total:
            return int(daily_rate), PricingTier.DAILY.value
        return hourly_total, PricingTier.HOURLY.value

    def _price_days(
        self, resource: Resource, days: Sequence[_DaySlice], free_per_day: Sequence[int]
    ) -> List[PriceSegment]:
        priced: List[PriceSegment] = []
        for day, free in zip(days, free_per_day):
            amount, tier = self._price_day(resource, day.hours - free)
            priced.append(
                PriceSegment(
                    start=day.start,
                    end=day.end,
                    tier=tier,
                    hours=day.hours,
                    free_hours=free,
                    amount=amount,
                )
            )
        if not resource.weekly_rate:
            return priced
        eligible = [day.full_day and free == 0 for day, free in zip(days, free_per_day)]
        return self._apply_weekly_blocks(int(resource.weekly_rate), priced, eligible)

    @staticmethod
    def _apply_weekly_blocks(
        weekly_rate: int, priced: List[PriceSegment], eligible: Sequence[bool]
    ) -> List[PriceSegment]:
        """Collapse each run of seven eligible full days into one block."""
        result: List[PriceSegment] = []
        run: List[PriceSegment] = []

        def flush_run() -> None:
            while len(run) >= 7:
                block, rest = run[:7], run[7:]
                block_total = sum(segment.amount for segment in block)
                if weekly_rate < block_total:
                    result.append(
                        PriceSegment(
                            start=block[0].start,
                            end=block[-1].end,
                            tier=PricingTier.WEEKLY.value,
                            hours=sum(segment.hours for segment in block),
                            free_hours=0,
                            amount=weekly_rate,
                        )
                    )
                else:
                    result.extend(block)
                run[:] = rest
            result.extend(run)
            run.clear()

        for segment, ok in zip(priced, eligible):
            if ok:
                run.append(segment)
            else:
                flush_run()
                result.append(segment)
        flush_run()
        return result

    @staticmethod
    def _allocate_free_hours(days: Sequence[_DaySlice], free_hours: int) -> List[int]:
        remaining = free_hours
        allocation: List[int] = []
        for day in days:
            used = min(remaining, day.hours)
            allocation.append(used)
            remaining -= used
        return allocation

    @staticmethod
    def _dominant_tier(segments: Sequence[PriceSegment]) -> str:
        tiers = {segment.tier for segment in segments}
        for tier in (PricingTier.WEEKLY.value, PricingTier.DAILY.value):
            if tier in tiers:
                return tier
        return PricingTier.HOURLY.value
