"""
Activity statistics provider.

The ranking engine only sees the ActivityStatsProvider interface and the
typed UserActivityStats rows it returns. RecordStatsProvider is the
implementation backed by the Record table.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime, tzinfo
from typing import Dict, Iterable, List, Optional

from django.db.models import Count, Sum

from habitly.context import CallContext, check
from habitly.windows import day_window
from .models import Record

logger = logging.getLogger('habitly')


@dataclass(frozen=True)
class UserActivityStats:
    user_id: int
    event_count: int
    total_duration: int


@dataclass
class DailyActivityStats:
    user_id: int
    date: date
    event_count: int = 0
    total_duration: int = 0
    record_times: List[datetime] = field(default_factory=list)


class ActivityStatsProvider(ABC):
    """
    Source of per-user event counts and durations over a time window.
    Window bounds are inclusive on both ends.
    """

    @abstractmethod
    def top_users(self, start: datetime, end: datetime, limit: Optional[int],
                  ctx: Optional[CallContext] = None) -> List[UserActivityStats]:
        """Users with events in the window, most events first, at most ``limit`` rows."""

    @abstractmethod
    def stats_for_users(self, user_ids: Iterable[int], start: datetime, end: datetime,
                        ctx: Optional[CallContext] = None) -> List[UserActivityStats]:
        """Stats for those of ``user_ids`` with at least one event in the window."""

    @abstractmethod
    def daily_stats(self, user_ids: Iterable[int], day: date, tz: tzinfo,
                    ctx: Optional[CallContext] = None) -> Dict[int, DailyActivityStats]:
        """Per-user stats for one calendar day in ``tz``; every requested user is present."""


class RecordStatsProvider(ActivityStatsProvider):
    """
    ActivityStatsProvider that aggregates Record rows with the ORM.
    """

    def __init__(self, using=None):
        self.using = using

    def _in_window(self, start, end):
        return Record.objects.using(self.using).filter(
            record_time__gte=start,
            record_time__lte=end,
        )

    @staticmethod
    def _grouped(queryset):
        return queryset.values('user_id').annotate(
            event_count=Count('id'),
            total_duration=Sum('duration'),
        )

    @staticmethod
    def _to_stats(row):
        return UserActivityStats(
            user_id=row['user_id'],
            event_count=row['event_count'],
            total_duration=row['total_duration'] or 0,
        )

    def top_users(self, start, end, limit, ctx=None):
        check(ctx)
        if limit is not None and limit <= 0:
            return []
        rows = self._grouped(self._in_window(start, end)).order_by('-event_count')
        if limit is not None:
            rows = rows[:limit]
        stats = [self._to_stats(row) for row in rows]
        check(ctx)
        logger.debug(f"Loaded top {len(stats)} users for {start.isoformat()} .. {end.isoformat()}")
        return stats

    def stats_for_users(self, user_ids, start, end, ctx=None):
        check(ctx)
        user_ids = list(user_ids)
        if not user_ids:
            return []
        rows = self._grouped(
            self._in_window(start, end).filter(user_id__in=user_ids)
        ).order_by()
        stats = [self._to_stats(row) for row in rows]
        check(ctx)
        return stats

    def daily_stats(self, user_ids, day, tz, ctx=None):
        check(ctx)
        user_ids = list(dict.fromkeys(user_ids))
        window = day_window(day, day, tz)
        result = {
            user_id: DailyActivityStats(user_id=user_id, date=window.start.date())
            for user_id in user_ids
        }
        if not user_ids:
            return result

        records = (
            self._in_window(window.start, window.end)
            .filter(user_id__in=user_ids)
            .order_by('record_time')
            .values_list('user_id', 'record_time', 'duration')
        )
        for user_id, record_time, duration in records:
            stats = result[user_id]
            stats.event_count += 1
            stats.total_duration += duration
            stats.record_times.append(record_time)
        check(ctx)
        return result
