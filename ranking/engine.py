"""
Leaderboards over a time window.

Global ranking lists the most active users overall. Friend ranking lists a
whole cohort (a user plus their confirmed friends), including members with
no activity, and paginates it without changing anyone's rank. Results are
computed on every call and never cached.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from operator import attrgetter
from typing import Iterable, List, Optional

from activity.stats import ActivityStatsProvider, RecordStatsProvider
from habitly.config import HabitlyConfig
from habitly.context import CallContext, check
from habitly.exceptions import ValidationFailure
from habitly.validators import coerce_page_size, coerce_pagination, page_offset

logger = logging.getLogger('habitly')


@dataclass
class RankingEntry:
    rank: int
    user_id: int
    event_count: int
    total_duration: int


@dataclass
class RankingPage:
    entries: List[RankingEntry]
    total: int
    page: int
    page_size: int


class RankingEngine:
    """
    Builds ranked, paginated leaderboards from an ActivityStatsProvider.

    Only identifiers and statistics are returned; display names and avatars
    are joined by the caller.
    """

    def __init__(self, stats_provider: Optional[ActivityStatsProvider] = None,
                 config: Optional[HabitlyConfig] = None):
        self.stats_provider = stats_provider or RecordStatsProvider()
        self.config = config or HabitlyConfig.from_settings()

    @staticmethod
    def _validate_window(window_start: datetime, window_end: datetime) -> None:
        if window_start > window_end:
            raise ValidationFailure("Window start must not be after window end.")

    def global_ranking(self, window_start: datetime, window_end: datetime,
                       limit: Optional[int] = None,
                       ctx: Optional[CallContext] = None) -> List[RankingEntry]:
        """
        Rank the most active users in the window, at most ``limit`` of them.

        Ranks follow the provider's order; users without events never appear.
        """
        self._validate_window(window_start, window_end)
        limit = coerce_page_size(limit, self.config.global_ranking_limit)
        check(ctx)
        rows = self.stats_provider.top_users(window_start, window_end, limit, ctx=ctx)
        check(ctx)

        active = [row for row in rows if row.event_count > 0][:limit]
        entries = [
            RankingEntry(
                rank=position,
                user_id=row.user_id,
                event_count=row.event_count,
                total_duration=row.total_duration,
            )
            for position, row in enumerate(active, start=1)
        ]
        logger.debug(f"Global ranking computed with {len(entries)} entries (limit {limit})")
        return entries

    def friend_ranking(self, cohort_user_ids: Iterable[int], window_start: datetime,
                       window_end: datetime, page=None, page_size=None,
                       ctx: Optional[CallContext] = None) -> RankingPage:
        """
        Rank every member of the cohort and return one page of the result.

        Members without events get zero counts. Ties keep the cohort order.
        Ranks are assigned over the full list before slicing, and ``total``
        is the cohort size.
        """
        self._validate_window(window_start, window_end)
        page, page_size = coerce_pagination(page, page_size, self.config)
        cohort = list(dict.fromkeys(cohort_user_ids))

        check(ctx)
        rows = self.stats_provider.stats_for_users(cohort, window_start, window_end, ctx=ctx)
        check(ctx)
        stats_by_user = {row.user_id: row for row in rows}

        entries = []
        for user_id in cohort:
            row = stats_by_user.get(user_id)
            entries.append(RankingEntry(
                rank=0,
                user_id=user_id,
                event_count=row.event_count if row else 0,
                total_duration=row.total_duration if row else 0,
            ))

        # list.sort is stable, including with reverse=True
        entries.sort(key=attrgetter('event_count'), reverse=True)
        for position, entry in enumerate(entries, start=1):
            entry.rank = position

        total = len(entries)
        offset = page_offset(page, page_size)
        page_entries = entries[offset:offset + page_size] if offset < total else []
        logger.debug(
            f"Friend ranking computed for {total} users, page {page} size {page_size}"
        )
        return RankingPage(entries=page_entries, total=total, page=page, page_size=page_size)
