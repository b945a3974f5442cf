from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from django.test import SimpleTestCase, TestCase
from users.models import User
from activity.models import Record
from activity.stats import ActivityStatsProvider, UserActivityStats
from friends.models import RelationshipStatus
from friends.services import RelationshipService
from habitly.config import HabitlyConfig
from habitly.context import CallContext
from habitly.exceptions import OperationCancelled, ValidationFailure
from habitly.windows import day_window
from .engine import RankingEngine, RankingEntry
from .serializers import RankingPageSerializer

SHANGHAI = ZoneInfo('Asia/Shanghai')
CONFIG = HabitlyConfig()


class InMemoryStatsProvider(ActivityStatsProvider):
    """
    Stats provider over a fixed {user_id: (event_count, total_duration)} map.
    """

    def __init__(self, stats, cancel_with=None):
        self.stats = stats
        self.cancel_with = cancel_with
        self.calls = []

    def _rows(self, user_ids):
        return [
            UserActivityStats(user_id, count, duration)
            for user_id, (count, duration) in self.stats.items()
            if user_id in user_ids and count > 0
        ]

    def top_users(self, start, end, limit, ctx=None):
        self.calls.append(('top_users', limit))
        rows = sorted(self._rows(set(self.stats)), key=lambda row: row.event_count, reverse=True)
        if self.cancel_with is not None:
            self.cancel_with.cancel()
        return rows[:limit]

    def stats_for_users(self, user_ids, start, end, ctx=None):
        user_ids = list(user_ids)
        self.calls.append(('stats_for_users', user_ids))
        if self.cancel_with is not None:
            self.cancel_with.cancel()
        return self._rows(set(user_ids))

    def daily_stats(self, user_ids, day, tz, ctx=None):
        return {}


class FriendRankingTests(SimpleTestCase):
    def setUp(self):
        self.window = day_window(date(2024, 3, 1), date(2024, 3, 31), SHANGHAI)

    def rank(self, stats, cohort, page=None, page_size=None, ctx=None):
        engine = RankingEngine(InMemoryStatsProvider(stats), CONFIG)
        return engine.friend_ranking(cohort, self.window.start, self.window.end, page, page_size, ctx=ctx)

    def test_cohort_ranked_by_count(self):
        """A user with a single friend outranks the user when more active"""
        result = self.rank({10: (5, 50), 20: (2, 20), 30: (7, 70)}, [10, 20, 30])

        self.assertEqual(result.total, 3)
        self.assertEqual(
            [(entry.rank, entry.user_id) for entry in result.entries],
            [(1, 30), (2, 10), (3, 20)],
        )
        self.assertEqual(result.entries[0], RankingEntry(rank=1, user_id=30, event_count=7, total_duration=70))

    def test_inactive_friend_ranked_last(self):
        result = self.rank({10: (3, 90), 30: (1, 30)}, [10, 20, 30], page=1, page_size=10)

        self.assertEqual(result.total, 3)
        self.assertEqual(result.entries, [
            RankingEntry(rank=1, user_id=10, event_count=3, total_duration=90),
            RankingEntry(rank=2, user_id=30, event_count=1, total_duration=30),
            RankingEntry(rank=3, user_id=20, event_count=0, total_duration=0),
        ])

    def test_inactive_members_included_with_zero(self):
        result = self.rank({2: (3, 30), 4: (1, 5)}, [1, 2, 3, 4, 5])

        self.assertEqual(result.total, 5)
        self.assertEqual([entry.user_id for entry in result.entries], [2, 4, 1, 3, 5])
        self.assertEqual([entry.rank for entry in result.entries], [1, 2, 3, 4, 5])
        self.assertEqual(result.entries[2].event_count, 0)
        self.assertEqual(result.entries[2].total_duration, 0)

    def test_ties_keep_cohort_order(self):
        result = self.rank({7: (2, 1), 3: (2, 9), 5: (2, 4)}, [7, 3, 5])
        self.assertEqual([entry.user_id for entry in result.entries], [7, 3, 5])

        result = self.rank({7: (2, 1), 3: (2, 9), 5: (2, 4)}, [5, 3, 7])
        self.assertEqual([entry.user_id for entry in result.entries], [5, 3, 7])

    def test_ranks_do_not_depend_on_page_size(self):
        stats = {user_id: (user_id % 4, user_id) for user_id in range(1, 12)}
        cohort = list(range(1, 12))
        full = {entry.user_id: entry.rank for entry in self.rank(stats, cohort, 1, 100).entries}

        for page_size in (1, 3, 4, 10):
            seen = {}
            page = 1
            while True:
                result = self.rank(stats, cohort, page, page_size)
                self.assertEqual(result.total, 11)
                if not result.entries:
                    break
                seen.update({entry.user_id: entry.rank for entry in result.entries})
                page += 1
            self.assertEqual(seen, full)

    def test_page_past_end_is_empty(self):
        result = self.rank({1: (1, 1)}, [1, 2, 3], page=5, page_size=2)
        self.assertEqual(result.entries, [])
        self.assertEqual(result.total, 3)
        self.assertEqual((result.page, result.page_size), (5, 2))

    def test_second_page_keeps_global_ranks(self):
        result = self.rank({10: (5, 50), 20: (2, 20), 30: (7, 70)}, [10, 20, 30], page=2, page_size=2)
        self.assertEqual([(entry.rank, entry.user_id) for entry in result.entries], [(3, 20)])

    def test_pagination_coerced(self):
        result = self.rank({}, [1], page=0, page_size=0)
        self.assertEqual((result.page, result.page_size), (1, CONFIG.default_page_size))

    def test_duplicate_cohort_members_counted_once(self):
        result = self.rank({1: (1, 1)}, [1, 2, 1, 2])
        self.assertEqual(result.total, 2)

    def test_empty_cohort(self):
        result = self.rank({1: (1, 1)}, [])
        self.assertEqual((result.entries, result.total), ([], 0))

    def test_window_start_after_end(self):
        engine = RankingEngine(InMemoryStatsProvider({}), CONFIG)
        with self.assertRaises(ValidationFailure):
            engine.friend_ranking([1], self.window.end, self.window.start)

    def test_cancelled_during_stats_read(self):
        ctx = CallContext()
        engine = RankingEngine(InMemoryStatsProvider({1: (1, 1)}, cancel_with=ctx), CONFIG)
        with self.assertRaises(OperationCancelled):
            engine.friend_ranking([1, 2], self.window.start, self.window.end, ctx=ctx)


class GlobalRankingTests(SimpleTestCase):
    def setUp(self):
        self.window = day_window(date(2024, 3, 1), date(2024, 3, 31), SHANGHAI)

    def test_ranks_follow_provider_order(self):
        provider = InMemoryStatsProvider({1: (3, 30), 2: (9, 10), 3: (5, 50)})
        entries = RankingEngine(provider, CONFIG).global_ranking(self.window.start, self.window.end)

        self.assertEqual([(entry.rank, entry.user_id) for entry in entries], [(1, 2), (2, 3), (3, 1)])
        self.assertEqual(provider.calls, [('top_users', CONFIG.global_ranking_limit)])

    def test_limit(self):
        stats = {user_id: (user_id, 0) for user_id in range(1, 16)}
        engine = RankingEngine(InMemoryStatsProvider(stats), CONFIG)

        entries = engine.global_ranking(self.window.start, self.window.end)
        self.assertEqual(len(entries), 10)
        self.assertEqual(entries[0].user_id, 15)

        entries = engine.global_ranking(self.window.start, self.window.end, limit=3)
        self.assertEqual([entry.user_id for entry in entries], [15, 14, 13])

    def test_users_without_events_excluded(self):
        provider = InMemoryStatsProvider({1: (0, 0), 2: (1, 5)})
        entries = RankingEngine(provider, CONFIG).global_ranking(self.window.start, self.window.end)
        self.assertEqual([entry.user_id for entry in entries], [2])

    def test_cancelled_returns_no_partial_result(self):
        ctx = CallContext()
        engine = RankingEngine(InMemoryStatsProvider({1: (1, 1)}, cancel_with=ctx), CONFIG)
        with self.assertRaises(OperationCancelled):
            engine.global_ranking(self.window.start, self.window.end, ctx=ctx)


class RankingIntegrationTests(TestCase):
    def setUp(self):
        """Set up test data"""
        self.users = [
            User.objects.create_user(
                username=f'ranker{i}',
                email=f'ranker{i}_ranking@example.com',
                password='password123',
                nickname=f'Ranker {i}',
            )
            for i in range(4)
        ]
        self.relationships = RelationshipService()
        self.engine = RankingEngine()
        self.window = day_window(date(2024, 3, 1), date(2024, 3, 31), SHANGHAI)

        me, friend, other_friend, stranger = self.users
        for user in (friend, other_friend):
            request = self.relationships.request_friendship(me.id, user.id)
            self.relationships.update_status_verified(request.id, user.id, me.id, RelationshipStatus.CONFIRMED)
        self.relationships.request_friendship(stranger.id, me.id)

        moment = datetime(2024, 3, 10, 9, 0, tzinfo=SHANGHAI)
        for count, user in ((1, me), (3, other_friend), (5, stranger)):
            for i in range(count):
                Record.objects.create(user=user, record_time=moment + timedelta(minutes=i), duration=10)

    def test_friend_ranking_over_cohort(self):
        me, friend, other_friend, stranger = self.users
        cohort = self.relationships.ranking_cohort(me.id)
        result = self.engine.friend_ranking(cohort, self.window.start, self.window.end)

        self.assertEqual(result.total, 3)
        self.assertEqual(
            [(entry.rank, entry.user_id, entry.event_count) for entry in result.entries],
            [(1, other_friend.id, 3), (2, me.id, 1), (3, friend.id, 0)],
        )

    def test_global_ranking(self):
        me, friend, other_friend, stranger = self.users
        entries = self.engine.global_ranking(self.window.start, self.window.end)
        self.assertEqual(
            [(entry.rank, entry.user_id, entry.total_duration) for entry in entries],
            [(1, stranger.id, 50), (2, other_friend.id, 30), (3, me.id, 10)],
        )

    def test_serialized_page_with_profiles(self):
        me = self.users[0]
        result = self.engine.friend_ranking(
            self.relationships.ranking_cohort(me.id), self.window.start, self.window.end
        )
        profiles = User.objects.profile_map(entry.user_id for entry in result.entries)
        data = RankingPageSerializer(result, context={'profiles': profiles}).data

        self.assertEqual(data['total'], 3)
        self.assertEqual(data['page'], 1)
        self.assertEqual(len(data['rankings']), 3)
        self.assertEqual(data['rankings'][1]['user_id'], me.id)
        self.assertEqual(data['rankings'][1]['nickname'], 'Ranker 0')
        self.assertEqual(data['rankings'][1]['rank'], 2)
