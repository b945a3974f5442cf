from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from django.test import TestCase
from users.models import User
from habitly.context import CallContext
from habitly.exceptions import OperationCancelled
from .models import Record
from .stats import RecordStatsProvider, UserActivityStats

SHANGHAI = ZoneInfo('Asia/Shanghai')


def make_user(username):
    return User.objects.create_user(
        username=username,
        email=f'{username}_activity@example.com',
        password='password123',
    )


class RecordStatsProviderTests(TestCase):
    def setUp(self):
        """Set up test data"""
        self.provider = RecordStatsProvider()
        self.user1 = make_user('testuser1')
        self.user2 = make_user('testuser2')
        self.user3 = make_user('testuser3')

        self.start = datetime(2024, 3, 1, tzinfo=SHANGHAI)
        self.end = datetime(2024, 3, 31, 23, 59, 59, 999999, tzinfo=SHANGHAI)

        for offset in range(3):
            self.record(self.user1, self.start + timedelta(days=offset), duration=10)
        self.record(self.user2, self.start + timedelta(days=5), duration=30)
        self.record(self.user2, self.start + timedelta(days=6), duration=15)
        # Outside the window
        self.record(self.user3, self.start - timedelta(microseconds=1), duration=60)

    def record(self, user, record_time, duration=0):
        return Record.objects.create(user=user, record_time=record_time, duration=duration)

    def test_top_users_ordered_by_count(self):
        stats = self.provider.top_users(self.start, self.end, 10)
        self.assertEqual(stats, [
            UserActivityStats(self.user1.id, 3, 30),
            UserActivityStats(self.user2.id, 2, 45),
        ])

    def test_top_users_limit(self):
        stats = self.provider.top_users(self.start, self.end, 1)
        self.assertEqual([s.user_id for s in stats], [self.user1.id])
        self.assertEqual(self.provider.top_users(self.start, self.end, 0), [])

    def test_window_bounds_are_inclusive(self):
        self.record(self.user3, self.end, duration=5)
        stats = self.provider.stats_for_users([self.user3.id], self.start, self.end)
        self.assertEqual(stats, [UserActivityStats(self.user3.id, 1, 5)])

        stats = self.provider.stats_for_users([self.user3.id], self.start - timedelta(microseconds=1), self.end)
        self.assertEqual(stats, [UserActivityStats(self.user3.id, 2, 65)])

    def test_stats_for_users_omits_inactive(self):
        stats = self.provider.stats_for_users([self.user2.id, self.user3.id], self.start, self.end)
        self.assertEqual(stats, [UserActivityStats(self.user2.id, 2, 45)])
        self.assertEqual(self.provider.stats_for_users([], self.start, self.end), [])

    def test_daily_stats(self):
        self.record(self.user1, datetime(2024, 3, 1, 23, 30, tzinfo=SHANGHAI), duration=7)
        # 2024-03-02 00:30 in Shanghai, still 2024-03-01 in UTC
        self.record(self.user1, datetime(2024, 3, 1, 16, 30, tzinfo=ZoneInfo('UTC')), duration=99)

        stats = self.provider.daily_stats([self.user1.id, self.user3.id], date(2024, 3, 1), SHANGHAI)
        self.assertEqual(set(stats), {self.user1.id, self.user3.id})

        day = stats[self.user1.id]
        self.assertEqual(day.date, date(2024, 3, 1))
        self.assertEqual(day.event_count, 2)
        self.assertEqual(day.total_duration, 17)
        self.assertEqual(day.record_times, sorted(day.record_times))

        self.assertEqual(stats[self.user3.id].event_count, 0)
        self.assertEqual(stats[self.user3.id].record_times, [])

    def test_cancelled_context(self):
        ctx = CallContext()
        ctx.cancel()
        with self.assertRaises(OperationCancelled):
            self.provider.top_users(self.start, self.end, 10, ctx=ctx)
        with self.assertRaises(OperationCancelled):
            self.provider.stats_for_users([self.user1.id], self.start, self.end, ctx=ctx)
