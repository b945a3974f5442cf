import time
from datetime import date, datetime, timedelta

from django.core.exceptions import ValidationError
from django.test import SimpleTestCase, override_settings
from rest_framework import exceptions as drf_exceptions

from friends.exceptions import AlreadyFriends, NotFound
from .config import HabitlyConfig
from .context import CallContext, check
from .exceptions import DeadlineExceeded, OperationCancelled, ValidationFailure
from .utils import custom_exception_handler
from .validators import coerce_page, coerce_page_size, coerce_pagination, validate_status_code
from .windows import day_window, parse_window

CONFIG = HabitlyConfig()


class CallContextTests(SimpleTestCase):
    def test_background_never_expires(self):
        ctx = CallContext.background()
        self.assertIsNone(ctx.remaining())
        self.assertFalse(ctx.expired())
        ctx.check()
        check(None)

    def test_cancel(self):
        ctx = CallContext.with_timeout(60)
        ctx.cancel()
        self.assertTrue(ctx.cancelled)
        with self.assertRaises(OperationCancelled):
            check(ctx)

    def test_deadline(self):
        ctx = CallContext(deadline=time.monotonic() - 0.1)
        self.assertTrue(ctx.expired())
        self.assertEqual(ctx.remaining(), 0.0)
        with self.assertRaises(DeadlineExceeded):
            ctx.check()

        ctx = CallContext.with_timeout(60)
        self.assertGreater(ctx.remaining(), 0)
        ctx.check()


class PaginationTests(SimpleTestCase):
    def test_coerce_page(self):
        self.assertEqual(coerce_page(None), 1)
        self.assertEqual(coerce_page(0), 1)
        self.assertEqual(coerce_page(-3), 1)
        self.assertEqual(coerce_page('x'), 1)
        self.assertEqual(coerce_page('4'), 4)

    def test_coerce_page_size(self):
        self.assertEqual(coerce_page_size(None, 10), 10)
        self.assertEqual(coerce_page_size(0, 10), 10)
        self.assertEqual(coerce_page_size('25', 10), 25)
        self.assertEqual(coerce_page_size(500, 10, max_size=100), 100)

    def test_coerce_pagination(self):
        self.assertEqual(coerce_pagination(None, None, CONFIG), (1, 10))
        self.assertEqual(coerce_pagination(2, 1000, CONFIG), (2, 100))

    def test_validate_status_code(self):
        self.assertEqual(validate_status_code('2', [0, 1, 2, 3]), 2)
        for value in (7, -1, 'abc', None, True):
            with self.assertRaises(ValidationFailure):
                validate_status_code(value, [0, 1, 2, 3])


class TimeWindowTests(SimpleTestCase):
    def test_day_window_covers_whole_days(self):
        window = day_window(date(2024, 3, 1), date(2024, 3, 1), CONFIG.tzinfo)
        self.assertEqual(window.start.utcoffset(), timedelta(hours=8))
        self.assertEqual(window.start.replace(tzinfo=None), datetime(2024, 3, 1))
        self.assertEqual(window.end.replace(tzinfo=None), datetime(2024, 3, 1, 23, 59, 59, 999999))

    def test_day_window_rejects_reversed_dates(self):
        with self.assertRaises(ValidationFailure):
            day_window(date(2024, 3, 2), date(2024, 3, 1), CONFIG.tzinfo)

    def test_parse_window_defaults_to_month_to_date(self):
        window = parse_window(None, '', CONFIG, today=date(2024, 3, 15))
        self.assertEqual(window.start.date(), date(2024, 3, 1))
        self.assertEqual(window.end.date(), date(2024, 3, 15))

    def test_parse_window_explicit(self):
        window = parse_window('2024-01-05', '2024-02-01', CONFIG)
        self.assertEqual(window.start.date(), date(2024, 1, 5))
        self.assertEqual(window.end.date(), date(2024, 2, 1))

    def test_parse_window_bad_format(self):
        with self.assertRaises(ValidationFailure):
            parse_window('2024/01/05', None, CONFIG)
        with self.assertRaises(ValidationFailure):
            parse_window('2024-02-10', '2024-02-01', CONFIG)


class HabitlyConfigTests(SimpleTestCase):
    @override_settings(HABITLY={'GLOBAL_RANKING_LIMIT': '5'})
    def test_from_settings(self):
        config = HabitlyConfig.from_settings()
        self.assertEqual(config.global_ranking_limit, 5)
        self.assertEqual(config.default_page_size, 10)
        self.assertEqual(config.time_zone, 'Asia/Shanghai')


class ExceptionHandlerTests(SimpleTestCase):
    def test_domain_errors(self):
        response = custom_exception_handler(NotFound(), {})
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data['error'], 'NOT_FOUND')

        response = custom_exception_handler(AlreadyFriends(), {})
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data['error'], 'ALREADY_FRIENDS')

        response = custom_exception_handler(ValidationFailure('Invalid start date format'), {})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['detail'], 'Invalid start date format')

    def test_django_validation_error(self):
        response = custom_exception_handler(ValidationError({'status': ['bad']}), {})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['detail'], {'status': ['bad']})

    def test_drf_error_format(self):
        response = custom_exception_handler(drf_exceptions.NotAuthenticated(), {})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.data['error'], 'NotAuthenticated')

    @override_settings(DEBUG=False)
    def test_unexpected_error_hidden(self):
        response = custom_exception_handler(RuntimeError('boom'), {})
        self.assertEqual(response.status_code, 500)
        self.assertNotIn('boom', response.data['detail'])
