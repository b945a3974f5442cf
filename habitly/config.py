"""
Process-wide configuration object.

Built once from Django settings and passed explicitly to the services that
need it instead of being read from module globals.
"""

from dataclasses import dataclass
from zoneinfo import ZoneInfo

from django.conf import settings


@dataclass(frozen=True)
class HabitlyConfig:
    time_zone: str = 'Asia/Shanghai'
    global_ranking_limit: int = 10
    default_page_size: int = 10
    max_page_size: int = 100

    @classmethod
    def from_settings(cls) -> 'HabitlyConfig':
        values = getattr(settings, 'HABITLY', {})
        return cls(
            time_zone=values.get('TIME_ZONE', cls.time_zone),
            global_ranking_limit=int(values.get('GLOBAL_RANKING_LIMIT', cls.global_ranking_limit)),
            default_page_size=int(values.get('DEFAULT_PAGE_SIZE', cls.default_page_size)),
            max_page_size=int(values.get('MAX_PAGE_SIZE', cls.max_page_size)),
        )

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.time_zone)
