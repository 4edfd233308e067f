"""Competition-day clock.

A competition day starts at a fixed wall-clock hour in a named zone and lasts
``period_length``. The reset instant is resolved through the zone each day, so
daylight-saving transitions move the UTC boundary rather than the local one.
"""
import logging
from datetime import datetime, time as dtime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_PERIOD = timedelta(hours=24)


def _to_ms(value: datetime) -> int:
    return int(value.timestamp() * 1000)


class Period:
    def __init__(self, day_key: str, yesterday_key: str, start: datetime, end: datetime,
                 now: datetime, period_length: timedelta):
        self.day_key = day_key
        self.yesterday_key = yesterday_key
        self.start = start
        self.end = end
        self.now = now
        self.period_length = period_length

    @property
    def ms_remaining(self) -> int:
        return max(0, _to_ms(self.end) - _to_ms(self.now))

    def to_dict(self):
        return {
            'todayKey': self.day_key,
            'yesterdayKey': self.yesterday_key,
            'startMs': _to_ms(self.start),
            'endMs': _to_ms(self.end),
            'msLeft': self.ms_remaining,
            'periodMs': int(self.period_length.total_seconds() * 1000),
            'nowMs': _to_ms(self.now),
        }

    def __repr__(self):
        return f"<Period {self.day_key} start={self.start.isoformat()} left={self.ms_remaining}ms>"


class PeriodClock:
    def __init__(self, reset_hour_local: int = 13, timezone_name: str = 'America/Denver',
                 period_length: timedelta = DEFAULT_PERIOD):
        if not 0 <= int(reset_hour_local) <= 23:
            raise ValueError(f"reset hour must be within 0..23, got {reset_hour_local}")
        if period_length <= timedelta(0):
            raise ValueError("period length must be positive")
        self.reset_hour_local = int(reset_hour_local)
        self.timezone_name = timezone_name
        self.period_length = period_length
        try:
            self.zone = ZoneInfo(timezone_name)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            logger.warning(f"[clock-fallback] zone={timezone_name!r} unavailable, using UTC: {exc}")
            self.zone = timezone.utc

    @classmethod
    def from_config(cls, config) -> 'PeriodClock':
        return cls(
            reset_hour_local=int(config.get('RESET_HOUR_LOCAL', 13)),
            timezone_name=config.get('RESET_TIMEZONE', 'America/Denver'),
            period_length=timedelta(hours=float(config.get('PERIOD_HOURS', 24))),
        )

    def _reset_on(self, day, zone) -> datetime:
        return datetime.combine(day, dtime(hour=self.reset_hour_local), tzinfo=zone).astimezone(timezone.utc)

    def _resolve(self, now_utc: datetime, zone):
        local_now = now_utc.astimezone(zone)
        # Compare in UTC: aware datetimes sharing a tzinfo compare by wall clock
        start = self._reset_on(local_now.date(), zone)
        if start > now_utc:
            start = self._reset_on(local_now.date() - timedelta(days=1), zone)
        day_key = start.astimezone(zone).date().isoformat()
        yesterday_key = (start - self.period_length).astimezone(zone).date().isoformat()
        return start, day_key, yesterday_key

    def current_period(self, now: Optional[datetime] = None) -> Period:
        if now is None:
            now = datetime.now(timezone.utc)
        elif now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        now_utc = now.astimezone(timezone.utc)
        try:
            start, day_key, yesterday_key = self._resolve(now_utc, self.zone)
        except (OverflowError, ValueError) as exc:
            logger.warning(f"[clock-fallback] zone conversion failed for {now_utc.isoformat()}, using UTC: {exc}")
            start, day_key, yesterday_key = self._resolve(now_utc, timezone.utc)
        return Period(
            day_key=day_key,
            yesterday_key=yesterday_key,
            start=start,
            end=start + self.period_length,
            now=now_utc,
            period_length=self.period_length,
        )

    def day_key_for(self, instant: datetime) -> str:
        return self.current_period(instant).day_key
