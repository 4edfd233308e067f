from datetime import datetime, timedelta, timezone

import pytest

from solsnake.services.competition.clock import PeriodClock


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


def test_day_starts_at_local_reset_hour(clock):
    # 2025-06-10 13:00 MDT == 19:00 UTC
    before = clock.current_period(utc(2025, 6, 10, 18, 59))
    after = clock.current_period(utc(2025, 6, 10, 19, 1))
    assert before.day_key == '2025-06-09'
    assert after.day_key == '2025-06-10'
    assert after.yesterday_key == '2025-06-09'
    assert after.start == utc(2025, 6, 10, 19, 0)
    assert after.end == utc(2025, 6, 11, 19, 0)


def test_boundary_follows_wall_clock_after_spring_forward(clock):
    # DST begins 2025-03-09; 13:00 MDT that day is 19:00 UTC (not 20:00 as on 03-08)
    assert clock.current_period(utc(2025, 3, 9, 18, 59)).day_key == '2025-03-08'
    assert clock.current_period(utc(2025, 3, 9, 19, 1)).day_key == '2025-03-09'
    # A fixed MST offset would still call this 12:30 and keep the old day
    assert clock.current_period(utc(2025, 3, 9, 19, 30)).day_key == '2025-03-09'
    assert clock.current_period(utc(2025, 3, 9, 19, 1)).yesterday_key == '2025-03-08'


def test_boundary_follows_wall_clock_after_fall_back(clock):
    # DST ends 2025-11-02; 13:00 MST that day is 20:00 UTC (not 19:00 as on 11-01)
    assert clock.current_period(utc(2025, 11, 2, 19, 30)).day_key == '2025-11-01'
    assert clock.current_period(utc(2025, 11, 2, 19, 59)).day_key == '2025-11-01'
    assert clock.current_period(utc(2025, 11, 2, 20, 1)).day_key == '2025-11-02'


def test_ms_remaining_counts_down_and_clamps(clock):
    period = clock.current_period(utc(2025, 6, 10, 19, 1))
    assert period.ms_remaining == (23 * 60 + 59) * 60 * 1000

    short = PeriodClock(reset_hour_local=13, timezone_name='America/Denver', period_length=timedelta(hours=1))
    late = short.current_period(utc(2025, 6, 10, 21, 0))
    assert late.day_key == '2025-06-10'
    assert late.ms_remaining == 0


def test_naive_now_is_treated_as_utc(clock):
    assert clock.current_period(datetime(2025, 6, 10, 19, 1)).day_key == '2025-06-10'


def test_unknown_zone_falls_back_to_utc():
    clock = PeriodClock(reset_hour_local=13, timezone_name='Nowhere/Atlantis')
    assert clock.zone is timezone.utc
    assert clock.current_period(utc(2025, 1, 1, 12, 59)).day_key == '2024-12-31'
    assert clock.current_period(utc(2025, 1, 1, 13, 0)).day_key == '2025-01-01'


def test_to_dict_exposes_epoch_millis(clock):
    payload = clock.current_period(utc(2025, 6, 10, 19, 1)).to_dict()
    assert payload['todayKey'] == '2025-06-10'
    assert payload['yesterdayKey'] == '2025-06-09'
    assert payload['periodMs'] == 24 * 60 * 60 * 1000
    assert payload['endMs'] - payload['startMs'] == payload['periodMs']
    assert payload['msLeft'] == payload['endMs'] - payload['nowMs']


def test_rejects_invalid_reset_hour():
    with pytest.raises(ValueError):
        PeriodClock(reset_hour_local=24)


def test_zone_conversion_failure_falls_back_to_utc(clock, monkeypatch):
    resolve = PeriodClock._resolve

    def failing_resolve(self, now_utc, zone):
        if zone is not timezone.utc:
            raise ValueError('zone conversion failed')
        return resolve(self, now_utc, zone)

    monkeypatch.setattr(PeriodClock, '_resolve', failing_resolve)
    period = clock.current_period(utc(2025, 1, 1, 12, 59))
    assert period.day_key == '2024-12-31'
    assert period.start == utc(2024, 12, 31, 13, 0)
    assert clock.current_period(utc(2025, 1, 1, 13, 0)).day_key == '2025-01-01'
