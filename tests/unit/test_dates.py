from datetime import date, datetime, time, timedelta, timezone, UTC
from types import SimpleNamespace
from zoneinfo import ZoneInfo

import pytest

from boxhub.utils.dates import (
    add_months,
    as_utc,
    day_bounds,
    js_weekday,
    local_to_utc,
    org_zone,
    parse_hhmm,
)


def _org(**settings):
    return SimpleNamespace(get_setting=lambda key, default=None: settings.get(key, default))


def test_as_utc_tags_naive_values_and_converts_aware_ones():
    assert as_utc(None) is None
    naive = datetime(2025, 3, 1, 9, 0)
    assert as_utc(naive) == datetime(2025, 3, 1, 9, 0, tzinfo=UTC)

    paris = datetime(2025, 3, 1, 10, 0, tzinfo=timezone(timedelta(hours=1)))
    converted = as_utc(paris)
    assert converted.hour == 9 and converted.utcoffset() == timedelta(0)


def test_day_bounds_cover_one_utc_day():
    start, end = day_bounds(date(2025, 6, 1))
    assert start == datetime(2025, 6, 1, tzinfo=UTC)
    assert end - start == timedelta(days=1)


@pytest.mark.parametrize(
    "day,months,expected",
    [
        (date(2025, 1, 15), 1, date(2025, 2, 15)),
        (date(2025, 1, 31), 1, date(2025, 2, 28)),
        (date(2024, 1, 31), 1, date(2024, 2, 29)),
        (date(2025, 11, 30), 3, date(2026, 2, 28)),
        (date(2025, 3, 31), -1, date(2025, 2, 28)),
    ],
)
def test_add_months_clamps_to_month_length(day, months, expected):
    assert add_months(day, months) == expected


def test_parse_hhmm():
    assert parse_hhmm("07:30") == time(7, 30)
    with pytest.raises(ValueError):
        parse_hhmm("0730")
    with pytest.raises(ValueError):
        parse_hhmm("25:00")


def test_js_weekday_starts_on_sunday():
    assert js_weekday(date(2025, 1, 5)) == 0  # Sunday
    assert js_weekday(date(2025, 1, 6)) == 1  # Monday
    assert js_weekday(date(2025, 1, 11)) == 6  # Saturday


def test_org_zone_defaults_and_fallback():
    assert org_zone(None) == ZoneInfo("Europe/Paris")
    assert org_zone(_org(timezone="America/Montreal")) == ZoneInfo("America/Montreal")
    assert org_zone(_org(timezone="Mars/Olympus")) == ZoneInfo("UTC")


def test_local_to_utc_follows_daylight_saving():
    paris = ZoneInfo("Europe/Paris")
    assert local_to_utc(date(2025, 1, 6), time(7, 0), paris) == datetime(2025, 1, 6, 6, 0, tzinfo=UTC)
    assert local_to_utc(date(2025, 7, 7), time(7, 0), paris) == datetime(2025, 7, 7, 5, 0, tzinfo=UTC)
