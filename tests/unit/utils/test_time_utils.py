from datetime import datetime, timedelta

from app.utils.time import (
    SECONDS_PER_DAY,
    coerce_datetime,
    epoch_day,
    from_timestamp,
    http_date,
    isoformat_or_none,
    utc_now,
)


def test_coerce_datetime_parses_z_suffix():
    dt = coerce_datetime("2026-01-01T00:00:00Z")
    assert dt is not None
    assert dt.tzinfo is not None
    assert dt.utcoffset() == timedelta(0)
    assert dt.isoformat().endswith("+00:00")


def test_coerce_datetime_parses_offset():
    dt = coerce_datetime("2026-01-01T02:00:00+02:00")
    assert dt is not None
    assert dt.tzinfo is not None
    assert dt.utcoffset() == timedelta(0)
    assert dt.hour == 0


def test_coerce_datetime_parses_naive_as_utc():
    dt = coerce_datetime("2026-01-01T00:00:00")
    assert dt is not None
    assert dt.tzinfo is not None
    assert dt.utcoffset() == timedelta(0)

    time_diff = utc_now() - dt
    assert isinstance(time_diff, timedelta)


def test_epoch_day_boundaries():
    assert epoch_day(0) == 0
    assert epoch_day(SECONDS_PER_DAY - 1) == 0
    assert epoch_day(SECONDS_PER_DAY) == 1
    assert epoch_day(1_700_000_000) == 19675


def test_http_date_is_gmt():
    assert http_date(from_timestamp(1_700_000_000)) == "Tue, 14 Nov 2023 22:13:20 GMT"
    assert http_date(datetime(2023, 11, 14, 22, 13, 20)) == "Tue, 14 Nov 2023 22:13:20 GMT"


def test_isoformat_or_none():
    assert isoformat_or_none(None) is None
    assert isoformat_or_none(from_timestamp(0)) == "1970-01-01T00:00:00+00:00"
