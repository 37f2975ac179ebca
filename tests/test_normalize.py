from datetime import datetime, timedelta

from branchportal.utils.normalize import (
    EPOCH,
    format_iso,
    normalize_phone,
    parse_activity_date,
    parse_activity_datetime,
    parse_optional_datetime,
    to_iso_string,
    utcnow,
)


def test_normalize_phone_strips_separators():
    assert normalize_phone("(020) 8660-1234") == "02086601234"
    assert normalize_phone("+44 20 8123 4567") == "+442081234567"
    assert normalize_phone("07700\t900123") == "07700900123"


def test_normalize_phone_empty_values():
    assert normalize_phone(None) == ""
    assert normalize_phone("") == ""
    assert normalize_phone("  - ") == ""


def test_normalize_phone_is_idempotent():
    for raw in ["(020) 8660-1234", "+44 (0) 1737 555 210", "ext.12", "", "  "]:
        once = normalize_phone(raw)
        assert normalize_phone(once) == once


def test_uk_short_year_is_day_first():
    parsed = parse_activity_datetime("01/02/24")
    assert (parsed.year, parsed.month, parsed.day) == (2024, 2, 1)
    assert parse_activity_date("01/02/24") == "2024-02-01T00:00:00.000Z"


def test_uk_full_year():
    assert parse_activity_date("15/07/2024") == "2024-07-15T00:00:00.000Z"


def test_strict_iso_is_tried_first():
    assert parse_activity_date("2024-03-05T10:15:00Z") == "2024-03-05T10:15:00.000Z"
    assert parse_activity_date("2024-03-05") == "2024-03-05T00:00:00.000Z"


def test_iso_with_offset_is_converted_to_utc():
    assert parse_activity_date("2024-03-05T10:15:00+01:00") == "2024-03-05T09:15:00.000Z"


def test_generic_day_first_formats():
    assert parse_activity_date("5 March 2024") == "2024-03-05T00:00:00.000Z"
    assert parse_activity_date("05-03-2024") == "2024-03-05T00:00:00.000Z"


def test_uk_date_keeps_time_of_day():
    assert parse_activity_date("01/02/2024 10:30") == "2024-02-01T10:30:00.000Z"
    assert parse_activity_date("01/02/24 10:30:15") == "2024-02-01T10:30:15.000Z"
    assert parse_optional_datetime("01/02/2024 25:99") is None


def test_unparseable_activity_date_falls_back_to_now():
    before = utcnow()
    parsed = parse_activity_datetime("sometime last spring")
    assert before - timedelta(seconds=1) <= parsed <= utcnow() + timedelta(seconds=1)


def test_empty_activity_date_is_now():
    parsed = parse_activity_datetime("   ")
    assert abs(parsed - utcnow()) < timedelta(seconds=5)


def test_invalid_calendar_date_is_not_accepted():
    assert parse_optional_datetime("31/02/2024") is None


def test_to_iso_string():
    assert to_iso_string(datetime(2024, 8, 1, 9, 0)) == "2024-08-01T09:00:00.000Z"
    assert to_iso_string("2024-08-01T09:00:00Z") == "2024-08-01T09:00:00.000Z"
    assert to_iso_string(None) is None
    assert to_iso_string("not a date") is None
    assert to_iso_string(12345) is None


def test_epoch_format():
    assert format_iso(EPOCH) == "1970-01-01T00:00:00.000Z"
