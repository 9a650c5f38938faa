import datetime

from folio.utils.time import (
    calculate_reading_time,
    format_date,
    format_date_for_seo,
    format_relative_time,
    get_reading_time_text,
    is_within_days,
    parse_datetime,
    to_storage,
)

UTC = datetime.timezone.utc
NOW = datetime.datetime(2025, 11, 7, 12, 0, tzinfo=UTC)


def words(count: int) -> str:
    return " ".join(["word"] * count)


def test_reading_time_has_floor_of_one_minute():
    assert calculate_reading_time("") == 1
    assert calculate_reading_time("   \n\t ") == 1
    assert calculate_reading_time("Hello world") == 1


def test_reading_time_rounds_up():
    assert calculate_reading_time(words(200)) == 1
    assert calculate_reading_time(words(201)) == 2
    assert calculate_reading_time(words(401)) == 3


def test_reading_time_ignores_html_tags_and_honours_wpm():
    text = "<p>" + words(100) + "</p><img src='x.png' alt='an image'>"
    assert calculate_reading_time(text, words_per_minute=50) == 2


def test_reading_time_text():
    assert get_reading_time_text(0) == "< 1 min read"
    assert get_reading_time_text(1) == "1 min read"
    assert get_reading_time_text(5) == "5 min read"


def test_parse_datetime_accepts_strings_datetimes_and_epoch_millis():
    assert parse_datetime("2025-11-07T12:00:00Z") == NOW
    assert parse_datetime(datetime.datetime(2025, 11, 7, 12, 0)) == NOW
    assert parse_datetime(int(NOW.timestamp() * 1000)) == NOW
    assert parse_datetime(datetime.date(2025, 11, 7)) == NOW.replace(hour=0)


def test_format_date_default_and_custom_format():
    assert format_date(NOW) == "November 7, 2025"
    assert format_date("2025-01-05") == "January 5, 2025"
    assert format_date(NOW, "%b %d, %Y") == "Nov 07, 2025"


def test_format_date_returns_sentinel_on_bad_input():
    assert format_date("not a date") == "Invalid date"
    assert format_date(None) == "Invalid date"


def test_format_relative_time():
    two_days_ago = NOW - datetime.timedelta(days=2)
    assert format_relative_time(two_days_ago, now=NOW) == "2 days ago"
    assert format_relative_time("garbage", now=NOW) == "Unknown time"


def test_format_date_for_seo():
    assert format_date_for_seo(NOW) == "2025-11-07T12:00:00.000Z"
    fallback = format_date_for_seo("garbage")
    assert fallback.endswith("Z")
    assert parse_datetime(fallback.replace("Z", "+00:00")).year >= 2025


def test_is_within_days():
    assert is_within_days(NOW - datetime.timedelta(days=3), 7, now=NOW)
    assert not is_within_days(NOW - datetime.timedelta(days=10), 7, now=NOW)
    assert not is_within_days("garbage", 7, now=NOW)


def test_storage_format_sorts_chronologically():
    earlier = to_storage(datetime.datetime(2024, 1, 1, 9, 0, 0, tzinfo=UTC))
    later = to_storage(datetime.datetime(2024, 1, 1, 10, 0, 0, 5, tzinfo=UTC))
    assert earlier < later
    assert len(earlier) == len(later)
