from datetime import timedelta

import pytest

from breaktime.durations import format_duration, parse_duration, pretty_duration


@pytest.mark.parametrize(
    "text, expected",
    [
        ("1:00", timedelta(hours=1)),
        ("1:30", timedelta(hours=1, minutes=30)),
        ("1 hour", timedelta(hours=1)),
        ("8 hours", timedelta(hours=8)),
        ("2h", timedelta(hours=2)),
        ("1.5 hours", timedelta(hours=1, minutes=30)),
        ("2 minutes", timedelta(minutes=2)),
        ("45m", timedelta(minutes=45)),
        ("10 seconds", timedelta(seconds=10)),
        ("  6 minutes ", timedelta(minutes=6)),
    ],
)
def test_parse_duration(text, expected):
    assert parse_duration(text) == expected


@pytest.mark.parametrize("text", ["", "soon", "5 days", "-3 minutes", "1:xx"])
def test_parse_duration_rejects_garbage(text):
    with pytest.raises(ValueError):
        parse_duration(text)


@pytest.mark.parametrize(
    "value, expected",
    [
        (timedelta(0), "0 minutes"),
        (timedelta(minutes=1), "1 minute"),
        (timedelta(minutes=2), "2 minutes"),
        (timedelta(hours=1), "1 hour"),
        (timedelta(hours=3), "3 hours"),
        (timedelta(hours=3, minutes=2), "3:02"),
        (timedelta(seconds=10), "10 seconds"),
        (timedelta(hours=1, seconds=1), "3601 seconds"),
        (timedelta(hours=2, minutes=5, seconds=30), "7530 seconds"),
    ],
)
def test_format_duration(value, expected):
    assert format_duration(value) == expected


def test_formatted_values_parse_back():
    for value in (
        timedelta(hours=4, minutes=1),
        timedelta(seconds=90),
        timedelta(hours=7),
        timedelta(hours=1, seconds=1),
    ):
        assert parse_duration(format_duration(value)) == value


@pytest.mark.parametrize(
    "value, expected",
    [
        (timedelta(hours=8, seconds=20), "8 hours"),
        (timedelta(hours=3, minutes=1, seconds=40), "3:02"),
        (timedelta(seconds=170), "3 minutes"),
        (timedelta(seconds=-5), "0 minutes"),
    ],
)
def test_pretty_duration_rounds_to_minutes(value, expected):
    assert pretty_duration(value) == expected
