"""Clock — configured zone, display format, fallback to UTC."""

import logging
from datetime import datetime, timezone

from webtemplate.core.timezone import Clock


def test_formats_in_configured_zone():
    clock = Clock("Asia/Shanghai")
    value = datetime(2024, 1, 1, 0, 0, 0, tzinfo=timezone.utc)
    assert clock.format(value) == "2024-01-01 08:00:00"


def test_naive_values_are_utc():
    clock = Clock("Asia/Shanghai")
    assert clock.format(datetime(2024, 1, 1, 12, 30)) == "2024-01-01 20:30:00"


def test_parse_attaches_zone():
    clock = Clock("Asia/Shanghai")
    parsed = clock.parse("2024-01-01 08:00:00")
    assert parsed.astimezone(timezone.utc) == datetime(2024, 1, 1, tzinfo=timezone.utc)


def test_unknown_zone_falls_back_to_utc(caplog):
    caplog.set_level(logging.WARNING, logger="webtemplate.core.timezone")
    clock = Clock("Mars/Olympus_Mons")
    assert clock.name == "UTC"
    assert clock.now().utcoffset().total_seconds() == 0
    assert "falling back to UTC" in caplog.text


def test_now_string_shape():
    text = Clock("UTC").now_string()
    assert len(text) == 19
    assert text[4] == "-" and text[10] == " " and text[13] == ":"
