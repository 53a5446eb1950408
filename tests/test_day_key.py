from datetime import datetime, timedelta, timezone

from gatekeeper.services.day_key import daily_counter_key, get_day_key, to_epoch_ms


def test_day_key_format():
    now = datetime(2025, 3, 14, 12, 0, tzinfo=timezone.utc)
    assert get_day_key(now) == "2025-03-14"
    assert daily_counter_key(get_day_key(now)) == "daily:2025-03-14"


def test_day_key_boundary_uses_captured_instant():
    before = datetime(2025, 3, 14, 23, 59, 59, 999000, tzinfo=timezone.utc)
    after = before + timedelta(milliseconds=1)
    assert get_day_key(before) == "2025-03-14"
    assert get_day_key(after) == "2025-03-15"


def test_day_key_respects_zone():
    now = datetime(2025, 3, 14, 16, 0, tzinfo=timezone.utc)
    assert get_day_key(now, "UTC") == "2025-03-14"
    assert get_day_key(now, "Asia/Seoul") == "2025-03-15"


def test_naive_datetime_treated_as_utc():
    assert get_day_key(datetime(2025, 3, 14, 23, 30)) == "2025-03-14"
    assert to_epoch_ms(datetime(1970, 1, 1, 0, 0, 1)) == 1000
