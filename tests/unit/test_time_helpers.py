from datetime import date, datetime, time, timezone

import pytest

from studio_scheduler.core.timezone_utils import combine_local, ensure_utc, to_studio_local
from studio_scheduler.utils.time_utils import (
    minutes_to_time_str,
    ranges_overlap,
    string_to_time,
    sunday_first_weekday,
    time_to_minutes,
)
from studio_scheduler.utils.week_keys import (
    week_key_from_date,
    week_key_from_start_date,
    week_start,
    week_start_date_from_key,
)


class TestTimeUtils:
    def test_midnight_end_counts_as_end_of_day(self):
        assert time_to_minutes(time(0, 0)) == 0
        assert time_to_minutes(time(0, 0), is_end_time=True) == 1440
        assert time_to_minutes(time(13, 45), is_end_time=True) == 825

    def test_minutes_to_time_str(self):
        assert minutes_to_time_str(0) == "00:00"
        assert minutes_to_time_str(615) == "10:15"
        assert minutes_to_time_str(1440) == "24:00"
        with pytest.raises(ValueError):
            minutes_to_time_str(1441)

    def test_string_to_time(self):
        assert string_to_time("08:30") == time(8, 30)
        assert string_to_time(" 17:05:09 ") == time(17, 5, 9)
        assert string_to_time("24:00") == time(0, 0)
        with pytest.raises(ValueError):
            string_to_time("25:00")

    def test_sunday_first_weekday(self):
        assert sunday_first_weekday(date(2024, 1, 7)) == 0  # Sunday
        assert sunday_first_weekday(date(2024, 1, 1)) == 1  # Monday
        assert sunday_first_weekday(date(2024, 1, 6)) == 6  # Saturday

    def test_ranges_overlap_is_half_open(self):
        assert ranges_overlap(60, 120, 119, 180)
        assert not ranges_overlap(60, 120, 120, 180)
        assert not ranges_overlap(60, 120, 0, 60)


class TestWeekKeys:
    def test_week_start_is_monday(self):
        assert week_start(date(2024, 1, 7)) == date(2024, 1, 1)
        assert week_start(date(2024, 1, 1)) == date(2024, 1, 1)

    def test_keys_use_iso_years(self):
        assert week_key_from_date(date(2024, 1, 1)) == "2024-W01"
        assert week_key_from_date(date(2021, 1, 3)) == "2020-W53"
        assert week_key_from_start_date(date(2024, 12, 30)) == "2025-W01"

    def test_key_round_trip_to_monday(self):
        assert week_start_date_from_key("2024-W01") == date(2024, 1, 1)
        assert week_start_date_from_key("2020-W53") == date(2020, 12, 28)

    @pytest.mark.parametrize("key", ["2024-W00", "2023-W53", "2024W01", "garbage", "2024-w01"])
    def test_invalid_keys(self, key):
        assert week_start_date_from_key(key) is None


class TestTimezoneUtils:
    def test_combine_local_winter_offset(self):
        result = combine_local(date(2024, 1, 1), time(8, 30), "Europe/Madrid")

        assert result == datetime(2024, 1, 1, 7, 30, tzinfo=timezone.utc)

    def test_combine_local_summer_offset(self):
        result = combine_local(date(2024, 7, 1), time(8, 30), "Europe/Madrid")

        assert result == datetime(2024, 7, 1, 6, 30, tzinfo=timezone.utc)

    def test_ensure_utc_treats_naive_as_utc(self):
        naive = datetime(2024, 1, 1, 12, 0)

        assert ensure_utc(naive) == datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def test_to_studio_local(self):
        local = to_studio_local(datetime(2024, 1, 1, 23, 30, tzinfo=timezone.utc), "Europe/Madrid")

        assert (local.date(), local.hour, local.minute) == (date(2024, 1, 2), 0, 30)
