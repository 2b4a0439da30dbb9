"""Tests for ScheduleChecker."""

from datetime import datetime, timedelta

import pytest

from storage_backup.schedule_checker import ScheduleChecker


class TestShouldRun:
    """Whole-expression evaluation."""

    def test_daily_at_two_matches_only_minute_zero(self):
        assert ScheduleChecker.should_run("0 2 * * *", datetime(2024, 5, 1, 2, 0, 0)) is True
        assert ScheduleChecker.should_run("0 2 * * *", datetime(2024, 5, 1, 2, 1, 0)) is False
        assert ScheduleChecker.should_run("0 2 * * *", datetime(2024, 5, 1, 3, 0, 0)) is False

    def test_every_fifteen_minutes(self):
        """'*/15' fires exactly when minute % 15 == 0, all day long."""
        start = datetime(2024, 5, 1, 0, 0)
        for offset in range(0, 24 * 60, 7):
            t = start + timedelta(minutes=offset)
            assert ScheduleChecker.should_run("*/15 * * * *", t) is (t.minute % 15 == 0)

    def test_result_is_and_of_fields(self):
        t = datetime(2024, 5, 1, 2, 30)  # Wednesday
        fields = ["30", "2", "1", "5", "3"]
        assert ScheduleChecker.should_run(" ".join(fields), t) is True

        for i in range(5):
            broken = list(fields)
            broken[i] = "59" if i == 0 else "0"
            assert ScheduleChecker.should_run(" ".join(broken), t) is False

    def test_deterministic(self):
        t = datetime(2024, 1, 7, 12, 45)
        results = {ScheduleChecker.should_run("*/5 12 * 1 0", t) for _ in range(10)}
        assert results == {True}

    def test_day_of_week_sunday_is_zero(self):
        sunday = datetime(2024, 5, 5, 8, 0)
        monday = datetime(2024, 5, 6, 8, 0)
        assert ScheduleChecker.should_run("0 8 * * 0", sunday) is True
        assert ScheduleChecker.should_run("0 8 * * 0", monday) is False
        assert ScheduleChecker.should_run("0 8 * * 1-5", monday) is True

    @pytest.mark.parametrize("expression", ["0 2 * *", "0 2 * * * *", "", "   "])
    def test_wrong_field_count_returns_false(self, expression):
        assert ScheduleChecker.should_run(expression, datetime(2024, 5, 1, 2, 0)) is False

    def test_extra_whitespace_between_fields(self):
        assert ScheduleChecker.should_run("0  2 *\t* *", datetime(2024, 5, 1, 2, 0)) is True


class TestMatchField:
    """Single-field matching rules."""

    def test_wildcard(self):
        assert ScheduleChecker.match_field("*", 0) is True
        assert ScheduleChecker.match_field("*", 59) is True

    def test_range_is_inclusive(self):
        assert ScheduleChecker.match_field("1-5", 1) is True
        assert ScheduleChecker.match_field("1-5", 5) is True
        assert ScheduleChecker.match_field("1-5", 6) is False

    def test_list(self):
        assert ScheduleChecker.match_field("1,3,5", 3) is True
        assert ScheduleChecker.match_field("1,3,5", 4) is False

    def test_single_value(self):
        assert ScheduleChecker.match_field("7", 7) is True
        assert ScheduleChecker.match_field("7", 8) is False

    def test_zero_or_missing_step_never_matches(self):
        assert ScheduleChecker.match_field("*/0", 0) is False
        assert ScheduleChecker.match_field("*/", 0) is False
        assert ScheduleChecker.match_field("*/x", 0) is False

    def test_garbage_never_matches(self):
        assert ScheduleChecker.match_field("abc", 0) is False
        assert ScheduleChecker.match_field("a-b", 0) is False

    def test_numeric_step_start_is_not_a_step(self):
        """Known quirk: '5/15' is not a step; it behaves like the single value 5."""
        assert ScheduleChecker.match_field("5/15", 5) is True
        assert ScheduleChecker.match_field("5/15", 20) is False
        assert ScheduleChecker.match_field("5/15", 0) is False

    def test_range_with_step_ignores_step(self):
        """'0-30/5' falls through to the range rule."""
        assert ScheduleChecker.match_field("0-30/5", 7) is True
        assert ScheduleChecker.match_field("0-30/5", 31) is False


class TestCroniterHelpers:
    """Informational helpers backed by croniter."""

    def test_next_run_time(self):
        nxt = ScheduleChecker.next_run_time("0 2 * * *", datetime(2024, 5, 1, 3, 0))
        assert nxt == datetime(2024, 5, 2, 2, 0)

    def test_next_run_time_invalid_returns_none(self):
        assert ScheduleChecker.next_run_time("not a cron", datetime(2024, 5, 1)) is None

    def test_validate_schedule_format(self):
        assert ScheduleChecker.validate_schedule_format("*/15 * * * *") is True
        assert ScheduleChecker.validate_schedule_format("0 2 * *") is False
        assert ScheduleChecker.validate_schedule_format("99 2 * * *") is False
