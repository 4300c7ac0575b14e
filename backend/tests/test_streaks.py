from datetime import date

import pytest

from conftest import NOW, InMemoryLedger, at
from streaks import (
    current_streak_from_dates, get_streak_summary, longest_streak,
    longest_streak_from_dates, streak_runs, streaks_by_activity
)


def march(*days):
    return [date(2025, 3, d) for d in days]


class TestLongestStreak:
    def test_gap_breaks_run(self):
        assert longest_streak_from_dates([date(2025, 1, 1), date(2025, 1, 2), date(2025, 1, 3), date(2025, 1, 5)]) == 3

    def test_same_day_entries_count_once(self):
        assert longest_streak_from_dates([date(2025, 1, 1)] * 3) == 1

    def test_single_entry(self):
        assert longest_streak_from_dates(march(4)) == 1

    def test_no_entries(self):
        assert longest_streak_from_dates([]) == 0

    def test_one_day_gap(self):
        assert streak_runs(march(1, 3)) == [march(1), march(3)]
        assert longest_streak_from_dates(march(1, 3)) == 1

    def test_unsorted_input(self):
        assert longest_streak_from_dates(march(7, 2, 6, 1, 5, 3)) == 3

    def test_across_month_boundary(self):
        assert longest_streak_from_dates([date(2025, 2, 27), date(2025, 2, 28), date(2025, 3, 1)]) == 3

    def test_across_dst_change(self):
        assert longest_streak_from_dates(march(8, 9, 10)) == 3


class TestCurrentStreak:
    def test_run_ending_today(self):
        assert current_streak_from_dates(march(10, 11, 12), date(2025, 3, 12)) == 3

    def test_run_ending_yesterday_is_still_alive(self):
        assert current_streak_from_dates(march(10, 11, 12), date(2025, 3, 13)) == 3

    def test_run_ended_before_yesterday(self):
        assert current_streak_from_dates(march(10, 11, 12), date(2025, 3, 14)) == 0

    def test_only_latest_run_counts(self):
        assert current_streak_from_dates(march(1, 2, 3, 4, 11, 12), date(2025, 3, 12)) == 2

    def test_future_dates_ignored(self):
        assert current_streak_from_dates(march(11, 12, 20), date(2025, 3, 12)) == 2

    def test_no_entries(self):
        assert current_streak_from_dates([], date(2025, 3, 12)) == 0


class TestStreakQueries:
    @pytest.mark.asyncio
    async def test_longest_streak_per_activity(self):
        ledger = InMemoryLedger()
        ledger.add_days(5, 1, march(1, 2, 3, 5))
        ledger.add_days(5, 2, march(1, 2, 3, 4, 5))
        ledger.add_days(6, 1, march(1, 2, 3, 4, 5, 6))

        assert await longest_streak(5, 1, source=ledger) == 3
        assert await longest_streak(5, 2, source=ledger) == 5
        assert await longest_streak(5, 9, source=ledger) == 0
        assert await streaks_by_activity(5, source=ledger) == {1: 3, 2: 5}

    @pytest.mark.asyncio
    async def test_dates_truncated_in_tracker_timezone(self):
        # Local New York times: 8 Mar 23:30 EST, 9 Mar 23:30 EDT, 10 Mar 00:30 EDT
        moments = [at(2025, 3, 9, 4, 30), at(2025, 3, 10, 3, 30), at(2025, 3, 10, 4, 30)]

        new_york = InMemoryLedger("America/New_York")
        utc = InMemoryLedger("UTC")
        for moment in moments:
            new_york.add(5, 1, 1, moment)
            utc.add(5, 1, 1, moment)

        assert await longest_streak(5, 1, source=new_york) == 3
        assert await longest_streak(5, 1, source=utc) == 2

    @pytest.mark.asyncio
    async def test_streak_summary(self):
        ledger = InMemoryLedger()
        ledger.add_days(5, 1, march(1, 2, 3, 4, 10, 11))

        summary = await get_streak_summary(5, 1, now=NOW, source=ledger)

        assert summary.activity_id == 1
        assert summary.longest_streak == 4
        assert summary.current_streak == 2
