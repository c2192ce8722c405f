from __future__ import annotations

from datetime import datetime, timedelta, timezone
import os
import unittest
from unittest import mock

from flowtime.metrics import (
    daily_flow_waves,
    earned_freedom,
    flow_streak,
    focus_density,
    natural_flow_window,
    resistance_point,
    task_flow_harmony,
    warmup_phase,
    weekly_work_time,
)
from flowtime.models import Task
from flowtime.tests.test_helpers import NOW, at, make_session, sessions_at_hour, zone


class TestDailyFlowWaves(unittest.TestCase):
    def test_needs_five_recent_sessions(self) -> None:
        result = daily_flow_waves(sessions_at_hour(4, 10), NOW)
        self.assertFalse(result.has_enough_data)
        self.assertEqual(result.slots, ())
        self.assertIsNone(result.peak_hour)
        self.assertIsNone(result.trough_hour)

    def test_peak_and_trough_hours(self) -> None:
        sessions = sessions_at_hour(5, 14, minutes=60) + sessions_at_hour(2, 8, minutes=10)
        result = daily_flow_waves(sessions, NOW)

        self.assertTrue(result.has_enough_data)
        self.assertEqual(len(result.slots), 24)
        self.assertEqual(result.peak_hour, 14)
        self.assertEqual(result.trough_hour, 8)
        self.assertEqual(result.slots[14].total_minutes, 300.0)
        self.assertEqual(result.slots[14].label, "peak")
        self.assertEqual(result.slots[8].label, "trough")
        # empty hours are labelled trough but never picked as trough hour
        self.assertEqual(result.slots[3].label, "trough")

    def test_normal_label_between_thresholds(self) -> None:
        sessions = (
            sessions_at_hour(5, 14, minutes=60)
            + sessions_at_hour(5, 10, minutes=30)
            + sessions_at_hour(2, 8, minutes=5)
        )
        result = daily_flow_waves(sessions, NOW)
        # avg = (300 + 150 + 10) / 3 = 153.3
        self.assertEqual(result.slots[14].label, "peak")
        self.assertEqual(result.slots[10].label, "normal")
        self.assertEqual(result.slots[8].label, "trough")

    def test_ignores_sessions_older_than_fourteen_days(self) -> None:
        sessions = [make_session(at(20 + i, 10)) for i in range(10)]
        self.assertFalse(daily_flow_waves(sessions, NOW).has_enough_data)

    def test_window_starts_at_midnight_fourteen_days_ago(self) -> None:
        sessions = [make_session(at(14, 0)) for _ in range(5)]
        self.assertTrue(daily_flow_waves(sessions, NOW).has_enough_data)

    def test_totals_rounded_to_one_decimal(self) -> None:
        sessions = [make_session(at(i, 9), minutes=10.25) for i in range(5)]
        result = daily_flow_waves(sessions, NOW)
        self.assertEqual(result.slots[9].total_minutes, 51.3)

    def test_zero_length_sessions_have_no_peak(self) -> None:
        result = daily_flow_waves(sessions_at_hour(5, 9, minutes=0), NOW)
        self.assertTrue(result.has_enough_data)
        self.assertIsNone(result.peak_hour)
        self.assertIsNone(result.trough_hour)
        self.assertTrue(all(slot.label == "normal" for slot in result.slots))


class TestWeeklyWorkTime(unittest.TestCase):
    def test_current_week_totals(self) -> None:
        sessions = [
            make_session(datetime(2026, 2, 10, 9, 0, tzinfo=timezone.utc), minutes=30),
            make_session(datetime(2026, 2, 10, 14, 0, tzinfo=timezone.utc), minutes=45.5),
            make_session(datetime(2026, 2, 12, 20, 0, tzinfo=timezone.utc), minutes=20),
            make_session(datetime(2026, 2, 6, 9, 0, tzinfo=timezone.utc), minutes=50),
        ]
        result = weekly_work_time(sessions, NOW)

        self.assertTrue(result.has_enough_data)
        self.assertEqual(result.week_label, "9 Feb – 15 Feb")
        self.assertEqual([day.day_label for day in result.days], ["mon", "tue", "wed", "thu", "fri", "sat", "sun"])
        self.assertEqual(result.days[0].date, "2026-02-09")
        self.assertEqual(result.days[1].total_minutes, 76)
        self.assertEqual(result.days[3].total_minutes, 20)
        self.assertEqual(result.week_total_minutes, 96)

    def test_empty_past_week_is_still_populated(self) -> None:
        sessions = [make_session(datetime(2026, 2, 10, 9, 0, tzinfo=timezone.utc))]
        result = weekly_work_time(sessions, NOW, week_offset=-1)

        self.assertFalse(result.has_enough_data)
        self.assertEqual(len(result.days), 7)
        self.assertEqual(result.week_total_minutes, 0)
        self.assertEqual(result.week_label, "2 Feb – 8 Feb")
        self.assertEqual(result.week_offset, -1)

    def test_sunday_belongs_to_previous_monday(self) -> None:
        sunday = datetime(2026, 2, 15, 10, 0, tzinfo=timezone.utc)
        result = weekly_work_time([], sunday)
        self.assertEqual(result.days[0].date, "2026-02-09")
        self.assertEqual(result.days[-1].date, "2026-02-15")

    def test_label_across_months(self) -> None:
        tuesday = datetime(2026, 3, 3, 10, 0, tzinfo=timezone.utc)
        self.assertEqual(weekly_work_time([], tuesday, week_offset=-1).week_label, "23 Feb – 1 Mar")


class TestFocusDensity(unittest.TestCase):
    def test_no_sessions_today(self) -> None:
        result = focus_density([make_session(at(1, 9))], NOW)
        self.assertFalse(result.has_enough_data)
        self.assertEqual(result.percentage, 0)
        self.assertEqual(result.label, "scattered_mind")

    def test_single_session_is_sharp(self) -> None:
        result = focus_density([make_session(at(0, 9), minutes=12)], NOW)
        self.assertTrue(result.has_enough_data)
        self.assertEqual(result.percentage, 100)
        self.assertEqual(result.label, "sharp")

    def test_close_sessions_are_sharp(self) -> None:
        sessions = [make_session(at(0, 9, 0)), make_session(at(0, 9, 40))]
        result = focus_density(sessions, NOW)
        # 60 focus minutes over a 70 minute span
        self.assertEqual(result.percentage, 86)
        self.assertEqual(result.label, "sharp")

    def test_twenty_minute_gap_is_good(self) -> None:
        sessions = [make_session(at(0, 9, 0)), make_session(at(0, 9, 50))]
        result = focus_density(sessions, NOW)
        self.assertEqual(result.percentage, 75)
        self.assertEqual(result.label, "good")

    def test_short_sessions_in_one_block_are_scattered(self) -> None:
        sessions = [make_session(at(0, 9, 0), minutes=5), make_session(at(0, 9, 30), minutes=5)]
        result = focus_density(sessions, NOW)
        self.assertEqual(result.percentage, 29)
        self.assertEqual(result.label, "scattered_mind")

    def test_blocks_are_weighted_by_focus(self) -> None:
        sessions = [
            make_session(at(0, 13, 0), minutes=10),
            make_session(at(0, 9, 45), minutes=15),
            make_session(at(0, 9, 0), minutes=15),
        ]
        result = focus_density(sessions, NOW)
        # block 09:00-10:00 at 50% (30 min), lone block at 100% (10 min)
        self.assertEqual(result.percentage, 63)
        self.assertEqual(result.label, "good")

    def test_distant_sessions_form_separate_blocks(self) -> None:
        sessions = [make_session(at(0, 9, 0)), make_session(at(0, 12, 30))]
        result = focus_density(sessions, NOW)
        self.assertEqual(result.percentage, 100)
        self.assertEqual(result.label, "sharp")

    def test_wall_clock_span_uses_end_times(self) -> None:
        first_start = at(0, 9, 0)
        sessions = [
            make_session(first_start, minutes=30, ended_at=first_start + timedelta(minutes=60)),
            make_session(at(0, 10, 0), minutes=30),
        ]
        result = focus_density(sessions, NOW)
        self.assertEqual(result.percentage, 67)
        self.assertEqual(result.label, "good")


class TestResistancePoint(unittest.TestCase):
    def test_needs_ten_sessions(self) -> None:
        result = resistance_point([make_session(at(i, 9)) for i in range(9)], NOW)
        self.assertFalse(result.has_enough_data)
        self.assertEqual(result.resistance_minute, 0)
        self.assertEqual(result.last_7_days_sessions, ())

    def test_uniform_sessions_use_mode(self) -> None:
        sessions = [make_session(at(i, 9), minutes=25) for i in range(15)]
        result = resistance_point(sessions, NOW)
        self.assertTrue(result.has_enough_data)
        self.assertEqual(result.resistance_minute, 25)

    def test_outlying_mode_falls_back_to_median(self) -> None:
        minutes = [10, 10, 10, 30, 31, 32, 33, 34, 35, 36]
        sessions = [make_session(at(20 + i, 9), minutes=value) for i, value in enumerate(minutes)]
        result = resistance_point(sessions, NOW)
        self.assertEqual(result.resistance_minute, 32)

    def test_last_seven_days_listing(self) -> None:
        sessions = [make_session(at(i, 9), minutes=25.5) for i in range(15)]
        result = resistance_point(sessions, NOW)

        self.assertEqual(len(result.last_7_days_sessions), 8)
        self.assertEqual(result.last_7_days_sessions[0].date, "2026-02-06")
        self.assertEqual(result.last_7_days_sessions[-1].date, "2026-02-13")
        self.assertTrue(all(item.duration_minutes == 26 for item in result.last_7_days_sessions))


class TestEarnedFreedom(unittest.TestCase):
    def test_single_session_balance(self) -> None:
        result = earned_freedom([make_session(at(0, 9), minutes=30, break_minutes=5)], NOW)
        self.assertTrue(result.has_enough_data)
        self.assertEqual(result.earned_minutes, 6)
        self.assertEqual(result.used_minutes, 5)
        self.assertEqual(result.balance_minutes, 1)
        self.assertEqual(result.week_earned, 6)
        self.assertEqual(result.week_used, 5)

    def test_rounds_totals_not_sessions(self) -> None:
        sessions = [make_session(at(0, 9), minutes=7), make_session(at(0, 11), minutes=7)]
        self.assertEqual(earned_freedom(sessions, NOW).earned_minutes, 3)

    def test_balance_uses_unrounded_values(self) -> None:
        result = earned_freedom([make_session(at(0, 9), minutes=12, break_minutes=1.5)], NOW)
        self.assertEqual(result.earned_minutes, 2)
        self.assertEqual(result.used_minutes, 2)
        self.assertEqual(result.balance_minutes, 1)

    def test_week_totals_without_today(self) -> None:
        sessions = [make_session(at(2, 9), minutes=50, break_minutes=10), make_session(at(9, 9), minutes=50)]
        result = earned_freedom(sessions, NOW)
        self.assertFalse(result.has_enough_data)
        self.assertEqual(result.earned_minutes, 0)
        self.assertEqual(result.week_earned, 10)
        self.assertEqual(result.week_used, 10)


class TestNaturalFlowWindow(unittest.TestCase):
    def _sessions(self, spec: list[tuple[int, float]]) -> list:
        sessions = []
        for count, minutes in spec:
            for _ in range(count):
                sessions.append(make_session(at(len(sessions), 9), minutes=minutes))
        return sessions

    def test_needs_twenty_sessions(self) -> None:
        result = natural_flow_window(self._sessions([(19, 25)]), NOW)
        self.assertFalse(result.has_enough_data)
        self.assertEqual(result.buckets, ())

    def test_two_bucket_window(self) -> None:
        result = natural_flow_window(self._sessions([(8, 22), (7, 27), (5, 41)]), NOW)

        self.assertTrue(result.has_enough_data)
        self.assertEqual((result.dominant_window_start, result.dominant_window_end), (20, 30))
        self.assertEqual([b.range_start for b in result.buckets], [20, 25, 40])
        self.assertEqual([b.is_dominant for b in result.buckets], [True, True, False])
        self.assertEqual([b.count for b in result.buckets], [8, 7, 5])
        self.assertEqual(result.median, 27)

    def test_three_bucket_window_needs_strictly_more(self) -> None:
        result = natural_flow_window(self._sessions([(7, 12), (7, 17), (6, 22)]), NOW)
        self.assertEqual((result.dominant_window_start, result.dominant_window_end), (10, 25))
        self.assertTrue(all(bucket.is_dominant for bucket in result.buckets))

    def test_ties_keep_earliest_window(self) -> None:
        result = natural_flow_window(self._sessions([(5, 7), (5, 12), (5, 27), (5, 32)]), NOW)
        self.assertEqual((result.dominant_window_start, result.dominant_window_end), (5, 15))

    def test_bucket_count_is_capped(self) -> None:
        result = natural_flow_window(self._sessions([(19, 10), (1, 500)]), NOW)
        self.assertTrue(all(bucket.range_end <= 150 for bucket in result.buckets))
        self.assertEqual(sum(bucket.count for bucket in result.buckets), 19)

    def test_buckets_are_five_minutes_wide(self) -> None:
        result = natural_flow_window(self._sessions([(6, 3), (6, 18), (8, 64)]), NOW)
        self.assertTrue(result.buckets)
        for bucket in result.buckets:
            self.assertEqual(bucket.range_end - bucket.range_start, 5)


class TestFlowStreak(unittest.TestCase):
    def test_needs_three_sessions(self) -> None:
        result = flow_streak([make_session(at(0, 9)), make_session(at(1, 9))], NOW)
        self.assertFalse(result.has_enough_data)
        self.assertEqual(result.last_30_days, ())

    def test_current_streak_stops_at_gap(self) -> None:
        sessions = [make_session(at(days, 9)) for days in (0, 1, 2, 4)]
        result = flow_streak(sessions, NOW)

        self.assertTrue(result.has_enough_data)
        self.assertEqual(len(result.last_30_days), 30)
        self.assertEqual(result.last_30_days[-1].date, "2026-02-13")
        self.assertEqual(result.last_30_days[0].date, "2026-01-15")
        self.assertEqual(result.current_streak, 3)
        self.assertEqual(result.record_streak, 3)

    def test_no_session_today_means_no_current_streak(self) -> None:
        sessions = [make_session(at(days, 9)) for days in (1, 2, 3)]
        result = flow_streak(sessions, NOW)
        self.assertEqual(result.current_streak, 0)
        self.assertEqual(result.record_streak, 3)

    def test_record_streak_scans_full_history(self) -> None:
        sessions = [make_session(at(days, 9), minutes=60) for days in range(35, 41)]
        sessions.append(make_session(at(0, 9), minutes=60))
        result = flow_streak(sessions, NOW)

        self.assertEqual(result.current_streak, 1)
        self.assertEqual(result.record_streak, 6)
        self.assertEqual(sum(day.filled for day in result.last_30_days), 1)

    def test_low_days_do_not_count(self) -> None:
        sessions = [make_session(at(days, 9), minutes=60) for days in (1, 2)]
        sessions.append(make_session(at(0, 9), minutes=10))
        result = flow_streak(sessions, NOW)
        # threshold = 0.5 * (130 / 3) = 21.7
        self.assertEqual(result.current_streak, 0)
        self.assertEqual(result.record_streak, 2)

    def test_record_never_below_current(self) -> None:
        sessions = [make_session(at(days, 9), minutes=20 + days) for days in range(0, 45, 1) if days % 11]
        result = flow_streak(sessions, NOW)
        self.assertGreaterEqual(result.record_streak, result.current_streak)


class TestTaskFlowHarmony(unittest.TestCase):
    def test_needs_ten_tagged_sessions(self) -> None:
        sessions = [make_session(at(i, 9), task_id="a") for i in range(9)]
        sessions += [make_session(at(i, 15)) for i in range(5)]
        self.assertFalse(task_flow_harmony(sessions, [], NOW).has_enough_data)

    def test_groups_and_sorts_by_focus(self) -> None:
        sessions = [make_session(at(i, 9), minutes=30, task_id="a") for i in range(6)]
        sessions += [make_session(at(i, 11), minutes=25, task_id="b") for i in range(4)]
        sessions += [make_session(at(i, 15), minutes=10, task_id="gone") for i in range(2)]
        sessions += [make_session(at(i, 17)) for i in range(3)]
        tasks = [Task(id="b", title="写周报"), Task(id="a", title="读论文")]

        result = task_flow_harmony(sessions, tasks, NOW)

        self.assertTrue(result.has_enough_data)
        self.assertEqual([item.task_title for item in result.items], ["读论文", "写周报", "Unknown"])
        self.assertEqual([item.total_focus_minutes for item in result.items], [180, 100, 20])
        self.assertEqual([item.session_count for item in result.items], [6, 4, 2])
        self.assertTrue(all(item.estimated_minutes is None for item in result.items))

    def test_keeps_top_ten(self) -> None:
        sessions = [make_session(at(i, 9), minutes=10 + i, task_id=f"t{i}") for i in range(12)]
        result = task_flow_harmony(sessions, [Task(id="t0", title="  ")], NOW)
        self.assertEqual(len(result.items), 10)
        self.assertEqual(result.items[0].total_focus_minutes, 21)
        self.assertNotIn(10, [item.total_focus_minutes for item in result.items])

    def test_blank_titles_become_unknown(self) -> None:
        sessions = [make_session(at(i, 9), task_id="a") for i in range(10)]
        result = task_flow_harmony(sessions, [Task(id="a", title="   ")], NOW)
        self.assertEqual(result.items[0].task_title, "Unknown")


class TestWarmupPhase(unittest.TestCase):
    def test_stable_sessions(self) -> None:
        sessions = [make_session(at(i % 7, 8 + i // 7)) for i in range(35)]
        result = warmup_phase(sessions, NOW)

        self.assertTrue(result.has_enough_data)
        self.assertAlmostEqual(result.avg_warmup_minutes, 6.6)
        self.assertIsNone(result.prev_month_warmup)
        self.assertIsNone(result.change_minutes)

    def test_unreliable_pattern(self) -> None:
        sessions = [make_session(at(i, 9), minutes=20) for i in range(16)]
        sessions += [make_session(at(i, 14), minutes=90) for i in range(16)]
        self.assertFalse(warmup_phase(sessions, NOW).has_enough_data)

    def test_short_sessions_do_not_count(self) -> None:
        sessions = [make_session(at(i, 9), minutes=30) for i in range(29)]
        sessions += [make_session(at(i, 14), minutes=10) for i in range(10)]
        self.assertFalse(warmup_phase(sessions, NOW).has_enough_data)

    def test_previous_month_comparison(self) -> None:
        sessions = [make_session(at(i % 10, 8 + i // 10), minutes=30) for i in range(30)]
        sessions += [make_session(datetime(2026, 1, 10 + i, 9, 0, tzinfo=timezone.utc), minutes=50) for i in range(10)]
        result = warmup_phase(sessions, NOW)

        self.assertAlmostEqual(result.avg_warmup_minutes, 7.7)
        self.assertAlmostEqual(result.prev_month_warmup, 11.0)
        self.assertAlmostEqual(result.change_minutes, -3.3)

    def test_january_compares_with_any_december(self) -> None:
        now = datetime(2026, 1, 20, 12, 0, tzinfo=timezone.utc)
        sessions = [make_session(at(i % 15, 8 + i // 15, now=now)) for i in range(30)]
        sessions += [make_session(datetime(2024, 12, 1 + i, 9, 0, tzinfo=timezone.utc)) for i in range(10)]
        result = warmup_phase(sessions, now)

        self.assertAlmostEqual(result.prev_month_warmup, 6.6)
        self.assertAlmostEqual(result.change_minutes, 0.0)


class TestLocalTime(unittest.TestCase):
    def test_late_utc_session_is_today_further_east(self) -> None:
        moscow_noon = datetime(2026, 2, 13, 12, 0, tzinfo=zone("Europe/Moscow"))
        sessions = [make_session(datetime(2026, 2, 12, 23, 30, tzinfo=timezone.utc), break_minutes=2)]

        density = focus_density(sessions, moscow_noon)
        self.assertTrue(density.has_enough_data)
        self.assertEqual(density.percentage, 100)
        freedom = earned_freedom(sessions, moscow_noon)
        self.assertTrue(freedom.has_enough_data)
        self.assertEqual(freedom.earned_minutes, 6)
        self.assertEqual(freedom.used_minutes, 2)

        self.assertFalse(focus_density(sessions, NOW).has_enough_data)
        self.assertEqual(earned_freedom(sessions, NOW).earned_minutes, 0)

    def test_streak_days_follow_local_midnight(self) -> None:
        moscow_noon = datetime(2026, 2, 13, 12, 0, tzinfo=zone("Europe/Moscow"))
        sessions = [make_session(datetime(2026, 2, day, 22, 0, tzinfo=timezone.utc)) for day in (10, 11, 12)]

        local = flow_streak(sessions, moscow_noon)
        self.assertEqual(local.current_streak, 3)
        self.assertEqual(local.last_30_days[-1].date, "2026-02-13")
        self.assertTrue(local.last_30_days[-1].filled)

        utc = flow_streak(sessions, NOW)
        self.assertEqual(utc.current_streak, 0)
        self.assertEqual(utc.record_streak, 3)

    def test_hours_keep_their_own_offset_across_dst(self) -> None:
        berlin = zone("Europe/Berlin")
        # 08:00 UTC is 09:00 in Berlin before the change on 2026-03-29
        sessions = [make_session(datetime(2026, 3, day, 8, 0, tzinfo=timezone.utc)) for day in range(24, 29)]

        result = daily_flow_waves(sessions, datetime(2026, 4, 2, 12, 0, tzinfo=berlin))
        self.assertEqual(result.peak_hour, 9)
        self.assertEqual(result.slots[9].total_minutes, 150.0)

        summer_offset = datetime(2026, 4, 2, 12, 0, tzinfo=timezone(timedelta(hours=2)))
        self.assertEqual(daily_flow_waves(sessions, summer_offset).peak_hour, 10)

    def test_naive_now_uses_system_zone(self) -> None:
        zone("Asia/Tokyo")
        naive = datetime(2026, 2, 13, 12, 0)
        sessions = sessions_at_hour(5, 9)

        with mock.patch.dict(os.environ, {"FLOWTIME_TZ": "Asia/Tokyo"}):
            waves = daily_flow_waves(sessions, naive)
            week = weekly_work_time(sessions, naive)
            density = focus_density(sessions, naive)
            streak = flow_streak(sessions, naive)
            resistance = resistance_point(sessions, naive)
            freedom = earned_freedom(sessions, naive)
            warmup = warmup_phase(sessions, naive)

        # 09:00 UTC is 18:00 in Tokyo
        self.assertEqual(waves.peak_hour, 18)
        self.assertEqual(week.days[0].date, "2026-02-09")
        self.assertEqual(week.week_total_minutes, 150)
        self.assertTrue(density.has_enough_data)
        self.assertEqual(streak.current_streak, 5)
        self.assertFalse(resistance.has_enough_data)
        self.assertEqual(freedom.earned_minutes, 6)
        self.assertFalse(warmup.has_enough_data)


if __name__ == "__main__":
    unittest.main()
