import datetime as dt
import unittest

from tucing.bookings.selection import (
    DoubleClick,
    RangeSelected,
    SelectionState,
    SelectionStateMachine,
)
from tucing.bookings.timers import ManualScheduler


class SelectionStateMachineTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.scheduler = ManualScheduler()
        self.events = []
        self.machine = SelectionStateMachine(
            self.scheduler,
            on_event=self.events.append,
            today=dt.date(2024, 6, 15),
        )

    def click_and_wait(self, day: int, wait: float = 0.3) -> None:
        self.machine.click(day)
        self.scheduler.advance(wait)

    def test_first_click_waits_for_window(self) -> None:
        self.machine.click(5)
        self.assertTrue(self.machine.pending)
        self.assertEqual(self.machine.state, SelectionState.IDLE)
        self.scheduler.advance(0.249)
        self.assertIsNone(self.machine.first_selected_date)
        self.scheduler.advance_to(0.25)
        self.assertFalse(self.machine.pending)
        self.assertEqual(self.machine.state, SelectionState.AWAITING_SECOND_DATE)
        self.assertEqual(self.machine.first_selected_date, dt.date(2024, 6, 5))
        self.assertEqual(self.events, [])

    def test_two_slow_clicks_select_range(self) -> None:
        self.click_and_wait(5)
        self.click_and_wait(10)
        self.assertEqual(self.events, [RangeSelected(dt.date(2024, 6, 5), dt.date(2024, 6, 10))])
        self.assertEqual(self.machine.state, SelectionState.IDLE)
        self.assertIsNone(self.machine.hover_date)

    def test_range_is_normalized(self) -> None:
        self.click_and_wait(20)
        self.click_and_wait(3)
        self.assertEqual(self.events, [RangeSelected(dt.date(2024, 6, 3), dt.date(2024, 6, 20))])

    def test_same_day_twice_gives_one_day_range(self) -> None:
        self.click_and_wait(7)
        self.click_and_wait(7)
        self.assertEqual(self.events, [RangeSelected(dt.date(2024, 6, 7), dt.date(2024, 6, 7))])

    def test_fast_clicks_on_different_days_are_a_double_click(self) -> None:
        self.machine.click(5)
        self.scheduler.advance(0.1)
        self.machine.click(10)
        self.scheduler.advance(1)
        self.assertEqual(self.events, [DoubleClick(dt.date(2024, 6, 10))])
        self.assertEqual(self.machine.state, SelectionState.IDLE)
        self.assertFalse(self.machine.pending)

    def test_double_click_discards_pending_first_date(self) -> None:
        self.click_and_wait(2)
        self.machine.click(9)
        self.machine.click(9)
        self.scheduler.advance(1)
        self.assertEqual(self.events, [DoubleClick(dt.date(2024, 6, 9))])
        self.assertIsNone(self.machine.first_selected_date)

    def test_many_slow_clicks_emit_a_range_every_second_click(self) -> None:
        for day in (1, 4, 12, 8, 30, 30):
            self.click_and_wait(day)
        self.assertEqual(len(self.events), 3)
        for event in self.events:
            self.assertIsInstance(event, RangeSelected)
            self.assertLessEqual(event.start_date, event.end_date)

    def test_hover_only_tracked_while_awaiting_second_date(self) -> None:
        self.machine.hover(3)
        self.assertIsNone(self.machine.hover_date)
        self.click_and_wait(10)
        self.machine.hover(4)
        self.assertEqual(self.machine.hover_date, dt.date(2024, 6, 4))
        self.assertEqual(self.machine.preview_range(), (dt.date(2024, 6, 4), dt.date(2024, 6, 10)))
        self.assertTrue(self.machine.in_preview(dt.date(2024, 6, 7)))
        self.assertFalse(self.machine.in_preview(dt.date(2024, 6, 11)))
        self.machine.leave()
        self.assertIsNone(self.machine.preview_range())

    def test_navigation_discards_pending_selection(self) -> None:
        self.click_and_wait(10)
        self.machine.click(12)
        self.machine.navigate(1)
        self.scheduler.advance(1)
        self.assertEqual(self.events, [])
        self.assertEqual(self.machine.state, SelectionState.IDLE)
        self.assertEqual((self.machine.year, self.machine.month), (2024, 7))
        self.assertEqual(self.scheduler.pending, 0)

    def test_navigation_wraps_years(self) -> None:
        self.machine.navigate(-1)
        self.assertEqual((self.machine.year, self.machine.month), (2024, 5))
        machine = SelectionStateMachine(
            ManualScheduler(), on_event=self.events.append, today=dt.date(2024, 12, 1)
        )
        machine.navigate(1)
        self.assertEqual((machine.year, machine.month), (2025, 1))
        machine.navigate(-1)
        machine.navigate(-1)
        self.assertEqual((machine.year, machine.month), (2024, 11))

    def test_clicks_use_displayed_month(self) -> None:
        self.machine.navigate(1)
        self.click_and_wait(1)
        self.click_and_wait(2)
        self.assertEqual(self.events, [RangeSelected(dt.date(2024, 7, 1), dt.date(2024, 7, 2))])

    def test_invalid_day_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            self.machine.click(31)

    def test_snapshot(self) -> None:
        self.click_and_wait(10)
        self.machine.hover(12)
        snapshot = self.machine.snapshot()
        self.assertEqual(snapshot["state"], "awaiting_second_date")
        self.assertEqual(snapshot["first_selected_date"], "2024-06-10")
        self.assertEqual(snapshot["preview"], ["2024-06-10", "2024-06-12"])
        self.assertFalse(snapshot["pending"])


class ManualSchedulerTestCase(unittest.TestCase):
    def test_runs_due_calls_in_order(self) -> None:
        scheduler = ManualScheduler()
        calls = []
        scheduler.call_later(0.5, lambda: calls.append("late"))
        scheduler.call_later(0.1, lambda: calls.append("early"))
        cancelled = scheduler.call_later(0.2, lambda: calls.append("cancelled"))
        cancelled.cancel()
        self.assertEqual(scheduler.advance(0.3), 1)
        self.assertEqual(calls, ["early"])
        scheduler.advance_to(0.1)
        self.assertEqual(scheduler.now, 0.3)
        scheduler.advance(1)
        self.assertEqual(calls, ["early", "late"])


if __name__ == "__main__":
    unittest.main()
