from __future__ import annotations

import threading
import unittest

from pomo.clock import FakeClock
from pomo.tests.test_helpers import RecordingSink
from pomo.timer import TimerEngine, format_countdown


class _BrokenSink:
    def timer_progress(self, state: object) -> None:
        raise ConnectionError("display gone")

    def timer_completed(self) -> None:
        raise ConnectionError("display gone")


class _StoppingSink:
    def __init__(self, engine: TimerEngine) -> None:
        self.engine = engine

    def timer_progress(self, state: object) -> None:
        self.engine.stop()

    def timer_completed(self) -> None:
        return None


class _TickCounter:
    def __init__(self) -> None:
        self.ticks = 0
        self.refreshes = 0

    def on_tick(self, state: object) -> None:
        self.ticks += 1

    def refresh(self, state: object) -> None:
        self.refreshes += 1


class TestTimerEngine(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = FakeClock()
        self.engine = TimerEngine(duration=5, clock=self.clock)
        self.sink = RecordingSink()
        self.engine.add_sink(self.sink)

    def tearDown(self) -> None:
        self.engine.stop()
        self.engine.join(timeout=2)

    def _start(self) -> None:
        self.engine.start()
        self.clock.settle(sleepers=1)

    def test_countdown_emits_one_progress_per_second_and_one_completion(self) -> None:
        self._start()
        self.clock.advance(5)

        self.assertTrue(self.engine.join(timeout=2))
        self.assertEqual(self.sink.remaining, [4, 3, 2, 1, 0])
        self.assertEqual(self.sink.completions, 1)
        state = self.engine.state()
        self.assertFalse(state.running)
        self.assertFalse(state.paused)
        self.assertEqual(state.remaining, 0)

        self.clock.advance(3)
        self.assertEqual(self.sink.completions, 1)

    def test_no_decrement_before_a_full_second(self) -> None:
        self._start()
        self.clock.advance(0.9)
        self.assertEqual(self.sink.remaining, [])

        self.clock.advance(0.1)
        self.assertEqual(self.sink.remaining, [4])

    def test_second_start_does_not_spawn_another_loop(self) -> None:
        self._start()
        self.engine.start()
        self.clock.settle(sleepers=1)
        self.clock.advance(3)

        self.assertEqual(self.sink.remaining, [4, 3, 2])
        loops = [t for t in threading.enumerate() if t.name == "pomo-tick" and t.is_alive()]
        self.assertEqual(len(loops), 1)

    def test_pause_holds_remaining_until_restart(self) -> None:
        self.engine.configure(10)
        self._start()
        self.clock.advance(3)
        self.assertEqual(self.engine.state().remaining, 7)

        paused = self.engine.pause()
        self.assertTrue(paused.running)
        self.assertTrue(paused.paused)
        self.clock.advance(5)
        self.assertTrue(self.engine.join(timeout=2))
        self.assertEqual(self.engine.state().remaining, 7)
        self.assertEqual(self.sink.remaining, [9, 8, 7])

        self._start()
        self.clock.advance(7)
        self.assertTrue(self.engine.join(timeout=2))
        self.assertEqual(self.sink.remaining, [9, 8, 7, 6, 5, 4, 3, 2, 1, 0])
        self.assertEqual(self.sink.completions, 1)

    def test_stop_resets_from_any_state(self) -> None:
        for prepare in ("idle", "running", "paused"):
            with self.subTest(prepare=prepare):
                self.engine.configure(5)
                if prepare in ("running", "paused"):
                    self._start()
                    self.clock.advance(2)
                if prepare == "paused":
                    self.engine.pause()

                state = self.engine.stop()
                self.assertEqual(state.remaining, state.planned_duration)
                self.assertFalse(state.running)
                self.assertFalse(state.paused)

                emitted = len(self.sink.progress)
                self.clock.advance(2)
                self.assertEqual(len(self.sink.progress), emitted)

    def test_start_right_after_pause_replaces_the_registered_loop(self) -> None:
        self.engine.configure(10)
        self._start()
        self.clock.advance(2)
        self.engine.pause()
        self.engine.start()
        self.clock.settle(sleepers=1)

        loops = [t for t in threading.enumerate() if t.name == "pomo-tick" and t.is_alive()]
        self.assertEqual(len(loops), 1)
        self.clock.advance(3)
        self.assertEqual(self.sink.remaining, [9, 8, 7, 6, 5])

    def test_stop_during_delivery_drops_the_rest_of_the_tick(self) -> None:
        self.engine.remove_sink(self.sink)
        self.engine.add_sink(_StoppingSink(self.engine))
        self.engine.add_sink(self.sink)
        counter = _TickCounter()
        self.engine.attach_status(counter)
        self._start()
        self.clock.advance(1)

        self.assertTrue(self.engine.join(timeout=2))
        self.assertEqual(self.sink.progress, [])
        self.assertEqual(counter.ticks, 0)
        state = self.engine.state()
        self.assertFalse(state.running)
        self.assertEqual(state.remaining, 5)

    def test_configure_ignored_while_running_but_allowed_when_paused(self) -> None:
        self._start()
        ignored = self.engine.configure(99)
        self.assertEqual(ignored.planned_duration, 5)
        self.assertTrue(ignored.running)

        self.engine.pause()
        changed = self.engine.configure(30)
        self.assertEqual(changed.planned_duration, 30)
        self.assertEqual(changed.remaining, 30)

    def test_zero_duration_completes_on_first_check(self) -> None:
        self.engine.configure(0)
        self._start()
        self.clock.advance(1)

        self.assertTrue(self.engine.join(timeout=2))
        self.assertEqual(self.sink.remaining, [])
        self.assertEqual(self.sink.completions, 1)
        self.assertFalse(self.engine.state().running)

    def test_failing_sink_does_not_stop_the_loop(self) -> None:
        self.engine.add_sink(_BrokenSink())
        self._start()
        with self.assertLogs("pomo.timer", level="WARNING"):
            self.clock.advance(2)

        self.assertEqual(self.sink.remaining, [4, 3])

    def test_negative_duration_rejected(self) -> None:
        with self.assertRaises(ValueError):
            self.engine.configure(-1)

    def test_label_is_trimmed(self) -> None:
        self.assertEqual(self.engine.set_label("  写作 ").label, "写作")
        self.assertIsNone(self.engine.set_label("   ").label)


class TestFormatCountdown(unittest.TestCase):
    def test_minutes_and_seconds(self) -> None:
        self.assertEqual(format_countdown(0), "00:00")
        self.assertEqual(format_countdown(1499), "24:59")
        self.assertEqual(format_countdown(90 * 60), "90:00")


if __name__ == "__main__":
    unittest.main()
