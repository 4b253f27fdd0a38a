from __future__ import annotations

from contextlib import ExitStack
from datetime import datetime, timezone
import threading
import unittest

from pomo.clock import FakeClock
from pomo.config import PomoConfig
from pomo.service import CommandError, PomoService
from pomo.status import StatusBoard
from pomo.tests.test_helpers import local_tmp_dir


class TestPomoService(unittest.TestCase):
    def setUp(self) -> None:
        stack = ExitStack()
        self.addCleanup(stack.close)
        self.tmp = stack.enter_context(local_tmp_dir())
        self.clock = FakeClock(start=datetime(2026, 2, 13, 12, 0, tzinfo=timezone.utc))
        self.board = StatusBoard()
        self.service = PomoService.build(
            PomoConfig(data_dir=self.tmp, default_duration=5),
            clock=self.clock,
            display=self.board,
            surface_hidden=self.board.is_primary_hidden,
        )

    def tearDown(self) -> None:
        self.service.stop()
        self.service.engine.join(timeout=2)

    def _start(self) -> None:
        self.service.start()
        self.clock.settle(sleepers=1)

    def test_start_opens_session_and_completion_closes_it(self) -> None:
        self.service.set_label("  写作 ")
        self._start()
        self.assertIsNotNone(self.service.state().active_session_id)

        self.clock.advance(5)
        self.assertTrue(self.service.engine.join(timeout=2))

        records = self.service.store.snapshot()
        self.assertEqual(len(records), 1)
        record = records[0]
        self.assertEqual(record.label, "写作")
        self.assertEqual(record.kind, "focus")
        self.assertTrue(record.completed)
        self.assertFalse(record.interrupted)
        self.assertEqual(record.actual_duration, 5)
        self.assertIsNone(self.service.state().active_session_id)

        self.assertEqual(self.service.today_count(), 1)
        latest = self.board.latest()
        assert latest is not None
        self.assertEqual(latest.tooltip, "Pomo - 就绪 | 今日完成 1 次")

    def test_pauses_are_counted_and_timed(self) -> None:
        self.service.configure(10)
        self._start()
        self.clock.advance(2)
        self.service.pause()
        self.clock.advance(3)
        self.assertTrue(self.service.engine.join(timeout=2))

        self._start()
        self.clock.advance(8)
        self.assertTrue(self.service.engine.join(timeout=2))

        record = self.service.store.snapshot()[0]
        self.assertTrue(record.completed)
        self.assertEqual(record.actual_duration, 10)
        self.assertEqual(record.pause_count, 1)
        self.assertEqual(record.total_pause_duration, 3)

    def test_actual_duration_counts_running_seconds_across_reconfigure(self) -> None:
        self.service.configure(10)
        self._start()
        self.clock.advance(3)
        self.service.pause()
        self.service.configure(5)
        self._start()
        self.clock.advance(5)
        self.assertTrue(self.service.engine.join(timeout=2))

        record = self.service.store.snapshot()[0]
        self.assertTrue(record.completed)
        self.assertEqual(record.actual_duration, 8)
        self.assertEqual(record.pause_count, 1)

    def test_concurrent_starts_open_one_session(self) -> None:
        for trial in range(20):
            with self.subTest(trial=trial):
                barrier = threading.Barrier(4)
                errors: list[BaseException] = []

                def worker() -> None:
                    try:
                        barrier.wait(timeout=5)
                        self.service.start()
                    except BaseException as exc:
                        errors.append(exc)

                threads = [threading.Thread(target=worker) for _ in range(4)]
                for thread in threads:
                    thread.start()
                for thread in threads:
                    thread.join(timeout=5)

                self.assertEqual(errors, [])
                self.assertEqual(len(self.service.store.snapshot()), trial + 1)
                loops = [t for t in threading.enumerate() if t.name == "pomo-tick" and t.is_alive()]
                self.assertEqual(len(loops), 1)

                self.service.stop()
                self.assertTrue(self.service.engine.join(timeout=2))

        records = self.service.store.snapshot()
        self.assertTrue(all(not item.is_open for item in records))

    def test_stop_closes_session_as_interrupted(self) -> None:
        self._start()
        self.clock.advance(4)

        state = self.service.stop()
        self.assertFalse(state.running)
        self.assertEqual(state.remaining, 5)
        self.assertIsNone(state.active_session_id)

        record = self.service.store.snapshot()[0]
        self.assertFalse(record.completed)
        self.assertTrue(record.interrupted)
        self.assertEqual(record.actual_duration, 4)
        self.assertEqual(self.service.today_count(), 0)

    def test_second_start_keeps_single_session(self) -> None:
        self._start()
        self.service.start()
        self.clock.advance(1)
        self.assertEqual(len(self.service.store.snapshot()), 1)
        self.assertEqual(self.service.state().remaining, 4)

    def test_finished_timer_restarts_from_planned_duration(self) -> None:
        self.service.configure(2)
        self._start()
        self.clock.advance(2)
        self.assertTrue(self.service.engine.join(timeout=2))
        self.assertEqual(self.service.state().remaining, 0)

        state = self.service.start()
        self.assertTrue(state.running)
        self.assertEqual(state.remaining, 2)
        self.clock.settle(sleepers=1)
        self.clock.advance(2)
        self.assertTrue(self.service.engine.join(timeout=2))

        records = self.service.store.snapshot()
        self.assertEqual(len(records), 2)
        self.assertTrue(all(item.completed for item in records))

    def test_configure_is_ignored_while_running(self) -> None:
        self._start()
        state = self.service.configure(100)
        self.assertEqual(state.planned_duration, 5)
        self.assertTrue(state.running)

    def test_preset_configures_without_starting(self) -> None:
        state = self.service.apply_preset(15)
        self.assertEqual(state.planned_duration, 900)
        self.assertEqual(state.remaining, 900)
        self.assertFalse(state.running)

    def test_manual_session_commands(self) -> None:
        session_id = self.service.begin_session("break")
        self.assertEqual(self.service.state().active_session_id, session_id)

        self.service.complete_session(session_id, True, 300, pause_count=1, pause_duration=20)
        record = self.service.store.get(session_id)
        assert record is not None
        self.assertEqual(record.kind, "break")
        self.assertEqual(record.total_pause_duration, 20)
        self.assertIsNone(self.service.state().active_session_id)

        self.service.complete_session("missing", True, 10)
        self.assertEqual(len(self.service.store.snapshot()), 1)

    def test_invalid_commands_raise_command_error(self) -> None:
        cases = [
            lambda: self.service.configure(-1),
            lambda: self.service.apply_preset(7),
            lambda: self.service.stats(-1),
            lambda: self.service.recent(-1),
            lambda: self.service.begin_session("   "),
            lambda: self.service.complete_session("x", True, -5),
        ]
        for idx, call in enumerate(cases):
            with self.subTest(case=idx):
                with self.assertRaises(CommandError):
                    call()

    def test_stats_and_recent_read_history(self) -> None:
        first = self.service.begin_session()
        self.service.complete_session(first, True, 5)
        self.clock.advance(1)
        second = self.service.begin_session()
        self.service.complete_session(second, False, 2)

        stats = self.service.stats()
        self.assertEqual(stats.total_sessions, 2)
        self.assertEqual(stats.completed_sessions, 1)
        self.assertEqual(stats.current_streak, 0)
        self.assertEqual([item.id for item in self.service.recent(1)], [second])


if __name__ == "__main__":
    unittest.main()
