import time
import unittest
from unittest.mock import MagicMock, patch

from core.alert_feed import AlertFeed
from core.monitor_state import MonitorState
from core.scheduler import MonitoringScheduler, SchedulerState
from models.types import AlertType, Credentials
from notify.dispatcher import NotificationDispatcher
from notify.push import ConsoleNotificationHost
from market_fixtures import BlockingSource, StaticSource, TimerRecorder, make_series


def build(symbols=("EURUSD",), trapped_at=(10,), permission="granted", dispatcher=None):
    state = MonitorState(
        symbols=list(symbols), credentials=Credentials(), sound_enabled=True, notifications_enabled=True
    )
    feed = AlertFeed()
    series = make_series(trapped_at=trapped_at)
    source = StaticSource(series)
    host = ConsoleNotificationHost(permission=permission)
    chime = MagicMock()
    if dispatcher is None:
        dispatcher = NotificationDispatcher(state, host, chime)
    timers = TimerRecorder()
    sink = MagicMock()
    scheduler = MonitoringScheduler(
        state,
        feed,
        dispatcher=dispatcher,
        source_factory=lambda credentials, session=None: source,
        status_sink=sink,
        timer_factory=timers,
    )
    return scheduler, feed, series, source, host, chime, timers, sink


class TestPassScenarios(unittest.TestCase):
    def test_active_pass_records_and_notifies(self):
        scheduler, feed, series, _, host, chime, timers, sink = build()
        scheduler.start()
        timers.timers[-1].fire()

        alerts = feed.snapshot()
        self.assertEqual(len(alerts), 1)
        alert = alerts[0]
        self.assertEqual(alert.type, AlertType.BULLISH)
        self.assertEqual(alert.symbol, "EURUSD")
        self.assertEqual(alert.price, series[10].close)

        chime.play.assert_called_once()
        self.assertEqual(len(host.pending), 1)
        self.assertEqual(host.pending[0].title, "EURUSD Alert")
        self.assertEqual(host.pending[0].body, "Bullish trapped candle at 1.25")
        sink.pass_completed.assert_called_once_with(1, 1)
        sink.alert_fired.assert_called_once_with(1)

    def test_paused_pass_records_silently(self):
        scheduler, feed, series, _, host, chime, timers, _ = build()
        self.assertEqual(scheduler.status, SchedulerState.PAUSED)

        batch = scheduler.run_pass()

        self.assertEqual(len(batch), 1)
        self.assertEqual(len(feed), 1)
        self.assertEqual(feed.snapshot()[0].price, series[10].close)
        chime.play.assert_not_called()
        self.assertEqual(host.pending, [])
        self.assertEqual(timers.timers, [])

    def test_push_skipped_without_permission(self):
        scheduler, feed, _, _, host, chime, timers, _ = build(permission="default")
        scheduler.start()
        timers.timers[-1].fire()
        self.assertEqual(len(feed), 1)
        chime.play.assert_called_once()
        self.assertEqual(host.pending, [])

    def test_alerts_follow_watchlist_order(self):
        scheduler, feed, _, source, _, _, _, _ = build(symbols=("GBPUSD", "EURUSD", "USDJPY"))
        batch = scheduler.run_pass()
        self.assertEqual([a.symbol for a in batch], ["GBPUSD", "EURUSD", "USDJPY"])
        self.assertEqual([s for s, _ in source.calls], ["GBPUSD", "EURUSD", "USDJPY"])
        self.assertEqual([a.symbol for a in feed.snapshot()], ["GBPUSD", "EURUSD", "USDJPY"])

    def test_repeat_passes_duplicate_alerts(self):
        scheduler, feed, _, _, _, _, _, _ = build()
        scheduler.run_pass()
        scheduler.run_pass()
        alerts = feed.snapshot()
        self.assertEqual(len(alerts), 2)
        self.assertNotEqual(alerts[0].id, alerts[1].id)
        self.assertEqual(alerts[0].timestamp, alerts[1].timestamp)

    def test_feed_capped_over_many_passes(self):
        scheduler, feed, _, _, _, _, _, _ = build(symbols=("EURUSD", "GBPUSD"), trapped_at=(10, 20, 30))
        for _ in range(10):
            scheduler.run_pass()
            self.assertLessEqual(len(feed), 20)
        self.assertEqual(len(feed), 20)

    def test_series_replaced_each_pass(self):
        scheduler, _, series, _, _, _, _, _ = build(symbols=("EURUSD", "GBPUSD"))
        scheduler.run_pass()
        self.assertEqual(set(scheduler.all_series()), {"EURUSD", "GBPUSD"})
        scheduler.state.watchlist.remove("GBPUSD")
        scheduler.run_pass()
        self.assertEqual(set(scheduler.all_series()), {"EURUSD"})
        self.assertIs(scheduler.series("EURUSD"), series)

    def test_stop_mid_pass_silences_remaining_alerts(self):
        dispatcher = MagicMock()
        scheduler, feed, _, _, _, _, timers, _ = build(trapped_at=(10, 20), dispatcher=dispatcher)
        dispatcher.fire.side_effect = lambda alert: scheduler.stop()

        scheduler.start()
        timers.timers[-1].fire()

        self.assertEqual(dispatcher.fire.call_count, 1)
        self.assertEqual(len(feed), 2)
        self.assertEqual(timers.live, [])

    def test_failing_symbol_does_not_abort_pass(self):
        scheduler, feed, series, _, _, _, _, sink = build(symbols=("BAD", "EURUSD"))

        def fetch(symbol, timeframe):
            if symbol == "BAD":
                raise RuntimeError("kaput")
            return series

        broken = MagicMock()
        broken.name = "broken"
        broken.fetch.side_effect = fetch
        scheduler.source_factory = lambda credentials, session=None: broken

        batch = scheduler.run_pass()
        self.assertEqual([a.symbol for a in batch], ["EURUSD"])
        sink.error.assert_called_once()

    def test_live_session_owned_and_closed_by_scheduler(self):
        scheduler, _, _, source, _, _, _, _ = build()
        scheduler.state.set_token("tok")
        scheduler.state.set_account_id("acc")
        factory = MagicMock(return_value=source)
        scheduler.source_factory = factory

        with patch("core.scheduler.make_session") as make_session:
            scheduler.run_pass()
            scheduler.run_pass()
            make_session.assert_called_once()
            session = make_session.return_value

        _, kwargs = factory.call_args
        self.assertIs(kwargs["session"], session)
        scheduler.shutdown()
        session.close.assert_called_once()


class TestTimerHandling(unittest.TestCase):
    def test_start_arms_immediate_then_interval(self):
        scheduler, _, _, _, _, _, timers, _ = build()
        scheduler.start()
        self.assertEqual(len(timers.live), 1)
        self.assertEqual(timers.timers[0].interval, 0)
        self.assertTrue(timers.timers[0].daemon)

        timers.timers[0].fire()
        self.assertEqual(scheduler.passes, 1)
        self.assertEqual(len(timers.live), 1)
        self.assertEqual(timers.live[0].interval, 60)

        timers.live[0].fire()
        self.assertEqual(scheduler.passes, 2)
        self.assertEqual(len(timers.live), 1)

    def test_restart_never_leaves_two_timers(self):
        scheduler, _, _, _, _, _, timers, _ = build()
        scheduler.start()
        scheduler.start()
        scheduler.restart_if_active()
        self.assertEqual(len(timers.live), 1)
        self.assertTrue(all(t.cancelled for t in timers.timers[:-1]))

    def test_stale_timer_callback_is_ignored(self):
        scheduler, _, _, _, _, _, timers, _ = build()
        scheduler.start()
        stale = timers.timers[0]
        scheduler.start()

        # Callback already running when cancel() arrived
        stale.function(*stale.args)
        self.assertEqual(scheduler.passes, 0)
        self.assertEqual(len(timers.live), 1)

    def test_stop_cancels_timer(self):
        scheduler, _, _, _, _, _, timers, _ = build()
        scheduler.start()
        timers.timers[0].fire()
        scheduler.stop()
        self.assertEqual(scheduler.status, SchedulerState.PAUSED)
        self.assertEqual(timers.live, [])

        last = timers.timers[-1]
        last.function(*last.args)
        self.assertEqual(scheduler.passes, 1)

    def test_restart_if_paused_does_nothing(self):
        scheduler, _, _, _, _, _, timers, _ = build()
        scheduler.restart_if_active()
        self.assertEqual(timers.timers, [])
        self.assertFalse(scheduler.is_active)

    def test_toggle(self):
        scheduler, _, _, _, _, _, timers, _ = build()
        scheduler.toggle()
        self.assertTrue(scheduler.is_active)
        scheduler.toggle()
        self.assertFalse(scheduler.is_active)
        self.assertEqual(timers.live, [])


def wait_for(predicate, timeout=3.0):
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class TestThreadedTimers(unittest.TestCase):
    """Real threading.Timer; the first pass blocks inside fetch."""

    def setUp(self):
        self.state = MonitorState(
            symbols=["EURUSD"], credentials=Credentials(), sound_enabled=True, notifications_enabled=True
        )
        self.feed = AlertFeed()
        self.source = BlockingSource(make_series(trapped_at=(10,)))
        self.dispatcher = MagicMock()
        self.scheduler = MonitoringScheduler(
            self.state,
            self.feed,
            dispatcher=self.dispatcher,
            source_factory=lambda credentials, session=None: self.source,
        )
        self.addCleanup(self.scheduler.shutdown)
        self.addCleanup(self.source.release.set)

    def test_no_pass_starts_after_stop(self):
        self.scheduler.start()
        self.assertTrue(self.source.entered.wait(2))

        # These callbacks queue up behind the blocked pass
        for _ in range(3):
            self.scheduler.restart_if_active()
        time.sleep(0.2)
        self.scheduler.stop()
        self.source.release.set()

        self.assertTrue(wait_for(lambda: self.scheduler.passes >= 1))
        time.sleep(0.3)

        self.assertEqual(self.scheduler.passes, 1)
        self.assertEqual(self.source.calls, 1)
        self.assertEqual(len(self.feed), 1)
        self.dispatcher.fire.assert_not_called()

    def test_restarts_during_slow_pass_collapse_to_one(self):
        self.scheduler.start()
        self.assertTrue(self.source.entered.wait(2))

        for _ in range(3):
            self.scheduler.restart_if_active()
        time.sleep(0.2)
        self.source.release.set()

        self.assertTrue(wait_for(lambda: self.scheduler.passes >= 2))
        time.sleep(0.3)

        # The in-flight pass plus one for the latest restart
        self.assertEqual(self.scheduler.passes, 2)
        self.assertEqual(self.source.calls, 2)
        self.assertEqual(self.dispatcher.fire.call_count, 2)
        self.assertTrue(self.scheduler.is_active)


if __name__ == "__main__":
    unittest.main()
