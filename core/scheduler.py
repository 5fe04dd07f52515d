import threading
import time
from enum import Enum
from typing import Callable, Dict, List, Optional

import requests

from config.settings import POLL_INTERVAL_SECONDS
from core.alert_feed import AlertFeed
from core.analyzer import Analyzer
from core.monitor_state import MonitorState
from data.metaapi_client import make_session
from data.sources import DataSource, build_data_source
from models.types import Alert, CandleSeries, StatusSink
from utils.logger import setup_logger

logger = setup_logger("Scheduler")


class SchedulerState(str, Enum):
    PAUSED = "PAUSED"
    ACTIVE = "ACTIVE"


class MonitoringScheduler:
    """
    Drives evaluation passes across the watchlist.

    PAUSED -> ACTIVE runs a pass immediately, then one every `interval`
    seconds. The scheduler owns at most one armed timer: it is cancelled
    before a new one is armed, and each timer carries the generation it was
    armed in so a callback that lost a race with start()/stop() does nothing.
    Passes are serialized by a lock, so at most one is in flight.
    """

    def __init__(
        self,
        state: MonitorState,
        feed: AlertFeed,
        dispatcher=None,
        analyzer: Optional[Analyzer] = None,
        source_factory: Callable[..., DataSource] = build_data_source,
        status_sink: Optional[StatusSink] = None,
        interval: float = POLL_INTERVAL_SECONDS,
        timer_factory=threading.Timer,
    ):
        self.state = state
        self.feed = feed
        self.dispatcher = dispatcher
        self.analyzer = analyzer or Analyzer()
        self.source_factory = source_factory
        self.status_sink = status_sink
        self.interval = interval
        self.timer_factory = timer_factory

        self._status = SchedulerState.PAUSED
        self._timer = None
        self._generation = 0
        self._lock = threading.Lock()
        self._pass_lock = threading.Lock()

        self._series: Dict[str, CandleSeries] = {}
        self._series_lock = threading.Lock()
        self._session: Optional[requests.Session] = None

        self.passes = 0
        self.last_pass_at: Optional[float] = None
        self.last_source: Optional[str] = None

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------
    @property
    def status(self) -> SchedulerState:
        return self._status

    @property
    def is_active(self) -> bool:
        return self._status == SchedulerState.ACTIVE

    def start(self):
        """Enter ACTIVE (or restart if already active) with an immediate pass."""
        with self._lock:
            self._cancel_timer()
            self._generation += 1
            self._status = SchedulerState.ACTIVE
            self._arm(0, self._generation)
        logger.info(f"Monitoring active (generation {self._generation}, every {self.interval}s)")

    def stop(self):
        with self._lock:
            self._cancel_timer()
            self._generation += 1
            self._status = SchedulerState.PAUSED
        logger.info("Monitoring paused")

    def toggle(self):
        if self.is_active:
            self.stop()
        else:
            self.start()

    def restart_if_active(self):
        # Configuration changed: re-run immediately under the new settings
        if self.is_active:
            self.start()

    def shutdown(self):
        self.stop()
        if self._session is not None:
            self._session.close()
            self._session = None

    def _arm(self, delay: float, generation: int):
        timer = self.timer_factory(delay, self._on_timer, args=(generation,))
        timer.daemon = True
        self._timer = timer
        timer.start()

    def _cancel_timer(self):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _is_current(self, generation: int) -> bool:
        with self._lock:
            return generation == self._generation and self.is_active

    def _on_timer(self, generation: int):
        with self._lock:
            if generation != self._generation or not self.is_active:
                return
            self._timer = None

        try:
            self._run_pass(generation)
        except Exception:
            logger.exception("Evaluation pass failed")

        with self._lock:
            if generation == self._generation and self.is_active:
                self._arm(self.interval, generation)

    # ------------------------------------------------------------------
    # Evaluation pass
    # ------------------------------------------------------------------
    def _source_for(self, config) -> DataSource:
        if config.credentials.is_complete and self._session is None:
            self._session = make_session()
        return self.source_factory(config.credentials, session=self._session)

    def run_pass(self) -> List[Alert]:
        """
        Fetch and analyze every watchlist symbol in order, commit the series
        and the whole alert batch at once, then dispatch the new alerts while
        monitoring is active.
        """
        return self._run_pass(None)

    def _run_pass(self, generation: Optional[int]) -> List[Alert]:
        with self._pass_lock:
            # A timer callback may have queued here behind a slow pass while
            # start()/stop() moved on; only the current generation may run
            if generation is not None and not self._is_current(generation):
                logger.debug(f"Dropping stale pass (generation {generation})")
                return []

            config = self.state.snapshot()
            source = self._source_for(config)
            started = time.time()

            new_series: Dict[str, CandleSeries] = {}
            batch: List[Alert] = []

            for symbol in config.symbols:
                try:
                    series = source.fetch(symbol, config.timeframe)
                    new_series[symbol] = series
                    batch.extend(self.analyzer.analyze(symbol, series, config.timeframe))
                except Exception as e:
                    logger.error(f"Error evaluating {symbol}: {e}")
                    if self.status_sink:
                        self.status_sink.error(f"{symbol}: {e}")

            # Commit: series replaced wholesale, alerts as one block
            with self._series_lock:
                self._series = new_series
            self.feed.prepend(batch)

            self.passes += 1
            self.last_pass_at = time.time()
            self.last_source = source.name
            logger.info(
                f"Pass #{self.passes}: {len(config.symbols)} symbols {config.timeframe} "
                f"via {source.name}, {len(batch)} alerts in {self.last_pass_at - started:.2f}s"
            )

            if self.status_sink:
                self.status_sink.pass_completed(len(config.symbols), len(batch))
                if batch:
                    self.status_sink.alert_fired(len(batch))

            for alert in batch:
                logger.info(f"ALERT: {alert}")
                # Re-checked per alert: a stop() mid-pass silences the rest
                if not self.is_active or self.dispatcher is None:
                    continue
                try:
                    self.dispatcher.fire(alert)
                except Exception as e:
                    logger.error(f"Dispatch failed for {alert.symbol}: {e}")

            return batch

    def series(self, symbol: str) -> Optional[CandleSeries]:
        with self._series_lock:
            return self._series.get(symbol)

    def all_series(self) -> Dict[str, CandleSeries]:
        with self._series_lock:
            return dict(self._series)
