import os
import queue
import signal
import sys
import threading
import time

from rich.console import Console
from rich.live import Live

from config.settings import AUTOSTART, DEBUG_LOG_FILE
from core.alert_feed import AlertFeed
from core.monitor_state import MonitorState
from core.scheduler import MonitoringScheduler
from notify.audio import ChimePlayer, TerminalBellSink
from notify.dispatcher import NotificationDispatcher
from notify.push import ConsoleNotificationHost
from ui.commands import CommandHandler
from ui.console import ConsoleUI
from utils.logger import setup_logger

# Keep a real stdout for Rich to use
REAL_STDOUT = sys.__stdout__

console = Console(file=REAL_STDOUT)

INSTANCE_ID = os.environ.get("MONITOR_INSTANCE", os.getpid())

logger = setup_logger("monitor", log_file=f"utils/monitor_{INSTANCE_ID}.log")
debug_logger = setup_logger("debug_monitor", log_file=DEBUG_LOG_FILE, level="DEBUG")


def read_commands(commands: queue.Queue):
    for line in sys.stdin:
        commands.put(line)
    # EOF behaves like quit
    commands.put("quit")


def main():
    logger.info("Starting Trapped Candle Monitor...")

    state = MonitorState()
    feed = AlertFeed()
    host = ConsoleNotificationHost()
    chime = ChimePlayer(TerminalBellSink(console))
    dispatcher = NotificationDispatcher(state, host, chime)
    scheduler = MonitoringScheduler(state, feed, dispatcher=dispatcher)

    ui = ConsoleUI(console=console, state=state, scheduler=scheduler, feed=feed, host=host)
    scheduler.status_sink = ui
    dispatcher.on_focus = ui.focus_symbol
    dispatcher.sync_permission()

    commands = CommandHandler(state, scheduler, dispatcher, host, ui)
    pending: queue.Queue = queue.Queue()
    threading.Thread(target=read_commands, args=(pending,), daemon=True, name="CommandReader").start()

    logger.info(
        f"Watchlist={list(state.watchlist)} timeframe={state.timeframe} "
        f"mode={'live' if state.is_live else 'demo'}"
    )
    if AUTOSTART:
        scheduler.start()
    ui.dirty = True

    def signal_handler(sig, frame):
        logger.info("Shutting down (Signal)...")
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)

    try:
        with Live(
            ui.generate_layout(),
            console=console,
            auto_refresh=False,
            screen=False,
        ) as live:
            running = True
            while running:
                while True:
                    try:
                        line = pending.get_nowait()
                    except queue.Empty:
                        break
                    debug_logger.debug(f"Command: {line.strip()}")
                    if not commands.handle(line):
                        running = False
                        break

                if ui.dirty:
                    ui.dirty = False
                    live.update(ui.generate_layout(), refresh=True)
                time.sleep(0.1)
    except KeyboardInterrupt:
        logger.info("Keyboard Interrupt")
    finally:
        logger.info("Performing cleanup...")
        scheduler.shutdown()
        logger.info("Cleanup complete.")


if __name__ == "__main__":
    main()
