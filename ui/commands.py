from typing import Callable, Dict, List

from core.monitor_state import MonitorState
from core.scheduler import MonitoringScheduler
from models.types import NotificationPermission
from notify.dispatcher import NotificationDispatcher
from notify.push import ConsoleNotificationHost
from ui.console import ConsoleUI
from utils.logger import setup_logger

logger = setup_logger("commands")


class CommandHandler:
    """
    Text commands typed under the live display. Configuration changes that
    affect fetching (watchlist, timeframe, credentials) restart an active
    scheduler so the next pass runs immediately with the new settings.
    """

    def __init__(
        self,
        state: MonitorState,
        scheduler: MonitoringScheduler,
        dispatcher: NotificationDispatcher,
        host: ConsoleNotificationHost,
        ui: ConsoleUI,
    ):
        self.state = state
        self.scheduler = scheduler
        self.dispatcher = dispatcher
        self.host = host
        self.ui = ui
        self.handlers: Dict[str, Callable[[List[str]], None]] = {
            "start": self._start,
            "stop": self._stop,
            "add": self._add,
            "remove": self._remove,
            "select": self._select,
            "tf": self._timeframe,
            "token": self._token,
            "account": self._account,
            "sound": self._sound,
            "push": self._push,
            "notify": self._notify,
            "open": self._open,
            "chart": lambda args: self.ui.show("chart"),
            "alerts": lambda args: self.ui.show("alerts"),
        }

    def handle(self, line: str) -> bool:
        """Run one command line. Returns False when the user asked to quit."""
        parts = line.strip().split()
        if not parts:
            return True
        name, args = parts[0].lower(), parts[1:]
        if name in ("quit", "exit", "q"):
            return False

        handler = self.handlers.get(name)
        if handler is None:
            self.ui.error(f"Unknown command: {name}")
            return True

        try:
            handler(args)
        except ValueError as e:
            self.ui.error(str(e))
        logger.debug(f"Command handled: {name} {args}")
        return True

    @staticmethod
    def _arg(args: List[str], usage: str) -> str:
        if not args:
            raise ValueError(f"Usage: {usage}")
        return args[0]

    def _start(self, args):
        self.scheduler.start()
        self.ui.info("Monitoring started")

    def _stop(self, args):
        self.scheduler.stop()
        self.ui.info("Monitoring paused")

    def _add(self, args):
        if self.state.watchlist.add(self._arg(args, "add SYMBOL")):
            self.scheduler.restart_if_active()
        self.ui.dirty = True

    def _remove(self, args):
        if self.state.watchlist.remove(self._arg(args, "remove SYMBOL")):
            self.scheduler.restart_if_active()
        self.ui.dirty = True

    def _select(self, args):
        self.ui.focus_symbol(self._arg(args, "select SYMBOL").upper())

    def _timeframe(self, args):
        self.state.timeframe = self._arg(args, "tf M5")
        self.scheduler.restart_if_active()
        self.ui.info(f"Timeframe {self.state.timeframe}")

    def _token(self, args):
        self.state.set_token(self._arg(args, "token TOKEN"))
        self.scheduler.restart_if_active()
        self.ui.info("Token updated" + (" (live)" if self.state.is_live else ""))

    def _account(self, args):
        self.state.set_account_id(self._arg(args, "account ACCOUNT_ID"))
        self.scheduler.restart_if_active()
        self.ui.info("Account updated" + (" (live)" if self.state.is_live else ""))

    @staticmethod
    def _on_off(args, usage: str) -> bool:
        value = CommandHandler._arg(args, usage).lower()
        if value not in ("on", "off"):
            raise ValueError(f"Usage: {usage}")
        return value == "on"

    def _sound(self, args):
        self.state.sound_enabled = self._on_off(args, "sound on|off")
        self.ui.dirty = True

    def _push(self, args):
        enabled = self._on_off(args, "push on|off")
        if enabled and self.host.permission != NotificationPermission.GRANTED:
            raise ValueError("Notifications not permitted, run 'notify' first")
        self.state.notifications_enabled = enabled
        self.ui.dirty = True

    def _notify(self, args):
        permission = self.dispatcher.request_permission()
        self.ui.info(f"Notification permission: {permission.value}")

    def _open(self, args):
        if not self.host.activate():
            self.ui.info("No notification to open")
