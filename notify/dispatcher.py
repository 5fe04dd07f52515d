from typing import Callable, Optional

from core.monitor_state import MonitorState
from models.types import Alert, NotificationPermission
from notify.audio import ChimePlayer
from notify.push import NotificationHost
from utils.logger import setup_logger

logger = setup_logger("Dispatcher")


class NotificationDispatcher:
    """
    Fans an alert out to the audio and push channels.
    Audio is gated by the sound toggle; push needs both the user toggle and
    a granted host permission.
    """

    def __init__(
        self,
        state: MonitorState,
        host: NotificationHost,
        chime: Optional[ChimePlayer] = None,
        on_focus: Optional[Callable[[str], None]] = None,
    ):
        self.state = state
        self.host = host
        self.chime = chime or ChimePlayer()
        self.on_focus = on_focus

    @property
    def push_ready(self) -> bool:
        return self.state.notifications_enabled and self.host.permission == NotificationPermission.GRANTED

    def sync_permission(self):
        if self.host.permission == NotificationPermission.GRANTED:
            self.state.notifications_enabled = True

    def request_permission(self) -> NotificationPermission:
        permission = self.host.request_permission()
        if permission == NotificationPermission.GRANTED:
            self.state.notifications_enabled = True
        return permission

    def fire(self, alert: Alert):
        if self.state.sound_enabled:
            self.chime.play()

        if self.push_ready:
            self.host.show(
                title=f"{alert.symbol} Alert",
                body=f"{alert.type.value} trapped candle at {alert.price}",
                tag=alert.symbol,
                on_click=lambda: self._focus(alert.symbol),
            )

    def _focus(self, symbol: str):
        logger.info(f"Notification activated for {symbol}")
        if self.on_focus:
            self.on_focus(symbol)
        else:
            self.state.watchlist.select(symbol)
