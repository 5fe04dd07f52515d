import threading
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Protocol

from config.settings import NOTIFICATION_PERMISSION
from models.types import NotificationPermission
from utils.logger import setup_logger

logger = setup_logger("Push")

ClickCallback = Callable[[], None]


@dataclass
class Notification:
    title: str
    body: str
    tag: str
    created_at: float = field(default_factory=time.time)
    on_click: Optional[ClickCallback] = None
    closed: bool = False


class NotificationHost(Protocol):
    @property
    def permission(self) -> NotificationPermission:
        ...

    def request_permission(self) -> NotificationPermission:
        ...

    def show(self, title: str, body: str, tag: str, on_click: Optional[ClickCallback] = None) -> Notification:
        ...


def _parse_permission(value: str) -> NotificationPermission:
    try:
        return NotificationPermission(value)
    except ValueError:
        logger.warning(f"Unknown notification permission {value!r}, using default")
        return NotificationPermission.DEFAULT


class ConsoleNotificationHost:
    """
    In-process notification centre for the console UI.
    Notifications sharing a tag replace each other, like browser notifications.
    """

    def __init__(self, permission: str = NOTIFICATION_PERMISSION, max_pending: int = 20):
        self._permission = _parse_permission(permission)
        self.max_pending = max_pending
        self.pending: List[Notification] = []
        self._lock = threading.Lock()

    @property
    def permission(self) -> NotificationPermission:
        return self._permission

    def request_permission(self) -> NotificationPermission:
        # A denial is sticky; only the user can lift it outside the app
        if self._permission == NotificationPermission.DEFAULT:
            self._permission = NotificationPermission.GRANTED
        logger.info(f"Notification permission: {self._permission.value}")
        return self._permission

    def show(self, title: str, body: str, tag: str, on_click: Optional[ClickCallback] = None) -> Notification:
        note = Notification(title=title, body=body, tag=tag, on_click=on_click)
        with self._lock:
            self.pending = [n for n in self.pending if n.tag != tag]
            self.pending.insert(0, note)
            del self.pending[self.max_pending:]
        logger.info(f"Notification shown: {title} - {body}")
        return note

    def latest(self) -> Optional[Notification]:
        with self._lock:
            return self.pending[0] if self.pending else None

    def activate(self, note: Optional[Notification] = None) -> bool:
        """Simulate the user clicking a notification (latest by default)."""
        note = note or self.latest()
        if note is None or note.closed:
            return False
        if note.on_click:
            note.on_click()
        self.close(note)
        return True

    def close(self, note: Notification):
        note.closed = True
        with self._lock:
            self.pending = [n for n in self.pending if n is not note]
