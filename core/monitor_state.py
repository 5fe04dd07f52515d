import threading
from typing import Iterable, Optional

from config.settings import (
    DEFAULT_TIMEFRAME,
    DEFAULT_WATCHLIST,
    METAAPI_ACCOUNT_ID,
    METAAPI_TOKEN,
    SOUND_ENABLED,
    TIMEFRAMES,
)
from core.watchlist import WatchList
from models.types import Credentials, PassConfig
from utils.logger import setup_logger

logger = setup_logger("MonitorState")


class MonitorState:
    """
    Process-wide monitoring configuration: watchlist, timeframe, credentials
    and the per-channel notification toggles. Passes never read it live; they
    take a snapshot() at pass start.
    """

    def __init__(
        self,
        symbols: Optional[Iterable[str]] = None,
        timeframe: str = DEFAULT_TIMEFRAME,
        credentials: Optional[Credentials] = None,
        sound_enabled: bool = SOUND_ENABLED,
        notifications_enabled: bool = False,
    ):
        self._lock = threading.Lock()
        self.watchlist = WatchList(DEFAULT_WATCHLIST if symbols is None else symbols)
        self._timeframe = self._validate_timeframe(timeframe)
        self._credentials = credentials or Credentials(METAAPI_TOKEN, METAAPI_ACCOUNT_ID)
        self.sound_enabled = sound_enabled
        self.notifications_enabled = notifications_enabled

    @staticmethod
    def _validate_timeframe(timeframe: str) -> str:
        code = (timeframe or "").strip().upper()
        if code not in TIMEFRAMES:
            raise ValueError(f"Unknown timeframe {timeframe!r}, expected one of {', '.join(TIMEFRAMES)}")
        return code

    @property
    def timeframe(self) -> str:
        return self._timeframe

    @timeframe.setter
    def timeframe(self, value: str):
        code = self._validate_timeframe(value)
        with self._lock:
            self._timeframe = code
        logger.info(f"Timeframe set to {code}")

    @property
    def credentials(self) -> Credentials:
        return self._credentials

    @credentials.setter
    def credentials(self, value: Credentials):
        with self._lock:
            self._credentials = value
        logger.info(f"Credentials updated: {value!r} (live={value.is_complete})")

    def set_token(self, token: str):
        self.credentials = Credentials(token.strip(), self._credentials.account_id)

    def set_account_id(self, account_id: str):
        self.credentials = Credentials(self._credentials.token, account_id.strip())

    @property
    def is_live(self) -> bool:
        return self._credentials.is_complete

    def snapshot(self) -> PassConfig:
        with self._lock:
            return PassConfig(
                symbols=self.watchlist.symbols(),
                timeframe=self._timeframe,
                credentials=self._credentials,
            )
