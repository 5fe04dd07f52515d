from enum import Enum
from dataclasses import dataclass
from typing import Protocol, Tuple


class StatusSink(Protocol):
    def pass_completed(self, symbols: int, alerts: int):
        ...

    def alert_fired(self, n: int = 1):
        ...

    def error(self, msg: str):
        ...


class AlertType(str, Enum):
    BULLISH = "Bullish"
    BEARISH = "Bearish"


class NotificationPermission(str, Enum):
    DEFAULT = "default"
    GRANTED = "granted"
    DENIED = "denied"


@dataclass(frozen=True, slots=True)
class Candle:
    timestamp: int  # Open time (ms), display only
    open: float
    high: float
    low: float
    close: float
    volume: int = 0

    def __post_init__(self):
        if self.low > min(self.open, self.close) or self.high < max(self.open, self.close):
            raise ValueError(
                f"Inconsistent candle at {self.timestamp}: "
                f"O={self.open} H={self.high} L={self.low} C={self.close}"
            )
        if self.volume < 0:
            raise ValueError(f"Negative volume at {self.timestamp}: {self.volume}")

    @property
    def is_bullish(self) -> bool:
        return self.close > self.open

    @property
    def is_bearish(self) -> bool:
        return self.close < self.open


# Chronological ascending, replaced wholesale on every fetch
CandleSeries = Tuple[Candle, ...]


@dataclass(frozen=True, slots=True)
class Alert:
    id: str
    symbol: str
    type: AlertType
    price: float
    timestamp: int  # Copied from the triggering candle
    message: str
    timeframe: str = "M5"
    generated_at: int = 0

    def __str__(self):
        return f"[{self.timeframe}] {self.symbol} | {self.type.value} | {self.price} | {self.id}"


@dataclass(frozen=True)
class Credentials:
    token: str = ""
    account_id: str = ""

    @property
    def is_complete(self) -> bool:
        return bool(self.token.strip()) and bool(self.account_id.strip())

    def __repr__(self):
        # Never leak the token into logs
        masked = "***" if self.token else ""
        return f"Credentials(token={masked!r}, account_id={self.account_id!r})"


@dataclass(frozen=True)
class PassConfig:
    """Configuration snapshot taken at the start of one evaluation pass."""
    symbols: Tuple[str, ...]
    timeframe: str
    credentials: Credentials
