import random
import time
from typing import List, Optional, Sequence

from models.types import Alert, AlertType, Candle
from utils.logger import setup_logger

logger = setup_logger("Analyzer")


def candle_direction(candle: Candle) -> AlertType:
    # Doji (close == open) counts as bearish
    return AlertType.BULLISH if candle.is_bullish else AlertType.BEARISH


def is_trapped(current: Optional[Candle], previous: Optional[Candle]) -> bool:
    """
    A candle is trapped when it keeps the previous candle's direction and
    closes beyond the previous close without clearing the previous wick:
      - bullish: previous.close < current.close <= previous.high
      - bearish: previous.low <= current.close < previous.close
    """
    if current is None or previous is None:
        return False

    direction = candle_direction(current)
    if direction != candle_direction(previous):
        return False

    if direction == AlertType.BULLISH:
        return previous.close < current.close <= previous.high
    return previous.low <= current.close < previous.close


def trapped_flags(series: Sequence[Candle]) -> List[bool]:
    """Per-candle trapped marks for rendering. Index 0 has no predecessor."""
    return [i > 0 and is_trapped(series[i], series[i - 1]) for i in range(len(series))]


class Analyzer:
    """
    Turns a candle series into trapped-candle alerts.
    Stateless apart from the random source used for alert id tie-breaks.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def analyze(self, symbol: str, candles: Sequence[Candle], timeframe: str) -> List[Alert]:
        alerts: List[Alert] = []
        if len(candles) < 2:
            return alerts

        generated_at = int(time.time() * 1000)

        for i in range(1, len(candles)):
            current = candles[i]
            if not is_trapped(current, candles[i - 1]):
                continue

            alert = self._create_alert(symbol, current, timeframe, generated_at, i)
            logger.debug(f"[{symbol}] Trapped candle #{i}: {alert}")
            alerts.append(alert)

        return alerts

    def _create_alert(
        self, symbol: str, candle: Candle, timeframe: str, generated_at: int, index: int
    ) -> Alert:
        alert_type = candle_direction(candle)
        # Time + index + random tie-break; never derived from content
        alert_id = f"{generated_at}-{index}-{self.rng.getrandbits(32):08x}"
        return Alert(
            id=alert_id,
            symbol=symbol,
            type=alert_type,
            price=candle.close,
            timestamp=candle.timestamp,
            message=f"{alert_type.value} trapped candle at {candle.close}",
            timeframe=timeframe,
            generated_at=generated_at,
        )
