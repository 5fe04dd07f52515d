import random
import time
from typing import List, Optional

from config.settings import (
    CANDLE_LOOKBACK,
    SIM_BASE_PRICE,
    SIM_BASE_PRICE_JPY,
    SIM_BODY_SCALE,
    SIM_DRIFT_CENTER,
    SIM_MAX_VOLUME,
    SIM_PRICE_DECIMALS,
    SIM_WICK_SCALE,
    TIMEFRAMES,
)
from models.types import Candle, CandleSeries


def base_price_for(symbol: str) -> float:
    # JPY-quoted pairs trade two orders of magnitude higher
    return SIM_BASE_PRICE_JPY if "JPY" in symbol.upper() else SIM_BASE_PRICE


class SimulatedDataSource:
    """
    Demo-mode candles: a random walk of CANDLE_LOOKBACK bars ending now.
    Each body change is drawn from U(-0.48, 0.52) * SIM_BODY_SCALE, wicks
    extend independently above and below the body.
    """

    name = "simulated"

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        lookback: int = CANDLE_LOOKBACK,
        clock=time.time,
    ):
        self.rng = rng or random.Random()
        self.lookback = lookback
        self.clock = clock

    def fetch(self, symbol: str, timeframe: str) -> CandleSeries:
        minutes = TIMEFRAMES.get(timeframe, TIMEFRAMES["M5"])[1]
        step_ms = minutes * 60 * 1000
        now_ms = int(self.clock() * 1000)

        price = base_price_for(symbol)
        candles: List[Candle] = []

        for i in range(self.lookback):
            change = (self.rng.random() - SIM_DRIFT_CENTER) * SIM_BODY_SCALE
            open_ = price
            close = price + change
            high = max(open_, close) + self.rng.random() * SIM_WICK_SCALE
            low = min(open_, close) - self.rng.random() * SIM_WICK_SCALE

            # Rounding is monotonic so low <= body <= high survives it
            candles.append(
                Candle(
                    timestamp=now_ms - (self.lookback - i) * step_ms,
                    open=round(open_, SIM_PRICE_DECIMALS),
                    high=round(high, SIM_PRICE_DECIMALS),
                    low=round(low, SIM_PRICE_DECIMALS),
                    close=round(close, SIM_PRICE_DECIMALS),
                    volume=self.rng.randint(0, SIM_MAX_VOLUME),
                )
            )
            price = close

        return tuple(candles)
