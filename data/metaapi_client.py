from typing import List, Optional

import pandas as pd
import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from config.settings import (
    CANDLE_LOOKBACK,
    METAAPI_BASE_URL,
    METAAPI_TIMEOUT_SECONDS,
    TIMEFRAMES,
)
from models.types import Candle, CandleSeries, Credentials
from utils.logger import setup_logger

logger = setup_logger("MetaApiClient")


def make_session() -> requests.Session:
    session = requests.Session()
    retries = Retry(total=3, backoff_factor=0.5, status_forcelist=[500, 502, 503, 504])
    adapter = HTTPAdapter(max_retries=retries)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


def parse_candle(item: dict) -> Candle:
    """
    Map one MetaApi candle to our shape.
    Schema: {time, open, high, low, close, tickVolume?, ...}
    """
    ts = pd.Timestamp(item["time"])
    if ts.tzinfo is None:
        ts = ts.tz_localize("UTC")
    return Candle(
        timestamp=int(ts.timestamp() * 1000),
        open=float(item["open"]),
        high=float(item["high"]),
        low=float(item["low"]),
        close=float(item["close"]),
        volume=int(item.get("tickVolume") or 0),
    )


class MetaApiClient:
    """
    Live historical candles from the MetaApi REST API.
    Raises on any failure; wrap it in FallbackDataSource for demo fallback.
    """

    name = "metaapi"

    def __init__(
        self,
        credentials: Credentials,
        session: Optional[requests.Session] = None,
        base_url: str = METAAPI_BASE_URL,
        lookback: int = CANDLE_LOOKBACK,
        timeout: float = METAAPI_TIMEOUT_SECONDS,
    ):
        self.credentials = credentials
        self.session = session or make_session()
        self.base_url = base_url.rstrip("/")
        self.lookback = lookback
        self.timeout = timeout

    def candles_url(self, symbol: str, timeframe: str) -> str:
        tf_code = TIMEFRAMES[timeframe][2] if timeframe in TIMEFRAMES else timeframe
        return (
            f"{self.base_url}/users/current/accounts/{self.credentials.account_id}"
            f"/historical-market-data/symbols/{symbol}/timeframes/{tf_code}/candles"
        )

    def fetch(self, symbol: str, timeframe: str) -> CandleSeries:
        url = self.candles_url(symbol, timeframe)
        resp = self.session.get(
            url,
            headers={
                "auth-token": self.credentials.token,
                "Content-Type": "application/json",
            },
            timeout=self.timeout,
        )
        resp.raise_for_status()
        data = resp.json()

        if not isinstance(data, list):
            raise ValueError(f"Unexpected candles payload for {symbol}: {type(data).__name__}")
        if not data:
            raise ValueError(f"Empty candle history for {symbol} {timeframe}")

        candles: List[Candle] = []
        for item in data[-self.lookback:]:
            try:
                candles.append(parse_candle(item))
            except (KeyError, TypeError, ValueError) as e:
                raise ValueError(f"Malformed candle for {symbol}: {item!r}") from e

        logger.debug(f"Fetched {len(candles)} live candles for {symbol} {timeframe}")
        return tuple(candles)
