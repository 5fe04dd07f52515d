from typing import Optional, Protocol

import requests

from data.metaapi_client import MetaApiClient
from data.simulator import SimulatedDataSource
from models.types import CandleSeries, Credentials
from utils.logger import setup_logger

logger = setup_logger("DataSource")


class DataSource(Protocol):
    name: str

    def fetch(self, symbol: str, timeframe: str) -> CandleSeries:
        ...


class FallbackDataSource:
    """
    Calls the primary source and substitutes the fallback's output on any
    failure. fetch() never raises.
    """

    def __init__(self, primary: DataSource, fallback: DataSource):
        self.primary = primary
        self.fallback = fallback
        self.fallbacks = 0

    @property
    def name(self) -> str:
        return f"{self.primary.name}+{self.fallback.name}"

    def fetch(self, symbol: str, timeframe: str) -> CandleSeries:
        try:
            return self.primary.fetch(symbol, timeframe)
        except Exception as e:
            self.fallbacks += 1
            logger.warning(
                f"{self.primary.name} fetch failed for {symbol} {timeframe}: {e}; "
                f"using {self.fallback.name} data"
            )
            return self.fallback.fetch(symbol, timeframe)


def build_data_source(
    credentials: Credentials,
    session: Optional[requests.Session] = None,
    simulated: Optional[SimulatedDataSource] = None,
) -> DataSource:
    simulated = simulated or SimulatedDataSource()
    if not credentials.is_complete:
        return simulated
    return FallbackDataSource(MetaApiClient(credentials, session=session), simulated)
