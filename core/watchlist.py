import threading
from typing import Iterable, Iterator, List, Optional, Tuple

from utils.logger import setup_logger

logger = setup_logger("WatchList")


class WatchList:
    """
    Insertion-ordered set of symbols plus the symbol currently selected for
    the chart. Blank or duplicate adds are ignored without error.
    """

    def __init__(self, symbols: Iterable[str] = (), selected: Optional[str] = None):
        self._symbols: List[str] = []
        self._lock = threading.Lock()
        self.selected: Optional[str] = None

        for symbol in symbols:
            self.add(symbol)

        if selected is not None:
            self.select(selected)

    @staticmethod
    def normalize(symbol: str) -> str:
        return (symbol or "").strip().upper()

    def add(self, symbol: str) -> bool:
        symbol = self.normalize(symbol)
        with self._lock:
            if not symbol or symbol in self._symbols:
                logger.debug(f"Ignoring watchlist add: {symbol!r}")
                return False
            self._symbols.append(symbol)
            if self.selected is None:
                self.selected = symbol
        logger.info(f"Added {symbol} to watchlist")
        return True

    def remove(self, symbol: str) -> bool:
        symbol = self.normalize(symbol)
        with self._lock:
            if symbol not in self._symbols:
                return False
            self._symbols.remove(symbol)
            if self.selected == symbol:
                self.selected = self._symbols[0] if self._symbols else None
        logger.info(f"Removed {symbol} from watchlist (selected={self.selected})")
        return True

    def select(self, symbol: str) -> bool:
        symbol = self.normalize(symbol)
        with self._lock:
            if symbol not in self._symbols:
                return False
            self.selected = symbol
        return True

    def symbols(self) -> Tuple[str, ...]:
        with self._lock:
            return tuple(self._symbols)

    def __contains__(self, symbol: object) -> bool:
        return isinstance(symbol, str) and self.normalize(symbol) in self.symbols()

    def __iter__(self) -> Iterator[str]:
        return iter(self.symbols())

    def __len__(self) -> int:
        with self._lock:
            return len(self._symbols)
