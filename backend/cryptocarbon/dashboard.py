# backend/cryptocarbon/dashboard.py
"""Dashboard view model.

Everything the dashboard shows is derived from two inputs, the latest market
snapshot and the user's holdings, through the plain functions below. The
stateful pieces (`DashboardState`, `MarketAutoRefresh`) only hold the
current inputs and call into those functions.
"""
import asyncio
import logging
import math
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Union

import httpx

from .catalog import footprint_value
from .config import REFRESH_INTERVAL_SECONDS
from .market import Crypto

logger = logging.getLogger("cryptocarbon.dashboard")

ASCENDING = "ascending"
DESCENDING = "descending"

# wire name -> Crypto attribute
SORT_KEYS: Dict[str, str] = {
    "name": "name",
    "price": "price",
    "change": "change",
    "volume": "volume",
    "carbonFootprint": "carbon_footprint",
}
PAGE_SIZES = (5, 10, 20, 50, 100)
DEFAULT_PAGE_SIZE = 5


@dataclass(frozen=True)
class Holding:
    id: str
    symbol: str
    amount: float


@dataclass(frozen=True)
class SortConfig:
    key: str = "volume"
    direction: str = DESCENDING

    def toggled(self, key: str) -> "SortConfig":
        """Same key flips the direction; a new key starts ascending."""
        if key not in SORT_KEYS:
            raise ValueError(f"cannot sort by {key!r}")
        if key == self.key and self.direction == ASCENDING:
            return SortConfig(key, DESCENDING)
        return SortConfig(key, ASCENDING)


@dataclass(frozen=True)
class DashboardView:
    rows: List[Crypto]
    page: int
    total_pages: int
    total: int
    start: int
    end: int

    @property
    def range_label(self) -> str:
        if self.total == 0:
            return ""
        return f"{self.start + 1}-{min(self.end, self.total)} of {self.total}"


@dataclass(frozen=True)
class PortfolioTotals:
    value: float
    footprint: float


# =========================
# List transforms
# =========================

def filter_cryptos(cryptos: Sequence[Crypto], query: str) -> List[Crypto]:
    q = (query or "").lower()
    if not q:
        return list(cryptos)
    return [c for c in cryptos if q in c.name.lower() or q in c.symbol.lower()]


def sort_cryptos(cryptos: Sequence[Crypto], sort: SortConfig) -> List[Crypto]:
    attr = SORT_KEYS[sort.key]
    present = [c for c in cryptos if getattr(c, attr) is not None]
    missing = [c for c in cryptos if getattr(c, attr) is None]

    def key(c: Crypto):
        v = getattr(c, attr)
        return (isinstance(v, str), v)

    # missing values always trail, whatever the direction
    return sorted(present, key=key, reverse=sort.direction == DESCENDING) + missing


def total_pages(count: int, page_size: int) -> int:
    return math.ceil(count / page_size)


def paginate(items: Sequence[Crypto], page: int, page_size: int) -> DashboardView:
    if page_size <= 0:
        raise ValueError("page_size must be positive")
    pages = total_pages(len(items), page_size)
    page = min(max(page, 1), max(pages, 1))
    start = (page - 1) * page_size
    end = start + page_size
    return DashboardView(rows=list(items[start:end]), page=page, total_pages=pages,
                         total=len(items), start=start, end=end)


def build_view(
    cryptos: Sequence[Crypto],
    query: str = "",
    sort: Optional[SortConfig] = None,
    page: int = 1,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> DashboardView:
    rows = filter_cryptos(cryptos, query)
    if sort is not None:
        rows = sort_cryptos(rows, sort)
    return paginate(rows, page, page_size)


# =========================
# Portfolio
# =========================

def _index(cryptos: Sequence[Crypto]) -> Dict[str, Crypto]:
    out: Dict[str, Crypto] = {}
    for c in cryptos:
        out.setdefault(c.symbol, c)   # first match wins
    return out


def portfolio_totals(holdings: Sequence[Holding], cryptos: Sequence[Crypto]) -> PortfolioTotals:
    """Value and footprint of the holdings at current prices; unknown symbols count as 0."""
    by_symbol = _index(cryptos)
    value = 0.0
    footprint = 0.0
    for h in holdings:
        c = by_symbol.get(h.symbol)
        if c is None:
            continue
        value += h.amount * (c.price or 0.0)
        footprint += h.amount * footprint_value(c.carbon_footprint)
    return PortfolioTotals(value=value, footprint=footprint)


def current_price(symbol: str, cryptos: Sequence[Crypto]) -> float:
    c = _index(cryptos).get(symbol)
    return (c.price or 0.0) if c else 0.0


def add_holding(
    holdings: Sequence[Holding],
    symbol: str,
    amount: Union[str, float],
    cryptos: Sequence[Crypto],
    now_ms: Optional[int] = None,
) -> List[Holding]:
    """Append a holding; invalid input leaves the list unchanged."""
    try:
        qty = float(amount)
    except (TypeError, ValueError):
        return list(holdings)
    if not symbol or not math.isfinite(qty) or qty <= 0:
        return list(holdings)
    if symbol not in _index(cryptos):
        return list(holdings)
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return list(holdings) + [Holding(id=f"{symbol}-{now_ms}", symbol=symbol, amount=qty)]


def remove_holding(holdings: Sequence[Holding], holding_id: str) -> List[Holding]:
    return [h for h in holdings if h.id != holding_id]


# =========================
# Display helpers
# =========================

def carbon_impact_level(footprint: float) -> str:
    if footprint > 1000:
        return "high"
    if footprint > 500:
        return "elevated"
    if footprint > 100:
        return "moderate"
    return "low"


def carbon_percentage(footprint: float) -> float:
    # log scale so small and huge footprints both register on the bar
    return min(100.0, math.log10(max(footprint, 0.0) + 1) * 25)


def humanize_co2(number: float) -> str:
    suffixes = ["", "Thousand", "Million", "Billion", "Trillion"]
    magnitude = 0
    while abs(number) >= 1000 and magnitude < len(suffixes) - 1:
        magnitude += 1
        number /= 1000.0
    return " ".join(p for p in (f"{number:.2f}", suffixes[magnitude], "CO₂") if p)


def display_footprint(crypto: Crypto) -> str:
    """Table cell text: per-transaction constants are scaled by volume, estimates shown as-is."""
    fp = crypto.carbon_footprint
    if isinstance(fp, str):
        return fp
    return humanize_co2(fp * (crypto.volume or 0.0))


# =========================
# Stateful holders
# =========================

@dataclass
class DashboardState:
    """Current inputs of the crypto table. Later snapshots simply replace earlier ones."""
    cryptos: List[Crypto] = field(default_factory=list)
    query: str = ""
    sort: SortConfig = field(default_factory=SortConfig)
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE
    last_updated: Optional[datetime] = None

    def set_cryptos(self, cryptos: Sequence[Crypto]) -> None:
        self.cryptos = list(cryptos)
        self.last_updated = datetime.now(timezone.utc)
        self.page = 1

    def set_query(self, query: str) -> None:
        self.query = query
        self.page = 1

    def sort_by(self, key: str) -> None:
        self.sort = self.sort.toggled(key)

    def set_page_size(self, page_size: int) -> None:
        if page_size not in PAGE_SIZES:
            raise ValueError(f"page size must be one of {PAGE_SIZES}")
        self.page_size = page_size
        self.page = 1

    def view(self) -> DashboardView:
        v = build_view(self.cryptos, self.query, self.sort, self.page, self.page_size)
        self.page = v.page
        return v

    def next_page(self) -> None:
        self.page = min(self.page + 1, max(self.view().total_pages, 1))

    def previous_page(self) -> None:
        self.page = max(self.page - 1, 1)


class MarketAutoRefresh:
    """Re-fetch the market snapshot every `interval` seconds while active.

    `is_active` is polled before each fetch; once it returns False (signed
    out) the loop ends. `stop()` ends it immediately (view closed).
    """

    def __init__(
        self,
        fetch: Callable[[], Awaitable[List[Crypto]]],
        on_update: Callable[[List[Crypto]], None],
        interval: float = REFRESH_INTERVAL_SECONDS,
        is_active: Optional[Callable[[], bool]] = None,
    ):
        self._fetch = fetch
        self._on_update = on_update
        self.interval = interval
        self._is_active = is_active or (lambda: True)
        self._task: Optional[asyncio.Task] = None
        self.last_error: Optional[str] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def refresh_once(self) -> bool:
        try:
            data = await self._fetch()
        except (httpx.HTTPError, ValueError) as e:
            self.last_error = str(e)
            logger.warning("Market refresh failed: %s", e)
            return False
        if not data:
            self.last_error = "empty market snapshot"
            logger.warning("Market refresh returned no data")
            return False
        self.last_error = None
        self._on_update(data)
        return True

    async def _run(self) -> None:
        while self._is_active():
            try:
                await self.refresh_once()
            except Exception as e:
                # keep the previous snapshot and try again next tick
                self.last_error = str(e) or type(e).__name__
                logger.exception("Unexpected error during market refresh")
            await asyncio.sleep(self.interval)

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
