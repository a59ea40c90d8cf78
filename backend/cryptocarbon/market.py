# backend/cryptocarbon/market.py
import json
import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import httpx

from .catalog import (
    estimate_carbon_footprint,
    full_name,
    generate_color,
    icon_url,
    transaction_footprint,
)
from .config import (
    AGGREGATOR_MARKETS_URL,
    AGGREGATOR_TOP_N,
    EXCHANGE_QUOTE_ASSET,
    EXCHANGE_TICKER_URL,
    FALLBACK_MARKETS_PATH,
    MARKET_HTTP_TIMEOUT,
    USER_AGENT,
)

logger = logging.getLogger("cryptocarbon.market")

LEVERAGED_MARKERS = ("UP", "DOWN", "BEAR", "BULL")

REQUEST_HEADERS = {"Accept": "application/json", "User-Agent": USER_AGENT}


@dataclass(frozen=True)
class Crypto:
    name: str
    symbol: str
    price: Optional[float]
    change: Optional[float]
    volume: Optional[float]
    carbon_footprint: Union[str, float]
    color: str
    icon_url: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "symbol": self.symbol,
            "price": self.price,
            "change": self.change,
            "volume": self.volume,
            "carbonFootprint": self.carbon_footprint,
            "color": self.color,
            "iconUrl": self.icon_url,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Crypto":
        return cls(
            name=d.get("name") or d.get("symbol") or "",
            symbol=d.get("symbol") or "",
            price=_to_float(d.get("price")),
            change=_to_float(d.get("change")),
            volume=_to_float(d.get("volume")),
            carbon_footprint=d.get("carbonFootprint", 0),
            color=d.get("color") or "",
            icon_url=d.get("iconUrl"),
        )


def _to_float(x, default: Optional[float] = None) -> Optional[float]:
    try:
        v = float(x)
    except (TypeError, ValueError):
        return default
    return v if math.isfinite(v) else default


def new_http_client(**kwargs) -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=MARKET_HTTP_TIMEOUT, **kwargs)


async def _get_json(client: httpx.AsyncClient, url: str, params: Optional[Dict[str, Any]] = None):
    r = await client.get(url, params=params, headers=REQUEST_HEADERS)
    r.raise_for_status()
    return r.json()


# =========================
# Exchange ticker adapter
# =========================

def approximate_market_cap(price: float, volume: float, change_pct: Optional[float]) -> float:
    # zero/unknown change counts as 1%, and the divisor never drops below 0.01
    return (price * volume) / max(0.01, abs(change_pct or 1.0))


def is_tradable_pair(symbol: str, quote: str = EXCHANGE_QUOTE_ASSET) -> bool:
    return symbol.endswith(quote) and not any(m in symbol for m in LEVERAGED_MARKERS)


def normalize_exchange_tickers(tickers: List[Dict[str, Any]], quote: str = EXCHANGE_QUOTE_ASSET) -> List[Crypto]:
    pairs = [t for t in tickers if isinstance(t, dict) and is_tradable_pair(str(t.get("symbol", "")), quote)]
    pairs.sort(key=lambda t: _to_float(t.get("quoteVolume"), 0.0), reverse=True)

    out: List[Crypto] = []
    for t in pairs:
        base = str(t["symbol"])[: -len(quote)] if quote else str(t["symbol"])
        volume = _to_float(t.get("quoteVolume"), 0.0)
        price = _to_float(t.get("lastPrice"), 0.0)
        change = _to_float(t.get("priceChangePercent"))
        market_cap = approximate_market_cap(price, volume, change)
        out.append(Crypto(
            name=full_name(base),
            symbol=base,
            price=price,
            change=change,
            volume=volume,
            carbon_footprint=estimate_carbon_footprint(base, volume, market_cap),
            color=generate_color(base),
            icon_url=icon_url(base),
        ))
    return out


EXCHANGE_FALLBACK = (
    {"symbol": "BTC", "name": "Bitcoin", "price": 65432.1, "change": 2.34, "volume": 25000000000},
    {"symbol": "ETH", "name": "Ethereum", "price": 3456.78, "change": -1.23, "volume": 15000000000},
    {"symbol": "SOL", "name": "Solana", "price": 123.45, "change": 5.67, "volume": 5000000000},
    {"symbol": "BNB", "name": "Binance Coin", "price": 567.89, "change": 0.12, "volume": 3000000000},
    {"symbol": "ADA", "name": "Cardano", "price": 0.45, "change": -2.34, "volume": 2000000000},
    {"symbol": "DOGE", "name": "Dogecoin", "price": 0.12, "change": 10.45, "volume": 1500000000},
    {"symbol": "XRP", "name": "Ripple", "price": 0.56, "change": -0.78, "volume": 1200000000},
    {"symbol": "DOT", "name": "Polkadot", "price": 6.78, "change": 3.45, "volume": 900000000},
    {"symbol": "AVAX", "name": "Avalanche", "price": 34.56, "change": 7.89, "volume": 800000000},
    {"symbol": "MATIC", "name": "Polygon", "price": 0.89, "change": -4.56, "volume": 700000000},
    {"symbol": "LINK", "name": "Chainlink", "price": 12.34, "change": 3.21, "volume": 650000000},
    {"symbol": "UNI", "name": "Uniswap", "price": 5.67, "change": -2.1, "volume": 600000000},
    {"symbol": "ATOM", "name": "Cosmos", "price": 8.9, "change": 1.23, "volume": 550000000},
    {"symbol": "LTC", "name": "Litecoin", "price": 78.9, "change": -0.45, "volume": 500000000},
    {"symbol": "XLM", "name": "Stellar", "price": 0.12, "change": 0.78, "volume": 450000000},
)


def exchange_fallback() -> List[Crypto]:
    out = []
    for c in EXCHANGE_FALLBACK:
        market_cap = (c["price"] * c["volume"]) / abs(c["change"] or 1)
        out.append(Crypto(
            name=c["name"],
            symbol=c["symbol"],
            price=c["price"],
            change=c["change"],
            volume=float(c["volume"]),
            carbon_footprint=estimate_carbon_footprint(c["symbol"], c["volume"], market_cap),
            color=generate_color(c["symbol"]),
            icon_url=icon_url(c["symbol"]),
        ))
    return out


async def fetch_exchange_snapshot(client: httpx.AsyncClient, url: str = EXCHANGE_TICKER_URL) -> List[Crypto]:
    """24h tickers from the exchange, or the embedded snapshot if the exchange is unavailable."""
    try:
        tickers = await _get_json(client, url)
        if not isinstance(tickers, list):
            raise ValueError(f"unexpected ticker payload: {type(tickers).__name__}")
        return normalize_exchange_tickers(tickers)
    except (httpx.HTTPError, ValueError) as e:
        logger.warning("Exchange API unavailable, serving fallback data: %s", e)
        return exchange_fallback()


# =========================
# Market-cap aggregator adapter
# =========================

def normalize_aggregator_markets(markets: List[Dict[str, Any]]) -> List[Crypto]:
    out: List[Crypto] = []
    for m in (m for m in markets if isinstance(m, dict)):
        symbol = str(m.get("symbol") or "")
        out.append(Crypto(
            name=m.get("name") or symbol,
            symbol=symbol,
            price=_to_float(m.get("current_price")),
            change=_to_float(m.get("price_change_percentage_24h")),
            volume=_to_float(m.get("total_supply")),
            carbon_footprint=transaction_footprint(symbol),
            color=generate_color(symbol).lower(),
            icon_url=m.get("image"),
        ))
    return out


def load_fallback_markets(path: Path = FALLBACK_MARKETS_PATH) -> List[Dict[str, Any]]:
    try:
        with open(path, encoding="utf-8") as fh:
            data = json.load(fh)
    except (OSError, ValueError):
        logger.exception("Could not read fallback market file %s", path)
        return []
    return data if isinstance(data, list) else []


async def fetch_aggregator_snapshot(
    client: httpx.AsyncClient,
    url: str = AGGREGATOR_MARKETS_URL,
    top_n: int = AGGREGATOR_TOP_N,
    fallback_path: Path = FALLBACK_MARKETS_PATH,
) -> List[Crypto]:
    """Top `top_n` assets by market cap, or the packaged JSON snapshot as last resort."""
    params = {
        "vs_currency": "usd",
        "order": "market_cap_desc",
        "per_page": top_n,
        "sparkline": "false",
    }
    try:
        markets = await _get_json(client, url, params=params)
        if not isinstance(markets, list):
            raise ValueError(f"unexpected markets payload: {type(markets).__name__}")
    except (httpx.HTTPError, ValueError) as e:
        logger.warning("Aggregator API unavailable, serving %s: %s", fallback_path, e)
        markets = load_fallback_markets(fallback_path)
    return normalize_aggregator_markets(markets)
