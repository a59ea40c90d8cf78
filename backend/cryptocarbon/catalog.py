# backend/cryptocarbon/catalog.py
"""Static reference data for known coins: names, brand colors, consensus class.

All tables are read-only. Anything not listed falls back to a rule:
unknown names use the symbol, unknown colors are derived from a hash of the
symbol, and anything not in the proof-of-work set is treated as proof-of-stake.
"""
import math
from types import MappingProxyType
from typing import Mapping, Union

FULL_NAMES: Mapping[str, str] = MappingProxyType({
    "BTC": "Bitcoin", "ETH": "Ethereum", "SOL": "Solana", "BNB": "Binance Coin",
    "ADA": "Cardano", "DOGE": "Dogecoin", "XRP": "Ripple", "DOT": "Polkadot",
    "AVAX": "Avalanche", "MATIC": "Polygon", "LINK": "Chainlink", "UNI": "Uniswap",
    "ATOM": "Cosmos", "LTC": "Litecoin", "NEAR": "NEAR Protocol", "SHIB": "Shiba Inu",
    "TRX": "TRON", "FTM": "Fantom", "ALGO": "Algorand", "MANA": "Decentraland",
    "SAND": "The Sandbox", "AAVE": "Aave", "CRO": "Cronos", "EGLD": "MultiversX",
    "HBAR": "Hedera", "EOS": "EOS", "CAKE": "PancakeSwap", "XTZ": "Tezos",
    "FIL": "Filecoin", "VET": "VeChain", "THETA": "Theta Network", "XLM": "Stellar",
    "FLOW": "Flow", "ICP": "Internet Computer", "AXS": "Axie Infinity", "NEO": "NEO",
    "KCS": "KuCoin Token", "MIOTA": "IOTA", "BTT": "BitTorrent", "ONE": "Harmony",
    "ZIL": "Zilliqa", "DASH": "Dash", "XMR": "Monero", "ENJ": "Enjin Coin",
    "GALA": "Gala", "CHZ": "Chiliz", "BAT": "Basic Attention Token", "HOT": "Holo",
    "ZEC": "Zcash", "QTUM": "Qtum",
})

# Order matters: the first key contained in the symbol wins.
BRAND_COLORS: Mapping[str, str] = MappingProxyType({
    "BTC": "#F7931A",
    "ETH": "#627EEA",
    "SOL": "#00FFA3",
    "BNB": "#F3BA2F",
    "ADA": "#0033AD",
    "DOGE": "#C2A633",
    "XRP": "#23292F",
    "DOT": "#E6007A",
    "AVAX": "#E84142",
    "MATIC": "#8247E5",
    "LINK": "#2A5ADA",
    "UNI": "#FF007A",
    "ATOM": "#2E3148",
    "LTC": "#345D9D",
    "NEAR": "#000000",
})

PROOF_OF_WORK = frozenset({"BTC", "BCH", "BSV", "LTC", "DOGE", "ETC", "ZEC", "XMR", "RVN", "KDA"})

# Network consumption in TWh/year (https://ccaf.io/cbnsi/cbeci)
POW_CONSUMPTION_TWH = 174.0
POS_CONSUMPTION_TWH = 5.88
# Grid intensity in g CO2 per kWh (EEA average)
CO2_GRAMS_PER_KWH = 200.0

# Single-transaction footprints in kg CO2 (digiconomist.net)
POW_TRANSACTION_KG = 668.74
POS_TRANSACTION_KG = 0.01

ICON_URL = "https://cryptoicons.org/api/icon/{symbol}/64"


def full_name(symbol: str) -> str:
    return FULL_NAMES.get(symbol.upper(), symbol)


def icon_url(symbol: str) -> str:
    return ICON_URL.format(symbol=symbol.lower())


def is_proof_of_work(symbol: str) -> bool:
    upper = symbol.upper()
    return any(coin in upper for coin in PROOF_OF_WORK)


def _to_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value >= 0x80000000 else value


def hash_color(symbol: str) -> str:
    """Deterministic `#rrggbb` from a 32-bit rolling hash of the symbol."""
    h = 0
    for ch in symbol:
        h = ord(ch) + (_to_int32(_to_int32(h) << 5) - h)
    h = _to_int32(h)
    return "#" + "".join("%02x" % ((h >> (i * 8)) & 0xFF) for i in range(3))


def generate_color(symbol: str) -> str:
    upper = symbol.upper()
    for key, color in BRAND_COLORS.items():
        if key in upper:
            return color
    return hash_color(symbol)


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def estimate_carbon_footprint(symbol: str, volume: float, market_cap: float) -> str:
    """Volume-scaled footprint estimate, rendered as e.g. ``"1234 kg CO₂"``."""
    consumption_twh = POW_CONSUMPTION_TWH if is_proof_of_work(symbol) else POS_CONSUMPTION_TWH
    consumption_kwh = consumption_twh * 1_000_000
    emission_kg = consumption_kwh * CO2_GRAMS_PER_KWH / 1000

    volume_factor = math.log10(max(volume, 0.0) + 1) / 10
    market_cap_factor = math.log10(max(market_cap, 0.0) + 1) / 20
    return f"{_round_half_up(emission_kg * (volume_factor + market_cap_factor))} kg CO₂"


def transaction_footprint(symbol: str) -> float:
    """Per-transaction footprint constant in kg CO2."""
    return POW_TRANSACTION_KG if is_proof_of_work(symbol) else POS_TRANSACTION_KG


def footprint_value(footprint: Union[str, float, int, None]) -> float:
    """Numeric part of a footprint field: ``"12 kg CO₂"`` -> 12.0, 0.01 -> 0.01.

    Anything unparseable counts as 0.
    """
    if footprint is None:
        return 0.0
    if isinstance(footprint, (int, float)):
        value = float(footprint)
    else:
        parts = str(footprint).split(" ")
        try:
            value = float(parts[0])
        except ValueError:
            return 0.0
    return value if math.isfinite(value) else 0.0
