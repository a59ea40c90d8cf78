# backend/cryptocarbon/config.py
import os
from pathlib import Path
from dotenv import load_dotenv

ROOT = Path(__file__).resolve().parents[2]  # project root
load_dotenv(ROOT / ".env")

# =========================
# Storage & auth
# =========================
DB_URL = os.environ.get("DATABASE_URL", "sqlite:///./app.db")

SECRET_KEY = os.environ.get("APP_SECRET_KEY", "dev-secret-change-me")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.environ.get("ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 24 * 30))  # 30 days

CORS_ORIGINS = os.environ.get(
    "CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000"
).split(",")

# =========================
# Upstream market data
# =========================
EXCHANGE_TICKER_URL = os.environ.get("EXCHANGE_TICKER_URL", "https://api.binance.com/api/v3/ticker/24hr")
EXCHANGE_QUOTE_ASSET = os.environ.get("EXCHANGE_QUOTE_ASSET", "USDT")

AGGREGATOR_MARKETS_URL = os.environ.get("AGGREGATOR_MARKETS_URL", "https://api.coingecko.com/api/v3/coins/markets")
AGGREGATOR_TOP_N = int(os.environ.get("AGGREGATOR_TOP_N", 100))

MARKET_HTTP_TIMEOUT = float(os.environ.get("MARKET_HTTP_TIMEOUT", 15))
USER_AGENT = "Crypto Carbon Tracker/1.0"

FALLBACK_MARKETS_PATH = Path(
    os.environ.get("FALLBACK_MARKETS_PATH", Path(__file__).resolve().parent / "data" / "markets.json")
)

# =========================
# Dashboard
# =========================
REFRESH_INTERVAL_SECONDS = float(os.environ.get("REFRESH_INTERVAL_SECONDS", 60))

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
REPORT_DEBUG = os.environ.get("REPORT_DEBUG", "0") == "1"
