# backend/cryptocarbon/client.py
import logging
from typing import List, Optional, Sequence

import httpx

from .dashboard import Holding
from .market import Crypto
from .security import SessionUser

logger = logging.getLogger("cryptocarbon.client")

MARKET_SOURCES = ("exchange", "aggregator")


class DashboardClient:
    """Async caller of the HTTP API, holding the bearer token after sign-in.

    Pass `transport=httpx.ASGITransport(app=app)` to talk to an app in-process.
    """

    def __init__(self, base_url: str, **kwargs):
        self._http = httpx.AsyncClient(base_url=base_url, **kwargs)
        self.token: Optional[str] = None
        self.user: Optional[SessionUser] = None

    async def __aenter__(self) -> "DashboardClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    @property
    def is_authenticated(self) -> bool:
        return self.token is not None

    def _auth_headers(self) -> dict:
        return {"Authorization": f"Bearer {self.token}"} if self.token else {}

    # ---- auth ----
    async def register(self, name: str, email: str, password: str) -> str:
        r = await self._http.post("/auth/register", json={"name": name, "email": email, "password": password})
        r.raise_for_status()
        return r.json()["message"]

    async def sign_in(self, email: str, password: str) -> Optional[SessionUser]:
        r = await self._http.post("/auth/session", json={"email": email, "password": password})
        if r.status_code == 401:
            return None
        r.raise_for_status()
        body = r.json()
        self.token = body["access_token"]
        self.user = SessionUser(**body["user"])
        return self.user

    def sign_out(self) -> None:
        self.token = None
        self.user = None

    async def session(self) -> Optional[dict]:
        r = await self._http.get("/auth/session", headers=self._auth_headers())
        r.raise_for_status()
        return r.json()

    # ---- market ----
    async def market(self, source: str = "exchange") -> List[Crypto]:
        if source not in MARKET_SOURCES:
            raise ValueError(f"unknown market source {source!r}")
        r = await self._http.get(f"/market/{source}", headers={"Cache-Control": "no-cache"})
        r.raise_for_status()
        data = r.json()
        if not isinstance(data, list) or not data:
            raise ValueError("invalid market data received")
        return [Crypto.from_dict(d) for d in data]

    # ---- portfolio ----
    async def portfolio(self) -> List[Holding]:
        r = await self._http.get("/portfolio", headers=self._auth_headers())
        r.raise_for_status()
        return [Holding(id=str(d["id"]), symbol=d["symbol"], amount=float(d["amount"])) for d in r.json()]

    async def save_portfolio(self, holdings: Sequence[Holding]) -> str:
        items = [{"id": h.id, "symbol": h.symbol, "amount": h.amount} for h in holdings]
        r = await self._http.post("/portfolio", json={"items": items}, headers=self._auth_headers())
        r.raise_for_status()
        return r.json()["message"]
