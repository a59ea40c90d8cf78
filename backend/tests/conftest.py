"""Shared pytest fixtures: in-memory database, mocked upstream APIs, API clients."""

from __future__ import annotations

import os

# must be set before cryptocarbon.config is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("APP_SECRET_KEY", "test-secret")

import httpx
import pytest
from fastapi.testclient import TestClient

from cryptocarbon.db import Base, SessionLocal, engine
from cryptocarbon.main import app, get_http_client
from cryptocarbon.market import Crypto


def _unreachable(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("upstream unreachable", request=request)


@pytest.fixture(autouse=True)
def fresh_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def upstream():
    """Route market-data HTTP calls to `upstream["handler"]` and record requests.

    The default handler fails every call, as if the network were down.
    """
    state = {"handler": _unreachable, "requests": []}

    def dispatch(request: httpx.Request) -> httpx.Response:
        state["requests"].append(request)
        return state["handler"](request)

    async def _client():
        async with httpx.AsyncClient(transport=httpx.MockTransport(dispatch)) as c:
            yield c

    app.dependency_overrides[get_http_client] = _client
    yield state
    app.dependency_overrides.pop(get_http_client, None)


@pytest.fixture
def client(upstream):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def anyio_backend():
    return "asyncio"


def register(client: TestClient, name="Alice", email="alice@example.com", password="s3cret-pass"):
    return client.post("/auth/register", json={"name": name, "email": email, "password": password})


def sign_in(client: TestClient, email="alice@example.com", password="s3cret-pass"):
    return client.post("/auth/session", json={"email": email, "password": password})


def auth_headers(client: TestClient, email="alice@example.com", password="s3cret-pass", name="Alice") -> dict:
    register(client, name=name, email=email, password=password)
    token = sign_in(client, email=email, password=password).json()["access_token"]
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def sample_cryptos() -> list[Crypto]:
    return [
        Crypto("Bitcoin", "BTC", 100.0, 2.5, 5000.0, "3480000 kg CO₂", "#F7931A", None),
        Crypto("Ethereum", "ETH", 50.0, -1.0, 8000.0, "117600 kg CO₂", "#627EEA", None),
        Crypto("Solana", "SOL", 20.0, 5.0, 3000.0, "90000 kg CO₂", "#00FFA3", None),
        Crypto("Cardano", "ADA", 0.5, -2.0, 1000.0, "80000 kg CO₂", "#0033AD", None),
        Crypto("Dogecoin", "DOGE", 0.1, 10.0, 2000.0, "3000000 kg CO₂", "#C2A633", None),
        Crypto("Litecoin", "LTC", 80.0, 0.0, 500.0, "2900000 kg CO₂", "#345D9D", None),
        Crypto("Polkadot", "DOT", 7.0, 3.0, 900.0, "70000 kg CO₂", "#E6007A", None),
    ]
