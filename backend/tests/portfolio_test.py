"""Tests for the portfolio endpoint and the holding-replacement service."""

from __future__ import annotations

from types import SimpleNamespace

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from conftest import auth_headers
from cryptocarbon.db import UserDB
from cryptocarbon.portfolio import HoldingIn, get_holdings, replace_holdings


def _pairs(items):
    return sorted((i["symbol"], i["amount"]) for i in items)


class TestPortfolioAuth:
    def test_read_requires_session(self, client):
        r = client.get("/portfolio")
        assert r.status_code == 401
        assert r.json()["detail"] == "You must be signed in"

    def test_write_requires_session(self, client):
        r = client.post("/portfolio", json={"items": []})
        assert r.status_code == 401

    def test_invalid_token_rejected(self, client):
        r = client.get("/portfolio", headers={"Authorization": "Bearer forged"})
        assert r.status_code == 401


class TestPortfolioReadWrite:
    def test_empty_for_new_user(self, client):
        headers = auth_headers(client)
        r = client.get("/portfolio", headers=headers)
        assert r.status_code == 200
        assert r.json() == []

    def test_save_then_read_back(self, client):
        headers = auth_headers(client)
        items = [
            {"id": "BTC-1700000000000", "symbol": "BTC", "amount": 2},
            {"id": "ETH-1700000000001", "symbol": "ETH", "amount": 0.5},
            {"id": "SOL-1700000000002", "symbol": "SOL", "amount": 10},
        ]
        r = client.post("/portfolio", json={"items": items}, headers=headers)
        assert r.status_code == 200
        assert r.json() == {"message": "Portfolio updated"}

        saved = client.get("/portfolio", headers=headers).json()
        assert len(saved) == 3
        assert _pairs(saved) == [("BTC", 2.0), ("ETH", 0.5), ("SOL", 10.0)]
        assert all(isinstance(i["id"], int) for i in saved)

    def test_second_save_replaces_first(self, client):
        headers = auth_headers(client)
        client.post("/portfolio", json={"items": [{"symbol": "BTC", "amount": 1}, {"symbol": "ETH", "amount": 3}]},
                    headers=headers)
        client.post("/portfolio", json={"items": [{"symbol": "DOGE", "amount": 1000}]}, headers=headers)

        saved = client.get("/portfolio", headers=headers).json()
        assert _pairs(saved) == [("DOGE", 1000.0)]

    def test_empty_save_clears(self, client):
        headers = auth_headers(client)
        client.post("/portfolio", json={"items": [{"symbol": "BTC", "amount": 1}]}, headers=headers)
        client.post("/portfolio", json={"items": []}, headers=headers)
        assert client.get("/portfolio", headers=headers).json() == []

    def test_users_are_isolated(self, client):
        alice = auth_headers(client)
        bob = auth_headers(client, email="bob@example.com", name="Bob")
        client.post("/portfolio", json={"items": [{"symbol": "BTC", "amount": 1}]}, headers=alice)
        client.post("/portfolio", json={"items": [{"symbol": "ETH", "amount": 4}]}, headers=bob)

        assert _pairs(client.get("/portfolio", headers=alice).json()) == [("BTC", 1.0)]
        assert _pairs(client.get("/portfolio", headers=bob).json()) == [("ETH", 4.0)]


class TestPortfolioValidation:
    @pytest.mark.parametrize("body", [
        {"items": "BTC"},
        {"items": {"symbol": "BTC", "amount": 1}},
        {},
        [{"symbol": "BTC", "amount": 1}],
    ])
    def test_non_array_items_rejected(self, client, body):
        headers = auth_headers(client)
        r = client.post("/portfolio", json=body, headers=headers)
        assert r.status_code == 400
        assert r.json()["detail"] == "Invalid data format"

    def test_negative_amount_rejected(self, client):
        headers = auth_headers(client)
        r = client.post("/portfolio", json={"items": [{"symbol": "BTC", "amount": -1}]}, headers=headers)
        assert r.status_code == 400

    def test_overflowing_amount_rejected(self, client):
        headers = auth_headers(client)
        client.post("/portfolio", json={"items": [{"symbol": "BTC", "amount": 1}]}, headers=headers)
        # 1e400 is valid JSON but parses to inf
        r = client.post("/portfolio", content=b'{"items":[{"symbol":"BTC","amount":1e400}]}',
                        headers={**headers, "Content-Type": "application/json"})
        assert r.status_code == 400
        assert _pairs(client.get("/portfolio", headers=headers).json()) == [("BTC", 1.0)]

    def test_rejected_save_keeps_previous_holdings(self, client):
        headers = auth_headers(client)
        client.post("/portfolio", json={"items": [{"symbol": "BTC", "amount": 1}]}, headers=headers)
        client.post("/portfolio", json={"items": [{"symbol": "", "amount": 1}]}, headers=headers)
        assert _pairs(client.get("/portfolio", headers=headers).json()) == [("BTC", 1.0)]

    def test_storage_failure_is_redacted(self, client, monkeypatch):
        headers = auth_headers(client)

        def broken(*args, **kwargs):
            raise OperationalError("DELETE FROM portfolios", {}, Exception("disk I/O error"))

        monkeypatch.setattr("cryptocarbon.main.replace_holdings", broken)
        r = client.post("/portfolio", json={"items": [{"symbol": "BTC", "amount": 1}]}, headers=headers)
        assert r.status_code == 500
        assert r.json() == {"detail": "Server error"}


class TestReplaceHoldings:
    @pytest.fixture
    def user_id(self, db):
        user = UserDB(name="Dana", email="dana@example.com", password_hash="x")
        db.add(user); db.commit()
        return user.id

    def test_returns_count(self, db, user_id):
        n = replace_holdings(db, user_id, [HoldingIn(symbol="BTC", amount=1), HoldingIn(symbol="ETH", amount=2)])
        assert n == 2
        assert [(h.symbol, h.amount) for h in get_holdings(db, user_id)] == [("BTC", 1.0), ("ETH", 2.0)]

    def test_failed_insert_rolls_back_delete(self, db, user_id):
        replace_holdings(db, user_id, [HoldingIn(symbol="BTC", amount=1)])
        # amount is NOT NULL, so the insert fails after the delete has run
        bad = [SimpleNamespace(symbol="ETH", amount=None)]
        with pytest.raises(IntegrityError):
            replace_holdings(db, user_id, bad)
        assert [(h.symbol, h.amount) for h in get_holdings(db, user_id)] == [("BTC", 1.0)]
