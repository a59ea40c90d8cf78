# backend/cryptocarbon/portfolio.py
import logging
from typing import Iterable, List, Optional

from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from .db import PortfolioDB

logger = logging.getLogger("cryptocarbon.portfolio")


# =========================
# Schemas
# =========================

class HoldingIn(BaseModel):
    id: Optional[str] = None          # client-side key, not stored
    symbol: str = Field(..., min_length=1)
    amount: float = Field(..., ge=0, allow_inf_nan=False)


class PortfolioIn(BaseModel):
    items: List[HoldingIn]


class HoldingOut(BaseModel):
    id: int
    symbol: str
    amount: float


# =========================
# Service
# =========================

def get_holdings(db: Session, user_id: int) -> List[HoldingOut]:
    rows = db.query(PortfolioDB).filter(PortfolioDB.user_id == user_id).order_by(PortfolioDB.id).all()
    return [HoldingOut(id=r.id, symbol=r.symbol, amount=r.amount) for r in rows]


def replace_holdings(db: Session, user_id: int, items: Iterable[HoldingIn]) -> int:
    """Swap the user's whole holding set for `items` in a single transaction.

    Readers see either the old set or the new one, never a mix.
    """
    rows = [PortfolioDB(user_id=user_id, symbol=i.symbol, amount=i.amount) for i in items]
    try:
        db.query(PortfolioDB).filter(PortfolioDB.user_id == user_id).delete(synchronize_session=False)
        db.add_all(rows)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("Saved portfolio for user id=%s (%d holdings)", user_id, len(rows))
    return len(rows)
