# backend/cryptocarbon/main.py
import logging, os, traceback
from typing import List, Optional

import httpx
from fastapi import FastAPI, HTTPException, Depends, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, EmailStr
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .config import CORS_ORIGINS, LOG_LEVEL, REPORT_DEBUG
from .db import get_db, init_db
from .market import fetch_aggregator_snapshot, fetch_exchange_snapshot, new_http_client
from .portfolio import HoldingOut, PortfolioIn, get_holdings, replace_holdings
from .security import (
    RegistrationError,
    RequestContext,
    authenticate_user,
    create_access_token,
    get_request_context,
    register_user,
)

# =========================
# Config
# =========================
logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger("cryptocarbon.api")

init_db()

# =========================
# FastAPI app & CORS
# =========================
app = FastAPI(title="Crypto Carbon Tracker API")


@app.exception_handler(RequestValidationError)
async def _invalid_body(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "Invalid data format", "errors": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(Exception)
async def _any_exc(request: Request, exc: Exception):
    logger.error("Unhandled error on %s %s:\n%s", request.method, request.url.path, traceback.format_exc())
    if REPORT_DEBUG:
        return PlainTextResponse(traceback.format_exc(), status_code=500)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =========================
# Schemas
# =========================

class RegisterBody(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    password: Optional[str] = None


class LoginBody(BaseModel):
    email: str = ""
    password: str = ""


class SessionUserOut(BaseModel):
    id: str
    name: str
    email: str


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: SessionUserOut


class MessageOut(BaseModel):
    message: str


async def get_http_client():
    async with new_http_client() as client:
        yield client


@app.get("/")
def read_root():
    return {"message": "Crypto Carbon Tracker API running"}


# =========================
# AUTH
# =========================
@app.post("/auth/register", status_code=201, response_model=MessageOut)
def register(body: RegisterBody, db: Session = Depends(get_db)):
    try:
        register_user(db, body.name or "", body.email or "", body.password or "")
    except RegistrationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return MessageOut(message="User created successfully")


@app.post("/auth/session", response_model=TokenOut)
def sign_in(body: LoginBody, db: Session = Depends(get_db)):
    user = authenticate_user(db, body.email, body.password)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    logger.info("User id=%s signed in", user.id)
    return TokenOut(access_token=create_access_token(user), user=SessionUserOut(**user.to_dict()))


@app.get("/auth/session")
def read_session(ctx: RequestContext = Depends(get_request_context)):
    if not ctx.is_authenticated:
        return None
    return {
        "user": ctx.user.to_dict(),
        "expires": ctx.expires.isoformat() if ctx.expires else None,
    }


# =========================
# MARKET DATA
# =========================
@app.get("/market/exchange")
async def market_exchange(client: httpx.AsyncClient = Depends(get_http_client)):
    return [c.to_dict() for c in await fetch_exchange_snapshot(client)]


@app.get("/market/aggregator")
async def market_aggregator(client: httpx.AsyncClient = Depends(get_http_client)):
    return [c.to_dict() for c in await fetch_aggregator_snapshot(client)]


# =========================
# PORTFOLIO
# =========================
@app.get("/portfolio", response_model=List[HoldingOut])
def read_portfolio(ctx: RequestContext = Depends(get_request_context), db: Session = Depends(get_db)):
    user = ctx.require_user()
    try:
        return get_holdings(db, int(user.id))
    except SQLAlchemyError:
        logger.exception("Could not read portfolio for user id=%s", user.id)
        raise HTTPException(status_code=500, detail="Server error")


@app.post("/portfolio", response_model=MessageOut)
def save_portfolio(p: PortfolioIn, ctx: RequestContext = Depends(get_request_context), db: Session = Depends(get_db)):
    user = ctx.require_user()
    try:
        replace_holdings(db, int(user.id), p.items)
    except SQLAlchemyError:
        logger.exception("Could not save portfolio for user id=%s", user.id)
        raise HTTPException(status_code=500, detail="Server error")
    return MessageOut(message="Portfolio updated")


def run():
    import uvicorn
    uvicorn.run("cryptocarbon.main:app", host="0.0.0.0", port=int(os.environ.get("PORT", 8000)))


if __name__ == "__main__":
    run()
