import logging
from contextlib import asynccontextmanager
from datetime import date
from typing import Any, Dict, Optional, Literal

from fastapi import Body, FastAPI, Depends, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from pydantic import ValidationError as SchemaError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

import transactions
import users
from config import (
    CORS_ORIGINS,
    HOME_PAGE,
    LANDING_PAGE,
    LOGIN_PAGE,
    PORT,
    SESSION_COOKIE,
    SESSION_MAX_AGE,
    configure_logging,
)
from database import get_db, init_models
from errors import AppError, InternalError, NotFoundError, RedirectRequired, ValidationError
from identity import Access, IdentityMiddleware, require
from schemas import Credentials, Identity, TransactionOut, UserRegister
from security import mint_token

configure_logging()
logger = logging.getLogger("finance.api")

# ----------------------------------------------------------------------------
# App setup
# ----------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_models()
    yield


app = FastAPI(title="Personal Finance API", lifespan=lifespan)

app.add_middleware(IdentityMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

public = require(Access.PUBLIC)
auth_only = require(Access.AUTH_ONLY)
signed_in_page = require(Access.PROTECTED_PAGE)
signed_in = require(Access.PROTECTED_API)


# ----------------------------------------------------------------------------
# Error handling
# ----------------------------------------------------------------------------
def error_response(exc: AppError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    return error_response(exc)


@app.exception_handler(RedirectRequired)
async def redirect_handler(request: Request, exc: RedirectRequired):
    return RedirectResponse(exc.location, status_code=status.HTTP_302_FOUND)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return error_response(ValidationError())


@app.exception_handler(SQLAlchemyError)
async def store_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("Store failure on %s %s", request.method, request.url.path)
    return error_response(InternalError())


async def read_payload(request: Request) -> Dict[str, Any]:
    """Body of a JSON request or an HTML form post, as a plain dict."""
    if request.headers.get("content-type", "").startswith("application/json"):
        try:
            data = await request.json()
        except ValueError:
            # invalid JSON or a body that is not UTF-8
            raise ValidationError("Malformed JSON body")
        if not isinstance(data, dict):
            raise ValidationError("Expected a JSON object")
        return data
    form = await request.form()
    return dict(form)

# ----------------------------------------------------------------------------
# Pages
# ----------------------------------------------------------------------------
def page(title: str, body: str) -> HTMLResponse:
    return HTMLResponse(f"<!doctype html><title>{title}</title><body>{body}</body>")


@app.get("/", response_class=HTMLResponse)
async def landing(_: Optional[Identity] = Depends(public)):
    return page("Personal Finance", '<a href="/login">Log in</a> <a href="/register">Register</a>')


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/login", response_class=HTMLResponse)
async def login_page(_: Optional[Identity] = Depends(auth_only)):
    return page("Log in", '<form method="post" action="/login">'
                          '<input name="email"><input name="password" type="password">'
                          '<button>Log in</button></form>')


@app.get("/register", response_class=HTMLResponse)
async def register_page(_: Optional[Identity] = Depends(auth_only)):
    return page("Register", '<form method="post" action="/register">'
                            '<input name="name"><input name="email"><input name="password" type="password">'
                            '<button>Register</button></form>')


@app.get("/dashboard", response_class=HTMLResponse)
async def dashboard(identity: Identity = Depends(signed_in_page)):
    return page("Dashboard", '<main id="dashboard"></main><a href="/logout">Log out</a>')

# ----------------------------------------------------------------------------
# Auth routes
# ----------------------------------------------------------------------------
@app.post("/register")
async def register(request: Request, _: Optional[Identity] = Depends(auth_only), db: AsyncSession = Depends(get_db)):
    try:
        payload = UserRegister.model_validate(await read_payload(request))
    except SchemaError:
        raise ValidationError("Email and password required")

    await users.create_user(db, payload.name, payload.email, payload.password)
    return RedirectResponse(LOGIN_PAGE, status_code=status.HTTP_303_SEE_OTHER)


@app.post("/login")
async def login(request: Request, _: Optional[Identity] = Depends(auth_only), db: AsyncSession = Depends(get_db)):
    try:
        creds = Credentials.model_validate(await read_payload(request))
    except SchemaError:
        raise ValidationError("Email and password required")

    identity = await users.authenticate(db, creds.email, creds.password)
    logger.info("User id=%s signed in", identity.id)

    response = RedirectResponse(HOME_PAGE, status_code=status.HTTP_303_SEE_OTHER)
    response.set_cookie(
        SESSION_COOKIE,
        mint_token(identity),
        max_age=SESSION_MAX_AGE,
        path="/",
        httponly=True,
    )
    return response


@app.get("/logout")
async def logout():
    response = RedirectResponse(LANDING_PAGE, status_code=status.HTTP_302_FOUND)
    response.delete_cookie(SESSION_COOKIE, path="/", httponly=True)
    return response


@app.get("/api/me")
async def me(identity: Identity = Depends(signed_in)):
    return {"user": identity}

# ----------------------------------------------------------------------------
# Transactions
# ----------------------------------------------------------------------------
MAX_ROW_ID = 2 ** 63 - 1


def parse_tx_id(tx_id: str) -> int:
    # ids are 64-bit positive integers; anything else cannot name a row
    if not (tx_id.isascii() and tx_id.isdigit()) or int(tx_id) > MAX_ROW_ID:
        raise NotFoundError("Transaction not found")
    return int(tx_id)


@app.get("/api/transactions")
async def list_transactions(
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
    ttype: Optional[Literal["income", "expense"]] = Query(None, alias="type"),
    identity: Identity = Depends(signed_in),
    db: AsyncSession = Depends(get_db),
):
    rows = await transactions.list_transactions(db, identity, from_date, to_date, ttype)
    return {"transactions": [TransactionOut.model_validate(r) for r in rows]}


@app.post("/api/transactions")
async def create_transaction(
    payload: Dict[str, Any] = Body(...),
    identity: Identity = Depends(signed_in),
    db: AsyncSession = Depends(get_db),
):
    tx_id = await transactions.create_transaction(db, identity, payload)
    return {"success": True, "id": tx_id}


@app.put("/api/transactions/{tx_id}")
async def update_transaction(
    tx_id: str,
    payload: Dict[str, Any] = Body(...),
    identity: Identity = Depends(signed_in),
    db: AsyncSession = Depends(get_db),
):
    await transactions.update_transaction(db, identity, parse_tx_id(tx_id), payload)
    return {"success": True}


@app.delete("/api/transactions/{tx_id}")
async def delete_transaction(
    tx_id: str,
    identity: Identity = Depends(signed_in),
    db: AsyncSession = Depends(get_db),
):
    await transactions.delete_transaction(db, identity, parse_tx_id(tx_id))
    return {"success": True}


@app.get("/api/summary")
async def summary(identity: Identity = Depends(signed_in), db: AsyncSession = Depends(get_db)):
    return await transactions.summarize(db, identity)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=PORT)
