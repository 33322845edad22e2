import logging
from typing import Any, Dict, Optional

import psycopg2.extras
from dotenv import load_dotenv
from fastapi import Cookie, Depends, FastAPI, HTTPException, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from passlib.hash import bcrypt
from pydantic import BaseModel, ConfigDict, Field

from storefront import app_context
from storefront.app.auth.session import SessionTokens, get_session_settings
from storefront.app.billing.errors import BillingError
from storefront.app.routes.admin import router as admin_router
from storefront.app.routes.payments import router as payments_router
from storefront.app.routes.plans import router as plans_router
from storefront.app.routes.subscriptions import router as subscriptions_router
from storefront.app.routes.verification import router as verification_router
from storefront.database import connect
from storefront.settings import EnvReader

load_dotenv()

logger = logging.getLogger("storefront")

SESSION = get_session_settings()
session_tokens = SessionTokens(SESSION)

CORS_ORIGINS = [
    origin.strip()
    for origin in EnvReader().text("CORS_ORIGINS", "http://localhost:5173").split(",")
    if origin.strip()
]

_USER_COLUMNS = "id, username, email, role, is_email_verified"


def get_conn():
    return connect()


class UserOut(BaseModel):
    id: int
    username: str
    email: Optional[str] = None
    role: str
    is_email_verified: bool = Field(alias="isEmailVerified", default=False)

    model_config = ConfigDict(populate_by_name=True)


class LoginRequest(BaseModel):
    username: str
    password: str


def _fetch_user(condition: str, value: Any, *, with_password: bool = False) -> Optional[Dict[str, Any]]:
    columns = f"{_USER_COLUMNS}, password_hash" if with_password else _USER_COLUMNS
    with get_conn() as conn, conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
        cur.execute(f"SELECT {columns} FROM users WHERE {condition}", (value,))
        row = cur.fetchone()
    return dict(row) if row else None


def get_user_by_id(uid: int) -> Optional[UserOut]:
    row = _fetch_user("id = %s", uid)
    return UserOut(**row) if row else None


def get_user_with_password(identifier: str) -> Optional[Dict[str, Any]]:
    """Match a login by email when it contains ``@``, otherwise (or failing that) by username."""

    lookup = identifier.strip()
    row = None
    if "@" in lookup:
        row = _fetch_user("LOWER(email) = LOWER(%s)", lookup, with_password=True)
    return row or _fetch_user("LOWER(username) = LOWER(%s)", lookup, with_password=True)


def resolve_user_from_session_token(session_token: Optional[str]) -> Optional[UserOut]:
    user_id = session_tokens.user_id(session_token)
    if user_id is None:
        return None
    return get_user_by_id(user_id)


def get_current_user(session_token: Optional[str] = Cookie(None, alias=SESSION.cookie_name)) -> UserOut:
    user = resolve_user_from_session_token(session_token)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return user


app_context.configure(get_conn=get_conn, get_current_user=get_current_user)

app = FastAPI(title="Storefront Billing API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(BillingError)
def handle_billing_error(request: Request, exc: BillingError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "%s %s failed: %s",
            request.method,
            request.url.path,
            exc.message,
            extra={"error_code": exc.code},
        )
    return JSONResponse(status_code=exc.status_code, content=exc.payload)


for _router in (subscriptions_router, payments_router, plans_router, verification_router, admin_router):
    app.include_router(_router)


@app.post("/api/auth/login", response_model=UserOut)
def login(payload: LoginRequest, response: Response):
    user_row = get_user_with_password(payload.username) or {}
    password_hash = user_row.get("password_hash")
    if not password_hash or not bcrypt.verify(payload.password, password_hash):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid username or password")

    user = UserOut(**{key: value for key, value in user_row.items() if key != "password_hash"})
    session_tokens.attach(response, session_tokens.issue(user.id))
    logger.info("User %s logged in", user.id)
    return user


@app.post("/api/auth/logout")
def logout(response: Response):
    session_tokens.clear(response)
    return {"ok": True}


@app.get("/api/auth/me", response_model=UserOut)
def read_current_user(current_user: UserOut = Depends(get_current_user)):
    return current_user


@app.get("/api/healthz")
def healthz():
    return {"ok": True}
