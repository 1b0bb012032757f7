"""
api/routes/auth.py -- Local registration and password login.

Routes:
  POST /register   -- create a local account; 201 with the user (no password)
  POST /login      -- email + password; 200 {token, token_type, expires_in}

Security:
  [H2] POST /login is rate-limited per IP (LOGIN_RATE_LIMIT, default 10/minute).
  [C1] authenticate_local() provides timing equalization -- use it, never inline.
  [M5] Cache-Control: no-store on login responses.
  Unknown email and wrong password produce byte-identical 401 bodies.
"""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter, login_rate_limit
from api.models import LoginRequest, LoginResponse, RegisterRequest, UserResponse
from auth.credentials import authenticate_local, register_local
from auth.store import UserStore
from auth.tokens import TokenIssuer

# Auth policy:
# - POST /register: public
# - POST /login:    public, rate limited
router = APIRouter()


@router.post("/register", response_model=UserResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> UserResponse:
    """Create a local account.

    400 invalid_role for anything but user/mentor, 409 duplicate_email when
    the address is taken (including by a concurrent request).
    """
    user_store: UserStore = request.app.state.user_store
    user = register_local(user_store, body.email, body.password, role=body.role, name=body.name)
    return UserResponse.from_user(user)


@router.post("/login", response_model=LoginResponse)
@limiter.limit(login_rate_limit)  # [H2] slowapi wraps the handler the router registers
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password and return a bearer token.

    Failures raise UnknownAccount / InvalidCredentials, which the app-level
    handler renders as the same 401 "bad_credentials" envelope.
    """
    user_store: UserStore = request.app.state.user_store
    issuer: TokenIssuer = request.app.state.token_issuer

    user = authenticate_local(user_store, body.email, body.password)
    token = issuer.issue(user.id, user.email, user.role)
    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(token=token, expires_in=issuer.expire_seconds).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp
