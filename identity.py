"""
Request identity and route access policy.

IdentityMiddleware resolves the session cookie into ``request.state.identity``
(an Identity or None) and never rejects anything. Routes then declare an
Access level through ``require``, and ``decide`` looks the pair
(access level, signed in?) up in ``POLICY``.
"""

import enum
import logging
from typing import Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from config import SESSION_COOKIE
from errors import AlreadySignedIn, AuthError, LoginRequired, TokenError
from schemas import Identity
from security import verify_token

logger = logging.getLogger("finance.identity")


class Access(str, enum.Enum):
    PUBLIC = "public"
    AUTH_ONLY = "auth_only"  # login/register pages
    PROTECTED_PAGE = "protected_page"
    PROTECTED_API = "protected_api"


class Decision(str, enum.Enum):
    PROCEED = "proceed"
    REDIRECT_LOGIN = "redirect_login"
    REDIRECT_HOME = "redirect_home"
    UNAUTHORIZED = "unauthorized"


# (access, authenticated) -> decision
POLICY = {
    (Access.PUBLIC, False): Decision.PROCEED,
    (Access.PUBLIC, True): Decision.PROCEED,
    (Access.AUTH_ONLY, False): Decision.PROCEED,
    (Access.AUTH_ONLY, True): Decision.REDIRECT_HOME,
    (Access.PROTECTED_PAGE, False): Decision.REDIRECT_LOGIN,
    (Access.PROTECTED_PAGE, True): Decision.PROCEED,
    (Access.PROTECTED_API, False): Decision.UNAUTHORIZED,
    (Access.PROTECTED_API, True): Decision.PROCEED,
}


def decide(access: Access, identity: Optional[Identity]) -> Decision:
    return POLICY[(access, identity is not None)]


def resolve_identity(token: Optional[str]) -> Optional[Identity]:
    if not token:
        return None
    try:
        return verify_token(token)
    except TokenError as e:
        logger.debug("Session token rejected (%s): %s", e.kind, e.message)
        return None


class IdentityMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request.state.identity = resolve_identity(request.cookies.get(SESSION_COOKIE))
        return await call_next(request)


def current_identity(request: Request) -> Optional[Identity]:
    return getattr(request.state, "identity", None)


def require(access: Access):
    """
    Build a route dependency enforcing ``access``.

    The dependency returns the caller's identity (None on public routes for
    anonymous callers). Rejections carry no body content: pages get a
    redirect, API routes a 401.
    """

    def dependency(request: Request) -> Optional[Identity]:
        identity = current_identity(request)
        decision = decide(access, identity)
        if decision is Decision.REDIRECT_LOGIN:
            raise LoginRequired()
        if decision is Decision.REDIRECT_HOME:
            raise AlreadySignedIn()
        if decision is Decision.UNAUTHORIZED:
            raise AuthError()
        return identity

    return dependency
