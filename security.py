"""
Password hashing and session tokens.

Passwords go through bcrypt at a fixed cost. Sessions are HS256 JWTs holding
the identity claim (id, email, name) and an expiry; nothing about a session
is kept server side, so the signature and ``exp`` are the whole story.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from config import ACCESS_TOKEN_EXPIRE_HOURS, ALGORITHM, BCRYPT_ROUNDS, SECRET_KEY
from errors import TokenBadSignature, TokenExpired, TokenMalformed
from schemas import Identity

logger = logging.getLogger("finance.security")

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=BCRYPT_ROUNDS)

# ----------------------------------------------------------------------------
# Password hashing
# ----------------------------------------------------------------------------

def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, password_hash: str) -> bool:
    """True when the password matches. Never raises for a mismatch or a bad hash."""
    try:
        return pwd_context.verify(plain_password, password_hash)
    except (ValueError, TypeError):
        logger.warning("Stored password hash could not be identified")
        return False

# ----------------------------------------------------------------------------
# Session tokens
# ----------------------------------------------------------------------------

def mint_token(identity: Identity, secret: str = SECRET_KEY, ttl: Optional[timedelta] = None) -> str:
    now = datetime.now(timezone.utc)
    expire = now + (ttl if ttl is not None else timedelta(hours=ACCESS_TOKEN_EXPIRE_HOURS))
    to_encode = identity.model_dump()
    to_encode.update({"iat": now, "exp": expire})
    return jwt.encode(to_encode, secret, algorithm=ALGORITHM)


def verify_token(token: str, secret: str = SECRET_KEY) -> Identity:
    """
    Decode a session token back into its identity claim.

    Raises TokenMalformed when the token cannot be parsed or does not carry
    an identity, TokenExpired once ``exp`` has passed and TokenBadSignature
    when it was not signed with ``secret``.
    """
    try:
        jwt.get_unverified_claims(token)
    except JWTError as e:
        raise TokenMalformed(str(e))

    try:
        payload = jwt.decode(token, secret, algorithms=[ALGORITHM])
    except ExpiredSignatureError as e:
        raise TokenExpired(str(e))
    except JWTError as e:
        raise TokenBadSignature(str(e))

    try:
        return Identity(id=payload["id"], email=payload["email"], name=payload.get("name"))
    except (KeyError, ValueError) as e:
        raise TokenMalformed(f"Token carries no identity: {e}")
