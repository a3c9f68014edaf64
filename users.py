import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import select

from database import UserModel
from errors import DuplicateEmail, InvalidCredentials
from schemas import Identity
from security import hash_password, verify_password

logger = logging.getLogger("finance.users")


async def create_user(db: AsyncSession, name: Optional[str], email: str, password: str) -> int:
    """Store a new user with a hashed password and return its id."""
    user = UserModel(
        name=name or None,
        email=email,
        password_hash=hash_password(password),
    )
    db.add(user)
    try:
        await db.commit()
    except IntegrityError:
        # unique constraint on users.email
        await db.rollback()
        raise DuplicateEmail()
    await db.refresh(user)
    logger.info("Registered user id=%s", user.id)
    return user.id


async def find_by_email(db: AsyncSession, email: str) -> Optional[UserModel]:
    result = await db.execute(select(UserModel).where(UserModel.email == email))
    return result.scalar_one_or_none()


async def authenticate(db: AsyncSession, email: str, password: str) -> Identity:
    user = await find_by_email(db, email)
    if not user or not verify_password(password, user.password_hash):
        logger.info("Failed login attempt")
        raise InvalidCredentials()
    return Identity(id=user.id, email=user.email, name=user.name)
