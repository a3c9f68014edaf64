import logging
import os
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    String,
    Integer,
    Float,
    Date,
    DateTime,
    Text,
    ForeignKey,
)
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import declarative_base, sessionmaker, relationship
from sqlalchemy.pool import NullPool

from config import DATABASE_URL

logger = logging.getLogger("finance.database")


def _utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _engine_options(url):
    if url.get_backend_name() != "sqlite":
        return {"pool_pre_ping": True}
    # ensure directory exists for file databases
    if url.database and url.database != ":memory:":
        os.makedirs(os.path.dirname(os.path.abspath(url.database)), exist_ok=True)
    return {"poolclass": NullPool}


_url = make_url(DATABASE_URL)
engine = create_async_engine(_url, echo=False, future=True, **_engine_options(_url))
async_session = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
Base = declarative_base()

# ----------------------------------------------------------------------------
# DB Models
# ----------------------------------------------------------------------------
class UserModel(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(120), nullable=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    created_at = Column(DateTime, nullable=False, default=_utcnow)

    transactions = relationship("TransactionModel", back_populates="user", cascade="all, delete-orphan")


class TransactionModel(Base):
    __tablename__ = "transactions"
    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(10), nullable=False)  # income | expense
    amount = Column(Float, nullable=False)
    category = Column(String(64), nullable=True)
    description = Column(Text, nullable=True)
    date = Column(Date, nullable=False)
    created_at = Column(DateTime, nullable=False, default=_utcnow)

    user = relationship("UserModel", back_populates="transactions")


async def get_db() -> AsyncSession:
    async with async_session() as session:
        yield session


async def init_models():
    """Create missing tables. Idempotent, safe to call at every startup."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database ready at %s", _url.render_as_string(hide_password=True))


async def drop_models():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
