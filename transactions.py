"""
Per-user transaction store.

Every statement here carries ``user_id = identity.id``. Update and delete
are single scoped statements; a row that is missing and a row that belongs
to someone else both affect zero rows, and both are reported as NotFoundError.
"""

import logging
from datetime import date
from typing import Any, List, Mapping, Optional

from pydantic import ValidationError as SchemaError
from sqlalchemy import delete, func, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import select

from database import TransactionModel
from errors import NotFoundError, ValidationError
from schemas import Identity, Summary, TransactionIn

logger = logging.getLogger("finance.transactions")

UNCATEGORIZED = "Uncategorized"


def _validate(fields: Mapping[str, Any]) -> TransactionIn:
    try:
        return TransactionIn.model_validate(fields)
    except SchemaError as e:
        first = e.errors()[0]
        loc = ".".join(str(p) for p in first.get("loc", ())) or "body"
        raise ValidationError(f"{loc}: {first['msg']}")


async def list_transactions(
    db: AsyncSession,
    identity: Identity,
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
    ttype: Optional[str] = None,
) -> List[TransactionModel]:
    query = select(TransactionModel).where(TransactionModel.user_id == identity.id)
    if from_date:
        query = query.where(TransactionModel.date >= from_date)
    if to_date:
        query = query.where(TransactionModel.date <= to_date)
    if ttype:
        query = query.where(TransactionModel.type == ttype)
    query = query.order_by(
        TransactionModel.date.desc(),
        TransactionModel.created_at.desc(),
        TransactionModel.id.desc(),
    )

    result = await db.execute(query)
    return list(result.scalars().all())


async def create_transaction(db: AsyncSession, identity: Identity, fields: Mapping[str, Any]) -> int:
    payload = _validate(fields)
    tx = TransactionModel(user_id=identity.id, **payload.model_dump())
    db.add(tx)
    await db.commit()
    await db.refresh(tx)
    logger.debug("User %s created transaction %s", identity.id, tx.id)
    return tx.id


async def update_transaction(db: AsyncSession, identity: Identity, tx_id: int, fields: Mapping[str, Any]) -> None:
    """Replace type, amount, category, description and date of one owned row."""
    payload = _validate(fields)
    stmt = (
        update(TransactionModel)
        .where(TransactionModel.id == tx_id, TransactionModel.user_id == identity.id)
        .values(**payload.model_dump())
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    await db.commit()
    if result.rowcount == 0:
        raise NotFoundError("Transaction not found")


async def delete_transaction(db: AsyncSession, identity: Identity, tx_id: int) -> None:
    stmt = (
        delete(TransactionModel)
        .where(TransactionModel.id == tx_id, TransactionModel.user_id == identity.id)
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    await db.commit()
    if result.rowcount == 0:
        raise NotFoundError("Transaction not found")


async def summarize(db: AsyncSession, identity: Identity) -> Summary:
    """Income and expense totals, overall and per category, for one user."""
    query = (
        select(TransactionModel.type, TransactionModel.category, func.sum(TransactionModel.amount))
        .where(TransactionModel.user_id == identity.id)
        .group_by(TransactionModel.type, TransactionModel.category)
    )
    result = await db.execute(query)

    summary = Summary()
    for ttype, category, total in result.all():
        total = float(total or 0)
        buckets = summary.income_by_category if ttype == "income" else summary.expense_by_category
        key = category or UNCATEGORIZED
        buckets[key] = buckets.get(key, 0.0) + total
        if ttype == "income":
            summary.income += total
        else:
            summary.expense += total
    summary.balance = summary.income - summary.expense
    return summary
