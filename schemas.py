"""
App Schemas

Pydantic models for what crosses the wire: identity claims, credentials,
transactions and the dashboard summary.
"""

from pydantic import BaseModel, Field, field_validator
from typing import Dict, Optional, Literal
import datetime as dt


class Identity(BaseModel):
    """
    Verified identity claim carried by the session token
    """
    id: int
    email: str
    name: Optional[str] = None


class UserRegister(BaseModel):
    name: Optional[str] = None
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class Credentials(BaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class TransactionIn(BaseModel):
    """
    Client-editable transaction fields. Anything else in the payload
    (an owner id in particular) is ignored.
    """
    type: Literal["income", "expense"] = Field(..., description="Income or expense")
    amount: float = Field(..., gt=0, allow_inf_nan=False, description="Positive amount")
    category: Optional[str] = Field(None, description="Category such as salary, food, rent")
    description: Optional[str] = Field(None, description="Optional note")
    date: dt.date = Field(default_factory=dt.date.today, description="Transaction date")

    @field_validator("amount", mode="before")
    @classmethod
    def amount_is_not_bool(cls, v):
        if isinstance(v, bool):
            raise ValueError("amount must be a number")
        return v

    @field_validator("date", mode="before")
    @classmethod
    def blank_date_is_today(cls, v):
        if v is None or (isinstance(v, str) and not v.strip()):
            return dt.date.today()
        return v


class TransactionOut(TransactionIn):
    id: int
    created_at: dt.datetime

    class Config:
        from_attributes = True


class Summary(BaseModel):
    income: float = 0.0
    expense: float = 0.0
    balance: float = 0.0
    expense_by_category: Dict[str, float] = Field(default_factory=dict)
    income_by_category: Dict[str, float] = Field(default_factory=dict)
