"""
Request and row schemas for the Weekly Collection API

Request models mirror the JSON bodies the frontend sends. `Installment` is
one row of the collection_schedule table as the allocation engine sees it.
"""
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator

Id = Union[int, str]


def to_decimal(value: Any) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    return Decimal(str(value))


class LoginRequest(BaseModel):
    email: Optional[str] = Field(None, description="Login email, matched case-insensitively")
    password: Optional[str] = Field(None, description="Plain text password")


class CollectionItem(BaseModel):
    member_id: Optional[Id] = Field(None, description="Member paying this amount")
    amount: Optional[float] = Field(0, ge=0, description="Amount collected from the member")


class PayBatchRequest(BaseModel):
    collection: List[CollectionItem] = Field(default_factory=list)
    denomination: Optional[Dict[str, int]] = Field(
        None, description="Cash note breakdown, note value -> count"
    )

    @field_validator("denomination")
    @classmethod
    def counts_not_negative(cls, v):
        if v is not None and any(count < 0 for count in v.values()):
            raise ValueError("note counts cannot be negative")
        return v


class ScheduleRow(BaseModel):
    loan_id: Id = Field(..., description="Loan this installment belongs to")
    week_no: int = Field(..., ge=1, description="Week number, unique per loan")
    expected_amount: float = Field(..., ge=0)
    paid_amount: float = Field(0, ge=0)
    status: Literal["pending", "paid"] = Field("pending")
    collection_date: Optional[date] = Field(None, description="Date the installment is collected")


class ScheduleRowsRequest(BaseModel):
    rows: Optional[List[ScheduleRow]] = None


class ScheduleSaveRequest(BaseModel):
    centerId: Optional[Id] = None
    date: Optional[str] = None
    day: Optional[str] = None
    week: Optional[Union[int, str]] = None


class Installment(BaseModel):
    id: Optional[Id] = None
    loan_id: Optional[Id] = None
    week_no: int
    expected_amount: Decimal = Decimal("0")
    paid_amount: Decimal = Decimal("0")
    status: Literal["pending", "paid"] = "pending"
    collection_date: Optional[str] = None

    @field_validator("status", mode="before")
    @classmethod
    def paid_or_pending(cls, v):
        # anything not closed out is still owed
        return "paid" if str(v or "").strip().lower() == "paid" else "pending"

    @field_validator("expected_amount", "paid_amount", mode="before")
    @classmethod
    def money(cls, v):
        try:
            return to_decimal(v)
        except InvalidOperation:
            raise ValueError(f"not an amount: {v!r}")

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Installment":
        return cls(**{k: v for k, v in row.items() if k in cls.model_fields})
