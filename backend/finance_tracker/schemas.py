from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

AmountInput = Union[int, float, str, Decimal]
DateInput = Union[date, str]


class TransactionType(str, Enum):
    income = "income"
    expense = "expense"


class ApiErrorDetail(BaseModel):
    field: str
    message: str


class ApiErrorPayload(BaseModel):
    code: str
    message: str
    details: list[ApiErrorDetail] = Field(default_factory=list)


class ApiErrorResponse(BaseModel):
    error: ApiErrorPayload


class HealthResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")
    status: str
    storageBackend: str


class RegisterRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class LoginRequest(BaseModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def validate_email(cls, value: str) -> str:
        return value.strip().lower()


class UserResponse(BaseModel):
    id: int
    name: Optional[str] = None
    email: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class AuthResponse(BaseModel):
    message: str
    user: UserResponse
    token: str


class CategoryCreate(BaseModel):
    name: Optional[str] = None
    icon: Optional[str] = None
    color: Optional[str] = None


class CategoryUpdate(BaseModel):
    name: Optional[str] = None
    icon: Optional[str] = None
    color: Optional[str] = None


class CategoryResponse(BaseModel):
    id: int
    user_id: int
    name: str
    icon: Optional[str] = None
    color: Optional[str] = None
    created_at: str
    updated_at: str


class CategorySummaryResponse(CategoryResponse):
    balance: str


class TransactionCreate(BaseModel):
    category_id: Optional[Union[int, str]] = None
    type: Optional[str] = None
    amount: Optional[AmountInput] = None
    transaction_date: Optional[DateInput] = None
    comment: Optional[str] = None


class TransactionUpdate(BaseModel):
    """Partial update; fields left out of the payload keep their stored values."""

    category_id: Optional[Union[int, str]] = None
    type: Optional[str] = None
    amount: Optional[AmountInput] = None
    transaction_date: Optional[DateInput] = None
    comment: Optional[str] = None


class TransactionFilters(BaseModel):
    category_id: Optional[int] = None
    type: Optional[TransactionType] = None
    start_date: Optional[DateInput] = None
    end_date: Optional[DateInput] = None


class Pagination(BaseModel):
    offset: int = Field(default=0, ge=0)
    limit: Optional[int] = Field(default=None, ge=0)


class TransactionResponse(BaseModel):
    id: int
    user_id: int
    category_id: int
    type: TransactionType
    amount: str
    transaction_date: str
    comment: Optional[str] = None
    created_at: str
    updated_at: str


class BalanceResponse(BaseModel):
    amount: str


class DeletedResponse(BaseModel):
    message: str
    id: int
