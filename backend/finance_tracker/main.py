import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from fastapi import FastAPI, Header, HTTPException, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .auth_utils import new_session_token
from .config import settings
from .errors import (
    ConflictError,
    CorruptStoreError,
    NotFoundError,
    StoreWriteError,
    TrackerError,
    ValidationError,
)
from .logging_config import configure_logging
from .schemas import (
    ApiErrorDetail,
    ApiErrorPayload,
    ApiErrorResponse,
    AuthResponse,
    BalanceResponse,
    CategoryCreate,
    CategoryResponse,
    CategorySummaryResponse,
    CategoryUpdate,
    DeletedResponse,
    HealthResponse,
    LoginRequest,
    Pagination,
    RegisterRequest,
    TransactionCreate,
    TransactionFilters,
    TransactionResponse,
    TransactionType,
    TransactionUpdate,
    UserResponse,
)
from .services.balance import BalanceService
from .services.categories import CategoryService
from .services.transactions import TransactionService
from .services.users import UserService
from .store import get_record_store

configure_logging(settings.log_level, settings.log_json)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Finance Tracker API",
    version="0.1.0",
    description="Income and expense tracking with per-user categories and balances.",
)

record_store = get_record_store(settings)
users = UserService(record_store)
categories = CategoryService(record_store)
transactions = TransactionService(record_store)
balances = BalanceService(record_store)
active_sessions: dict[str, dict[str, Any]] = {}

_ERROR_STATUS: dict[type[TrackerError], int] = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConflictError: status.HTTP_409_CONFLICT,
    CorruptStoreError: status.HTTP_500_INTERNAL_SERVER_ERROR,
    StoreWriteError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def _create_session(user_id: int) -> str:
    token = new_session_token()
    expires_at = datetime.now(timezone.utc) + timedelta(minutes=settings.session_ttl_minutes)
    active_sessions[token] = {"user_id": user_id, "expires_at": expires_at}
    return token


def _get_session_user_id(token: str) -> Optional[int]:
    session = active_sessions.get(token)
    if session is None:
        return None
    if datetime.now(timezone.utc) >= session["expires_at"]:
        del active_sessions[token]
        return None
    return session["user_id"]


def _token_from_header(authorization: Optional[str]) -> str:
    if not authorization:
        raise HTTPException(status_code=401, detail="missing Authorization header")
    parts = authorization.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1].strip():
        raise HTTPException(status_code=401, detail="invalid Authorization header")
    return parts[1].strip()


def _require_user(authorization: Optional[str]) -> int:
    user_id = _get_session_user_id(_token_from_header(authorization))
    if user_id is None:
        raise HTTPException(status_code=401, detail="invalid or expired token")
    return user_id


def build_error_response(status_code: int, code: str, message: str, details: list[ApiErrorDetail]) -> JSONResponse:
    payload = ApiErrorResponse(error=ApiErrorPayload(code=code, message=message, details=details))
    return JSONResponse(status_code=status_code, content=payload.model_dump())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details: list[ApiErrorDetail] = []
    for err in exc.errors():
        loc = ".".join(str(item) for item in err.get("loc", []) if item != "body")
        details.append(ApiErrorDetail(field=loc or "body", message=err.get("msg", "validation error")))
    return build_error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY, "VALIDATION_ERROR", "Invalid request payload", details
    )


@app.exception_handler(TrackerError)
async def tracker_exception_handler(request: Request, exc: TrackerError) -> JSONResponse:
    status_code = _ERROR_STATUS.get(type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    details: list[ApiErrorDetail] = []
    if isinstance(exc, ValidationError):
        details.append(ApiErrorDetail(field=exc.field or "body", message=exc.message))
    return build_error_response(status_code, exc.code, exc.message, details)


@app.get("/api/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    return HealthResponse(status="ok", storageBackend=settings.storage_backend)


@app.post("/api/users/register", response_model=AuthResponse, status_code=201)
async def register_user(payload: RegisterRequest) -> AuthResponse:
    user = users.register(payload)
    token = _create_session(user["id"])
    return AuthResponse(message="user registered", user=UserResponse(**user), token=token)


@app.post("/api/users/login", response_model=AuthResponse)
async def login_user(payload: LoginRequest) -> AuthResponse:
    user = users.authenticate(payload.email, payload.password)
    if user is None:
        raise HTTPException(status_code=401, detail="invalid email or password")
    token = _create_session(user["id"])
    return AuthResponse(message="logged in", user=UserResponse(**user), token=token)


@app.get("/api/users/me", response_model=UserResponse)
async def get_current_user(authorization: Optional[str] = Header(default=None)) -> UserResponse:
    user_id = _require_user(authorization)
    return UserResponse(**users.get(user_id))


@app.get("/api/transactions", response_model=list[TransactionResponse])
async def list_transactions(
    categoryId: Optional[int] = Query(default=None),
    type: Optional[TransactionType] = Query(default=None),
    startDate: Optional[str] = Query(default=None),
    endDate: Optional[str] = Query(default=None),
    offset: int = Query(default=0, ge=0),
    limit: Optional[int] = Query(default=None, ge=0),
    authorization: Optional[str] = Header(default=None),
) -> list[TransactionResponse]:
    user_id = _require_user(authorization)
    filters = TransactionFilters(category_id=categoryId, type=type, start_date=startDate, end_date=endDate)
    rows = transactions.list(user_id, filters, Pagination(offset=offset, limit=limit))
    return [TransactionResponse(**row) for row in rows]


@app.post("/api/transactions", response_model=TransactionResponse, status_code=201)
async def create_transaction(
    payload: TransactionCreate,
    authorization: Optional[str] = Header(default=None),
) -> TransactionResponse:
    user_id = _require_user(authorization)
    return TransactionResponse(**transactions.create(user_id, payload))


@app.put("/api/transactions/{transaction_id}", response_model=TransactionResponse)
async def update_transaction(
    transaction_id: int,
    payload: TransactionUpdate,
    authorization: Optional[str] = Header(default=None),
) -> TransactionResponse:
    user_id = _require_user(authorization)
    return TransactionResponse(**transactions.update(user_id, transaction_id, payload))


@app.delete("/api/transactions/{transaction_id}", response_model=DeletedResponse)
async def delete_transaction(
    transaction_id: int,
    authorization: Optional[str] = Header(default=None),
) -> DeletedResponse:
    user_id = _require_user(authorization)
    deleted_id = transactions.delete(user_id, transaction_id)
    return DeletedResponse(message="transaction deleted", id=deleted_id)


@app.get("/api/categories/summary", response_model=list[CategorySummaryResponse])
async def category_summary(authorization: Optional[str] = Header(default=None)) -> list[CategorySummaryResponse]:
    user_id = _require_user(authorization)
    return [CategorySummaryResponse(**row) for row in categories.summaries(user_id)]


@app.get("/api/categories", response_model=list[CategoryResponse])
async def list_categories(authorization: Optional[str] = Header(default=None)) -> list[CategoryResponse]:
    user_id = _require_user(authorization)
    return [CategoryResponse(**row) for row in categories.list(user_id)]


@app.get("/api/categories/{category_id}", response_model=CategoryResponse)
async def get_category(category_id: int, authorization: Optional[str] = Header(default=None)) -> CategoryResponse:
    user_id = _require_user(authorization)
    return CategoryResponse(**categories.get(user_id, category_id))


@app.post("/api/categories", response_model=CategoryResponse, status_code=201)
async def create_category(
    payload: CategoryCreate,
    authorization: Optional[str] = Header(default=None),
) -> CategoryResponse:
    user_id = _require_user(authorization)
    return CategoryResponse(**categories.create(user_id, payload))


@app.put("/api/categories/{category_id}", response_model=CategoryResponse)
async def update_category(
    category_id: int,
    payload: CategoryUpdate,
    authorization: Optional[str] = Header(default=None),
) -> CategoryResponse:
    user_id = _require_user(authorization)
    return CategoryResponse(**categories.update(user_id, category_id, payload))


@app.delete("/api/categories/{category_id}", response_model=DeletedResponse)
async def delete_category(
    category_id: int,
    authorization: Optional[str] = Header(default=None),
) -> DeletedResponse:
    user_id = _require_user(authorization)
    deleted_id = categories.delete(user_id, category_id)
    return DeletedResponse(message="category deleted", id=deleted_id)


@app.get("/api/balance", response_model=BalanceResponse)
async def get_balance(authorization: Optional[str] = Header(default=None)) -> BalanceResponse:
    user_id = _require_user(authorization)
    return BalanceResponse(amount=f"{balances.total_balance(user_id):.2f}")
