"""Tenant billing API endpoints.

Routes (all require a bearer token):
- GET  /api/billing/check/{tenant_id}        computed overdue status (cached)
- POST /api/billing/invalidate/{tenant_id}   drop the cached status
- POST /api/billing/payments                 record and settle a payment
- POST /api/billing/advance/{tenant_id}      roll every active schedule forward
- GET/POST/PATCH/DELETE /api/billing/schedules...  schedule management
"""

import logging
import time
from datetime import datetime
from decimal import Decimal
from typing import Annotated

from fastapi import APIRouter, Depends, Header, Request, status
from pydantic import BaseModel, ConfigDict, Field, PlainSerializer
from pydantic.alias_generators import to_camel
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.errors import AppError, AuthenticationError, ValidationError, raise_app_error
from src.models import BillingFrequency, PaymentMethod, ScheduleStatus
from src.services import get_async_session
from src.services.auth_service import authenticate_caller
from src.services.billing_cache import BillingCache, invalidate_tenant_billing_cache
from src.services.billing_evaluator import BillingStatus
from src.services.billing_service import (
    BillingScheduleRepository,
    BillingStatusService,
    ScheduleLoader,
)
from src.services.config import AppSettings
from src.services.payment_service import PaymentService
from src.services.schedule_service import ScheduleService

logger = logging.getLogger(__name__)

# Amounts are Decimal internally and JSON numbers on the wire
JsonAmount = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class CamelModel(BaseModel):
    """Base schema: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# Response schemas
class OverdueScheduleResponse(CamelModel):
    id: int | str
    label: str
    amount: JsonAmount
    next_due_date: datetime
    days_overdue: int


class BillingStatusResponse(CamelModel):
    """Response schema for /check."""

    is_overdue: bool
    days_overdue: int
    overdue_schedules: list[OverdueScheduleResponse]
    total_overdue_amount: JsonAmount

    @classmethod
    def from_status(cls, billing_status: BillingStatus) -> "BillingStatusResponse":
        return cls(
            is_overdue=billing_status.is_overdue,
            days_overdue=billing_status.days_overdue,
            overdue_schedules=[
                OverdueScheduleResponse.model_validate(view)
                for view in billing_status.overdue_schedules
            ],
            total_overdue_amount=billing_status.total_overdue_amount,
        )


class InvalidateResponse(BaseModel):
    success: bool
    message: str


class ScheduleResponse(CamelModel):
    id: int
    tenant_id: str
    label: str
    billing_type: str
    amount: JsonAmount
    frequency: BillingFrequency
    status: ScheduleStatus
    next_due_date: datetime


class PaymentResponse(CamelModel):
    id: int
    tenant_id: str
    method: PaymentMethod
    amount: JsonAmount
    trx_id: str
    reason: str | None
    created_at: datetime


# Request schemas
class PaymentCreateRequest(CamelModel):
    tenant_id: str = Field(min_length=1)
    amount: Decimal = Field(gt=0, decimal_places=2)
    trx_id: str = Field(min_length=1, max_length=100)
    reason: str | None = None
    method: PaymentMethod = PaymentMethod.BKASH


class ScheduleCreateRequest(CamelModel):
    tenant_id: str = Field(min_length=1)
    label: str = Field(min_length=1, max_length=255)
    amount: Decimal = Field(ge=0, decimal_places=2)
    next_due_date: datetime
    frequency: BillingFrequency = BillingFrequency.MONTHLY
    billing_type: str = "subscription"
    status: ScheduleStatus = ScheduleStatus.ACTIVE


class ScheduleUpdateRequest(CamelModel):
    label: str | None = Field(default=None, min_length=1, max_length=255)
    amount: Decimal | None = Field(default=None, ge=0, decimal_places=2)
    next_due_date: datetime | None = None
    frequency: BillingFrequency | None = None
    billing_type: str | None = None
    status: ScheduleStatus | None = None


class DueDateUpdateRequest(CamelModel):
    tenant_id: str = Field(min_length=1)
    next_due_date: datetime


# Dependencies
def get_app_settings(request: Request) -> AppSettings:
    return request.app.state.settings


def get_billing_cache(request: Request) -> BillingCache:
    return request.app.state.billing_cache


def require_api_caller(
    authorization: str | None = Header(default=None),
    settings: AppSettings = Depends(get_app_settings),
) -> str:
    """Reject requests without a valid bearer token (401)."""
    try:
        return authenticate_caller(authorization, settings.allowed_tokens())
    except AuthenticationError as e:
        raise_app_error(e)


def get_schedule_loader(session: AsyncSession = Depends(get_async_session)) -> ScheduleLoader:
    return BillingScheduleRepository(session).load_active_schedules


def get_billing_status_service(
    cache: BillingCache = Depends(get_billing_cache),
    loader: ScheduleLoader = Depends(get_schedule_loader),
) -> BillingStatusService:
    return BillingStatusService(cache, loader)


def get_payment_service(
    session: AsyncSession = Depends(get_async_session),
    cache: BillingCache = Depends(get_billing_cache),
) -> PaymentService:
    return PaymentService(session, cache)


def get_schedule_service(
    session: AsyncSession = Depends(get_async_session),
    cache: BillingCache = Depends(get_billing_cache),
) -> ScheduleService:
    return ScheduleService(session, cache)


def _require_tenant_id(tenant_id: str) -> None:
    if not tenant_id or not tenant_id.strip():
        logger.warning("Billing request with blank tenant id")
        raise_app_error(ValidationError())


def _raise_for(error: Exception) -> None:
    """Translate service errors into HTTP errors."""
    if isinstance(error, AppError):
        raise_app_error(error)
    raise_app_error(ValidationError(str(error)))


router = APIRouter(
    prefix="/api/billing",
    tags=["billing"],
    dependencies=[Depends(require_api_caller)],
)


@router.get("/check/{tenant_id}", response_model=BillingStatusResponse)
async def check_billing_status(
    tenant_id: str,
    service: BillingStatusService = Depends(get_billing_status_service),
) -> BillingStatusResponse:
    """Return whether the tenant has overdue billing schedules."""
    start_time = time.time()
    _require_tenant_id(tenant_id)

    try:
        billing_status = await service.check(tenant_id)
    except AppError as e:
        raise_app_error(e)

    logger.debug(
        "billing.check: tenant_id=%s is_overdue=%s duration_ms=%d",
        tenant_id,
        billing_status.is_overdue,
        int((time.time() - start_time) * 1000),
    )
    return BillingStatusResponse.from_status(billing_status)


@router.post("/invalidate/{tenant_id}", response_model=InvalidateResponse)
async def invalidate_billing_status(
    tenant_id: str,
    cache: BillingCache = Depends(get_billing_cache),
) -> InvalidateResponse:
    """Drop the tenant's cached status. Succeeds even when nothing was cached."""
    invalidate_tenant_billing_cache(cache, tenant_id)
    return InvalidateResponse(success=True, message="Billing cache invalidated")


@router.post("/payments", response_model=PaymentResponse, status_code=status.HTTP_201_CREATED)
async def settle_payment(
    payload: PaymentCreateRequest,
    service: PaymentService = Depends(get_payment_service),
) -> PaymentResponse:
    """Record a payment and roll the schedule named by reason forward."""
    try:
        payment = await service.settle_payment(
            tenant_id=payload.tenant_id,
            amount=payload.amount,
            trx_id=payload.trx_id,
            reason=payload.reason,
            method=payload.method,
        )
    except (AppError, ValueError) as e:
        _raise_for(e)
    return PaymentResponse.model_validate(payment)


@router.post("/advance/{tenant_id}", response_model=list[ScheduleResponse])
async def advance_schedules(
    tenant_id: str,
    service: PaymentService = Depends(get_payment_service),
) -> list[ScheduleResponse]:
    """Roll every active schedule of the tenant forward."""
    _require_tenant_id(tenant_id)
    schedules = await service.advance_active_schedules(tenant_id)
    return [ScheduleResponse.model_validate(s) for s in schedules]


@router.get("/schedules/{tenant_id}", response_model=list[ScheduleResponse])
async def list_schedules(
    tenant_id: str,
    service: ScheduleService = Depends(get_schedule_service),
) -> list[ScheduleResponse]:
    _require_tenant_id(tenant_id)
    schedules = await service.list_schedules(tenant_id)
    return [ScheduleResponse.model_validate(s) for s in schedules]


@router.post("/schedules", response_model=ScheduleResponse, status_code=status.HTTP_201_CREATED)
async def create_schedule(
    payload: ScheduleCreateRequest,
    service: ScheduleService = Depends(get_schedule_service),
) -> ScheduleResponse:
    try:
        schedule = await service.create_schedule(**payload.model_dump())
    except (AppError, ValueError) as e:
        _raise_for(e)
    return ScheduleResponse.model_validate(schedule)


@router.patch("/schedules/{schedule_id}", response_model=ScheduleResponse)
async def update_schedule(
    schedule_id: int,
    payload: ScheduleUpdateRequest,
    service: ScheduleService = Depends(get_schedule_service),
) -> ScheduleResponse:
    try:
        schedule = await service.update_schedule(
            schedule_id, **payload.model_dump(exclude_unset=True)
        )
    except (AppError, ValueError) as e:
        _raise_for(e)
    return ScheduleResponse.model_validate(schedule)


@router.put("/schedules/{schedule_id}/due-date", response_model=ScheduleResponse)
async def update_schedule_due_date(
    schedule_id: int,
    payload: DueDateUpdateRequest,
    service: PaymentService = Depends(get_payment_service),
) -> ScheduleResponse:
    try:
        schedule = await service.update_schedule_due_date(
            schedule_id, payload.tenant_id, payload.next_due_date
        )
    except AppError as e:
        raise_app_error(e)
    return ScheduleResponse.model_validate(schedule)


@router.delete("/schedules/{schedule_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_schedule(
    schedule_id: int,
    service: ScheduleService = Depends(get_schedule_service),
) -> None:
    try:
        await service.delete_schedule(schedule_id)
    except AppError as e:
        raise_app_error(e)
