"""Subscriptions router: CRUD endpoints plus the total-cost report."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from pydantic import BaseModel, Field, field_serializer, field_validator, model_validator

from .database import get_db_connection
from .services.cost_engine import parse_identifier
from .services.periods import period_label
from .services.subscriptions_service import NON_NULLABLE_FIELDS, SubscriptionService

router = APIRouter(prefix="/api/v1/subscriptions", tags=["subscriptions"])

MAX_PRICE = 2_147_483_647


def get_subscription_service(request: Request) -> SubscriptionService:
    return request.app.state.subscription_service


def _clean_name(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip()
    return value


class SubscriptionCreateRequest(BaseModel):
    service_name: str = Field(min_length=1, max_length=255)
    price: int = Field(gt=0, le=MAX_PRICE, description="Monthly price in the smallest currency unit")
    user_id: UUID
    start_date: str = Field(description="YYYY-MM")
    end_date: str | None = Field(default=None, description="YYYY-MM, inclusive")

    @field_validator("service_name", mode="before")
    @classmethod
    def clean_service_name(cls, value: Any) -> Any:
        return _clean_name(value)


class SubscriptionUpdateRequest(BaseModel):
    service_name: str | None = Field(default=None, min_length=1, max_length=255)
    price: int | None = Field(default=None, gt=0, le=MAX_PRICE)
    start_date: str | None = Field(default=None, description="YYYY-MM")
    end_date: str | None = Field(default=None, description="YYYY-MM, inclusive; null reopens")

    @field_validator("service_name", mode="before")
    @classmethod
    def clean_service_name(cls, value: Any) -> Any:
        return _clean_name(value)

    @model_validator(mode="after")
    def check_fields(self) -> "SubscriptionUpdateRequest":
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided")

        for field in NON_NULLABLE_FIELDS:
            if field in self.model_fields_set and getattr(self, field) is None:
                raise ValueError(f"{field} cannot be null")

        return self


class SubscriptionResponse(BaseModel):
    id: UUID
    service_name: str
    price: int
    user_id: UUID
    start_date: date
    end_date: date | None
    created_at: datetime
    updated_at: datetime

    @field_serializer("start_date", "end_date")
    def serialize_period(self, value: date | None) -> str | None:
        if value is None:
            return None
        return period_label(value)


class SubscriptionListResponse(BaseModel):
    items: list[SubscriptionResponse]
    total: int
    limit: int
    offset: int


class TotalCostResponse(BaseModel):
    total_cost: int


def _subscription_id(raw_id: str) -> UUID:
    try:
        return parse_identifier(raw_id, field="subscription id")
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.post("", response_model=SubscriptionResponse, status_code=status.HTTP_201_CREATED)
async def create_subscription_endpoint(
    payload: SubscriptionCreateRequest,
    service: SubscriptionService = Depends(get_subscription_service),
    connection: Any = Depends(get_db_connection),
) -> SubscriptionResponse:
    """Create one subscription record."""
    try:
        row = await service.create(connection, payload.model_dump())
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    return SubscriptionResponse.model_validate(row)


@router.get("", response_model=SubscriptionListResponse)
async def list_subscriptions_endpoint(
    user_id: str | None = Query(default=None),
    service_name: str | None = Query(default=None, description="Case-insensitive substring"),
    limit: int = Query(default=20, description="Clamped to 1..100; values <= 0 use 20"),
    offset: int = Query(default=0),
    service: SubscriptionService = Depends(get_subscription_service),
    connection: Any = Depends(get_db_connection),
) -> SubscriptionListResponse:
    """
    List subscriptions, newest first.

    Example response:
    {
      "items": [{"id": "...", "service_name": "Yandex Plus", "price": 400, "start_date": "2025-07", ...}],
      "total": 1,
      "limit": 20,
      "offset": 0
    }
    """
    try:
        page = await service.list_subscriptions(
            connection,
            user_id=user_id,
            service_name=service_name,
            limit=limit,
            offset=offset,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    return SubscriptionListResponse(
        items=[SubscriptionResponse.model_validate(row) for row in page["items"]],
        total=page["total"],
        limit=page["limit"],
        offset=page["offset"],
    )


@router.get("/total-cost", response_model=TotalCostResponse)
async def total_cost_endpoint(
    start_date: str = Query(description="YYYY-MM"),
    end_date: str = Query(description="YYYY-MM, inclusive"),
    user_id: str | None = Query(default=None),
    service_name: str | None = Query(default=None),
    service: SubscriptionService = Depends(get_subscription_service),
    connection: Any = Depends(get_db_connection),
) -> TotalCostResponse:
    """
    Sum of monthly prices over every month each matching subscription is active.

    Example response:
    {"total_cost": 1200}
    """
    try:
        total = await service.total_cost(
            connection,
            start_date=start_date,
            end_date=end_date,
            user_id=user_id,
            service_name=service_name,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    return TotalCostResponse(total_cost=total)


@router.get("/{subscription_id}", response_model=SubscriptionResponse)
async def get_subscription_endpoint(
    subscription_id: str,
    service: SubscriptionService = Depends(get_subscription_service),
    connection: Any = Depends(get_db_connection),
) -> SubscriptionResponse:
    try:
        row = await service.get(connection, _subscription_id(subscription_id))
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc

    return SubscriptionResponse.model_validate(row)


@router.api_route("/{subscription_id}", methods=["PUT", "PATCH"], response_model=SubscriptionResponse)
async def update_subscription_endpoint(
    subscription_id: str,
    payload: SubscriptionUpdateRequest,
    service: SubscriptionService = Depends(get_subscription_service),
    connection: Any = Depends(get_db_connection),
) -> SubscriptionResponse:
    """Partially update one subscription; omitted fields keep their values."""
    parsed_id = _subscription_id(subscription_id)
    patch_data = payload.model_dump(exclude_unset=True)

    try:
        row = await service.update(connection, parsed_id, patch_data)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    return SubscriptionResponse.model_validate(row)


@router.delete("/{subscription_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_subscription_endpoint(
    subscription_id: str,
    service: SubscriptionService = Depends(get_subscription_service),
    connection: Any = Depends(get_db_connection),
) -> Response:
    """Delete one subscription. Deleting a missing id is not an error."""
    await service.delete(connection, _subscription_id(subscription_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
