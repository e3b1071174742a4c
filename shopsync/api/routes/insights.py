"""
Dashboard insights routes.

Date range endpoints take startDate/endDate query parameters in ISO 8601.
A bare date (YYYY-MM-DD) as endDate covers that whole UTC day.
"""

import logging
from datetime import date, datetime, time, timezone
from typing import Any, Dict, List, Optional, Tuple

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from shopsync.api.dependencies import get_db_session
from shopsync.services.insights_service import InsightsService, DEFAULT_LIST_LIMIT

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tenants", tags=["insights"])


class OverviewResponse(BaseModel):
    metrics: Dict[str, Any]


class OrdersResponse(BaseModel):
    orders: List[Dict[str, Any]]


class TrendResponse(BaseModel):
    trend: List[Dict[str, Any]]


class TopCustomersResponse(BaseModel):
    customers: List[Dict[str, Any]]


def _parse_bound(value: str, end_of_day: bool) -> datetime:
    text = value.strip()
    if len(text) == 10:
        day = date.fromisoformat(text)
        return datetime.combine(day, time.max if end_of_day else time.min, tzinfo=timezone.utc)

    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def parse_date_range(start_date: Optional[str], end_date: Optional[str]) -> Tuple[datetime, datetime]:
    """
    Raises:
        HTTPException: 400 when a bound is missing or not ISO 8601
    """
    if not start_date or not end_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing required query parameters: startDate, endDate",
        )
    try:
        return _parse_bound(start_date, end_of_day=False), _parse_bound(end_date, end_of_day=True)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid date format. Use ISO 8601 format (YYYY-MM-DD)",
        )


def _service(tenant_id: str, db: Session) -> InsightsService:
    return InsightsService(db, tenant_id)


@router.get("/{tenant_id}/orders", response_model=OrdersResponse)
async def get_recent_orders(
    tenant_id: str,
    limit: int = Query(DEFAULT_LIST_LIMIT, ge=1, le=250),
    db: Session = Depends(get_db_session),
):
    return OrdersResponse(orders=_service(tenant_id, db).get_recent_orders(limit))


@router.get("/{tenant_id}/insights/overview", response_model=OverviewResponse)
async def get_overview(tenant_id: str, db: Session = Depends(get_db_session)):
    return OverviewResponse(metrics=_service(tenant_id, db).get_overview_metrics())


@router.get("/{tenant_id}/insights/orders-by-date", response_model=OrdersResponse)
async def get_orders_by_date(
    tenant_id: str,
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    db: Session = Depends(get_db_session),
):
    start, end = parse_date_range(start_date, end_date)
    return OrdersResponse(orders=_service(tenant_id, db).get_orders_by_date(start, end))


@router.get("/{tenant_id}/insights/revenue-trend", response_model=TrendResponse)
async def get_revenue_trend(
    tenant_id: str,
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    db: Session = Depends(get_db_session),
):
    start, end = parse_date_range(start_date, end_date)
    return TrendResponse(trend=_service(tenant_id, db).get_revenue_trend(start, end))


@router.get("/{tenant_id}/insights/order-count-trend", response_model=TrendResponse)
async def get_order_count_trend(
    tenant_id: str,
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    db: Session = Depends(get_db_session),
):
    start, end = parse_date_range(start_date, end_date)
    return TrendResponse(trend=_service(tenant_id, db).get_order_count_trend(start, end))


@router.get("/{tenant_id}/insights/top-customers", response_model=TopCustomersResponse)
async def get_top_customers(
    tenant_id: str,
    limit: int = Query(DEFAULT_LIST_LIMIT, ge=1, le=250),
    db: Session = Depends(get_db_session),
):
    return TopCustomersResponse(customers=_service(tenant_id, db).get_top_customers(limit))
