"""Sales reports API (admin-only, read-only)."""

from datetime import date
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Path
from sqlalchemy.orm import Session

from restopos.api.schemas import SalesTotalResponse, TransactionResponse, MostSoldItemResponse
from restopos.db import report_queries
from restopos.db.models import User
from restopos.db.dependencies import get_sqlalchemy_session, require_admin
from restopos.utils.money import from_cents


router = APIRouter(prefix="/api/reports", tags=["reports"])


def _check_range(start: date, end: date) -> None:
    if end < start:
        raise HTTPException(status_code=400, detail="end date is before start date")


@router.get("/daily-sales/{day}", response_model=SalesTotalResponse)
async def daily_sales(
    day: date,
    session: Session = Depends(get_sqlalchemy_session),
    admin: User = Depends(require_admin)
):
    """Total taken on one day (YYYY-MM-DD)."""
    try:
        total = report_queries.daily_sales(session, day)
        return {"period": day.isoformat(), "total": from_cents(total)}
    finally:
        session.close()


@router.get("/monthly-sales/{year}/{month}", response_model=SalesTotalResponse)
async def monthly_sales(
    year: int = Path(..., ge=1970, le=9999),
    month: int = Path(..., ge=1, le=12),
    session: Session = Depends(get_sqlalchemy_session),
    admin: User = Depends(require_admin)
):
    try:
        total = report_queries.monthly_sales(session, year, month)
        return {"period": f"{year:04d}-{month:02d}", "total": from_cents(total)}
    finally:
        session.close()


@router.get("/daily/{day}", response_model=List[TransactionResponse])
async def daily_report(
    day: date,
    session: Session = Depends(get_sqlalchemy_session),
    admin: User = Depends(require_admin)
):
    try:
        return [report_queries.transaction_to_dict(t) for t in report_queries.daily_transactions(session, day)]
    finally:
        session.close()


@router.get("/range/{start}/{end}", response_model=List[TransactionResponse])
async def range_report(
    start: date,
    end: date,
    session: Session = Depends(get_sqlalchemy_session),
    admin: User = Depends(require_admin)
):
    """Payments from start through end (both inclusive), e.g. a week."""
    try:
        _check_range(start, end)
        return [
            report_queries.transaction_to_dict(t)
            for t in report_queries.range_transactions(session, start, end)
        ]
    finally:
        session.close()


@router.get("/monthly/{year}/{month}", response_model=List[TransactionResponse])
async def monthly_report(
    year: int = Path(..., ge=1970, le=9999),
    month: int = Path(..., ge=1, le=12),
    session: Session = Depends(get_sqlalchemy_session),
    admin: User = Depends(require_admin)
):
    try:
        return [
            report_queries.transaction_to_dict(t)
            for t in report_queries.monthly_transactions(session, year, month)
        ]
    finally:
        session.close()


@router.get("/yearly/{year}", response_model=List[TransactionResponse])
async def yearly_report(
    year: int = Path(..., ge=1970, le=9999),
    session: Session = Depends(get_sqlalchemy_session),
    admin: User = Depends(require_admin)
):
    try:
        return [report_queries.transaction_to_dict(t) for t in report_queries.yearly_transactions(session, year)]
    finally:
        session.close()


@router.get("/most-sold/{start}/{end}", response_model=List[MostSoldItemResponse])
async def most_sold(
    start: date,
    end: date,
    session: Session = Depends(get_sqlalchemy_session),
    admin: User = Depends(require_admin)
):
    """Top five items by quantity sold in paid orders placed in the range."""
    try:
        _check_range(start, end)
        return report_queries.most_sold_items(session, start, end)
    finally:
        session.close()
