"""Reports: revenue, outstanding balances, status summary."""
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from invoicely.api.deps import get_current_user_id, get_db
from invoicely.schemas.report import OutstandingReport, RevenuePoint, StatusSummaryRow
from invoicely.services import report_service

router = APIRouter()


@router.get("/revenue", response_model=List[RevenuePoint])
def revenue(
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    """Paid revenue per month (YYYY-MM). Defaults to the last twelve months."""
    return report_service.revenue_by_month(db, user_id, start_date, end_date)


@router.get("/outstanding", response_model=OutstandingReport)
def outstanding(db: Session = Depends(get_db), user_id: int = Depends(get_current_user_id)):
    return report_service.outstanding(db, user_id)


@router.get("/status-summary", response_model=List[StatusSummaryRow])
def status_summary(db: Session = Depends(get_db), user_id: int = Depends(get_current_user_id)):
    return report_service.status_summary(db, user_id)
