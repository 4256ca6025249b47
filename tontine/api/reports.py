import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from tontine.core.dependencies import get_current_user
from tontine.core.errors import handle_service_errors
from tontine.db.base import get_db
from tontine.models.user import Profile
from tontine.schemas.notification import NotificationResponse
from tontine.schemas.report import CalendarEvent, DashboardResponse, GroupReport
from tontine.services.report import calendar_events, group_report, user_dashboard
from tontine.services.scheduler import get_scheduler_status

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/reports", tags=["reports"])


@router.get("/dashboard", response_model=DashboardResponse)
def dashboard(
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Summary of the current user's groups, dues and recent notifications."""
    with handle_service_errors(db, "load dashboard"):
        summary = user_dashboard(db, current_user)
    summary["recent_notifications"] = [
        NotificationResponse.from_row(notification, is_read)
        for notification, is_read in summary["recent_notifications"]
    ]
    return summary


@router.get("/groups/{group_id}", response_model=GroupReport)
def report_for_group(
    group_id: UUID,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Collection statistics of a group the current user belongs to."""
    with handle_service_errors(db, "load group report"):
        report = group_report(db, group_id, current_user.id)
    return report


@router.get("/calendar", response_model=List[CalendarEvent])
def calendar(
    group_id: Optional[UUID] = Query(None, description="Only events of this group"),
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Upcoming contribution and payout dates across the current user's groups."""
    with handle_service_errors(db, "load calendar"):
        events = calendar_events(db, current_user, group_id)
    return events


@router.get("/scheduler")
def scheduler_status(current_user: Profile = Depends(get_current_user)):
    """State of the background reminder scheduler."""
    return get_scheduler_status()
