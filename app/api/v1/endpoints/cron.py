# app/api/v1/endpoints/cron.py
# Scheduler-driven endpoints (header x-cron-secret)

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.dependencies import require_cron_secret
from app.db.session import get_db
from app.schemas.session import RemindersResponse
from app.services import reminder_service

router = APIRouter()


@router.get(
    "/session-reminders",
    response_model=RemindersResponse,
    summary="Fire due 24h / 1h / 5m session reminders",
    dependencies=[Depends(require_cron_secret)],
)
def session_reminders(db: Session = Depends(get_db)):
    return RemindersResponse(**reminder_service.send_due_reminders(db))
