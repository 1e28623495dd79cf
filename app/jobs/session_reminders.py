# app/jobs/session_reminders.py
# Fires due 24h / 1h / 5m session reminders.
# Meant for a once-a-minute scheduler when the HTTP cron endpoint is not used.
#
# Usage:
#   python -m app.jobs.session_reminders

import logging

import app.db.base  # noqa: F401

log = logging.getLogger(__name__)
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)


def main():
    from app.db.session import SessionLocal
    from app.services.reminder_service import send_due_reminders

    db = SessionLocal()
    try:
        result = send_due_reminders(db)
    finally:
        db.close()

    log.info("checked=%d sent=%d", result["checked"], result["sent"])


if __name__ == "__main__":
    main()
