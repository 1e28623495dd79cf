# app/jobs/allocate_sessions.py
# Scheduled allocation pass for queued (unassigned) sessions.
#
# Each assignment is a conditional update on tutor_id IS NULL, so overlapping
# runs (cron + POST /sessions/allocate + availability updates) never assign
# a session twice.
#
# Usage:
#   python -m app.jobs.allocate_sessions
#   python -m app.jobs.allocate_sessions --batch-size 50

import argparse
import logging

import app.db.base  # noqa: F401

log = logging.getLogger(__name__)
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)


def main():
    parser = argparse.ArgumentParser(description="Assign tutors to queued tutoring sessions.")
    parser.add_argument(
        "--batch-size",
        type=int,
        default=None,
        dest="batch_size",
        help="Queued sessions per pass (default: ALLOCATION_BATCH_SIZE)",
    )
    args = parser.parse_args()

    from app.db.session import SessionLocal
    from app.services.allocator import allocate_pending_sessions

    db = SessionLocal()
    try:
        result = allocate_pending_sessions(db, limit=args.batch_size)
    finally:
        db.close()

    log.info("queued=%d assigned=%d", result["queued"], result["assigned"])


if __name__ == "__main__":
    main()
