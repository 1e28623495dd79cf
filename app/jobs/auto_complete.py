# app/jobs/auto_complete.py
# Scheduled run of the auto-completion sweep.
#
# Flips ACCEPTED sessions whose end is past the grace period to COMPLETED,
# opens the post-session chat window and notifies both parties. Safe to run
# concurrently with the HTTP trigger and the lazy sweep on list endpoints:
# each session is completed by exactly one of them.
#
# Usage:
#   python -m app.jobs.auto_complete                 # one sweep
#   python -m app.jobs.auto_complete --limit 100     # cap the batch

import argparse
import logging

import app.db.base  # noqa: F401

log = logging.getLogger(__name__)
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)


def main():
    parser = argparse.ArgumentParser(description="Complete overdue accepted tutoring sessions.")
    parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Maximum sessions to examine (default: all due)",
    )
    args = parser.parse_args()

    from app.db.session import SessionLocal
    from app.services.auto_complete import auto_complete_due_sessions

    db = SessionLocal()
    try:
        result = auto_complete_due_sessions(db, limit=args.limit)
    finally:
        db.close()

    log.info("checked=%d completed=%d", result["checked"], result["completed"])


if __name__ == "__main__":
    main()
