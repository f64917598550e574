"""Delete expired reports and old finished jobs, with their files."""
import argparse
import logging

from app.database import SessionLocal
from app.services.bulk_upload import cleanup_old_upload_jobs
from app.services.reports import cleanup_expired_reports, cleanup_old_report_jobs


def main():
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--days-old",
        type=int,
        default=30,
        help="Delete completed/failed jobs finished more than this many days ago (default: 30)",
    )
    parser.add_argument(
        "--expired-reports-only",
        action="store_true",
        help="Only remove completed reports past their expiry time",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    db = SessionLocal()
    try:
        expired = cleanup_expired_reports(db)
        print(f"Removed {expired} expired reports")

        if not args.expired_reports_only:
            uploads = cleanup_old_upload_jobs(db, days_old=args.days_old)
            report_jobs = cleanup_old_report_jobs(db, days_old=args.days_old)
            print(f"Removed {uploads} upload jobs and {report_jobs} report jobs older than {args.days_old} days")
    finally:
        db.close()


if __name__ == "__main__":
    main()
