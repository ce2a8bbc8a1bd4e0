"""Scheduled maintenance entry point for the reorder engine.

Usage:
    python scripts/run_analysis_maintenance.py [--cleanup] [--analyze] [--retention-days N]

With no flags both tasks run. ``--analyze`` only starts a job when the last
completed full analysis is older than ``analysis_frequency_hours`` and waits
for it to finish before exiting.
"""

from __future__ import annotations

import argparse
import json
import sys
import time

from app.config import settings
from app.services.analysis_job_maintenance import (
    run_analysis_job_cleanup,
    run_scheduled_analysis,
)
from app.services.analysis_job_service import analysis_job_service
from app.utils.logging import configure_logging

POLL_SECONDS = 1.0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--cleanup", action="store_true", help="delete finished jobs past retention")
    parser.add_argument("--analyze", action="store_true", help="run the periodic full analysis if due")
    parser.add_argument("--retention-days", type=int, default=None)
    args = parser.parse_args(argv)
    run_all = not (args.cleanup or args.analyze)

    configure_logging(log_level=settings.LOG_LEVEL, log_format=settings.LOG_FORMAT)
    summary: dict = {}
    exit_code = 0
    try:
        if args.cleanup or run_all:
            summary["cleanup"] = run_analysis_job_cleanup(retention_days=args.retention_days)

        if args.analyze or run_all:
            result = run_scheduled_analysis()
            if result["triggered"]:
                job = analysis_job_service.get_job(result["job_id"])
                while job.status in ("started", "running"):
                    time.sleep(POLL_SECONDS)
                    job = analysis_job_service.get_job(result["job_id"])
                result["status"] = job.status
                result["suggestions_count"] = job.suggestions_count
                if job.status == "failed":
                    result["error"] = job.error
                    exit_code = 1
            summary["analysis"] = result
    finally:
        analysis_job_service.shutdown(wait_for_jobs=True)

    print(json.dumps(summary, indent=2, default=str))
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
