#!/usr/bin/env python
"""
Entry point for registry sync runs.

Usage:
    python scripts/run_sync.py full
    python scripts/run_sync.py incremental
    python scripts/run_sync.py roles [ORGNR ...]
    python scripts/run_sync.py subentities

Every run is recorded as a sync job. Exit code is 0 when the run completed
without record errors, 1 when records failed, 2 when the run itself failed.
"""
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from leadscout.core.constants import JOB_TYPES, SEPARATOR_LINE
from leadscout.core.container import ApplicationContainer
from leadscout.core.exceptions import LeadScoutError
from leadscout.core.logging import setup_logging
from leadscout.orchestrator import SyncProgress
from leadscout.settings import settings


def print_progress(progress: SyncProgress) -> None:
    page = "-" if progress.current_page is None else progress.current_page
    print(
        f"  [{progress.type}] page {page}: "
        f"{progress.processed} processed, {progress.errors} errors"
    )


def main() -> int:
    """Run one sync job."""
    if len(sys.argv) < 2 or sys.argv[1] not in JOB_TYPES:
        print(__doc__)
        return 2

    job_type = sys.argv[1]
    setup_logging(level=settings.log_level, log_file=settings.log_file)

    print(SEPARATOR_LINE)
    print(f"REGISTRY SYNC: {job_type.upper()}")
    print(SEPARATOR_LINE)

    container = ApplicationContainer.create()
    try:
        orchestrator = container.create_orchestrator(on_progress=print_progress)
        if job_type == "full":
            result = orchestrator.run_full()
        elif job_type == "incremental":
            result = orchestrator.run_incremental()
        elif job_type == "roles":
            orgnrs = sys.argv[2:] or None
            result = orchestrator.run_roles(orgnrs)
        else:
            result = orchestrator.run_subentities()
    except LeadScoutError as e:
        print(f"\nSync failed: {e.message}")
        return 2
    finally:
        container.close()

    print()
    print(SEPARATOR_LINE)
    print("SUMMARY")
    print(SEPARATOR_LINE)
    print(f"  Job:        {result.job_id}")
    print(f"  Status:     {result.status}")
    print(f"  Processed:  {result.processed}")
    print(f"  Errors:     {result.errors}")
    print(f"  {result.log}")

    return 0 if result.errors == 0 else 1


if __name__ == "__main__":
    sys.exit(main())
