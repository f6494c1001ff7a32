from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Dict

from models.job import Job


def registry_usage_for_run(run_id: str, log_path: str) -> Dict[str, int]:
    """Aggregate registry calls from the JSONL trace for the given run_id.

    Returns dict like {'network_calls': N, 'cache_hits': H, 'errors': E}.
    """
    result = {"network_calls": 0, "cache_hits": 0, "errors": 0}
    path = Path(log_path)
    if not path.exists():
        return result
    with path.open("r", encoding="utf-8") as f:
        for line in f:
            try:
                rec = json.loads(line)
            except ValueError:
                continue
            if not isinstance(rec, dict) or rec.get("run_id") != run_id:
                continue
            if rec.get("cache_hit"):
                result["cache_hits"] += 1
            else:
                result["network_calls"] += 1
            if rec.get("status") == "error":
                result["errors"] += 1
    return result


def print_job_summary(job: Job) -> None:
    """Print summary of one enrichment job."""
    print("\n" + "="*60)
    print("COMPANY ENRICHMENT - JOB SUMMARY")
    print("="*60)
    print(f"Job ID: {job.id}")
    print(f"Kind: {job.kind.value}")
    print(f"Status: {job.status.value}")
    print(f"Total Items: {job.total_items}")
    print(f"  Processed: {job.processed_items}")
    print(f"  Failed: {job.failed_items}")
    print(f"Estimated Duration: {job.estimated_duration if job.estimated_duration is not None else 'N/A'}s")
    print(f"Actual Duration: {job.actual_duration if job.actual_duration is not None else 'N/A'}s")
    if job.completed_at:
        print(f"Completed At: {job.completed_at.isoformat()}")
    if job.error_log:
        print()
        print("Errors:")
        for item in job.error_log:
            print(f"  {item.identifier}: {item.error}")

    from config.settings import get_settings
    settings = get_settings()
    run_id = os.getenv("RUN_ID")
    if run_id and settings.registry_trace:
        usage = registry_usage_for_run(run_id, settings.registry_log_path)
        print()
        print(
            f"Registry Usage: calls={usage['network_calls']}, "
            f"cache_hits={usage['cache_hits']}, errors={usage['errors']}"
        )
    print("="*60)
