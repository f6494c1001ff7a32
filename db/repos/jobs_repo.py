from __future__ import annotations

import json
import sqlite3
from typing import List, Optional, Tuple

from db.connection import db_lock
from models.job import Job


_COLUMNS = [
    "id",
    "job_type",
    "status",
    "total_items",
    "processed_items",
    "failed_items",
    "options_json",
    "results_json",
    "error_log_json",
    "estimated_duration",
    "actual_duration",
    "created_at",
    "updated_at",
    "completed_at",
]
_SELECT = f"SELECT {', '.join(_COLUMNS)} FROM processing_jobs"


def _to_params(job: Job) -> Tuple:
    data = job.model_dump(mode="json")
    return (
        data["id"],
        data["kind"],
        data["status"],
        data["total_items"],
        data["processed_items"],
        data["failed_items"],
        json.dumps(data["options"]),
        json.dumps(data["results"], ensure_ascii=False),
        json.dumps(data["error_log"], ensure_ascii=False),
        data["estimated_duration"],
        data["actual_duration"],
        data["created_at"],
        data["updated_at"],
        data["completed_at"],
    )


def _from_row(row: Tuple) -> Job:
    data = dict(zip(_COLUMNS, row))
    return Job.model_validate(
        {
            "id": data["id"],
            "kind": data["job_type"],
            "status": data["status"],
            "total_items": data["total_items"],
            "processed_items": data["processed_items"],
            "failed_items": data["failed_items"],
            "options": json.loads(data["options_json"] or "{}"),
            "results": json.loads(data["results_json"] or "[]"),
            "error_log": json.loads(data["error_log_json"] or "[]"),
            "estimated_duration": data["estimated_duration"],
            "actual_duration": data["actual_duration"],
            "created_at": data["created_at"],
            "updated_at": data["updated_at"],
            "completed_at": data["completed_at"],
        }
    )


class JobsRepo:
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def create_job(self, job: Job) -> Job:
        placeholders = ", ".join("?" for _ in _COLUMNS)
        with db_lock:
            self.conn.execute(
                f"INSERT INTO processing_jobs ({', '.join(_COLUMNS)}) VALUES ({placeholders})",
                _to_params(job),
            )
            self.conn.commit()
        return job

    def get_job(self, job_id: str) -> Optional[Job]:
        with db_lock:
            cur = self.conn.cursor()
            cur.execute(f"{_SELECT} WHERE id = ?", (job_id,))
            row = cur.fetchone()
        return _from_row(row) if row else None

    def update_job(self, job: Job) -> Job:
        """Overwrite the stored job with the given state (full snapshot)."""
        params = _to_params(job)
        assignments = ", ".join(f"{c} = ?" for c in _COLUMNS[1:])
        with db_lock:
            cur = self.conn.execute(
                f"UPDATE processing_jobs SET {assignments} WHERE id = ?",
                (*params[1:], params[0]),
            )
            if cur.rowcount == 0:
                raise KeyError(f"Unknown job: {job.id}")
            self.conn.commit()
        return job

    def recent_jobs(self, limit: int = 10) -> List[Job]:
        with db_lock:
            cur = self.conn.cursor()
            cur.execute(f"{_SELECT} ORDER BY created_at DESC LIMIT ?", (limit,))
            rows = cur.fetchall()
        return [_from_row(r) for r in rows]
