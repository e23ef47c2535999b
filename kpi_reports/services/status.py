import copy
from datetime import datetime
from threading import Lock
from typing import Any, Dict, Optional
from cachetools import TTLCache
from kpi_reports.errors import InvalidRequest, NotFound
from kpi_reports.job_store import ReportJobStore
from kpi_reports.models.job import JobStatus

def isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None

class ReportStatusService:
    """Read-only view of a job's state.

    Completed and failed jobs never change again, so their responses are
    cached.
    """
    def __init__(self, job_store: ReportJobStore, cache: Optional[TTLCache] = None):
        self.job_store = job_store
        self._cache = cache if cache is not None else TTLCache(maxsize=1024, ttl=3600)
        self._lock = Lock()

    def get_status(self, report_id: Optional[str]) -> Dict[str, Any]:
        if not report_id:
            raise InvalidRequest("Missing report ID")

        with self._lock:
            cached = self._cache.get(report_id)
        if cached is not None:
            return copy.deepcopy(cached)

        job = self.job_store.get_job(report_id)
        if job is None:
            raise NotFound("Report not found")

        response = {
            "reportId": report_id,
            "status": job.status.value,
            "createdAt": isoformat(job.created_at),
            "updatedAt": isoformat(job.updated_at),
        }
        if job.status == JobStatus.COMPLETED and job.result is not None:
            response["result"] = job.result
            response["completedAt"] = isoformat(job.completed_at)
        if job.status == JobStatus.FAILED:
            response["error"] = job.error

        if job.status.is_terminal:
            with self._lock:
                self._cache[report_id] = copy.deepcopy(response)
        return response
