from typing import Any, Dict, List
from kpi_reports.errors import InvalidRequest
from kpi_reports.job_store import ReportJobStore
from kpi_reports.models.job import JobStatus, ReportJob
from kpi_reports.services.status import isoformat

EMPTY_MESSAGE = "No reports found for this user"

def summarize(job: ReportJob) -> Dict[str, Any]:
    """Compact listing entry: identity, state, timestamps and what the report covers."""
    summary = {
        "reportId": job.id,
        "type": job.type,
        "status": job.status.value,
        "createdAt": isoformat(job.created_at),
        "updatedAt": isoformat(job.updated_at),
    }
    if job.completed_at:
        summary["completedAt"] = isoformat(job.completed_at)
    website = job.payload.get("website")
    if isinstance(website, dict):
        summary["website"] = {"id": website.get("id"), "name": website.get("name")}
    period = job.payload.get("time")
    if isinstance(period, dict):
        summary["timePeriod"] = {
            "year": period.get("year"),
            "month": period.get("month"),
            "monthName": period.get("currentMonthName"),
        }
    return summary

def _effective_completion(job: ReportJob):
    return job.completed_at or job.created_at

class ReportHistoryService:
    """A user's past report jobs, newest first."""

    def __init__(self, job_store: ReportJobStore):
        self.job_store = job_store

    def list_reports(self, user_id: str, limit: int = 10, include_processing: bool = False) -> Dict[str, Any]:
        if not user_id:
            raise InvalidRequest("Missing userId parameter")
        if not isinstance(limit, int) or isinstance(limit, bool) or limit < 1:
            raise InvalidRequest("limit must be a positive integer")

        if include_processing:
            jobs = self.job_store.list_for_user(user_id, limit)
        else:
            # The store orders by createdAt, the listing by completion time:
            # fetch extra candidates, then re-sort and truncate.
            jobs = self.job_store.list_for_user(user_id, limit * 2, status=JobStatus.COMPLETED)
            jobs.sort(key=_effective_completion, reverse=True)
            jobs = jobs[:limit]

        reports: List[Dict[str, Any]] = []
        most_recent = None
        for job in jobs:
            summary = summarize(job)
            # Only the most recent completed report carries its full body
            if most_recent is None and job.status == JobStatus.COMPLETED and job.result is not None:
                summary["result"] = job.result
                most_recent = summary
            reports.append(summary)

        response = {
            "reports": reports,
            "mostRecentCompleted": most_recent,
            "hasCompletedReports": any(r["status"] == JobStatus.COMPLETED.value for r in reports),
            "totalCount": len(reports),
        }
        if not reports:
            response["message"] = EMPTY_MESSAGE
        return response
