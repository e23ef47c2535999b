import logging
from typing import Any, Dict, Optional
from kpi_reports.errors import InvalidRequest
from kpi_reports.job_store import ReportJobStore
from kpi_reports.models.job import JobStatus

logger = logging.getLogger(__name__)

QUEUED_MESSAGE = "Report generation has been queued"

class ReportRequestService:
    """Accepts report requests and queues them as pending jobs.

    Intake only checks presence; an unknown ``type`` is stored and fails
    later, when the processor builds its prompt.
    """
    def __init__(self, job_store: ReportJobStore):
        self.job_store = job_store

    def submit(self, report_type: Any, payload: Any, user_id: Optional[str] = None) -> Dict[str, Any]:
        if not isinstance(report_type, str) or not report_type.strip():
            raise InvalidRequest("Missing required parameters: type")
        if not isinstance(payload, dict):
            raise InvalidRequest("Missing required parameters: data")
        if user_id is not None and not isinstance(user_id, str):
            raise InvalidRequest("userId must be a string")

        report_id = self.job_store.create_job(report_type, payload, user_id)
        logger.info(f"Created report request with ID: {report_id}")
        return {
            "reportId": report_id,
            "status": JobStatus.PENDING.value,
            "message": QUEUED_MESSAGE,
        }
