from typing import Any, Dict, List, Optional
import logging
import time
import uuid
from kpi_reports.core.config import ANONYMOUS_USER, DEFAULT_MAX_RETRIES, REPORTS_COLLECTION
from kpi_reports.document_store import DocumentStore, SERVER_TIMESTAMP, DELETE_FIELD
from kpi_reports.errors import ReportError, StorageUnavailable
from kpi_reports.models.job import JobStatus, ReportJob

logger = logging.getLogger(__name__)

def new_report_id() -> str:
    """``report_<epoch ms>_<8 hex chars>``; the random part comes from uuid4."""
    return f"report_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}"

class ReportJobStore:
    """Report jobs on top of a document store.

    Every mutation after a claim is conditional on the claim token, so a worker
    that lost its claim cannot overwrite another worker's writes.
    """
    def __init__(self, store: DocumentStore, collection: str = REPORTS_COLLECTION,
                 max_retries: int = DEFAULT_MAX_RETRIES):
        self.store = store
        self.collection = collection
        self.max_retries = max_retries

    def _call(self, operation, *args, **kwargs):
        try:
            return operation(*args, **kwargs)
        except ReportError:
            raise
        except Exception as e:
            name = getattr(operation, '__name__', operation)
            logger.error(f"Document store call {name} failed: {str(e)}", exc_info=True)
            raise StorageUnavailable() from e

    def create_job(self, report_type: str, payload: Dict[str, Any], user_id: Optional[str] = None) -> str:
        """Create a pending job and return its id."""
        job_id = new_report_id()
        self._call(self.store.create, self.collection, job_id, {
            "type": report_type,
            "payload": payload,
            "userId": user_id or ANONYMOUS_USER,
            "status": JobStatus.PENDING.value,
            "retryCount": 0,
            "maxRetries": self.max_retries,
            "createdAt": SERVER_TIMESTAMP,
            "updatedAt": SERVER_TIMESTAMP,
        })
        return job_id

    def get_job(self, job_id: str) -> Optional[ReportJob]:
        data = self._call(self.store.get, self.collection, job_id)
        if data is None:
            return None
        return ReportJob.from_document(job_id, data)

    def list_pending(self, limit: int) -> List[ReportJob]:
        """Oldest pending jobs first."""
        docs = self._call(self.store.query, self.collection,
                          where={"status": JobStatus.PENDING.value},
                          order_by="createdAt", limit=limit)
        return [ReportJob.from_document(doc_id, data) for doc_id, data in docs]

    def list_for_user(self, user_id: str, limit: int, status: Optional[JobStatus] = None) -> List[ReportJob]:
        """A user's jobs, newest first by creation time."""
        where = {"userId": user_id}
        if status is not None:
            where["status"] = status.value
        docs = self._call(self.store.query, self.collection, where=where,
                          order_by="createdAt", descending=True, limit=limit)
        return [ReportJob.from_document(doc_id, data) for doc_id, data in docs]

    def claim_job(self, job: ReportJob) -> Optional[str]:
        """Move a pending job to processing. Returns the claim token, or None if another worker won."""
        token = uuid.uuid4().hex
        claimed = self._call(
            self.store.update, self.collection, job.id,
            {"status": JobStatus.PROCESSING.value, "claimToken": token, "updatedAt": SERVER_TIMESTAMP},
            expected={"status": JobStatus.PENDING.value, "claimToken": job.claim_token},
        )
        return token if claimed else None

    def _update_claimed(self, job_id: str, token: str, fields: Dict[str, Any]) -> bool:
        return self._call(
            self.store.update, self.collection, job_id,
            {**fields, "updatedAt": SERVER_TIMESTAMP},
            expected={"status": JobStatus.PROCESSING.value, "claimToken": token},
        )

    def mark_completed(self, job_id: str, token: str, result: Dict[str, Any]) -> bool:
        return self._update_claimed(job_id, token, {
            "status": JobStatus.COMPLETED.value,
            "result": result,
            "completedAt": SERVER_TIMESTAMP,
            "error": DELETE_FIELD,
        })

    def mark_retry(self, job_id: str, token: str, retry_count: int, error: str) -> bool:
        return self._update_claimed(job_id, token, {
            "status": JobStatus.PENDING.value,
            "retryCount": retry_count,
            "error": error,
        })

    def mark_failed(self, job_id: str, token: str, error: str) -> bool:
        return self._update_claimed(job_id, token, {
            "status": JobStatus.FAILED.value,
            "error": error,
        })
