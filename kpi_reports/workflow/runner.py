import asyncio
import logging
from typing import Any, Dict, Optional
from pydantic import BaseModel
from kpi_reports.clients.llm import CompletionProvider
from kpi_reports.core.config import PROCESSOR_BATCH_SIZE
from kpi_reports.core.logging import get_job_logger
from kpi_reports.errors import InvalidRequest, NotFound, StorageUnavailable
from kpi_reports.job_store import ReportJobStore
from kpi_reports.models.job import JobStatus, ReportJob
from kpi_reports.models.report import DegradedReport
from kpi_reports.reports import build_prompt, format_report, parse_completion

logger = logging.getLogger(__name__)

COMPLETED = "completed"
RETRIED = "retried"
FAILED = "failed"
SKIPPED = "skipped"

class ProcessorRun(BaseModel):
    """Summary of one processing pass."""
    found: int = 0
    claimed: int = 0
    completed: int = 0
    retried: int = 0
    failed: int = 0
    skipped: int = 0

    @property
    def message(self) -> str:
        if not self.found:
            return "No pending reports to process"
        return f"Processed {self.claimed} reports"

class ReportProcessor:
    """Claims pending report jobs and drives each to completion, retry or failure."""

    def __init__(self, job_store: ReportJobStore, provider: CompletionProvider,
                 batch_size: int = PROCESSOR_BATCH_SIZE):
        self.job_store = job_store
        self.provider = provider
        self.batch_size = batch_size

    async def run_once(self) -> ProcessorRun:
        """Process up to ``batch_size`` of the oldest pending jobs concurrently."""
        logger.info("Started report processor")
        jobs = self.job_store.list_pending(self.batch_size)
        run = ProcessorRun(found=len(jobs))
        if not jobs:
            logger.info("No pending reports found")
            return run

        logger.info(f"Found {len(jobs)} pending reports")
        outcomes = await asyncio.gather(
            *(self.process_job(job) for job in jobs), return_exceptions=True
        )
        for job, outcome in zip(jobs, outcomes):
            if isinstance(outcome, Exception):
                logger.error(f"Unexpected error processing report {job.id}: {outcome}")
                outcome = SKIPPED
            if outcome != SKIPPED:
                run.claimed += 1
            setattr(run, outcome, getattr(run, outcome) + 1)
        logger.info(run.message, extra=run.model_dump())
        return run

    async def process_report(self, report_id: Optional[str]) -> Dict[str, Any]:
        """Process one specific report now instead of waiting for the next pass.

        Only pending reports are processed; the claim is the same one ``run_once``
        takes, so a concurrent pass cannot process the report twice.
        """
        if not report_id:
            raise InvalidRequest("Missing reportId")
        job = self.job_store.get_job(report_id)
        if job is None:
            raise NotFound("Report not found")
        if job.status != JobStatus.PENDING:
            return {"message": "Report already processed", "status": job.status.value}

        logger.info(f"Processing report {report_id} on request")
        outcome = await self.process_job(job)
        if outcome == SKIPPED:
            current = self.job_store.get_job(report_id)
            return {"message": "Report already processed", "status": current.status.value}
        messages = {
            COMPLETED: "Report processed successfully",
            RETRIED: "Report processing failed, scheduled for retry",
            FAILED: "Report processing failed",
        }
        return {"message": messages[outcome], "reportId": report_id, "outcome": outcome}

    async def process_job(self, job: ReportJob) -> str:
        """Run one job through claim, prompt, completion and parsing. Returns the outcome name."""
        job_logger = get_job_logger(job.id)
        try:
            token = self.job_store.claim_job(job)
        except StorageUnavailable as e:
            job_logger.error(f"Could not claim report: {e.message}")
            return SKIPPED
        if token is None:
            job_logger.info("Report already claimed by another processor")
            return SKIPPED

        job_logger.info(f"Processing report (attempt {job.retry_count + 1})")
        try:
            prompt = build_prompt(job.type, job.payload)
            # the provider call blocks, so it runs in an executor
            loop = asyncio.get_running_loop()
            content = await loop.run_in_executor(None, self.provider.complete, prompt)
            outcome = parse_completion(content)
            if isinstance(outcome, DegradedReport):
                job_logger.warning(f"Malformed completion, storing fallback report: {outcome.reason}")
            result = format_report(outcome, job.payload, job.type)
        except Exception as e:
            return self._record_failure(job, token, str(e) or e.__class__.__name__, job_logger)

        try:
            written = self.job_store.mark_completed(job.id, token, result)
        except StorageUnavailable as e:
            job_logger.error(f"Could not store completed report: {e.message}")
            return SKIPPED
        if not written:
            job_logger.warning("Claim lost before the report could be stored")
            return SKIPPED
        job_logger.info("Report completed successfully")
        return COMPLETED

    def _record_failure(self, job: ReportJob, token: str, error: str, job_logger) -> str:
        job_logger.error(f"Error processing report: {error}")
        try:
            if job.retry_count < job.max_retries:
                written = self.job_store.mark_retry(job.id, token, job.retry_count + 1, error)
                outcome = RETRIED
                job_logger.info(f"Scheduled report for retry ({job.retry_count + 1}/{job.max_retries})")
            else:
                written = self.job_store.mark_failed(job.id, token, error)
                outcome = FAILED
                job_logger.info(f"Report failed after {job.max_retries} retries")
        except StorageUnavailable as e:
            job_logger.error(f"Could not record report failure: {e.message}")
            return SKIPPED
        if not written:
            job_logger.warning("Claim lost before the failure could be recorded")
            return SKIPPED
        return outcome

    async def run_forever(self, interval: float, stop: Optional[asyncio.Event] = None) -> None:
        """Run a processing pass every ``interval`` seconds until ``stop`` is set."""
        stop = stop or asyncio.Event()
        while not stop.is_set():
            try:
                await self.run_once()
            except StorageUnavailable as e:
                logger.error(f"Report processor pass failed: {e.message}")
            try:
                await asyncio.wait_for(stop.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass
