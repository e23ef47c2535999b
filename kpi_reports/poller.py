"""Client side of the report pipeline: submit a report, then poll its status.

The poll interval grows with the number of polls (``BackoffPolicy``) and
polling gives up after ``max_polls`` with a "still processing" outcome
rather than an error. The last submitted report id is kept on disk so a
restarted client can resume polling instead of submitting again.
"""
import json
import logging
import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import requests
from pydantic import BaseModel, Field

from kpi_reports.core.config import BASE_DIR
from kpi_reports.models.job import JobStatus

logger = logging.getLogger(__name__)

STILL_PROCESSING_MESSAGE = (
    "The report is still processing in the background. Check back in a few minutes."
)

class BackoffPolicy(BaseModel):
    """Poll interval schedule.

    ``thresholds`` maps a poll count to the interval used from that poll on;
    before the first threshold ``initial_interval`` applies.
    """
    initial_interval: float = 2.0
    thresholds: Dict[int, float] = Field(default_factory=lambda: {5: 5.0, 10: 10.0, 15: 30.0})
    max_polls: int = 120

    def interval_for(self, poll_count: int) -> float:
        interval = self.initial_interval
        for count, value in sorted(self.thresholds.items()):
            if poll_count >= count:
                interval = value
        return interval

    @classmethod
    def exponential(cls, initial_interval: float = 2.0, multiplier: float = 2.0,
                    cap: float = 30.0, max_polls: int = 20, step: int = 5) -> "BackoffPolicy":
        """Multiply the interval every ``step`` polls, up to ``cap``."""
        if initial_interval <= 0:
            raise ValueError("initial_interval must be positive")
        if multiplier <= 1:
            raise ValueError("multiplier must be greater than 1")
        if step < 1:
            raise ValueError("step must be at least 1")
        thresholds = {}
        interval, count = initial_interval, step
        while interval < cap:
            interval = min(interval * multiplier, cap)
            thresholds[count] = interval
            count += step
        return cls(initial_interval=initial_interval, thresholds=thresholds, max_polls=max_polls)

class PollOutcome(BaseModel):
    state: str  # completed, failed, timed_out or error
    report_id: str
    status: Optional[str] = None
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    polls: int = 0

    @property
    def done(self) -> bool:
        return self.state in ("completed", "failed")

class LastReportStore:
    """Durable reference to the report currently being polled."""

    def __init__(self, path: Path = None):
        self.path = Path(path or BASE_DIR / ".last_report.json")

    def save(self, report_id: str) -> None:
        self.path.write_text(json.dumps({"lastReportId": report_id}))

    def load(self) -> Optional[str]:
        if not self.path.exists():
            return None
        try:
            return json.loads(self.path.read_text()).get("lastReportId")
        except (json.JSONDecodeError, AttributeError):
            logger.warning(f"Ignoring unreadable report reference at {self.path}")
            return None

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()

class ReportPoller:
    """Submits report requests and follows them to a terminal state over HTTP."""

    def __init__(self, base_url: str, token: str, policy: BackoffPolicy = None,
                 last_report: LastReportStore = None, session: requests.Session = None,
                 sleep: Callable[[float], None] = time.sleep, timeout: float = 30.0):
        self.base_url = base_url.rstrip("/")
        self.policy = policy or BackoffPolicy()
        self.last_report = last_report
        self.session = session or requests.Session()
        self.session.headers.update({"Authorization": f"Bearer {token}"})
        self.sleep = sleep
        self.timeout = timeout

    def submit(self, report_type: str, data: Dict[str, Any], user_id: Optional[str] = None) -> str:
        body = {"type": report_type, "data": data}
        if user_id:
            body["userId"] = user_id
        response = self.session.post(f"{self.base_url}/api/report-request", json=body, timeout=self.timeout)
        response.raise_for_status()
        report_id = response.json()["reportId"]
        logger.info(f"Submitted report {report_id}")
        if self.last_report:
            self.last_report.save(report_id)
        return report_id

    def check_status(self, report_id: str) -> Dict[str, Any]:
        response = self.session.get(f"{self.base_url}/api/report-status",
                                    params={"reportId": report_id}, timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    def poll(self, report_id: str) -> PollOutcome:
        """Poll until a terminal state, a transport error, or ``max_polls`` polls."""
        polls = 0
        status = None
        while polls < self.policy.max_polls:
            try:
                body = self.check_status(report_id)
            except (requests.RequestException, ValueError) as e:
                logger.error(f"Error polling report status: {str(e)}")
                return PollOutcome(state="error", report_id=report_id, status=status,
                                   error="Error checking report status. Please try again later.",
                                   polls=polls + 1)
            polls += 1
            status = body.get("status")

            if status == JobStatus.COMPLETED.value:
                return self._finish(PollOutcome(state="completed", report_id=report_id, status=status,
                                                result=body.get("result"), polls=polls))
            if status == JobStatus.FAILED.value:
                return self._finish(PollOutcome(state="failed", report_id=report_id, status=status,
                                                error=body.get("error") or "Unknown error", polls=polls))

            if polls < self.policy.max_polls:
                self.sleep(self.policy.interval_for(polls))

        logger.info(f"Report {report_id} still {status} after {polls} polls")
        return PollOutcome(state="timed_out", report_id=report_id, status=status,
                           error=STILL_PROCESSING_MESSAGE, polls=polls)

    def submit_and_poll(self, report_type: str, data: Dict[str, Any], user_id: Optional[str] = None) -> PollOutcome:
        return self.poll(self.submit(report_type, data, user_id))

    def resume(self) -> Optional[PollOutcome]:
        """Continue polling the last submitted report, if there is one."""
        report_id = self.last_report.load() if self.last_report else None
        if not report_id:
            return None
        logger.info(f"Resuming polling for report: {report_id}")
        return self.poll(report_id)

    def _finish(self, outcome: PollOutcome) -> PollOutcome:
        if self.last_report and self.last_report.load() == outcome.report_id:
            self.last_report.clear()
        return outcome
