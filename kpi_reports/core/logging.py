import logging
from pathlib import Path
from typing import Optional
from pythonjsonlogger.json import JsonFormatter
from kpi_reports.core.config import LOGS_DIR

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

def configure_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """Set up the root logger with JSON output on the console and, optionally, a file."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, (level or "").upper(), logging.INFO))

    # Replace handlers from a previous call instead of stacking them
    for handler in list(root.handlers):
        if getattr(handler, "_kpi_reports", False):
            root.removeHandler(handler)

    formatter = JsonFormatter(LOG_FORMAT)

    ch = logging.StreamHandler()
    ch.setFormatter(formatter)
    ch._kpi_reports = True
    root.addHandler(ch)

    if log_file:
        path = Path(log_file)
        if not path.is_absolute():
            path = LOGS_DIR / path
        path.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(path)
        fh.setFormatter(formatter)
        fh._kpi_reports = True
        root.addHandler(fh)

def get_job_logger(job_id: str) -> logging.LoggerAdapter:
    """Logger for a single report job; every record carries the job id."""
    logger = logging.getLogger("kpi_reports.jobs")
    return logging.LoggerAdapter(logger, {"report_id": job_id})
