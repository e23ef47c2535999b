"""Turning a provider completion into the stored report.

``parse_completion`` never raises: content that does not decode into a report
object becomes a ``DegradedReport``, and ``format_report`` renders that as a
valid report carrying an error notice. A job is never stranded because the
model answered with something unexpected.
"""
import json
import re
from datetime import datetime, timezone
from typing import Any, Dict

from pydantic import ValidationError

from kpi_reports.errors import MalformedCompletion
from kpi_reports.models.job import ReportType
from kpi_reports.models.report import DegradedReport, ParsedReport, ParseOutcome, Report

OPENING_FENCE = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
CLOSING_FENCE = re.compile(r"\s*```$")

FALLBACK_SUMMARY = "We were unable to generate a detailed report at this time."
FALLBACK_NOTICE = "There was an error generating the full report. Please try again later."
FALLBACK_RECOMMENDATION = "Try generating the report again"


def strip_fences(content: str) -> str:
    """Remove Markdown code fences or stray backticks around a completion."""
    content = (content or "").strip()
    if content.startswith("```"):
        content = CLOSING_FENCE.sub("", OPENING_FENCE.sub("", content)).strip()
    if len(content) >= 2 and content.startswith("`") and content.endswith("`"):
        content = content[1:-1].strip()
    return content


def decode_report(content: str) -> Dict[str, Any]:
    """Decode and validate a completion. Raises MalformedCompletion."""
    try:
        data = json.loads(strip_fences(content))
    except json.JSONDecodeError as e:
        raise MalformedCompletion(f"Completion is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise MalformedCompletion("Completion is not a JSON object")
    try:
        Report.model_validate(data)
    except ValidationError as e:
        raise MalformedCompletion(f"Completion does not match the report schema: {e.error_count()} error(s)") from e
    return data


def parse_completion(content: str) -> ParseOutcome:
    try:
        return ParsedReport(data=decode_report(content))
    except MalformedCompletion as e:
        return DegradedReport(reason=e.message)


def _period(payload: Dict[str, Any], report_type: str) -> Dict[str, Any]:
    if report_type == ReportType.COMPARISON.value:
        websites = payload.get("websites")
        first = websites[0] if isinstance(websites, list) and websites else {}
        first = first if isinstance(first, dict) else {}
        period = first.get("time")
    else:
        period = payload.get("time")
    return period if isinstance(period, dict) else {}


def fallback_title(payload: Dict[str, Any], report_type: str) -> str:
    if report_type == ReportType.MONTHLY.value:
        website = payload.get("website") if isinstance(payload.get("website"), dict) else {}
        return f"Monthly Report for {website.get('name', 'your website')}"
    return "Website Comparison Report"


def format_report(outcome: ParseOutcome, payload: Dict[str, Any], report_type: str) -> Dict[str, Any]:
    """Build the stored result: report content plus generation time and echoed metadata."""
    period = _period(payload, report_type)
    metadata = {
        "generatedAt": datetime.now(timezone.utc).isoformat(),
        "month": period.get("month"),
        "year": period.get("year"),
        "type": report_type,
    }
    if isinstance(outcome, ParsedReport):
        return {**outcome.data, **metadata}
    return {
        "title": fallback_title(payload, report_type),
        "summary": FALLBACK_SUMMARY,
        "sections": [{"title": "Error Notice", "content": FALLBACK_NOTICE}],
        "recommendations": [FALLBACK_RECOMMENDATION],
        **metadata,
        "error": outcome.reason,
    }
