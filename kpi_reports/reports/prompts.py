"""Prompt construction for the two report types.

Both prompts ask for the same raw-JSON report shape; see ``REPORT_SCHEMA``.
Absent metrics count as zero and zero metrics are left out of the metric
listings.
"""
import json
from typing import Any, Dict, List, Union

from kpi_reports.core.config import MONTH_NAMES
from kpi_reports.models.job import ReportType

Number = Union[int, float]

NOT_AVAILABLE = "N/A"

REPORT_SCHEMA = """{{
  "title": "{title}",
  "summary": "Executive summary text here",
  "sections": [
{sections}
  ],
  "recommendations": [
    "Recommendation 1",
    "Recommendation 2",
    "Recommendation 3"
  ]
}}"""

CLOSING_INSTRUCTIONS = """IMPORTANT: Your analysis should be data-driven, insightful, and professional. {focus}
IMPORTANT: **Respond with raw JSON only**, without any markdown formatting or code fences.
IMPORTANT: **Do not mention or include any metric whose value is zero or null.** Omit any commentary on metrics that are 0."""

MONTHLY_SECTIONS = [
    "Key Performance Highlights",
    "Areas of Concern",
    "Month-over-Month Analysis",
    "Year-over-Year Comparison",
    "Yearly Context",
]

COMPARISON_SECTIONS = [
    "Performance Rankings",
    "Website Analysis",
    "Market Share",
]


def to_number(value: Any) -> Number:
    """Coerce a metric value to a number; missing or unparseable values are 0."""
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return value
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    return int(number) if number.is_integer() else number


def format_number(value: Any) -> str:
    number = to_number(value)
    if isinstance(number, float) and number.is_integer():
        number = int(number)
    if isinstance(number, float):
        return f"{number:,.2f}"
    return f"{number:,}"


def format_delta(value: Number, currency: bool = False) -> str:
    sign = "+" if value >= 0 else "-"
    prefix = "$" if currency else ""
    return f"{sign}{prefix}{format_number(abs(value))}"


def percent_change(current: Any, previous: Any) -> str:
    """Percentage change with two decimals, or ``"N/A"`` when ``previous`` is zero."""
    current, previous = to_number(current), to_number(previous)
    if not previous:
        return NOT_AVAILABLE
    return f"{(current - previous) / previous * 100:.2f}"


def compare_periods(current: Dict[str, Any], previous: Dict[str, Any]) -> Dict[str, Any]:
    """Absolute and percentage change of sales and users between two periods."""
    return {
        "sales": to_number(current.get("sales")) - to_number(previous.get("sales")),
        "salesPercent": percent_change(current.get("sales"), previous.get("sales")),
        "users": to_number(current.get("users")) - to_number(previous.get("users")),
        "usersPercent": percent_change(current.get("users"), previous.get("users")),
    }


def year_to_date(months: List[Dict[str, Any]]) -> Dict[str, Number]:
    return {
        "sales": sum(to_number(m.get("sales")) for m in months),
        "users": sum(to_number(m.get("users")) for m in months),
    }


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_list(value: Any) -> List[Dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def month_name_for(period: Dict[str, Any]) -> str:
    if period.get("currentMonthName"):
        return str(period["currentMonthName"])
    month = to_number(period.get("month"))
    if isinstance(month, int) and 1 <= month <= 12:
        return MONTH_NAMES[month - 1]
    return ""


def _schema(title: str, sections: List[str]) -> str:
    lines = ",\n".join(f'    {{ "title": "{s}", "content": "Content here" }}' for s in sections)
    return REPORT_SCHEMA.format(title=title, sections=lines)


def _metric_lines(metrics: Dict[str, Any]) -> List[str]:
    lines = []
    for key, label, fmt in (
        ("sales", "Sales", lambda v: f"${format_number(v)}"),
        ("users", "Users", format_number),
        ("sessionDuration", "Avg. Session Duration", lambda v: f"{format_number(v)} seconds"),
        ("bounceRate", "Bounce Rate", lambda v: f"{format_number(v)}%"),
    ):
        if to_number(metrics.get(key)):
            lines.append(f"- {label}: {fmt(metrics.get(key))}")
    return lines or ["- No non-zero metrics recorded"]


def build_monthly_prompt(data: Dict[str, Any]) -> str:
    website = _as_dict(data.get("website"))
    period = _as_dict(data.get("time"))
    metrics = _as_dict(data.get("metrics"))

    current = _as_dict(metrics.get("currentMonth"))
    previous = _as_dict(metrics.get("previousMonth"))
    last_year = _as_dict(metrics.get("sameMonthLastYear"))
    months = _as_list(metrics.get("allMonthsThisYear"))

    vs_last_month = compare_periods(current, previous)
    vs_last_year = compare_periods(current, last_year)
    ytd = year_to_date(months)
    trend = [{"month": m.get("month"), "sales": to_number(m.get("sales"))} for m in months]

    name = website.get("name") or "the website"
    month_name = month_name_for(period)
    year = period.get("year") or ""

    return f"""
You are an expert eCommerce analyst. Generate a comprehensive performance report for {name} (ID: {website.get("id", "unknown")}) for {month_name} {year}.

CURRENT MONTH METRICS:
{chr(10).join(_metric_lines(current))}

COMPARISON WITH PREVIOUS MONTH:
- Sales: {vs_last_month["salesPercent"]}% ({format_delta(vs_last_month["sales"], currency=True)})
- Users: {vs_last_month["usersPercent"]}% ({format_delta(vs_last_month["users"])})

COMPARISON WITH SAME MONTH LAST YEAR:
- Sales: {vs_last_year["salesPercent"]}% ({format_delta(vs_last_year["sales"], currency=True)})
- Users: {vs_last_year["usersPercent"]}% ({format_delta(vs_last_year["users"])})

YEAR-TO-DATE CONTEXT:
- Total Sales: ${format_number(ytd["sales"])}
- Total Users: {format_number(ytd["users"])}
- Monthly Sales Trend: {json.dumps(trend)}

Based on this data, please generate a detailed monthly performance report that includes:
1. An executive summary (2-3 sentences)
2. Key performance highlights
3. Areas of concern
4. Month-over-month analysis
5. Year-over-year comparison
6. Position within the yearly context
7. 3-5 actionable recommendations based on the data

Format your response as a JSON object with the following structure:
{_schema(f"Monthly Performance Report - {name} - {month_name} {year}", MONTHLY_SECTIONS)}

{CLOSING_INSTRUCTIONS.format(focus="Include both achievements and areas of concern. Keep each section concise but informative.")}
"""


def build_comparison_prompt(data: Dict[str, Any]) -> str:
    websites = _as_list(data.get("websites"))
    if not websites:
        raise ValueError("Comparison report requires at least one website")

    totals = []
    for site in websites:
        metrics = _as_dict(site.get("metrics"))
        totals.append((site, _as_dict(metrics.get("currentMonth")),
                       year_to_date(_as_list(metrics.get("allMonthsThisYear")))))
    total_sales = sum(ytd["sales"] for _, _, ytd in totals)

    blocks = []
    for site, current, ytd in totals:
        share = f"{ytd['sales'] / total_sales * 100:.2f}%" if total_sales else NOT_AVAILABLE
        blocks.append(f"""WEBSITE: {site.get("name", "Unnamed website")} (ID: {site.get("id", "unknown")})
- Current Month Sales: ${format_number(current.get("sales"))}
- Current Month Users: {format_number(current.get("users"))}
- Year-to-Date Sales: ${format_number(ytd["sales"])}
- Year-to-Date Users: {format_number(ytd["users"])}
- Share of Year-to-Date Sales: {share}""")

    period = _as_dict(websites[0].get("time"))
    month_name = month_name_for(period)
    year = period.get("year") or ""

    return f"""
You are an expert eCommerce analyst. Generate a comprehensive comparison report for {len(websites)} websites for {month_name} {year}.

{(chr(10) * 2).join(blocks)}

Based on this data, please generate a detailed comparison report that includes:
1. An executive summary comparing all websites (2-3 sentences)
2. Performance ranking section (ranking websites by sales and growth)
3. Strengths and weaknesses of each website
4. Market share analysis (percentage of total sales for each website)
5. 3-5 actionable recommendations to improve overall performance across all websites

Format your response as a JSON object with the following structure:
{_schema(f"Website Comparison Report - {month_name} {year}", COMPARISON_SECTIONS)}

{CLOSING_INSTRUCTIONS.format(focus="Compare and contrast the websites in a meaningful way to extract actionable insights.")}
"""


def build_prompt(report_type: str, data: Dict[str, Any]) -> str:
    """Pick the prompt for ``report_type``; unknown types are rejected here, not at intake."""
    if report_type == ReportType.MONTHLY.value:
        return build_monthly_prompt(data)
    if report_type == ReportType.COMPARISON.value:
        return build_comparison_prompt(data)
    raise ValueError("Invalid report type")
