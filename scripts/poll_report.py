import json
import os
import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.append(str(project_root))

from kpi_reports.core.logging import configure_logging
from kpi_reports.poller import BackoffPolicy, LastReportStore, ReportPoller

BASE_URL = os.getenv("KPI_REPORTS_URL", "http://localhost:8000")

def main():
    if len(sys.argv) < 2:
        print("Usage: python poll_report.py <token> [type data.json [userId]]")
        print("       with only a token, resumes the last submitted report")
        sys.exit(1)

    configure_logging()
    token = sys.argv[1]
    max_polls = int(os.getenv("KPI_REPORTS_MAX_POLLS", "120"))
    poller = ReportPoller(BASE_URL, token, policy=BackoffPolicy(max_polls=max_polls),
                          last_report=LastReportStore())

    if len(sys.argv) >= 4:
        data = json.loads(Path(sys.argv[3]).read_text())
        user_id = sys.argv[4] if len(sys.argv) > 4 else None
        outcome = poller.submit_and_poll(sys.argv[2], data, user_id)
    else:
        outcome = poller.resume()
        if outcome is None:
            print("No report to resume.")
            return

    print("Final report state:", outcome.state)
    if outcome.result:
        print(json.dumps(outcome.result, indent=2))
    elif outcome.error:
        print(outcome.error)

if __name__ == "__main__":
    main()
