import os
import sys
import time
from pathlib import Path
import requests

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.append(str(project_root))

BASE_URL = os.getenv("KPI_REPORTS_URL", "http://localhost:8000")

def trigger(token: str) -> dict:
    response = requests.post(
        f"{BASE_URL}/api/report-processor-trigger",
        headers={"Authorization": f"Bearer {token}"},
        timeout=300,
    )
    response.raise_for_status()
    return response.json()

def main():
    if len(sys.argv) < 2:
        print("Usage: python trigger_processor.py <token> [interval_seconds]")
        sys.exit(1)

    token = sys.argv[1]
    interval = float(sys.argv[2]) if len(sys.argv) > 2 else 0

    # Without an interval, run a single pass (e.g. from cron)
    while True:
        result = trigger(token)
        print("Processor result:", result["processorResult"])
        if interval <= 0:
            break
        time.sleep(interval)

if __name__ == "__main__":
    main()
