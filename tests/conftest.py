import os
import sys
import json
import pytest
from rich.console import Console
from rich.live import Live
from rich.table import Table
from datetime import datetime, timedelta, timezone
import time
from fastapi.testclient import TestClient

# Add the project root directory to Python path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from kpi_reports.config import Settings
from kpi_reports.context import build_context
from kpi_reports.document_store import InMemoryDocumentStore
from kpi_reports.errors import ProviderFailure

AUTH_HEADERS = {"Authorization": "Bearer test-token"}

@pytest.fixture(autouse=True)
def test_timer():
    start_time = time.time()
    yield
    duration = time.time() - start_time
    return duration

def pytest_configure(config):
    """Add custom markers"""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "e2e: End-to-end tests")
    config.addinivalue_line("markers", "api: API tests")

class TestProgress:
    __test__ = False

    def __init__(self):
        self.console = Console()
        self.stats = {
            category: {"total": 0, "passed": 0, "failed": 0, "duration": 0.0}
            for category in ("unit", "integration", "e2e", "api")
        }
        self.live = None

    def build_table(self) -> Table:
        table = Table(show_header=True, header_style="bold magenta")
        for column in ("Category", "Total", "Passed", "Failed", "Duration"):
            table.add_column(column)
        for category, stats in self.stats.items():
            table.add_row(
                category,
                str(stats["total"]),
                f"[green]{stats['passed']}[/]",
                f"[red]{stats['failed']}[/]",
                f"{stats['duration']:.2f}s"
            )
        return table

    def start(self):
        """Start the live display"""
        try:
            self.live = Live(self.build_table(), console=self.console, refresh_per_second=4)
            self.live.start()
        except Exception:
            self.live = None

    def stop(self):
        """Stop the live display"""
        if self.live:
            try:
                self.live.update(self.build_table())
                self.live.stop()
            except Exception:
                pass
            finally:
                self.live = None

    def update_stats(self, category, passed, duration):
        """Update test statistics"""
        if category not in self.stats:
            return
        self.stats[category]["total"] += 1
        self.stats[category]["passed" if passed else "failed"] += 1
        self.stats[category]["duration"] += duration
        if self.live:
            try:
                self.live.update(self.build_table())
            except Exception:
                pass

test_progress = TestProgress()

@pytest.fixture(scope="session", autouse=True)
def progress_tracker():
    test_progress.start()
    yield test_progress
    test_progress.stop()

def pytest_runtest_logreport(report):
    """Update progress after each test"""
    if report.when == "call":
        category = next(
            (name for name in ("integration", "e2e", "api") if f"tests/{name}/" in report.nodeid),
            "unit"
        )
        test_progress.update_stats(category, report.passed, report.duration)

class FakeClock:
    """Advances one second per reading so store timestamps are strictly ordered."""

    def __init__(self, start: datetime = None):
        self.now = start or datetime(2024, 4, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now

class FakeProvider:
    """Stands in for CompletionProvider; answers from a queue of responses.

    A response may be a string (returned) or an exception (raised). When the
    queue is empty the default response is used.
    """

    def __init__(self, default: str = None):
        self.default = default
        self.responses = []
        self.prompts = []

    def queue(self, *responses):
        self.responses.extend(responses)

    def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        response = self.responses.pop(0) if self.responses else self.default
        if isinstance(response, Exception):
            raise response
        if response is None:
            raise ProviderFailure("OpenAI API error: no response configured")
        return response

def monthly_payload(name="Acme", website_id="w1"):
    return {
        "website": {"id": website_id, "name": name},
        "time": {"year": 2024, "month": 3, "currentMonthName": "March"},
        "metrics": {
            "currentMonth": {"sales": 1000, "users": 50},
            "previousMonth": {"sales": 800, "users": 40},
            "sameMonthLastYear": {"sales": 500, "users": 20},
            "allMonthsThisYear": [
                {"month": 1, "sales": 700, "users": 30},
                {"month": 2, "sales": 800, "users": 40},
                {"month": 3, "sales": 1000, "users": 50},
            ],
        },
    }

def comparison_payload():
    march = {"year": 2024, "month": 3, "currentMonthName": "March"}
    return {
        "websites": [
            {"id": "w1", "name": "Acme", "time": march, "metrics": {
                "currentMonth": {"sales": 1000, "users": 50},
                "allMonthsThisYear": [{"month": 1, "sales": 1500, "users": 60}, {"month": 2, "sales": 1500, "users": 40}],
            }},
            {"id": "w2", "name": "Globex", "time": march, "metrics": {
                "currentMonth": {"sales": 500},
                "allMonthsThisYear": [{"month": 1, "sales": 1000}],
            }},
        ]
    }

def report_json(title="Monthly Performance Report - Acme - March 2024"):
    return json.dumps({
        "title": title,
        "summary": "Sales grew 25% month over month.",
        "sections": [
            {"title": "Key Performance Highlights", "content": "Sales reached $1,000."},
            {"title": "Month-over-Month Analysis", "content": "Users grew by 10."},
        ],
        "recommendations": ["Invest in retention", "Expand paid search", "Test bundles"],
    })

@pytest.fixture
def clock():
    return FakeClock()

@pytest.fixture
def store(clock):
    return InMemoryDocumentStore(clock=clock)

@pytest.fixture
def provider():
    return FakeProvider(default=report_json())

@pytest.fixture
def settings():
    return Settings(OPENAI_API_KEY=None, PROCESSOR_INTERVAL_SECONDS=0, LOG_FILE_PATH=None)

@pytest.fixture
def context(settings, store, provider):
    return build_context(settings, store=store, provider=provider)

@pytest.fixture
def client(context):
    from kpi_reports.main import create_app
    return TestClient(create_app(context))
