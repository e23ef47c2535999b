import pytest
import requests
from unittest.mock import MagicMock
from kpi_reports.poller import BackoffPolicy, LastReportStore, ReportPoller, STILL_PROCESSING_MESSAGE

def status_response(status, **extra):
    response = MagicMock()
    response.raise_for_status.return_value = None
    response.json.return_value = {"reportId": "r1", "status": status, **extra}
    return response

@pytest.mark.unit
class TestBackoffPolicy:
    def test_default_schedule(self):
        policy = BackoffPolicy()
        assert [policy.interval_for(n) for n in (1, 4, 5, 9, 10, 14, 15, 100)] == [2, 2, 5, 5, 10, 10, 30, 30]
        assert policy.max_polls == 120

    def test_exponential(self):
        policy = BackoffPolicy.exponential(initial_interval=1, multiplier=3, cap=10, max_polls=20, step=2)
        assert policy.thresholds == {2: 3, 4: 9, 6: 10}
        assert policy.interval_for(7) == 10
        assert policy.max_polls == 20

    @pytest.mark.parametrize("initial,multiplier,step", [
        (2, 1.0, 5),
        (2, 0.5, 5),
        (0, 2.0, 5),
        (-1, 2.0, 5),
        (2, 2.0, 0),
    ])
    def test_exponential_rejects_non_growing_schedules(self, initial, multiplier, step):
        with pytest.raises(ValueError):
            BackoffPolicy.exponential(initial_interval=initial, multiplier=multiplier, cap=30, step=step)

    def test_exponential_initial_at_cap(self):
        policy = BackoffPolicy.exponential(initial_interval=30, multiplier=2, cap=30)
        assert policy.thresholds == {}
        assert policy.interval_for(50) == 30

@pytest.mark.unit
class TestReportPoller:
    @pytest.fixture
    def sleeps(self):
        return []

    @pytest.fixture
    def session(self):
        session = MagicMock()
        session.headers = {}
        return session

    @pytest.fixture
    def last_report(self, tmp_path):
        return LastReportStore(tmp_path / "last_report.json")

    @pytest.fixture
    def poller(self, session, sleeps, last_report):
        return ReportPoller("http://reports.test/", "tok", session=session,
                            sleep=sleeps.append, last_report=last_report)

    def test_sets_bearer_header(self, poller, session):
        assert session.headers["Authorization"] == "Bearer tok"

    def test_polls_until_completed(self, poller, session, sleeps):
        session.get.side_effect = [status_response("pending")] * 6 + [
            status_response("completed", result={"title": "Done"})
        ]
        outcome = poller.poll("r1")
        assert outcome.state == "completed"
        assert outcome.result == {"title": "Done"}
        assert outcome.polls == 7
        assert sleeps == [2, 2, 2, 2, 5, 5]
        session.get.assert_called_with("http://reports.test/api/report-status",
                                       params={"reportId": "r1"}, timeout=30.0)

    def test_failed_stops_immediately(self, poller, session, sleeps):
        session.get.return_value = status_response("failed", error="OpenAI API error: quota")
        outcome = poller.poll("r1")
        assert outcome.state == "failed"
        assert outcome.error == "OpenAI API error: quota"
        assert sleeps == []

    def test_gives_up_after_max_polls(self, session, sleeps):
        poller = ReportPoller("http://reports.test", "tok", policy=BackoffPolicy(max_polls=20),
                              session=session, sleep=sleeps.append)
        session.get.return_value = status_response("processing")
        outcome = poller.poll("r1")
        assert outcome.state == "timed_out"
        assert outcome.error == STILL_PROCESSING_MESSAGE
        assert outcome.polls == 20
        assert len(sleeps) == 19
        assert not outcome.done

    def test_transport_error_stops_polling(self, poller, session, sleeps):
        session.get.side_effect = [status_response("pending"), requests.ConnectionError("down")]
        outcome = poller.poll("r1")
        assert outcome.state == "error"
        assert outcome.polls == 2
        assert session.get.call_count == 2

    def test_http_error_stops_polling(self, poller, session):
        response = MagicMock()
        response.raise_for_status.side_effect = requests.HTTPError("404")
        session.get.return_value = response
        assert poller.poll("r1").state == "error"

    def test_submit_remembers_report_and_resume_clears_it(self, poller, session, last_report):
        submitted = MagicMock()
        submitted.json.return_value = {"reportId": "r1", "status": "pending"}
        session.post.return_value = submitted
        session.get.return_value = status_response("completed", result={"title": "Done"})

        assert poller.submit("monthly", {"website": {}}, "alice") == "r1"
        session.post.assert_called_with("http://reports.test/api/report-request",
                                        json={"type": "monthly", "data": {"website": {}}, "userId": "alice"},
                                        timeout=30.0)
        assert last_report.load() == "r1"

        outcome = poller.resume()
        assert outcome.state == "completed"
        assert last_report.load() is None
        assert poller.resume() is None

    def test_timed_out_keeps_reference(self, session, last_report):
        poller = ReportPoller("http://reports.test", "tok", policy=BackoffPolicy(max_polls=2),
                              session=session, sleep=lambda s: None, last_report=last_report)
        last_report.save("r1")
        session.get.return_value = status_response("pending")
        assert poller.resume().state == "timed_out"
        assert last_report.load() == "r1"

@pytest.mark.unit
def test_last_report_store_ignores_garbage(tmp_path):
    path = tmp_path / "last.json"
    path.write_text("not json")
    assert LastReportStore(path).load() is None
