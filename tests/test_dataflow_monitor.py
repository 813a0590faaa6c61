"""
Tests for the Dataflow API adapter
"""
import pytest
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

from google.api_core import exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud import dataflow_v1beta3

from dataflow_worker_count.dataflow_monitor import DataflowMonitor, translate_error
from dataflow_worker_count.errors import (
    ApiError, AuthenticationError, NotFoundError,
)
from dataflow_worker_count.event_reducer import AutoscalingEvent, reduce_autoscaling_events


def proto_event(seconds, current=0, target=0):
    return dataflow_v1beta3.AutoscalingEvent(
        time=datetime.fromtimestamp(seconds, tz=timezone.utc),
        current_num_workers=current,
        target_num_workers=target,
    )


def page(*events):
    return SimpleNamespace(autoscaling_events=list(events))


@pytest.fixture
def clients():
    with patch("dataflow_worker_count.dataflow_monitor.dataflow_v1beta3.JobsV1Beta3Client") as jobs, \
         patch("dataflow_worker_count.dataflow_monitor.dataflow_v1beta3.MessagesV1Beta3Client") as messages:
        yield jobs.return_value, messages.return_value


@pytest.fixture
def monitor(clients):
    return DataflowMonitor("my-project", "us-central1", "job-1")


class TestJobStatus:

    def test_get_job_status(self, monitor, clients):
        jobs, _ = clients
        jobs.get_job.return_value = SimpleNamespace(
            current_state=dataflow_v1beta3.JobState.JOB_STATE_RUNNING
        )

        assert monitor.get_job_status() == "JOB_STATE_RUNNING"

        request = jobs.get_job.call_args.kwargs["request"]
        assert request.project_id == "my-project"
        assert request.location == "us-central1"
        assert request.job_id == "job-1"

    def test_job_not_found(self, monitor, clients):
        jobs, _ = clients
        jobs.get_job.side_effect = exceptions.NotFound("job missing")

        with pytest.raises(NotFoundError, match="job missing"):
            monitor.get_job_status()

    def test_unknown_job_state_number(self, monitor, clients):
        jobs, _ = clients
        jobs.get_job.return_value = SimpleNamespace(current_state=99)

        assert monitor.get_job_status() == "99"

    def test_permission_denied(self, monitor, clients):
        jobs, _ = clients
        jobs.get_job.side_effect = exceptions.PermissionDenied("nope")

        with pytest.raises(AuthenticationError):
            monitor.get_job_status()


class TestAutoscalingEvents:

    def test_events_across_pages(self, monitor, clients):
        _, messages = clients
        messages.list_job_messages.return_value = SimpleNamespace(pages=iter([
            page(proto_event(10, current=4), proto_event(20, current=6)),
            page(),
            page(proto_event(15, current=9, target=11)),
        ]))

        start = datetime(2024, 1, 1, tzinfo=timezone.utc)
        events = list(monitor.iter_autoscaling_events(start))

        assert events == [
            AutoscalingEvent(time_ns=10 * 10**9, current_num_workers=4),
            AutoscalingEvent(time_ns=20 * 10**9, current_num_workers=6),
            AutoscalingEvent(time_ns=15 * 10**9, current_num_workers=9, target_num_workers=11),
        ]

        request = messages.list_job_messages.call_args.kwargs["request"]
        assert request.minimum_importance == dataflow_v1beta3.JobMessageImportance.JOB_MESSAGE_BASIC
        assert request.page_size == 100
        assert request.job_id == "job-1"

    def test_result_from_paged_events(self, monitor, clients):
        _, messages = clients
        messages.list_job_messages.return_value = SimpleNamespace(pages=iter([
            page(proto_event(10, current=4), proto_event(20, current=6)),
            page(proto_event(15, current=9), proto_event(12, target=8)),
        ]))

        result = reduce_autoscaling_events(
            monitor.iter_autoscaling_events(datetime.now(timezone.utc))
        )

        assert result.latest_current_workers == 6
        assert result.latest_target_workers == 8
        assert result.desired_workers == 8

    def test_error_mid_stream(self, monitor, clients):
        _, messages = clients

        def pages():
            yield page(proto_event(10, current=4))
            raise exceptions.ServiceUnavailable("backend down")

        messages.list_job_messages.return_value = SimpleNamespace(pages=pages())

        received = []
        with pytest.raises(ApiError, match="backend down"):
            for event in monitor.iter_autoscaling_events(datetime.now(timezone.utc)):
                received.append(event)

        assert len(received) == 1


class TestClientSetup:

    def test_missing_credentials_file(self, tmp_path):
        with pytest.raises(AuthenticationError, match="not found"):
            DataflowMonitor("p", "l", "j", credentials_path=str(tmp_path / "missing.json"))

    def test_service_account_credentials(self, clients, tmp_path):
        key = tmp_path / "key.json"
        key.write_text("{}")
        creds = MagicMock()
        with patch("dataflow_worker_count.dataflow_monitor.service_account.Credentials"
                   ".from_service_account_file", return_value=creds) as loader:
            DataflowMonitor("p", "l", "j", credentials_path=str(key))

        loader.assert_called_once_with(str(key))

    def test_no_default_credentials(self):
        with patch("dataflow_worker_count.dataflow_monitor.dataflow_v1beta3.JobsV1Beta3Client",
                   side_effect=auth_exceptions.DefaultCredentialsError("no ADC")):
            with pytest.raises(AuthenticationError, match="no ADC"):
                DataflowMonitor("p", "l", "j")

    def test_jobs_client_closed_when_messages_client_fails(self):
        with patch("dataflow_worker_count.dataflow_monitor.dataflow_v1beta3.JobsV1Beta3Client") as jobs, \
             patch("dataflow_worker_count.dataflow_monitor.dataflow_v1beta3.MessagesV1Beta3Client",
                   side_effect=auth_exceptions.DefaultCredentialsError("no ADC")):
            with pytest.raises(AuthenticationError):
                DataflowMonitor("p", "l", "j")

        jobs.return_value.transport.close.assert_called_once()

    def test_context_manager_closes_transports(self, clients):
        jobs, messages = clients
        with DataflowMonitor("p", "l", "j"):
            pass

        jobs.transport.close.assert_called_once()
        messages.transport.close.assert_called_once()


class TestTranslateError:

    @pytest.mark.parametrize("exc,kind", [
        (exceptions.NotFound("x"), NotFoundError),
        (exceptions.Unauthenticated("x"), AuthenticationError),
        (auth_exceptions.RefreshError("x"), AuthenticationError),
        (exceptions.InternalServerError("x"), ApiError),
        (exceptions.RetryError("x", cause=None), ApiError),
        (ConnectionError("x"), ApiError),
    ])
    def test_mapping(self, exc, kind):
        assert isinstance(translate_error(exc, "testing"), kind)

    def test_own_errors_pass_through(self):
        err = NotFoundError("already mapped")
        assert translate_error(err, "testing") is err
