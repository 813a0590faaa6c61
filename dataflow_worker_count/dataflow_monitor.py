import os

from google.api_core import exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud import dataflow_v1beta3
from google.oauth2 import service_account

from dataflow_worker_count.config import MINIMUM_IMPORTANCE, PAGE_SIZE
from dataflow_worker_count.errors import (
    ApiError, AuthenticationError, NotFoundError, WorkerCountError,
)
from dataflow_worker_count.event_reducer import AutoscalingEvent


def translate_error(e, action):
    """Map a Google client library exception onto the tool's error kinds."""
    if isinstance(e, WorkerCountError):
        return e
    if isinstance(e, exceptions.NotFound):
        return NotFoundError(f"API Error {action}: {e.message}")
    if isinstance(e, (exceptions.PermissionDenied, exceptions.Unauthenticated)):
        return AuthenticationError(f"API Error {action}: {e.message}")
    if isinstance(e, (auth_exceptions.DefaultCredentialsError, auth_exceptions.RefreshError)):
        return AuthenticationError(f"Authentication failed {action}: {e}")
    if isinstance(e, exceptions.GoogleAPICallError):
        return ApiError(f"API Error {action}: {e.message}")
    return ApiError(f"API Error {action}: {e}")


def load_credentials(credentials_path=None):
    if not credentials_path:
        return None  # application-default credentials
    if not os.path.isfile(credentials_path):
        raise AuthenticationError(
            f"Service account key file not found at '{credentials_path}'."
        )
    try:
        return service_account.Credentials.from_service_account_file(credentials_path)
    except (ValueError, auth_exceptions.GoogleAuthError) as e:
        raise AuthenticationError(
            f"Failed to load service account key '{credentials_path}': {e}"
        ) from e


class DataflowMonitor:
    def __init__(self, project_id, location, job_id, credentials_path=None):
        self.project_id = project_id
        self.location = location
        self.job_id = job_id

        credentials = load_credentials(credentials_path)
        try:
            self.jobs_client = dataflow_v1beta3.JobsV1Beta3Client(credentials=credentials)
        except Exception as e:
            raise translate_error(e, "creating Dataflow clients") from e
        try:
            self.messages_client = dataflow_v1beta3.MessagesV1Beta3Client(credentials=credentials)
        except Exception as e:
            self.jobs_client.transport.close()
            raise translate_error(e, "creating Dataflow clients") from e

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False

    def close(self):
        for c in (self.jobs_client, self.messages_client):
            c.transport.close()

    def get_job_status(self):
        request = dataflow_v1beta3.GetJobRequest(
            project_id=self.project_id,
            location=self.location,
            job_id=self.job_id,
        )
        try:
            job = self.jobs_client.get_job(request=request)
        except Exception as e:
            raise translate_error(e, "fetching job details") from e
        try:
            return dataflow_v1beta3.JobState(job.current_state).name
        except ValueError:
            # state added to the API after this client library was released
            return str(int(job.current_state))

    def iter_autoscaling_events(self, start_time):
        """Yield every autoscaling event since start_time, one page at a time."""
        request = dataflow_v1beta3.ListJobMessagesRequest(
            project_id=self.project_id,
            location=self.location,
            job_id=self.job_id,
            minimum_importance=dataflow_v1beta3.JobMessageImportance[MINIMUM_IMPORTANCE],
            start_time=start_time,
            page_size=PAGE_SIZE,
        )
        try:
            pager = self.messages_client.list_job_messages(request=request)
            for page in pager.pages:
                for event in page.autoscaling_events:
                    yield AutoscalingEvent.from_message(event)
        except Exception as e:
            raise translate_error(e, "fetching job messages") from e
