"""
Report the latest desired worker count of a Dataflow job.

Example:
    dataflow-worker-count --project_id=my-project --location=us-central1 \\
        --job_id=my-job --time_delta_minutes=10 --min_worker=1 --max_worker=1000 \\
        --fetch_job_status=true --verbose=false
"""

import argparse
import os
import sys

from dataflow_worker_count.config import (
    DEFAULT_TIME_DELTA_MINUTES, DEFAULT_MIN_WORKER, DEFAULT_MAX_WORKER,
    DEFAULT_FETCH_JOB_STATUS, DEFAULT_CHECK_TARGET_WORKERS, DEFAULT_VERBOSE,
    PROJECT_ENV_VAR, CREDENTIALS_ENV_VAR, JOB_STATUS_UNKNOWN,
)
from dataflow_worker_count.dataflow_monitor import DataflowMonitor
from dataflow_worker_count.errors import NoDataError, ValidationError, WorkerCountError
from dataflow_worker_count.event_reducer import reduce_autoscaling_events
from dataflow_worker_count.utils.output import fail
from dataflow_worker_count.utils.timeutil import lookback_start

PREREQUISITES = f"""
Prerequisites:
  - Authentication: Ensure you are authenticated.
    e.g., 'gcloud auth application-default login' or set {CREDENTIALS_ENV_VAR}.
"""

_TRUE = {"1", "t", "true", "y", "yes", "on"}
_FALSE = {"0", "f", "false", "n", "no", "off"}


def parse_bool(value):
    v = str(value).strip().lower()
    if v in _TRUE:
        return True
    if v in _FALSE:
        return False
    raise argparse.ArgumentTypeError(f"invalid boolean value: '{value}'")


class _Parser(argparse.ArgumentParser):
    def error(self, message):
        raise ValidationError(message)


def build_parser():
    p = _Parser(
        prog="dataflow-worker-count",
        description="Retrieves the latest Dataflow job worker counts within a specified time window.",
        epilog=PREREQUISITES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    p.add_argument("--project_id", default=os.environ.get(PROJECT_ENV_VAR, ""),
                   help=f"Your Google Cloud project ID. (required, defaults to ${PROJECT_ENV_VAR})")
    p.add_argument("--location", default="",
                   help="The regional endpoint where the job is running (e.g., 'us-central1'). (required)")
    p.add_argument("--job_id", default="", help="The ID of the Dataflow job. (required)")
    p.add_argument("--time_delta_minutes", type=int, default=DEFAULT_TIME_DELTA_MINUTES,
                   help="Optional: The duration in minutes to look back for events.")
    p.add_argument("--credentials_path", default="",
                   help="Optional: Path to your service account JSON key file. "
                        "If not provided, default application credentials will be used.")
    p.add_argument("--min_worker", type=int, default=DEFAULT_MIN_WORKER,
                   help="Optional: Minimum number of workers to cap the desired workers.")
    p.add_argument("--max_worker", type=int, default=DEFAULT_MAX_WORKER,
                   help="Optional: Maximum number of workers to cap the desired workers.")

    bool_flags = (
        ("--fetch_job_status", DEFAULT_FETCH_JOB_STATUS,
         "Optional: Fetch the job's current status."),
        ("--check_target_workers", DEFAULT_CHECK_TARGET_WORKERS,
         "Optional: Whether to consider target workers when determining desired workers, "
         "useful if the upscale event has not been actuated yet."),
        ("--verbose", DEFAULT_VERBOSE,
         "Optional: If false, only prints the desired worker count."),
    )
    for flag, default, text in bool_flags:
        p.add_argument(flag, type=parse_bool, nargs="?", const=True, default=default,
                       metavar="BOOL", help=f"{text} (default: {str(default).lower()})")
    return p


def validate_args(args):
    if not args.project_id or not args.location or not args.job_id:
        raise ValidationError("--project_id, --location, and --job_id are required.")
    if args.min_worker < 0:
        raise ValidationError(f"--min_worker ({args.min_worker}) cannot be negative.")
    if args.max_worker < 0:
        raise ValidationError(f"--max_worker ({args.max_worker}) cannot be negative.")
    if args.min_worker > 0 and args.max_worker > 0 and args.min_worker > args.max_worker:
        raise ValidationError(
            f"--min_worker ({args.min_worker}) cannot be greater than --max_worker ({args.max_worker})."
        )
    if args.time_delta_minutes < 0:
        raise ValidationError(f"--time_delta_minutes ({args.time_delta_minutes}) cannot be negative.")
    if args.credentials_path and not os.path.isfile(args.credentials_path):
        raise ValidationError(f"Service account key file not found at '{args.credentials_path}'.")


def no_data_message(result, minutes):
    if result.events_seen == 0:
        return f"No autoscaling events found in the last {minutes} minute(s)."
    return (
        f"{result.events_seen} autoscaling event(s) found in the last {minutes} minute(s), "
        "but none carried a non-zero current or target worker count."
    )


def format_report(result, args):
    lines = ["", "--- Results ---"]
    if args.fetch_job_status:
        lines.append(f"Job Status: {result.job_status or JOB_STATUS_UNKNOWN}")
    lines.append(f"Latest Current Workers: {result.latest_current_workers}")
    if args.check_target_workers:
        lines.append(f"Latest Target Workers: {result.latest_target_workers}")
    lines.append(f"Min Workers: {args.min_worker}")
    lines.append(f"Max Workers: {args.max_worker}")
    lines.append(f"Latest Desired Workers: {result.desired_workers}")
    lines.append("----------------")
    return "\n".join(lines)


def run(args, monitor_factory=DataflowMonitor):
    validate_args(args)

    with monitor_factory(
        args.project_id, args.location, args.job_id,
        credentials_path=args.credentials_path or None,
    ) as monitor:
        job_status = None
        if args.fetch_job_status:
            if args.verbose:
                print("Fetching job status...", flush=True)
            job_status = monitor.get_job_status()

        start_time = lookback_start(args.time_delta_minutes)
        if args.verbose:
            print(
                f"Fetching worker counts for job '{args.job_id}' in project '{args.project_id}' "
                f"at location '{args.location}', looking back {args.time_delta_minutes} minute(s)...",
                flush=True,
            )

        result = reduce_autoscaling_events(
            monitor.iter_autoscaling_events(start_time),
            consider_target=args.check_target_workers,
            min_worker=args.min_worker,
            max_worker=args.max_worker,
            job_status=job_status,
        )

    if not result.has_desired:
        raise NoDataError(
            "Could not determine desired worker count. "
            + no_data_message(result, args.time_delta_minutes)
        )
    return result


def main(argv=None, monitor_factory=DataflowMonitor):
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
        result = run(args, monitor_factory=monitor_factory)
    except ValidationError as e:
        parser.print_usage(sys.stderr)
        fail(str(e), e.exit_code)
    except WorkerCountError as e:
        fail(str(e), e.exit_code)

    if args.verbose:
        print(format_report(result, args), flush=True)
    else:
        print(result.desired_workers, flush=True)
    return 0


if __name__ == "__main__":
    sys.exit(main())
