from dataclasses import dataclass
from typing import Any, Iterable, Optional

from dataflow_worker_count.utils.timeutil import to_timestamp_ns


def _field(raw, *names):
    if isinstance(raw, dict):
        for name in names:
            if raw.get(name) is not None:
                return raw[name]
        return None
    for name in names:
        value = getattr(raw, name, None)
        if value is not None:
            return value
    return None


def _count(value):
    # int64 fields come back as strings in REST/JSON payloads
    if value is None or value == "":
        return 0
    return int(value)


@dataclass(frozen=True)
class AutoscalingEvent:
    time_ns: int = 0
    current_num_workers: int = 0
    target_num_workers: int = 0

    @classmethod
    def from_message(cls, raw: Any) -> "AutoscalingEvent":
        """Normalize a proto-plus message, a REST dict or an AutoscalingEvent."""
        if isinstance(raw, cls):
            return raw
        if isinstance(raw, dict) and "time_ns" in raw:
            time_ns = int(raw["time_ns"])
        else:
            time_ns = to_timestamp_ns(_field(raw, "time"))
        return cls(
            time_ns=time_ns,
            current_num_workers=_count(_field(raw, "current_num_workers", "currentNumWorkers")),
            target_num_workers=_count(_field(raw, "target_num_workers", "targetNumWorkers")),
        )


@dataclass(frozen=True)
class DesiredWorkerResult:
    latest_current_workers: int = 0
    latest_target_workers: int = 0
    desired_workers: int = 0
    has_desired: bool = False
    job_status: Optional[str] = None
    events_seen: int = 0


def clamp_workers(value: int, min_worker: int = 0, max_worker: int = 0) -> int:
    # a bound of 0 means "no constraint", not a literal limit of zero
    if min_worker and min_worker > 0 and value < min_worker:
        value = min_worker
    if max_worker and max_worker > 0 and value > max_worker:
        value = max_worker
    return value


def reduce_autoscaling_events(
    events: Iterable[Any],
    consider_target: bool = True,
    min_worker: int = 0,
    max_worker: int = 0,
    job_status: Optional[str] = None,
) -> DesiredWorkerResult:
    """Fold an autoscaling event stream into a desired worker count.

    The latest non-zero current and target counts are tracked independently,
    since they usually arrive in different messages. Events are taken in
    delivery order; an event replaces the incumbent only if its time is
    strictly later, so on equal timestamps the first one seen stays.

    A zero count is treated as absent, which makes a scale-to-zero event
    invisible here. Errors raised by the stream propagate unchanged.
    """
    latest_current: Optional[AutoscalingEvent] = None
    latest_target: Optional[AutoscalingEvent] = None
    seen = 0

    for raw in events:
        seen += 1
        event = AutoscalingEvent.from_message(raw)

        if event.current_num_workers > 0 and (
            latest_current is None or event.time_ns > latest_current.time_ns
        ):
            latest_current = event

        if consider_target and event.target_num_workers > 0 and (
            latest_target is None or event.time_ns > latest_target.time_ns
        ):
            latest_target = event

    if latest_current is None and latest_target is None:
        return DesiredWorkerResult(job_status=job_status, events_seen=seen)

    current = latest_current.current_num_workers if latest_current else 0
    target = latest_target.target_num_workers if latest_target else 0

    if latest_current is not None:
        desired = current
        if latest_target is not None and target > desired:
            desired = target
    else:
        desired = target

    return DesiredWorkerResult(
        latest_current_workers=current,
        latest_target_workers=target,
        desired_workers=clamp_workers(desired, min_worker, max_worker),
        has_desired=True,
        job_status=job_status,
        events_seen=seen,
    )
