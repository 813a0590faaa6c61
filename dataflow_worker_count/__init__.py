from dataflow_worker_count.event_reducer import (
    AutoscalingEvent, DesiredWorkerResult, clamp_workers, reduce_autoscaling_events,
)

__version__ = "0.1.0"
