import os

# Lookback window
DEFAULT_TIME_DELTA_MINUTES = 0

# Message listing
MINIMUM_IMPORTANCE = "JOB_MESSAGE_BASIC"
PAGE_SIZE = int(os.environ.get("DATAFLOW_PAGE_SIZE", "100"))

# Flag defaults
DEFAULT_MIN_WORKER = 0       # 0 = no lower bound
DEFAULT_MAX_WORKER = 0       # 0 = no upper bound
DEFAULT_FETCH_JOB_STATUS = False
DEFAULT_CHECK_TARGET_WORKERS = True
DEFAULT_VERBOSE = True

# Environment
PROJECT_ENV_VAR = "GCP_PROJECT"
CREDENTIALS_ENV_VAR = "GOOGLE_APPLICATION_CREDENTIALS"

JOB_STATUS_UNKNOWN = "N/A"
