import sys

from dataflow_worker_count.cli import main

sys.exit(main())
