import sys


def log(*args):
    # diagnostics go to stderr; stdout is reserved for the answer
    print(*args, file=sys.stderr, flush=True)


def fail(message, exit_code=1):
    log(f"Error: {message}")
    sys.exit(exit_code)
