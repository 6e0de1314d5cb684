# config.example.py

"""
Documentation-only module (safe to commit).

stepscript reads its configuration from STEPSCRIPT_* environment variables,
optionally from a local .env file in the working directory (real environment
variables win). CLI flags override both for a single run.
"""

ENV_VARS = {
    # App / logging
    "STEPSCRIPT_APP_NAME": "Name used in log lines (default: stepscript).",
    "STEPSCRIPT_LOG_LEVEL": "Console logging level (default: INFO). --log-level overrides it.",
    "STEPSCRIPT_LOG_TO_FILE": "Also write full DEBUG logs to a file (true/false, default false).",
    "STEPSCRIPT_LOG_DIR": "Directory for stepscript.log (default: .local/stepscript).",
    # Operations
    "STEPSCRIPT_SHELL": "Shell used by Shell operations (default: /bin/bash, powershell on Windows).",
    "STEPSCRIPT_FETCH_TIMEOUT_SECONDS": "HTTP timeout for Fetch operations (default: 30).",
    # Runner
    "STEPSCRIPT_STALL_TIMEOUT_SECONDS": "Give up after this many seconds without task changes (0 = never).",
    "STEPSCRIPT_WATCH_INTERVAL_SECONDS": "Polling interval for --watch (default: 1).",
    "STEPSCRIPT_SHOW_TASK_TREE": "Print the task tree when a run ends (true/false). Same as --tree.",
}

EXAMPLE_DOTENV = """\
STEPSCRIPT_LOG_LEVEL=DEBUG
STEPSCRIPT_STALL_TIMEOUT_SECONDS=120
STEPSCRIPT_SHOW_TASK_TREE=true
"""
