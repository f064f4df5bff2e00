"""
Constants
Centralised storage for task names, stage names and file names.
"""
CONFIG_FILENAME = "shipcheck.config.json"

# Verification tasks, in their canonical execution order
TASK_NAMES = ["lint", "typecheck", "build", "test", "website"]

# Stage selectors accepted by the CLI
STAGE_PRE_COMMIT = "pre-commit"
STAGE_PRE_PUSH = "pre-push"
STAGE_CI = "ci"
STAGES = [STAGE_PRE_COMMIT, STAGE_PRE_PUSH, STAGE_CI]

DEFAULT_PRE_COMMIT = ["lint", "typecheck"]
DEFAULT_PRE_PUSH = ["lint", "typecheck", "build", "website"]

UNKNOWN_TASK_ERROR = "Unknown task"
TIMEOUT_ERROR = "Command timed out"

# Lines of error output shown per failing task in the CLI breakdown
MAX_ERROR_LINES = 20
