import logging
import os
from typing import Optional, Union

from localqueue.constants import (
    DEFAULT_MAX_WORKERS,
    DEFAULT_PORT,
    FALSE_STRINGS,
    LOCALHOST,
    LOG_LEVELS,
    TRACE_LOG_LEVELS,
    TRUE_STRINGS,
)


def eval_log_type(env_var_name: str) -> Union[str, bool]:
    """Get the log type from environment variable"""
    lq_log = os.environ.get(env_var_name, "").lower().strip()
    return lq_log if lq_log in LOG_LEVELS else False


def parse_boolean_env(env_var_name: str) -> Optional[bool]:
    """Parse the value of the given env variable and return True/False, or None if it is not a boolean value."""
    value = os.environ.get(env_var_name, "").lower().strip()
    if value in TRUE_STRINGS:
        return True
    if value in FALSE_STRINGS:
        return False
    return None


def is_env_true(env_var_name: str) -> bool:
    """Whether the given environment variable has a truthy value."""
    return os.environ.get(env_var_name, "").lower().strip() in TRUE_STRINGS


def is_env_not_false(env_var_name: str) -> bool:
    """Whether the given environment variable is empty or has a truthy value."""
    return os.environ.get(env_var_name, "").lower().strip() not in FALSE_STRINGS


def parse_int_env(env_var_name: str, default: int) -> int:
    """Parse the value of the given env variable as an integer, falling back to ``default`` if it is unset."""
    value = os.environ.get(env_var_name, "").strip()
    if not value:
        return default
    try:
        return int(value)
    except ValueError as e:
        raise ValueError(f"environment variable {env_var_name} is not a number: {value}") from e


# whether to enable verbose debug logging
LQ_LOG = eval_log_type("LQ_LOG")
DEBUG = is_env_true("DEBUG") or LQ_LOG in TRACE_LOG_LEVELS

# address the server listens on (can be overwritten by the CLI)
LQ_HOST = os.environ.get("LQ_HOST", "").strip() or LOCALHOST
LQ_PORT = parse_int_env("LQ_PORT", DEFAULT_PORT)

# number of threads in the pool that serves HTTP requests
LQ_MAX_WORKERS = parse_int_env("LQ_MAX_WORKERS", DEFAULT_MAX_WORKERS)

# lifts the limit of 10 messages per ReceiveMessage call
SQS_DISABLE_MAX_NUMBER_OF_MESSAGE_LIMIT = is_env_true("SQS_DISABLE_MAX_NUMBER_OF_MESSAGE_LIMIT")


def is_trace_logging_enabled():
    if LQ_LOG:
        log_level = str(LQ_LOG).upper()
        return log_level.lower() in TRACE_LOG_LEVELS
    return False


# set log levels immediately, but will be overwritten later by setup_logging
if DEBUG:
    logging.getLogger("").setLevel(logging.DEBUG)
    logging.getLogger("localqueue").setLevel(logging.DEBUG)
