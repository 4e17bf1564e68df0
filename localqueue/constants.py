
# host name for localhost
LOCALHOST = "localhost"

# default port the queue service listens on
DEFAULT_PORT = 4576

# default number of worker threads serving HTTP requests
DEFAULT_MAX_WORKERS = 16

APPLICATION_XML = "application/xml"
TEXT_PLAIN = "text/plain"

# strings to indicate truthy/falsy values
TRUE_STRINGS = ("1", "true", "True")
FALSE_STRINGS = ("0", "false", "False")
# strings with valid log levels for LQ_LOG
LOG_LEVELS = ("trace", "debug", "info", "warn", "error", "warning")

# trace log level, configurable via $LQ_LOG
LQ_LOG_TRACE = "trace"
TRACE_LOG_LEVELS = [LQ_LOG_TRACE]

# default encoding used to convert strings to byte arrays
DEFAULT_ENCODING = "utf-8"
