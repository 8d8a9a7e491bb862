"""Canonical structured logging field names.

Keeping names centralized keeps log lines from the breaker, the retry
executor, and the service clients queryable with one key set.
"""

TIMESTAMP = "timestamp"
LEVEL = "level"
LOGGER = "logger"
MESSAGE = "message"
EVENT = "event"

# Dependency being called.
SERVICE = "service"
ENVIRONMENT = "environment"
METHOD = "method"
ENDPOINT = "endpoint"

# Resilience outcomes.
BREAKER_STATE = "breaker_state"
FAILURES = "failures"
ATTEMPT = "attempt"
MAX_ATTEMPTS = "max_attempts"
DELAY_SECONDS = "delay_seconds"
RETRY_IN_SECONDS = "retry_in_seconds"
ERROR_KIND = "error_kind"
ERROR_CODE = "error_code"
