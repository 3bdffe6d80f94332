"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

DEFAULT_SESSION_DAYS = 7
DEFAULT_APPROVE_MAX_ATTEMPTS = 3
DEFAULT_LOCK_WAIT_TIMEOUT_SECONDS = 10
DEFAULT_ARCHIVE_LIMIT = 366
NO_NAME = "—"
MAX_TEXT_LENGTH = 255
DEFAULT_EMPLOYEE_PICKER_LIMIT = 50
MAX_EMPLOYEE_PICKER_LIMIT = 200
