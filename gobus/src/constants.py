"""
Application configuration and constants for GO BUS API Server.

This module centralizes environment-based configuration, resource limits,
regular expressions, and other constants.

Configuration values can be overridden via environment variables.
"""

from os import environ


# ---------------------------------------------------------------------------
# Application metadata
# ---------------------------------------------------------------------------
API_TITLE = "GO BUS API Server"
API_VERSION = "1.0.0"


# ---------------------------------------------------------------------------
# PostgreSQL configuration
# ---------------------------------------------------------------------------
PSQL_DB_DRIVER = environ.get("PSQL_DB_DRIVER", "postgresql")
PSQL_DB_USERNAME = environ.get("PSQL_DB_USERNAME", "postgres")
PSQL_DB_PORT = environ.get("PSQL_DB_PORT", "5432")
PSQL_DB_PASSWORD = environ.get("PSQL_DB_PASSWORD", "password")
PSQL_DB_HOST = environ.get("PSQL_DB_HOST", "localhost")
PSQL_DB_NAME = environ.get("PSQL_DB_NAME", "postgres")


# ---------------------------------------------------------------------------
# OpenObserve configuration
# ---------------------------------------------------------------------------
OPENOBSERVE_PROTOCOL = environ.get("OPENOBSERVE_PROTOCOL", "http")
OPENOBSERVE_HOST = environ.get("OPENOBSERVE_HOST", "localhost")
OPENOBSERVE_PORT = environ.get("OPENOBSERVE_PORT", "5080")
OPENOBSERVE_USERNAME = environ.get("OPENOBSERVE_USERNAME", "admin@gobus.in")
OPENOBSERVE_PASSWORD = environ.get("OPENOBSERVE_PASSWORD", "password")
OPENOBSERVE_ORG = environ.get("OPENOBSERVE_ORG", "gobus")
OPENOBSERVE_STREAM = environ.get("OPENOBSERVE_STREAM", "gobus-api-server")
OPENOBSERVE_TIMEOUT = float(environ.get("OPENOBSERVE_TIMEOUT", "5"))  # Seconds per event


# ---------------------------------------------------------------------------
# Redis configuration
# ---------------------------------------------------------------------------
REDIS_HOST = environ.get("REDIS_HOST", "localhost")
REDIS_PORT = environ.get("REDIS_PORT", "6379")
REDIS_PASSWORD = environ.get("REDIS_PASSWORD", "password")
REDIS_SOCKET_TIMEOUT = float(environ.get("REDIS_SOCKET_TIMEOUT", "5"))  # Seconds


# ---------------------------------------------------------------------------
# Resource upper limits
# ---------------------------------------------------------------------------
MAX_OWNER_TOKENS = 5  # Maximum tokens per owner
MAX_DRIVER_TOKENS = 2  # Maximum tokens per driver slot
MAX_CUSTOMER_TOKENS = 5  # Maximum tokens per customer
MAX_TOKEN_VALIDITY = 7 * 24 * 60 * 60  # Token validity (in seconds, 7 days)
MAX_DRIVERS_PER_REQUEST = 50  # Driver slots created by a single bulk request
MAX_STOPS_PER_REQUEST = 100  # Stops accepted by a single bulk request
MAX_PASSENGERS_PER_TICKET = 10


# ---------------------------------------------------------------------------
# Regex constants (input validation)
# ---------------------------------------------------------------------------
REGEX_PASSWORD = r"^[a-zA-Z0-9-+,.@_$%&*#!^=/?]*$"
REGEX_REGISTRATION_NUMBER = r"^[A-Za-z0-9][A-Za-z0-9 -]{4,14}[A-Za-z0-9]$"
REGEX_IFSC_CODE = r"^[A-Za-z0-9]{11}$"
REGEX_EMAIL = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


# ---------------------------------------------------------------------------
# Driver credential constants
# ---------------------------------------------------------------------------
DRIVER_SLOT_PREFIX = "Driver"  # Slot names read "Driver <N>"
DRIVER_LOGIN_PREFIX = "D"  # Login IDs read "D<N><suffix>"
REGISTRATION_SUFFIX_LENGTH = 4
DEFAULT_REGISTRATION_SUFFIX = "0000"  # Registration number without digits
DRIVER_PASSWORD_MIN = 1000
DRIVER_PASSWORD_MAX = 9999


# ---------------------------------------------------------------------------
# Ticket constants
# ---------------------------------------------------------------------------
TICKET_QR_PREFIX = "GOBUS-"  # Codes read "GOBUS-<uuid4>"
TICKET_ROUTE_SEPARATOR = " → "


# ---------------------------------------------------------------------------
# Owner profile defaults
# ---------------------------------------------------------------------------
DEFAULT_COMPANY_NAME = "My Company"  # Owners without a display name


# ---------------------------------------------------------------------------
# Redis mutex lock constants
# ---------------------------------------------------------------------------
MUTEX_LOCK_TIMEOUT = 10  # Lock timeout (in seconds)
MUTEX_LOCK_MAX_WAIT_TIME = 30  # Max blocking wait time (in seconds)
