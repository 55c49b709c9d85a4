"""Centralized constants for icsfeed."""

# Secret storage constants
KEYRING_SERVICE_NAME = "icsfeed"
KEYRING_ACCOUNT_NAME = "crypt_secret"
USER_CONFIG_DIR_NAME = "icsfeed"

# Environment variable names
ENV_CLIENT_ID = "CLIENT_ID"
ENV_CLIENT_SECRET = "CLIENT_SECRET"
ENV_LOGFILE = "LOGFILE"
ENV_DEBUG = "DEBUG"
ENV_CONFIG_FILE = "CONFIG_FILE"
ENV_BIND_ADDR = "BIND_ADDR"
ENV_PUBLIC_URI = "PUBLIC_URI"
ENV_TOKEN_DIR = "TOKEN_DIR"
ENV_CRYPT_SECRET = "CRYPT_SECRET"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# ICS calendar constants
ICS_PRODID_TEMPLATE = "-//icsfeed//icsfeed-{version}//EN"
ICS_VERSION = "2.0"
ICS_CALSCALE = "GREGORIAN"
ICS_METHOD = "PUBLISH"
ICS_MEDIA_TYPE = "text/calendar; charset=utf-8"

FORMAT_ICS = "ics"
SUPPORTED_FORMATS = frozenset({FORMAT_ICS})

# Google OAuth2 endpoints and scopes
GOOGLE_AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
GOOGLE_TOKEN_URI = "https://accounts.google.com/o/oauth2/token"
GOOGLE_SCOPES = [
    "https://www.googleapis.com/auth/calendar.readonly",
    "https://www.googleapis.com/auth/calendar.events.readonly",
]

# Calendar Source paging and timeouts
MAX_CALENDARS_PER_CALL = 100
MAX_EVENTS_PER_CALL = 100
PROVIDER_CALL_TIMEOUT_SECONDS = 60

# Credential lifecycle
PENDING_AUTHORIZATION_TTL_SECONDS = 5 * 60
TOKEN_REFRESH_SKEW_SECONDS = 60

# Tenant defaults
DEFAULT_LOOKAHEAD_DAYS = 30
FEED_ID_PATTERN = r"^[a-zA-Z0-9-]+$"

# Server defaults
DEFAULT_BIND_ADDRESS = ":8000"
DEFAULT_PUBLIC_URI = "http://localhost:8000"
DEFAULT_CONFIG_FILE = "config.yml"
DEFAULT_TOKEN_DIR = "tokens"
DEFAULT_AUTH_BIND_ADDRESS = "127.0.0.1:8000"
SERVER_IDLE_TIMEOUT_SECONDS = 30
SERVER_CONCURRENCY_LIMIT = 64
SERVER_GRACEFUL_SHUTDOWN_SECONDS = 10

# Response bodies
MSG_AUTHORIZED = "authorized, you can close this window."
MSG_NOT_FOUND = "not found"
MSG_FORMAT_NOT_ALLOWED = "wanted format is not allowed"
MSG_INTERNAL_ERROR = "internal server error"

# Event field vocabularies (Calendar Source value -> ICS value)
TRANSPARENT_MARKER = "transparent"
VISIBILITY_CLASSES = {"PUBLIC", "PRIVATE"}
EVENT_STATUSES = {"TENTATIVE", "CANCELLED", "CONFIRMED"}
ATTENDEE_PARTSTAT = {
    "needsAction": "NEEDS-ACTION",
    "declined": "DECLINED",
    "tentative": "TENTATIVE",
    "accepted": "ACCEPTED",
}
