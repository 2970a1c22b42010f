"""All constants for the Electrolux API client - single source of truth."""

# === API ===
DEFAULT_API_URL = "https://api.developer.electrolux.one"
TOKEN_REFRESH_PATH = "/api/v1/token/refresh"
APPLIANCES_PATH = "/api/v1/appliances"
APPLIANCE_INFO_PATH_FMT = "/api/v1/appliances/{appliance_id}"
APPLIANCE_STATE_PATH_FMT = "/api/v1/appliances/{appliance_id}/state"

DEFAULT_TIMEOUT = 10.0  # seconds, per HTTP request

# === Tokens ===
# Renew when the access token expires within this margin
TOKEN_SAFETY_MARGIN_SECONDS = 120

# === Session storage ===
DEFAULT_SESSION_FILENAME = "session.json"

# === Appliance state ===
CONNECTION_STATE_CONNECTED = "CONNECTED"

UNKNOWN_MODEL = "Unknown Model"
UNKNOWN_VARIANT = "Unknown Variant"
UNKNOWN_SERIAL = "Unknown Serial"
UNKNOWN_DEVICE = "Unknown Device"
