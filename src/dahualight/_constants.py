"""Internal constants for the camera JSON-RPC protocol."""

from __future__ import annotations

from pathlib import Path

RPC_PATH = "/RPC2"
LOGIN_PATH = "/RPC2_Login"

CLIENT_TYPE = "Web3.0"
AUTHORITY_TYPE = "Default"

LIGHTING_CONFIG = "Lighting_V2"

HTTP_OK = 200

# Error codes reported in the ``error.code`` field of a response body
ERROR_DEVICE_BUSY = 486
ERROR_NO_SUCH_SESSION = 287637504
ERROR_INVALID_SESSION = 287637505
SESSION_ERROR_CODES: frozenset[int] = frozenset({ERROR_NO_SUCH_SESSION, ERROR_INVALID_SESSION})

SESSION_TTL = 25 * 60  # seconds; firmware drops idle sessions after 30 min
REQUEST_TIMEOUT = 10  # seconds, per request
BUSY_RETRY_DELAY = 2  # seconds

CONFIG_DIR = Path.home() / ".config" / "dahualight"
CONFIG_FILE = CONFIG_DIR / "config.json"
