"""Infrastructure and technical constants."""

from typing import Final

# Technical configuration constants
MIN_SECRET_KEY_LENGTH: Final = 32
DEFAULT_PORT: Final = 8000

# Session cookie
SESSION_COOKIE_NAME: Final = "session"
SESSION_TTL_DAYS: Final = 7
JWT_ALGORITHM: Final = "HS256"

# Nextcloud WebDAV
NEXTCLOUD_DAV_PREFIX: Final = "remote.php/dav/files"
DEFAULT_UPSTREAM_TIMEOUT_SECONDS: Final = 30.0
