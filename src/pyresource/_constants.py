"""Internal constants shared across the library."""

#: Default timeout (seconds) for a single HTTP fetch, body included.
DEFAULT_HTTP_TIMEOUT: float = 20.0

# Permission bits for files and directories created by ``safe_write``.
FILE_MODE = 0o666
DIR_MODE = 0o755

HEADER_IF_NONE_MATCH = "If-None-Match"
HEADER_ETAG = "ETag"
HEADER_USER_AGENT = "User-Agent"

FILE_URL_PREFIX = "file://"
