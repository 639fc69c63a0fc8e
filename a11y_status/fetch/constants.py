"""HTTP and upstream-format constants for the status client.

Centralizes all HTTP-related constants to avoid duplication across modules.
"""

# HTTP Status Codes
HTTP_STATUS_OK = 200
HTTP_STATUS_SERVER_ERROR_MIN = 500
HTTP_STATUS_SERVER_ERROR_MAX = 600

# Query parameter carrying the network ID
NID_QUERY_PARAM = "NID"

# Response Size Limits
DEFAULT_MAX_RESPONSE_SIZE_BYTES = 1024 * 1024  # 1 MB

# Chunk size for streaming reads
DEFAULT_CHUNK_SIZE = 8192

# Upstream payload keys
KEY_IS_CERTIFIED = "isCertified"
KEY_EXPIRES = "Expires"
KEY_TRAINING_URL = "trainingURL"

# Upstream truthy marker for isCertified
CERTIFIED_MARKER = "true"

# Expiration format, e.g. "Mar 7 2030 6:52PM"
EXPIRES_FORMAT = "%b %d %Y %I:%M%p"
