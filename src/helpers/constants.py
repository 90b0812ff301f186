"""Common configuration constants used across the application."""

# Batch Size Constants
DEFAULT_BATCH_SIZE = 10
"""Default number of slots to extract and persist per batch"""

DEFAULT_BLOCK_WINDOW = 10
"""Number of blocks processed when neither an end slot nor a count is given"""

# HTTP and Network Constants
DEFAULT_TIMEOUT = 30.0
"""Default HTTP request timeout in seconds"""

DEFAULT_RATE_LIMIT_MS = 100
"""Pause between two getBlock requests in milliseconds"""

MAX_KEEPALIVE_CONNECTIONS = 5
"""Maximum number of keepalive connections in pool"""

MAX_CONNECTIONS = 10
"""Maximum total number of connections"""

# Retry Configuration
MAX_RETRIES = 3
"""Default maximum number of attempts per pipeline stage"""

RETRY_DELAY = 2.0
"""Base delay for linear backoff in seconds (delay = RETRY_DELAY * attempt)"""

# Slot Window Constants
DEFAULT_START_OFFSET = 30
"""Default start slot is this many slots behind the latest slot"""

FINALITY_OFFSET = 20
"""Slots behind the tip considered safe to ingest"""

CONTINUOUS_INTERVAL = 10
"""Seconds between two runs in continuous mode"""

# Chain Constants
LAMPORTS_PER_SOL = 1_000_000_000
"""Number of lamports in one SOL"""

MAX_SUPPORTED_TRANSACTION_VERSION = 0
"""Highest transaction version requested from getBlock"""

# Database Limits
DB_POOL_SIZE = 5
"""Maximum number of pooled database connections"""

MAX_LABEL_LENGTH = 255
"""Width of the transactions.transaction_label column"""


__all__ = [
    "CONTINUOUS_INTERVAL",
    "DB_POOL_SIZE",
    "DEFAULT_BATCH_SIZE",
    "DEFAULT_BLOCK_WINDOW",
    "DEFAULT_RATE_LIMIT_MS",
    "DEFAULT_START_OFFSET",
    "DEFAULT_TIMEOUT",
    "FINALITY_OFFSET",
    "LAMPORTS_PER_SOL",
    "MAX_CONNECTIONS",
    "MAX_KEEPALIVE_CONNECTIONS",
    "MAX_LABEL_LENGTH",
    "MAX_RETRIES",
    "MAX_SUPPORTED_TRANSACTION_VERSION",
    "RETRY_DELAY",
]
