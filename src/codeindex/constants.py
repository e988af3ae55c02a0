"""Default values shared across codeindex."""

# Search
DEFAULT_SEARCH_MIN_SCORE = 0.4
DEFAULT_MAX_SEARCH_RESULTS = 50

# Scanning
BATCH_SEGMENT_THRESHOLD = 60  # chunks per embedding batch
MAX_BATCH_RETRIES = 3
INITIAL_RETRY_DELAY = 0.5  # seconds
MAX_FILE_SIZE_BYTES = 1 * 1024 * 1024
MAX_PENDING_WATCH_EVENTS = 1000
WATCH_DEBOUNCE_SECONDS = 0.5

# Embedding request budgets (approximate tokens, 4 chars per token)
MAX_BATCH_TOKENS = 100_000
MAX_ITEM_TOKENS = 8191

# Storage
DEFAULT_STORAGE_ROOT = "~/.codeindex"
LANCEDB_DIRECTORY_NAME = "lancedb"
LANCEDB_DEPENDENCIES_DIRECTORY_NAME = "lancedb-deps"
CACHE_DIRECTORY_NAME = "cache"
