"""Storage slot names and wire constants shared by the vault components."""

# durable (local) storage
APP_STORE_KEY = "app-store"
SECURITY_LOG_KEY = "security-events"

# session-scoped storage
ENCRYPTION_KEY_STORAGE = "app-encryption-key"

MAX_LOG_ENTRIES = 100

# Session lifetime protects data at rest, not live sessions: 30 days.
SESSION_LIFETIME = 30 * 24 * 60 * 60
INACTIVITY_TIMEOUT = 30 * 60
SUMMARY_WINDOW = 24 * 60 * 60

MAX_STRUCTURE_SIZE = 100_000
MAX_NESTING_DEPTH = 10
NESTING_SCAN_LIMIT = 20
