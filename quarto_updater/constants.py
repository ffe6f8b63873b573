# The MIT License (MIT)
# Copyright © 2025 Entrius

# =============================================================================
# General
# =============================================================================
SECONDS_PER_MINUTE = 60

# =============================================================================
# GitHub API
# =============================================================================
BASE_GITHUB_API_URL = "https://api.github.com"
GITHUB_HOST = "github.com"
GITHUB_DOMAIN = f"https://{GITHUB_HOST}/"
GITHUB_API_TIMEOUT = 30  # seconds per request
HTTP_NOT_FOUND = 404
HTTP_UNPROCESSABLE_ENTITY = 422  # returned when a ref already exists

# Rate limit handling
RATE_LIMIT_BUFFER_SECONDS = 5  # Extra buffer time when waiting for rate limit reset
RATE_LIMIT_MIN_REMAINING = 10  # Minimum remaining requests before preemptive warning
RATE_LIMIT_MAX_WAIT_SECONDS = 900  # Maximum time to wait for rate limit reset (15 min)
RATE_LIMIT_MAX_ATTEMPTS = 3

# =============================================================================
# Registry
# =============================================================================
DEFAULT_REGISTRY_URL = "https://raw.githubusercontent.com/mcanouil/quarto-extensions/main/extensions/quarto-extensions.json"
DEFAULT_FETCH_TIMEOUT_SECONDS = 30
HTTP_HEADER_ACCEPT_JSON = "application/json"
HTTP_USER_AGENT = "quarto-extensions-updater"

# =============================================================================
# Extensions & Quarto CLI
# =============================================================================
EXTENSIONS_DIR_NAME = "_extensions"
QUARTO_MANIFEST_FILENAMES = ["_extension.yml", "_extension.yaml"]
QUARTO_BINARY = "quarto"
NO_VERSION_SENTINEL = "none"

# =============================================================================
# Pull Request defaults
# =============================================================================
DEFAULT_BASE_BRANCH = "main"
DEFAULT_BRANCH_PREFIX = "chore/quarto-extensions"
DEFAULT_PR_TITLE_PREFIX = "chore(deps):"
DEFAULT_COMMIT_MESSAGE_PREFIX = "chore(deps):"
DEFAULT_PR_LABELS = ["dependencies", "quarto-extensions"]
LABEL_SEPARATOR = ","
GIT_FILE_MODE = "100644"

PR_FOOTER_TEXT = (
    "*This pull request was opened automatically by quarto-extensions-updater. "
    "Close it to skip this update, or push to the branch to adjust it.*"
)

# =============================================================================
# Policies
# =============================================================================
VALID_UPDATE_STRATEGIES = ["all", "minor", "patch"]
VALID_AUTO_MERGE_STRATEGIES = ["all", "minor", "patch"]
VALID_MERGE_METHODS = ["merge", "squash", "rebase"]
DEFAULT_UPDATE_STRATEGY = "all"
DEFAULT_AUTO_MERGE_STRATEGY = "patch"
DEFAULT_MERGE_METHOD = "squash"

# =============================================================================
# Auto-merge
# =============================================================================
# GitHub computes mergeability asynchronously after a push, so the first
# enable call waits and a single retry covers the "clean status" window.
AUTO_MERGE_INITIAL_DELAY_SECONDS = 5
AUTO_MERGE_RETRY_DELAY_SECONDS = 10
AUTO_MERGE_TRANSIENT_MARKER = "clean status"
AUTO_MERGE_PERMISSION_MARKER = "permission"
AUTO_MERGE_REQUIRED_PERMISSION = "pull-requests: write"

# =============================================================================
# Validation
# =============================================================================
HTTPS_PROTOCOL = "https://"
INVALID_GIT_REF_CHARS = r"[~^:?*\[\\\x00-\x1f\x7f]"
REPOSITORY_PATTERN = r"^[A-Za-z0-9._-]+/[A-Za-z0-9._-]+$"

# =============================================================================
# Logging
# =============================================================================
LOG_SEPARATOR_CHAR = "="
LOG_SEPARATOR_LENGTH = 50
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_LOG_MAX_BYTES = 5 * 1024 * 1024
DEFAULT_LOG_BACKUP_COUNT = 10
