"""
Configuration dataclasses for the Zotero → Readwise sync.

This module defines type-safe configuration schemas using Python dataclasses.
These schemas are registered with Hydra to enable validation and IDE autocomplete
support for configuration values.
"""

from dataclasses import dataclass, field

from hydra.core.config_store import ConfigStore

VALID_LIBRARY_TYPES = ("user", "group")
VALID_SCOPES = ("library", "collection", "items")

READWISE_MAX_BATCH_SIZE = 100
READWISE_TEXT_LIMIT = 8191


class ConfigError(Exception):
    """Configuration error for the Zotero → Readwise sync.

    Raised when configuration values are invalid or inconsistent, including a
    missing Readwise access token. Using a dedicated exception type makes it
    easier to distinguish configuration problems from other runtime errors.
    """


@dataclass
class ZoteroConfig:
    """Configuration for Zotero API integration.

    Contains settings for connecting to the Zotero library that annotations
    are read from, either through the web API or the desktop local API.
    """

    library_id: str
    """Zotero library ID. Find this in your Zotero web library URL:
    https://www.zotero.org/users/{library_id}"""

    library_type: str = "user"
    """Library type: 'user' for a personal library, 'group' for a group library."""

    api_key: str = ""
    """Zotero API key. Obtain from https://www.zotero.org/settings/keys.
    Not needed when local is True."""

    local: bool = False
    """Whether to read from the Zotero desktop app's local API
    (http://localhost:23119) instead of the web API."""

    def __post_init__(self) -> None:
        """Validate library identification and credentials."""
        if not self.library_id or not str(self.library_id).strip():
            raise ConfigError(
                "library_id is required and cannot be empty. "
                "Find your library ID in your Zotero web library URL: "
                "https://www.zotero.org/users/{library_id}"
            )
        if self.library_type not in VALID_LIBRARY_TYPES:
            raise ConfigError(
                f"library_type must be one of {VALID_LIBRARY_TYPES}, "
                f"got '{self.library_type}'"
            )
        if not self.local and (not self.api_key or not self.api_key.strip()):
            raise ConfigError(
                "api_key is required when using the Zotero web API. "
                "Set zotero.local=true to use the desktop local API instead."
            )


@dataclass
class RetryConfig:
    """Configuration for retry behavior with exponential backoff."""

    max_attempts: int = 5
    """Maximum number of delivery attempts per batch, including the first."""

    initial_delay: float = 1.0
    """Delay in seconds before the second attempt."""

    backoff_multiplier: float = 2.0
    """Multiplier for exponential backoff. Delay doubles by default on each retry."""

    max_delay: float = 60.0
    """Maximum delay cap in seconds to prevent excessively long waits."""

    default_retry_after: float = 60.0
    """Seconds to wait after a 429 response without a usable Retry-After header."""

    def __post_init__(self) -> None:
        """Validate retry configuration parameters."""
        if self.max_attempts <= 0:
            raise ConfigError("max_attempts must be greater than 0")
        if self.initial_delay <= 0:
            raise ConfigError("initial_delay must be greater than 0")
        if self.backoff_multiplier <= 0:
            raise ConfigError("backoff_multiplier must be greater than 0")
        if self.max_delay <= 0:
            raise ConfigError("max_delay must be greater than 0")
        if self.max_delay < self.initial_delay:
            raise ConfigError(
                "max_delay must be greater than or equal to initial_delay"
            )
        if self.default_retry_after < 0:
            raise ConfigError("default_retry_after cannot be negative")


@dataclass
class ReadwiseConfig:
    """Configuration for the Readwise highlights API."""

    api_token: str = ""
    """Readwise access token. Obtain from https://readwise.io/access_token"""

    base_url: str = "https://readwise.io/api/v2"
    """Base URL of the Readwise API."""

    timeout: int = 30
    """Timeout in seconds for each HTTP request."""

    batch_size: int = READWISE_MAX_BATCH_SIZE
    """Number of highlights submitted per request."""

    validate_token: bool = False
    """Whether to check the token against the /auth/ endpoint before a run."""

    retry: RetryConfig = field(default_factory=RetryConfig)
    """Retry configuration for batch delivery."""

    def __post_init__(self) -> None:
        """Validate Readwise configuration parameters."""
        if not self.base_url or not self.base_url.strip():
            raise ConfigError("base_url is required and cannot be empty")
        if self.timeout <= 0:
            raise ConfigError("timeout must be greater than 0")
        if not 1 <= self.batch_size <= READWISE_MAX_BATCH_SIZE:
            raise ConfigError(
                f"batch_size must be between 1 and {READWISE_MAX_BATCH_SIZE}, "
                f"got {self.batch_size}"
            )
        if not isinstance(self.retry, RetryConfig):
            raise ConfigError("retry must be an instance of RetryConfig")

    def require_token(self) -> str:
        """Return the stripped access token or raise ConfigError.

        Raises:
            ConfigError: If the token is missing or whitespace-only.
        """
        token = (self.api_token or "").strip()
        if not token:
            raise ConfigError(
                "Readwise API token is not configured. Set readwise.api_token "
                "or the READWISE_TOKEN environment variable."
            )
        return token


@dataclass
class SyncConfig:
    """Configuration for what a sync run covers and how it is processed."""

    scope: str = "library"
    """Which part of the library to sync. Options: 'library', 'collection',
    'items'"""

    scope_target: str | None = None
    """Collection key when scope is 'collection'."""

    item_keys: list[str] = field(default_factory=list)
    """Explicit parent item keys when scope is 'items'."""

    chunk_size: int = 200
    """Number of library items processed per collection chunk."""

    mapping_workers: int = 4
    """Number of worker threads used to map annotations."""

    max_text_length: int = READWISE_TEXT_LIMIT
    """Maximum highlight/note length accepted by Readwise."""

    color_tags: bool = False
    """Whether to add the annotation color as a 'color:<hex>' tag."""

    dry_run: bool = False
    """Preview pending highlights without sending them or touching state."""

    def __post_init__(self) -> None:
        """Validate scope and processing limits."""
        if self.scope not in VALID_SCOPES:
            raise ConfigError(
                f"scope must be one of {VALID_SCOPES}, got '{self.scope}'"
            )
        if self.scope == "collection" and not (
            self.scope_target and self.scope_target.strip()
        ):
            raise ConfigError(
                "scope_target (a collection key) is required when scope is "
                "'collection'"
            )
        if self.scope == "items" and not self.item_keys:
            raise ConfigError("item_keys cannot be empty when scope is 'items'")
        if self.chunk_size <= 0:
            raise ConfigError("chunk_size must be greater than 0")
        if self.mapping_workers <= 0:
            raise ConfigError("mapping_workers must be greater than 0")
        if self.max_text_length <= 3:
            raise ConfigError("max_text_length must be greater than 3")


@dataclass
class StateConfig:
    """Configuration for persisted sync state."""

    state_dir: str = "./data/state"
    """Directory holding the state files. Created automatically if missing."""

    sync_state_filename: str = "sync_state.json"
    """File holding the last successful sync timestamp."""

    mapping_filename: str = "readwise-mapping.json"
    """File holding the annotation key → Readwise highlight id ledger."""


@dataclass
class AppConfig:
    """Top-level application configuration.

    Combines all configuration groups into a single type-safe configuration
    object. This is the configuration class that Hydra will instantiate and
    pass to the main function.
    """

    zotero: ZoteroConfig
    """Zotero API configuration."""

    readwise: ReadwiseConfig = field(default_factory=ReadwiseConfig)
    """Readwise API configuration."""

    sync: SyncConfig = field(default_factory=SyncConfig)
    """Sync scope and processing configuration."""

    state: StateConfig = field(default_factory=StateConfig)
    """State storage configuration."""


def register_configs() -> None:
    """Register structured configs with Hydra.

    This function must be called before Hydra initializes to enable type-safe
    configuration validation and IDE autocomplete support.
    """
    cs = ConfigStore.instance()

    cs.store(group="zotero", name="default", node=ZoteroConfig)
    cs.store(group="readwise", name="default", node=ReadwiseConfig)
    cs.store(group="sync", name="default", node=SyncConfig)
    cs.store(group="state", name="default", node=StateConfig)

    cs.store(name="config_schema", node=AppConfig)
