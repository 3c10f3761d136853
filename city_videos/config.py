"""
Centralized configuration management with validation and type conversion.

Every tunable of the video pipeline (timeouts, cache capacities and TTLs,
quality thresholds, rating and pool weights) is read from the environment
here, so the algorithms never carry hardwired constants.
"""

import os
import logging
from typing import Optional, Dict, Any, List
from dataclasses import dataclass, field
from enum import Enum

from dotenv import load_dotenv

load_dotenv()


class Environment(Enum):
    """Application environment types."""
    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"


DEFAULT_EXCLUDE_TERMS = [
    # nightlife / red-light framing
    "nightlife", "night life", "red light", "red-light", "redlight",
    "strip club", "nightclub", "hostess", "soi cowboy", "nana plaza",
    "de wallen", "kabukicho", "歌舞伎町", "飛田新地", "tobita", "홍등가",
    # reaction and danger-bait content
    "reaction", "reacts", "dangerous", "most dangerous", "scam", "ghetto",
    "slum", "危険",
]


@dataclass
class TimeoutConfig:
    """Timeout configuration for each class of external call."""
    youtube_search: float = 10.0
    youtube_details: float = 10.0
    cache: float = 5.0
    api: float = 30.0

    def get(self, operation: str) -> float:
        """Get timeout for a specific operation.

        Args:
            operation: Operation name

        Returns:
            Timeout value in seconds
        """
        return getattr(self, operation, self.api)


@dataclass
class RedisConfig:
    """Redis configuration."""
    url: str
    max_connections: int = 50
    socket_timeout: float = 5.0
    socket_connect_timeout: float = 5.0
    health_check_interval: int = 30


@dataclass
class CacheConfig:
    """Two-tier video cache configuration."""
    memory_capacity: int = 300
    memory_ttl: int = 6 * 3600  # 6 hours
    persistent_ttl: int = 7 * 86400  # 7 days
    version: int = 3
    single_flight: bool = True
    # Size of the cached result set; callers take a prefix of it
    fetch_count: int = 50


@dataclass
class SearchConfig:
    """YouTube search and quality filter configuration."""
    max_results: int = 25
    details_batch_size: int = 50
    min_views: int = 10000
    min_duration_seconds: int = 600
    exclude_terms: List[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDE_TERMS))


@dataclass
class RatingConfig:
    """Rating store and discovery pool configuration."""
    batch_size: int = 100
    pool_size: int = 300
    pool_ttl: int = 6 * 3600  # 6 hours
    pool_like_weight: int = 5
    pool_dislike_weight: int = 10


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file: Optional[str] = None
    max_bytes: int = 10485760  # 10MB
    backup_count: int = 5


class Config:
    """Centralized configuration with validation and type conversion."""

    def __init__(self):
        """Initialize configuration from environment variables."""
        self.environment = self._get_environment()
        self.debug = self._get_bool("DEBUG", False)
        self.port = self._get_int("PORT", 5010)

        # API Keys
        self.youtube_api_key = self._get_optional("YOUTUBE_API_KEY")

        # URLs
        self.redis_url: str = self._get_optional("REDIS_URL") or ""
        self.cors_origins = self._get_list("CORS_ORIGINS", ["*"])

        self.timeout_config = TimeoutConfig(
            youtube_search=self._get_float("TIMEOUT_YOUTUBE_SEARCH", 10.0),
            youtube_details=self._get_float("TIMEOUT_YOUTUBE_DETAILS", 10.0),
            cache=self._get_float("TIMEOUT_CACHE", 5.0),
            api=self._get_float("TIMEOUT_API", 30.0),
        )

        self.redis_config = RedisConfig(
            url=self.redis_url,
            max_connections=self._get_int("REDIS_MAX_CONNECTIONS", 50),
            socket_timeout=self._get_float("REDIS_SOCKET_TIMEOUT", 5.0),
            socket_connect_timeout=self._get_float("REDIS_SOCKET_CONNECT_TIMEOUT", 5.0),
            health_check_interval=self._get_int("REDIS_HEALTH_CHECK_INTERVAL", 30),
        )

        self.cache_config = CacheConfig(
            memory_capacity=self._get_int("MEMORY_CACHE_CAPACITY", 300),
            memory_ttl=self._get_int("MEMORY_CACHE_TTL", 6 * 3600),
            persistent_ttl=self._get_int("PERSISTENT_CACHE_TTL", 7 * 86400),
            version=self._get_int("CACHE_VERSION", 3),
            single_flight=self._get_bool("CACHE_SINGLE_FLIGHT", True),
            fetch_count=self._get_int("CACHE_FETCH_COUNT", 50),
        )

        self.search_config = SearchConfig(
            max_results=self._get_int("SEARCH_MAX_RESULTS", 25),
            details_batch_size=self._get_int("DETAILS_BATCH_SIZE", 50),
            min_views=self._get_int("MIN_VIEWS", 10000),
            min_duration_seconds=self._get_int("MIN_DURATION_SECONDS", 600),
            exclude_terms=self._get_list("EXCLUDE_TERMS", list(DEFAULT_EXCLUDE_TERMS)),
        )

        self.rating_config = RatingConfig(
            batch_size=self._get_int("RATING_BATCH_SIZE", 100),
            pool_size=self._get_int("POOL_SIZE", 300),
            pool_ttl=self._get_int("POOL_TTL", 6 * 3600),
            pool_like_weight=self._get_int("POOL_LIKE_WEIGHT", 5),
            pool_dislike_weight=self._get_int("POOL_DISLIKE_WEIGHT", 10),
        )

        self.logging_config = LoggingConfig(
            level=self._get_str("LOG_LEVEL", "INFO"),
            format=self._get_str("LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"),
            file=self._get_optional("LOG_FILE"),
            max_bytes=self._get_int("LOG_MAX_BYTES", 10485760),
            backup_count=self._get_int("LOG_BACKUP_COUNT", 5),
        )

        self._validate()

    def _get_environment(self) -> Environment:
        """Get application environment."""
        env_str = self._get_str("ENVIRONMENT", "development").lower()
        try:
            return Environment(env_str)
        except ValueError:
            raise ValueError(f"Invalid environment: {env_str}")

    def _get_optional(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Get optional environment variable.

        Args:
            key: Environment variable name
            default: Default value if not found

        Returns:
            Environment variable value or default
        """
        return os.getenv(key, default)

    def _get_str(self, key: str, default: str) -> str:
        return os.getenv(key, default)

    def _get_int(self, key: str, default: int) -> int:
        """Get integer environment variable with default.

        Raises:
            ValueError: If value cannot be converted to int
        """
        value = os.getenv(key)
        if value is None:
            return default
        try:
            return int(value)
        except ValueError:
            raise ValueError(f"Invalid integer for {key}: {value}")

    def _get_float(self, key: str, default: float) -> float:
        """Get float environment variable with default.

        Raises:
            ValueError: If value cannot be converted to float
        """
        value = os.getenv(key)
        if value is None:
            return default
        try:
            return float(value)
        except ValueError:
            raise ValueError(f"Invalid float for {key}: {value}")

    def _get_bool(self, key: str, default: bool) -> bool:
        value = os.getenv(key)
        if value is None:
            return default
        return value.lower() in ('1', 'true', 'yes', 'on')

    def _get_list(self, key: str, default: list) -> list:
        """Get comma separated list environment variable with default."""
        value = os.getenv(key)
        if value is None:
            return default
        return [item.strip() for item in value.split(',') if item.strip()]

    def _validate(self):
        """Validate configuration values."""
        for attr_name in ['youtube_search', 'youtube_details', 'cache', 'api']:
            timeout = getattr(self.timeout_config, attr_name)
            if timeout <= 0:
                raise ValueError(f"Invalid timeout for {attr_name}: {timeout}")

        if self.redis_url and not self.redis_url.startswith(('redis://', 'rediss://', 'unix://')):
            raise ValueError(f"Invalid Redis URL: {self.redis_url}")

        if self.cache_config.memory_capacity < 1:
            raise ValueError(f"Invalid memory cache capacity: {self.cache_config.memory_capacity}")

        if not 1 <= self.cache_config.fetch_count <= 50:
            raise ValueError(f"Invalid cache fetch count: {self.cache_config.fetch_count}")

        if self.cache_config.memory_ttl <= 0 or self.cache_config.persistent_ttl <= 0:
            raise ValueError("Cache TTLs must be positive")

        if not 1 <= self.search_config.details_batch_size <= 50:
            raise ValueError(f"Invalid details batch size: {self.search_config.details_batch_size}")

        if not 1 <= self.search_config.max_results <= 50:
            raise ValueError(f"Invalid search max results: {self.search_config.max_results}")

        if self.rating_config.batch_size < 1 or self.rating_config.pool_size < 1:
            raise ValueError("Rating batch size and pool size must be positive")

        # Missing key is reported on the query path, not at import time
        if not self.youtube_api_key:
            logging.getLogger(__name__).warning("YOUTUBE_API_KEY not set - video search will be disabled")

    def get_timeout(self, operation: str) -> float:
        """Get timeout for a specific operation.

        Args:
            operation: Operation name

        Returns:
            Timeout value in seconds
        """
        return self.timeout_config.get(operation)

    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == Environment.DEVELOPMENT

    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == Environment.PRODUCTION

    def is_testing(self) -> bool:
        """Check if running in testing environment."""
        return self.environment == Environment.TESTING

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary for debugging.

        Returns:
            Dictionary representation of configuration, without secrets
        """
        return {
            'environment': self.environment.value,
            'debug': self.debug,
            'redis_configured': bool(self.redis_url),
            'youtube_configured': bool(self.youtube_api_key),
            'timeout_config': {
                'youtube_search': self.timeout_config.youtube_search,
                'youtube_details': self.timeout_config.youtube_details,
                'cache': self.timeout_config.cache,
            },
            'cache_config': {
                'memory_capacity': self.cache_config.memory_capacity,
                'memory_ttl': self.cache_config.memory_ttl,
                'persistent_ttl': self.cache_config.persistent_ttl,
                'version': self.cache_config.version,
                'single_flight': self.cache_config.single_flight,
                'fetch_count': self.cache_config.fetch_count,
            },
            'search_config': {
                'min_views': self.search_config.min_views,
                'min_duration_seconds': self.search_config.min_duration_seconds,
                'exclude_terms': len(self.search_config.exclude_terms),
            },
            'rating_config': {
                'pool_size': self.rating_config.pool_size,
                'pool_ttl': self.rating_config.pool_ttl,
            },
        }


# Global configuration instance
config = Config()


def get_config() -> Config:
    """Get the global configuration instance.

    Returns:
        Configuration instance
    """
    return config


def setup_logging():
    """Set up logging based on configuration."""
    from logging.handlers import RotatingFileHandler

    config = get_config()

    logging.basicConfig(
        level=getattr(logging, config.logging_config.level.upper()),
        format=config.logging_config.format,
    )

    if config.logging_config.file:
        file_handler = RotatingFileHandler(
            config.logging_config.file,
            maxBytes=config.logging_config.max_bytes,
            backupCount=config.logging_config.backup_count,
        )
        file_handler.setFormatter(logging.Formatter(config.logging_config.format))
        logging.getLogger().addHandler(file_handler)

    logging.getLogger('aiohttp').setLevel(logging.WARNING)
    logging.getLogger('asyncio').setLevel(logging.WARNING)

    if config.is_development():
        logging.getLogger().setLevel(logging.DEBUG)
    elif config.is_production():
        logging.getLogger().setLevel(logging.INFO)
