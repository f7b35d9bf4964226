#!/usr/bin/env python3
"""
Configuration management for Feed Control.

This module centralizes configuration loading, validation, and logging setup.
It handles environment variables, an optional .env file and the optional
feeds.yaml file, and provides a clean interface for accessing configuration
values throughout the application.
"""

from os import environ, path, access, R_OK
from typing import Dict, Any
from logging import getLogger, basicConfig, StreamHandler, INFO, DEBUG, WARNING, ERROR
import sys
import yaml
from dotenv import load_dotenv

def _setup_global_logger():
    """Setup a single global logger for the entire application.

    Environment Variables:
        LOG_LEVEL: Set log level (DEBUG, INFO, WARNING, ERROR) - defaults to INFO
        LOG_TIMESTAMPS: Enable/disable timestamps in logs (true/false) - defaults to true

    The logger outputs to stdout with line buffering for real-time logging.
    All modules should use get_logger() to create module-specific loggers that inherit this configuration.
    """
    level_str = environ.get("LOG_LEVEL", "INFO").upper()
    level_map = {
        "DEBUG": DEBUG,
        "INFO": INFO,
        "WARNING": WARNING,
        "ERROR": ERROR
    }
    level = level_map.get(level_str, INFO)

    show_timestamps = environ.get("LOG_TIMESTAMPS", "true").lower() != "false"

    if show_timestamps:
        log_format = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    else:
        log_format = '%(name)s - %(levelname)s - %(message)s'

    basicConfig(
        level=level,
        format=log_format,
        handlers=[StreamHandler(sys.stdout)],
        force=True  # Force reconfiguration if already configured
    )

    # Reduce Azure SDK verbosity unless explicitly overridden
    azure_level = level_map.get(environ.get("AZURE_LOG_LEVEL", "WARNING").upper(), WARNING)
    for name in ("azure", "azure.core", "azure.monitor"):
        getLogger(name).setLevel(azure_level)

    return getLogger("FeedControl")

def get_logger(name: str):
    """Get a module-specific logger with the unified configuration.

    Args:
        name: The logger name (e.g., "fetcher", "cache", "control")

    Returns:
        A logger instance named "FeedControl.{name}"

    Example:
        logger = get_logger("mymodule")
        logger.info("This will appear as 'FeedControl.mymodule - INFO - This will appear...'")
    """
    return getLogger(f"FeedControl.{name}")

# Create single global logger instance
logger = _setup_global_logger()

class Config:
    """Configuration manager for Feed Control.

    Values are loaded from:
    1. Environment variables
    2. .env file (if present)
    3. feeds.yaml (named feeds and proxy settings, optional)

    Example feeds.yaml format:
    ```yaml
    proxy:
      url: http://proxy.example:3128
    feeds:
      news:
        url: https://example.org/news.xml
        max_items: 5
        refresh_interval_minutes: 30
    ```
    """

    def __init__(self):
        """Initialize configuration with environment variables and validation."""
        self._load_environment()
        self._validate_and_set_config()
        self._load_feed_sources()

    def _load_environment(self):
        """Load environment variables from .env file if present."""
        dotenv_path = path.join(path.dirname(path.abspath(__file__)), '.env')
        if path.exists(dotenv_path):
            load_dotenv(dotenv_path)
            logger.info(f"Loaded environment variables from {dotenv_path}")

    def _validate_positive_int(self, env_var: str, default: int, min_val: int = 1) -> int:
        """Validate and parse a positive integer environment variable."""
        try:
            value = int(environ.get(env_var, str(default)))
            if value < min_val:
                logger.warning(f"{env_var} must be at least {min_val}, using default {default}")
                return default
            return value
        except (ValueError, TypeError):
            logger.warning(f"Invalid {env_var} value, using default {default}")
            return default

    def _validate_and_set_config(self):
        """Validate and set all configuration values."""
        self.USER_AGENT = environ.get("USER_AGENT", "Mozilla/5.0 (compatible; FeedControl/1.0)")

        # HTTP request configuration
        self.HTTP_TIMEOUT = self._validate_positive_int("FEED_HTTP_TIMEOUT", 5, 1)

        # Content cache: minutes a parsed feed is kept before the remote site is asked again
        self.REFRESH_INTERVAL_MINUTES = self._validate_positive_int("FEED_REFRESH_INTERVAL_MINUTES", 60, 1)
        self.CACHE_MAX_ENTRIES = self._validate_positive_int("FEED_CACHE_MAX_ENTRIES", 1024, 1)

        # Failure handling windows (minutes)
        self.RETRY_SUPPRESS_MINUTES = self._validate_positive_int("FEED_RETRY_SUPPRESS_MINUTES", 10, 1)
        self.ESCALATE_SUPPRESS_MINUTES = self._validate_positive_int("FEED_ESCALATE_SUPPRESS_MINUTES", 20, 1)
        self.NOTIFY_INTERVAL_MINUTES = self._validate_positive_int("FEED_NOTIFY_INTERVAL_MINUTES", 10, 1)

        base_dir = path.dirname(path.abspath(__file__))
        self.FEEDS_CONFIG_PATH = environ.get("FEEDS_CONFIG_PATH", path.join(base_dir, "feeds.yaml"))

    def _safe_read_yaml(self, file_path: str, max_size: int, kind: str) -> Any | None:
        """Safely read a YAML file with consistent validation.

        Args:
            file_path: Path to the YAML file
            max_size: Maximum allowed file size in bytes
            kind: Short label for logging context (e.g. 'feeds')

        Returns:
            Parsed YAML (mapping/list/primitive) or None on failure.
        """
        try:
            if not path.isfile(file_path):
                logger.info(f"{kind.capitalize()} file not found at {file_path}")
                return None
            if not access(file_path, R_OK):
                logger.error(f"No read permission for {kind} file at {file_path}")
                return None
            size = path.getsize(file_path)
            if size > max_size:
                logger.error(f"{kind.capitalize()} file too large: {size} bytes (limit: {max_size} bytes)")
                return None
            with open(file_path, 'r') as f:
                data = yaml.safe_load(f)
            if not data:
                logger.warning(f"Empty or invalid YAML in {kind} file {file_path}")
                return None
            return data
        except yaml.YAMLError as e:
            logger.error(f"Error parsing YAML in {kind} file {file_path}: {e}")
        except OSError as e:
            logger.error(f"Error loading {kind} file {file_path}: {e}")
        return None

    def _load_feed_sources(self) -> None:
        """Populate self.FEED_SOURCES and self.PROXY_URL from feeds.yaml.

        Any failure results in an empty mapping and no proxy.
        """
        feeds_path = self.FEEDS_CONFIG_PATH
        config_data = self._safe_read_yaml(feeds_path, 5 * 1024 * 1024, 'feeds')
        self.PROXY_URL = None
        self.FEED_SOURCES: Dict[str, Dict[str, Any]] = {}
        if not isinstance(config_data, dict):
            return

        proxy_section = config_data.get('proxy')
        if isinstance(proxy_section, dict):
            proxy_url_value = proxy_section.get('url')
            if isinstance(proxy_url_value, str) and proxy_url_value.strip():
                self.PROXY_URL = proxy_url_value.strip()
                logger.info("Configured HTTP proxy for feed fetching via feeds.yaml")
            elif proxy_url_value is not None:
                logger.warning(f"Invalid proxy.url entry in {feeds_path}; ignoring proxy configuration")
        elif proxy_section not in (None, False):
            logger.warning(f"Proxy configuration in {feeds_path} must be a mapping with a url field")

        feeds_section = config_data.get('feeds')
        if not isinstance(feeds_section, dict):
            logger.warning(f"No valid feeds found in {feeds_path}")
            return

        for feed_slug, feed_cfg in feeds_section.items():
            if not (isinstance(feed_cfg, dict) and isinstance(feed_cfg.get('url'), str)):
                logger.warning(f"Skipping invalid feed configuration for '{feed_slug}': {feed_cfg}")
                continue
            self.FEED_SOURCES[str(feed_slug)] = {
                'url': feed_cfg['url'].strip(),
                'max_items': self._coerce_int(feed_cfg.get('max_items'), -1),
                'refresh_interval_minutes': self._coerce_int(
                    feed_cfg.get('refresh_interval_minutes'), self.REFRESH_INTERVAL_MINUTES
                ),
            }
            logger.debug(f"Loaded feed {feed_slug}: {feed_cfg['url']}")

        logger.info(f"Successfully loaded {len(self.FEED_SOURCES)} feeds from {feeds_path}")

    def _coerce_int(self, raw: Any, default: int) -> int:
        if raw is None:
            return default
        try:
            return int(str(raw).strip())
        except ValueError:
            logger.warning(f"Invalid integer value '{raw}' in feeds.yaml; using default {default}")
            return default

    def reload_feed_sources(self):
        """Reload feed sources from configuration file."""
        logger.info("Reloading feed sources configuration")
        self._load_feed_sources()

    def get_config_summary(self) -> Dict[str, Any]:
        """Get a summary of current configuration for logging/debugging."""
        return {
            "http_timeout": self.HTTP_TIMEOUT,
            "refresh_interval_minutes": self.REFRESH_INTERVAL_MINUTES,
            "cache_max_entries": self.CACHE_MAX_ENTRIES,
            "retry_suppress_minutes": self.RETRY_SUPPRESS_MINUTES,
            "escalate_suppress_minutes": self.ESCALATE_SUPPRESS_MINUTES,
            "notify_interval_minutes": self.NOTIFY_INTERVAL_MINUTES,
            "feed_count": len(self.FEED_SOURCES),
            "has_proxy": bool(self.PROXY_URL),
        }

# Global configuration instance
config = Config()
