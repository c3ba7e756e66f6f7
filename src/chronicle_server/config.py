"""
Server configuration management.

This module handles loading and accessing server configuration from multiple sources
with a clear priority order:

    1. Environment variables (highest priority) - for containerized deployments
    2. Config file (config/server.ini) - for static deployments
    3. Built-in defaults (lowest priority) - sensible fallbacks

Configuration is loaded once at module import time and cached. The ServerConfig
dataclass provides typed access to all settings.

Usage:
    from chronicle_server.config import config

    # Access settings
    print(config.server.port)
    print(config.rules.action_budget)
    print(config.oracle.api_endpoint)

Environment Variable Mapping:
    CHRONICLE_HOST                    -> server.host
    CHRONICLE_PORT                    -> server.port
    CHRONICLE_CORS_ORIGINS            -> security.cors_origins
    CHRONICLE_DB_PATH                 -> store.path
    CHRONICLE_LOG_LEVEL               -> logging.level
    CHRONICLE_LOG_FORMAT              -> logging.format
    CHRONICLE_OLLAMA_URL              -> oracle.base_url
    CHRONICLE_ORACLE_MODEL            -> oracle.model
    CHRONICLE_ORACLE_TIMEOUT_SECONDS  -> oracle.timeout_seconds
    CHRONICLE_IMAGE_URL               -> media.image_url
    CHRONICLE_IMAGE_API_KEY           -> media.image_api_key
    CHRONICLE_SPEECH_URL              -> media.speech_url
    CHRONICLE_SPEECH_API_KEY          -> media.speech_api_key
    CHRONICLE_TRANSCRIBER_URL         -> media.transcriber_url
    CHRONICLE_ACTION_BUDGET           -> rules.action_budget
    CHRONICLE_STARTING_HP             -> rules.starting_hp
    CHRONICLE_PERSONAS_DIR            -> personas.directory
"""

import configparser
import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

# =============================================================================
# PATH CONFIGURATION
# =============================================================================

# Project root directory (contains src/, config/, data/)
PROJECT_ROOT = Path(__file__).parent.parent.parent

# Config file paths
CONFIG_DIR = PROJECT_ROOT / "config"
CONFIG_FILE = CONFIG_DIR / "server.ini"
CONFIG_EXAMPLE = CONFIG_DIR / "server.example.ini"


def _resolve(path: str) -> Path:
    """Resolve a configured path relative to the project root."""
    p = Path(path)
    if p.is_absolute():
        return p
    return PROJECT_ROOT / p


# =============================================================================
# CONFIGURATION DATACLASSES
# =============================================================================


@dataclass
class ServerSettings:
    """Network server configuration."""

    host: str = "0.0.0.0"  # nosec B104 - intentional for server binding
    port: int = 8000


@dataclass
class SecuritySettings:
    """Security-related configuration."""

    production: bool = False
    cors_origins: list[str] = field(default_factory=lambda: ["*"])
    docs_enabled: Literal["auto", "enabled", "disabled"] = "auto"


@dataclass
class StoreSettings:
    """Scene store configuration."""

    path: str = "data/chronicle.db"

    @property
    def absolute_path(self) -> Path:
        """Get absolute path to the scene database file."""
        return _resolve(self.path)


@dataclass
class LoggingSettings:
    """Logging configuration."""

    level: str = "INFO"
    format: Literal["simple", "detailed", "json"] = "detailed"


@dataclass
class OracleSettings:
    """Reasoning oracle (Ollama ``/api/chat``) configuration."""

    base_url: str = "http://localhost:11434"
    model: str = "llama3.1:8b"
    timeout_seconds: float = 60.0
    temperature: float = 0.8
    max_tool_rounds: int = 6

    @property
    def api_endpoint(self) -> str:
        """Full Ollama ``/api/chat`` URL constructed from ``base_url``."""
        return f"{self.base_url.rstrip('/')}/api/chat"


@dataclass
class MediaSettings:
    """Image, speech, and transcription backends.

    An empty URL means the backend is not configured; the matching artifact
    is then always ``None``.
    """

    image_url: str = ""
    image_api_key: str = ""
    image_timeout_seconds: float = 45.0
    speech_url: str = ""
    speech_api_key: str = ""
    speech_model: str = "tts-1-hd"
    default_voice: str = "shimmer"
    speech_timeout_seconds: float = 30.0
    transcriber_url: str = ""
    transcriber_api_key: str = ""
    transcriber_model: str = "whisper-1"
    transcriber_timeout_seconds: float = 30.0


@dataclass
class RuleSettings:
    """Game rules shared by every scene."""

    action_budget: int = 3
    min_action_cost: int = 1
    max_action_cost: int = 3
    memory_capacity: int = 5
    history_window: int = 8
    starting_hp: int = 10
    director_may_initiate_combat: bool = True


@dataclass
class PersonaSettings:
    """Director persona loading."""

    directory: str = "data/personas"
    default_persona: str = "grand_tactician"

    @property
    def absolute_directory(self) -> Path:
        """Get absolute path to the persona directory."""
        return _resolve(self.directory)


@dataclass
class ServerConfig:
    """
    Complete server configuration.

    This is the main configuration object that aggregates all settings sections.
    Access via the module-level `config` singleton.
    """

    server: ServerSettings = field(default_factory=ServerSettings)
    security: SecuritySettings = field(default_factory=SecuritySettings)
    store: StoreSettings = field(default_factory=StoreSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    oracle: OracleSettings = field(default_factory=OracleSettings)
    media: MediaSettings = field(default_factory=MediaSettings)
    rules: RuleSettings = field(default_factory=RuleSettings)
    personas: PersonaSettings = field(default_factory=PersonaSettings)

    @property
    def is_production(self) -> bool:
        """Convenience property for production mode check."""
        return self.security.production

    @property
    def docs_should_be_enabled(self) -> bool:
        """Determine if API docs should be enabled based on settings."""
        if self.security.docs_enabled == "enabled":
            return True
        if self.security.docs_enabled == "disabled":
            return False
        # "auto" - follow production setting
        return not self.is_production


# =============================================================================
# CONFIGURATION LOADING
# =============================================================================


def _parse_bool(value: str) -> bool:
    """Parse a string value to boolean."""
    return value.lower() in ("true", "yes", "1", "on", "enabled")


def _parse_list(value: str) -> list[str]:
    """Parse a comma-separated string to list, stripping whitespace."""
    if not value or value.strip() == "":
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def _load_from_ini(parser: configparser.ConfigParser, cfg: ServerConfig) -> None:
    """Load configuration from parsed INI file into ServerConfig."""
    # Server section
    if parser.has_section("server"):
        if parser.has_option("server", "host"):
            cfg.server.host = parser.get("server", "host")
        if parser.has_option("server", "port"):
            cfg.server.port = parser.getint("server", "port")

    # Security section
    if parser.has_section("security"):
        if parser.has_option("security", "production"):
            cfg.security.production = _parse_bool(parser.get("security", "production"))
        if parser.has_option("security", "cors_origins"):
            cfg.security.cors_origins = _parse_list(parser.get("security", "cors_origins"))
        if parser.has_option("security", "docs_enabled"):
            val = parser.get("security", "docs_enabled").lower()
            if val in ("auto", "enabled", "disabled"):
                cfg.security.docs_enabled = val  # type: ignore[assignment]

    # Store section
    if parser.has_section("store"):
        if parser.has_option("store", "path"):
            cfg.store.path = parser.get("store", "path")

    # Logging section
    if parser.has_section("logging"):
        if parser.has_option("logging", "level"):
            cfg.logging.level = parser.get("logging", "level").upper()
        if parser.has_option("logging", "format"):
            val = parser.get("logging", "format").lower()
            if val in ("simple", "detailed", "json"):
                cfg.logging.format = val  # type: ignore[assignment]

    # Oracle section
    if parser.has_section("oracle"):
        if parser.has_option("oracle", "base_url"):
            cfg.oracle.base_url = parser.get("oracle", "base_url")
        if parser.has_option("oracle", "model"):
            cfg.oracle.model = parser.get("oracle", "model")
        if parser.has_option("oracle", "timeout_seconds"):
            cfg.oracle.timeout_seconds = parser.getfloat("oracle", "timeout_seconds")
        if parser.has_option("oracle", "temperature"):
            cfg.oracle.temperature = parser.getfloat("oracle", "temperature")
        if parser.has_option("oracle", "max_tool_rounds"):
            cfg.oracle.max_tool_rounds = parser.getint("oracle", "max_tool_rounds")

    # Media section
    if parser.has_section("media"):
        for name in (
            "image_url",
            "image_api_key",
            "speech_url",
            "speech_api_key",
            "speech_model",
            "default_voice",
            "transcriber_url",
            "transcriber_api_key",
            "transcriber_model",
        ):
            if parser.has_option("media", name):
                setattr(cfg.media, name, parser.get("media", name))
        for name in (
            "image_timeout_seconds",
            "speech_timeout_seconds",
            "transcriber_timeout_seconds",
        ):
            if parser.has_option("media", name):
                setattr(cfg.media, name, parser.getfloat("media", name))

    # Rules section
    if parser.has_section("rules"):
        for name in (
            "action_budget",
            "min_action_cost",
            "max_action_cost",
            "memory_capacity",
            "history_window",
            "starting_hp",
        ):
            if parser.has_option("rules", name):
                setattr(cfg.rules, name, parser.getint("rules", name))
        if parser.has_option("rules", "director_may_initiate_combat"):
            cfg.rules.director_may_initiate_combat = _parse_bool(
                parser.get("rules", "director_may_initiate_combat")
            )

    # Personas section
    if parser.has_section("personas"):
        if parser.has_option("personas", "directory"):
            cfg.personas.directory = parser.get("personas", "directory")
        if parser.has_option("personas", "default_persona"):
            cfg.personas.default_persona = parser.get("personas", "default_persona")


def _apply_env_overrides(cfg: ServerConfig) -> None:
    """Apply environment variable overrides to configuration."""
    # Server settings
    if env_host := os.getenv("CHRONICLE_HOST"):
        cfg.server.host = env_host
    if env_port := os.getenv("CHRONICLE_PORT"):
        cfg.server.port = int(env_port)

    # Security settings
    if env_cors := os.getenv("CHRONICLE_CORS_ORIGINS"):
        cfg.security.cors_origins = _parse_list(env_cors)

    # Store settings
    if env_db := os.getenv("CHRONICLE_DB_PATH"):
        cfg.store.path = env_db

    # Logging settings
    if env_log := os.getenv("CHRONICLE_LOG_LEVEL"):
        cfg.logging.level = env_log.upper()
    if env_log_format := os.getenv("CHRONICLE_LOG_FORMAT"):
        if env_log_format.lower() in ("simple", "detailed", "json"):
            cfg.logging.format = env_log_format.lower()  # type: ignore[assignment]

    # Oracle settings
    if env_ollama := os.getenv("CHRONICLE_OLLAMA_URL"):
        cfg.oracle.base_url = env_ollama
    if env_model := os.getenv("CHRONICLE_ORACLE_MODEL"):
        cfg.oracle.model = env_model
    if env_timeout := os.getenv("CHRONICLE_ORACLE_TIMEOUT_SECONDS"):
        cfg.oracle.timeout_seconds = float(env_timeout)

    # Media settings
    if env_image := os.getenv("CHRONICLE_IMAGE_URL"):
        cfg.media.image_url = env_image
    if env_image_key := os.getenv("CHRONICLE_IMAGE_API_KEY"):
        cfg.media.image_api_key = env_image_key
    if env_speech := os.getenv("CHRONICLE_SPEECH_URL"):
        cfg.media.speech_url = env_speech
    if env_speech_key := os.getenv("CHRONICLE_SPEECH_API_KEY"):
        cfg.media.speech_api_key = env_speech_key
        # The same OpenAI-compatible key usually serves transcription too.
        cfg.media.transcriber_api_key = cfg.media.transcriber_api_key or env_speech_key
    if env_transcriber := os.getenv("CHRONICLE_TRANSCRIBER_URL"):
        cfg.media.transcriber_url = env_transcriber

    # Rule settings
    if env_budget := os.getenv("CHRONICLE_ACTION_BUDGET"):
        cfg.rules.action_budget = int(env_budget)
    if env_hp := os.getenv("CHRONICLE_STARTING_HP"):
        cfg.rules.starting_hp = int(env_hp)

    # Persona settings
    if env_personas := os.getenv("CHRONICLE_PERSONAS_DIR"):
        cfg.personas.directory = env_personas


def load_config() -> ServerConfig:
    """
    Load configuration from all sources with proper priority.

    Priority (highest wins):
        1. Environment variables
        2. config/server.ini
        3. config/server.example.ini (fallback for development)
        4. Built-in defaults

    Returns:
        ServerConfig: Fully populated configuration object.
    """
    cfg = ServerConfig()

    # Determine which config file to use
    config_file = None
    if CONFIG_FILE.exists():
        config_file = CONFIG_FILE
    elif CONFIG_EXAMPLE.exists():
        # Use example as fallback for development
        config_file = CONFIG_EXAMPLE

    # Load from INI file if available
    if config_file:
        parser = configparser.ConfigParser()
        parser.read(config_file)
        _load_from_ini(parser, cfg)

    # Apply environment variable overrides (highest priority)
    _apply_env_overrides(cfg)

    return cfg


def reload_config() -> "ServerConfig":
    """
    Reload configuration from disk and environment.

    This updates the module-level `config` singleton. Use sparingly as it
    doesn't update already-running server middleware.

    Returns:
        ServerConfig: The newly loaded configuration.
    """
    global config
    config = load_config()
    return config


# =============================================================================
# MODULE-LEVEL SINGLETON
# =============================================================================

# Load configuration once at module import time
config = load_config()


# =============================================================================
# LOGGING
# =============================================================================

_LOG_FORMATS = {
    "simple": "%(levelname)s %(message)s",
    "detailed": "%(asctime)s %(levelname)-8s %(name)s: %(message)s",
}


class _JsonFormatter(logging.Formatter):
    """One JSON object per log line, for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "time": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload)


def configure_logging(settings: LoggingSettings | None = None) -> None:
    """Install a root handler using the configured level and format.

    Called once by the server entry point.  Library modules never configure
    logging themselves; they only obtain ``logging.getLogger(__name__)``.
    """
    settings = settings or config.logging
    handler = logging.StreamHandler()
    if settings.format == "json":
        handler.setFormatter(_JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(_LOG_FORMATS[settings.format]))

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(getattr(logging, settings.level, logging.INFO))


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def get_config_status() -> dict:
    """
    Get configuration status for diagnostics.

    Returns a dictionary with configuration source information,
    useful for debugging and the health endpoint.
    """
    return {
        "config_file_exists": CONFIG_FILE.exists(),
        "config_file_path": str(CONFIG_FILE),
        "using_example": not CONFIG_FILE.exists() and CONFIG_EXAMPLE.exists(),
        "production_mode": config.is_production,
        "docs_enabled": config.docs_should_be_enabled,
        "image_configured": bool(config.media.image_url),
        "speech_configured": bool(config.media.speech_url),
        "transcriber_configured": bool(config.media.transcriber_url),
    }


def print_config_summary() -> None:
    """Print a summary of current configuration to stdout."""
    status = get_config_status()
    print("\n" + "=" * 60)
    print("SERVER CONFIGURATION")
    print("=" * 60)
    print(f"Config file: {status['config_file_path']}")
    print(f"File exists: {status['config_file_exists']}")
    if status["using_example"]:
        print("WARNING: Using example config (copy to server.ini for production)")
    print("-" * 60)
    print(f"Server:      {config.server.host}:{config.server.port}")
    print(f"Oracle:      {config.oracle.api_endpoint} ({config.oracle.model})")
    print(f"Image:       {config.media.image_url or 'not configured'}")
    print(f"Speech:      {config.media.speech_url or 'not configured'}")
    print(f"Store:       {config.store.absolute_path}")
    print(f"Log level:   {config.logging.level}")
    print("=" * 60 + "\n")


# =============================================================================
# TEST HELPERS
# =============================================================================


class use_test_store:
    """
    Context manager for using a temporary scene database.

    Usage:
        from chronicle_server.config import use_test_store

        def test_something(tmp_path):
            with use_test_store(tmp_path / "scenes.db"):
                store = SqliteSceneStore.from_config()

    Args:
        db_path: Path to the test database file
    """

    def __init__(self, db_path: Path | str):
        self.db_path = Path(db_path)
        self.original_path: str | None = None

    def __enter__(self) -> Path:
        """Set up test database path."""
        self.original_path = config.store.path
        config.store.path = str(self.db_path)
        return self.db_path

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Restore original database path."""
        if self.original_path is not None:
            config.store.path = self.original_path
        return None
