"""
Configuration management for youtube-study.

This module provides centralized configuration management with environment variable
handling, validation, and default values. API keys are optional: a missing key
degrades the endpoints that need it instead of stopping the service.
"""

import os
from typing import List, Optional
from pathlib import Path
from pydantic import BaseModel, Field, field_validator, ValidationError, ConfigDict
from dotenv import load_dotenv


PLACEHOLDER_VALUES = {"your_openai_api_key_here", "your_youtube_api_key_here", ""}


class Configuration(BaseModel):
    """
    Configuration class for the youtube-study service.

    Handles API keys, provider policies (retries, excerpt sizes), persistence
    and logging settings with environment variable support and validation.
    """

    # API Configuration
    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API key for content generation")
    openai_model: str = Field(default="gpt-4o-mini", description="OpenAI model for content generation")
    openai_timeout: float = Field(default=60.0, gt=0, description="OpenAI request timeout in seconds")
    openai_max_tokens: int = Field(default=4000, ge=100, le=16000, description="Maximum tokens per completion")
    openai_temperature: float = Field(default=0.7, ge=0.0, le=2.0, description="Sampling temperature")
    youtube_api_key: Optional[str] = Field(default=None, description="YouTube Data API v3 key")
    identity_provider_secret: Optional[str] = Field(default=None, description="Identity provider secret key")

    # Persistence
    database_url: str = Field(
        default="sqlite+aiosqlite:///./output/youtube-study.db",
        description="SQLAlchemy async connection string"
    )
    database_echo: bool = Field(default=False, description="Echo SQL statements to the log")

    # Transcript policy
    transcript_max_attempts: int = Field(default=3, ge=1, le=10, description="Transcript fetch attempts")
    transcript_retry_delay: float = Field(default=1.0, ge=0.0, le=30.0, description="Linear backoff step in seconds")
    transcript_min_length: int = Field(default=50, ge=1, description="Minimum usable transcript length")
    transcript_languages: List[str] = Field(default_factory=lambda: ["en", "en-US", "en-GB"],
                                       description="Preferred transcript languages")

    # Prompt budget
    transcript_excerpt_chars: int = Field(default=8000, ge=500, description="Transcript characters sent to the LLM")
    description_excerpt_chars: int = Field(default=500, ge=0, description="Description characters sent to the LLM")
    note_context_chars: int = Field(default=2000, ge=0, description="Transcript characters used as note context")

    # History
    history_page_size: int = Field(default=10, ge=1, le=100, description="Default history page size")

    # Server
    host: str = Field(default="127.0.0.1", description="Bind address for the HTTP server")
    port: int = Field(default=8000, ge=1, le=65535, description="Bind port for the HTTP server")

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Logging level")
    log_file: Optional[Path] = Field(default=None, description="Log file path")

    # Development Settings
    debug: bool = Field(default=False, description="Enable debug mode")

    # Proxy Configuration
    proxy_username: Optional[str] = Field(default=None, description="Proxy username for transcript fetching")
    proxy_password: Optional[str] = Field(default=None, description="Proxy password for transcript fetching")

    model_config = ConfigDict(
        case_sensitive=False
    )

    @field_validator('openai_api_key', 'youtube_api_key', 'identity_provider_secret')
    @classmethod
    def normalize_secret(cls, v):
        """Treat empty strings and template placeholders as missing keys."""
        if v is None:
            return None
        v = v.strip()
        if v in PLACEHOLDER_VALUES:
            return None
        return v

    @field_validator('openai_model')
    @classmethod
    def validate_openai_model(cls, v):
        """Validate OpenAI model name is present."""
        if not v or not v.strip():
            raise ValueError("OpenAI model must be provided")
        return v.strip()

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level is one of the standard levels."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {', '.join(valid_levels)}")
        return v.upper()

    @field_validator('transcript_languages')
    @classmethod
    def validate_languages(cls, v):
        """Strip whitespace and drop empty language codes."""
        cleaned = [lang.strip() for lang in v if lang and lang.strip()]
        if not cleaned:
            raise ValueError("At least one transcript language must be provided")
        return cleaned

    def __init__(self, **data):
        """Initialize configuration with environment variable loading."""
        # Load environment variables from .env file if it exists
        load_dotenv()

        # Explicit keyword arguments win over the environment
        env_data = self._load_from_environment()
        env_data.update(data)

        super().__init__(**env_data)

    def _load_from_environment(self) -> dict:
        """Load configuration values from environment variables."""
        env_mapping = {
            'openai_api_key': 'OPENAI_API_KEY',
            'openai_model': 'OPENAI_MODEL',
            'openai_timeout': 'OPENAI_TIMEOUT',
            'openai_max_tokens': 'OPENAI_MAX_TOKENS',
            'openai_temperature': 'OPENAI_TEMPERATURE',
            'youtube_api_key': 'YOUTUBE_API_KEY',
            'identity_provider_secret': 'IDENTITY_PROVIDER_SECRET',
            'database_url': 'DATABASE_URL',
            'database_echo': 'DATABASE_ECHO',
            'transcript_max_attempts': 'TRANSCRIPT_MAX_ATTEMPTS',
            'transcript_retry_delay': 'TRANSCRIPT_RETRY_DELAY',
            'transcript_min_length': 'TRANSCRIPT_MIN_LENGTH',
            'transcript_languages': 'TRANSCRIPT_LANGUAGES',
            'transcript_excerpt_chars': 'TRANSCRIPT_EXCERPT_CHARS',
            'description_excerpt_chars': 'DESCRIPTION_EXCERPT_CHARS',
            'note_context_chars': 'NOTE_CONTEXT_CHARS',
            'history_page_size': 'HISTORY_PAGE_SIZE',
            'host': 'HOST',
            'port': 'PORT',
            'log_level': 'LOG_LEVEL',
            'log_file': 'LOG_FILE',
            'debug': 'DEBUG',
            'proxy_username': 'PROXY_USERNAME',
            'proxy_password': 'PROXY_PASSWORD',
        }

        int_fields = ['openai_max_tokens', 'transcript_max_attempts', 'transcript_min_length',
                      'transcript_excerpt_chars', 'description_excerpt_chars', 'note_context_chars',
                      'history_page_size', 'port']
        float_fields = ['openai_timeout', 'openai_temperature', 'transcript_retry_delay']

        env_data = {}
        for field_name, env_var in env_mapping.items():
            env_value = os.getenv(env_var)
            if env_value is None:
                continue
            # Handle special cases for type conversion
            if field_name in int_fields:
                try:
                    env_data[field_name] = int(env_value)
                except ValueError:
                    raise ValueError(f"Environment variable {env_var} must be an integer")
            elif field_name in float_fields:
                try:
                    env_data[field_name] = float(env_value)
                except ValueError:
                    raise ValueError(f"Environment variable {env_var} must be a number")
            elif field_name in ['debug', 'database_echo']:
                env_data[field_name] = env_value.lower() in ('true', '1', 'yes', 'on')
            elif field_name == 'transcript_languages':
                env_data[field_name] = [lang.strip() for lang in env_value.split(',') if lang.strip()]
            elif field_name == 'log_file':
                env_data[field_name] = Path(env_value)
            else:
                env_data[field_name] = env_value

        return env_data

    def ensure_directories(self):
        """Ensure the log directory and the sqlite database directory exist."""
        if self.log_file:
            self.log_file.parent.mkdir(parents=True, exist_ok=True)

        sqlite_prefix = "sqlite+aiosqlite:///"
        if self.database_url.startswith(sqlite_prefix):
            db_path = self.database_url[len(sqlite_prefix):]
            if db_path and db_path != ":memory:":
                Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    @classmethod
    def load_config(cls, config_file: Optional[Path] = None) -> 'Configuration':
        """
        Load configuration from environment variables and optional config file.

        Args:
            config_file: Optional path to .env file to load

        Returns:
            Configuration instance

        Raises:
            ValidationError: If configuration validation fails
            FileNotFoundError: If specified config file doesn't exist
        """
        if config_file and not config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_file}")

        if config_file:
            load_dotenv(config_file)

        try:
            return cls()
        except ValidationError as e:
            raise e

    @property
    def has_openai_key(self) -> bool:
        return bool(self.openai_api_key)

    @property
    def has_youtube_key(self) -> bool:
        return bool(self.youtube_api_key)

    @property
    def has_identity_keys(self) -> bool:
        return bool(self.identity_provider_secret)

    def get_key_status(self) -> dict:
        """
        Report which external credentials are configured.

        Returns:
            Dictionary of presence flags, never the values themselves
        """
        return {
            'hasOpenAIKey': self.has_openai_key,
            'hasYouTubeKey': self.has_youtube_key,
            'hasDatabaseUrl': bool(self.database_url),
            'hasIdentityKeys': self.has_identity_keys,
        }

    def to_dict(self) -> dict:
        """
        Convert configuration to dictionary, excluding sensitive data.

        Returns:
            Dictionary representation of configuration (secrets masked)
        """
        config_dict = self.model_dump()
        for key in ['openai_api_key', 'youtube_api_key', 'identity_provider_secret', 'proxy_password']:
            if config_dict.get(key):
                config_dict[key] = '***masked***'
        if '@' in self.database_url:
            scheme, _, rest = self.database_url.partition('://')
            config_dict['database_url'] = f"{scheme}://***masked***@{rest.split('@', 1)[1]}"
        config_dict['log_file'] = str(self.log_file) if self.log_file else None
        return config_dict


# Global configuration instance
_config_instance: Optional[Configuration] = None


def get_config() -> Configuration:
    """
    Get the global configuration instance.

    Returns:
        Configuration instance

    Raises:
        RuntimeError: If configuration hasn't been initialized
    """
    global _config_instance
    if _config_instance is None:
        raise RuntimeError("Configuration not initialized. Call init_config() first.")
    return _config_instance


def init_config(config_file: Optional[Path] = None) -> Configuration:
    """
    Initialize the global configuration instance.

    Args:
        config_file: Optional path to .env file to load

    Returns:
        Configuration instance

    Raises:
        ValidationError: If configuration validation fails
    """
    global _config_instance
    _config_instance = Configuration.load_config(config_file)
    return _config_instance


def reset_config():
    """Reset the global configuration instance (mainly for testing)."""
    global _config_instance
    _config_instance = None
