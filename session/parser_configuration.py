"""
Parser configuration management for MudLogMap.

This module provides a typed interface to parser configuration, loaded from
the [tool.mudlogmap] table of pyproject.toml and MUDLOGMAP_* environment
variables.
"""

import tomllib
from typing import Optional
from pathlib import Path
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv


class ParserConfiguration(BaseSettings):
    """
    Typed configuration object for the transcript parser.

    Every field has a default so the parser runs without a config file.
    MUDLOGMAP_* environment variables (including those loaded from .env)
    override values from TOML, which override defaults.
    """

    # Storage service
    api_base_url: str = Field(
        default="http://localhost:3002/api", description="Base URL of the storage REST API"
    )
    request_timeout_seconds: float = Field(
        default=10.0, gt=0, description="Timeout for each storage request in seconds"
    )

    # Room identity
    similarity_threshold: float = Field(
        default=0.98,
        ge=0.0,
        le=1.0,
        description="Minimum token-set similarity for fuzzy description matches",
    )
    short_description_length: int = Field(
        default=50,
        ge=0,
        description="Normalized descriptions shorter than this must match exactly",
    )
    min_description_length: int = Field(
        default=10,
        ge=0,
        description="Room titles whose description is shorter than this are ignored",
    )

    # Portal binding
    transient_failure_limit: int = Field(
        default=3,
        ge=1,
        le=100,
        description="Consecutive lost-concentration failures before a room is no-magic",
    )

    # Persistence defaults
    default_terrain: str = Field(
        default="inside", description="Terrain stored for rooms without one"
    )

    # Logging
    log_file: Optional[str] = Field(
        default=None, description="Optional human-readable log file"
    )
    json_log_file: Optional[str] = Field(
        default=None, description="Optional JSON-lines log file"
    )
    log_level: str = Field(default="INFO", description="Logging level name")

    model_config = SettingsConfigDict(
        env_prefix="MUDLOGMAP_",
        env_file=None,
        case_sensitive=False,
        extra="forbid",  # Catch typos in config early
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        # Environment first so it overrides TOML values passed as init kwargs
        return env_settings, init_settings, dotenv_settings, file_secret_settings

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {value}")
        return level

    @classmethod
    def from_toml(cls, config_file: Optional[Path] = None) -> "ParserConfiguration":
        """
        Create a ParserConfiguration from the [tool.mudlogmap] TOML table.

        Args:
            config_file: Path to TOML file (defaults to pyproject.toml)

        Returns:
            ParserConfiguration instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            KeyError: If the [tool.mudlogmap] section is missing
        """
        # Load .env file if it exists to populate environment variables
        load_dotenv()

        config_file = Path(config_file) if config_file else Path("pyproject.toml")

        if not config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_file}")

        with open(config_file, "rb") as f:
            toml_data = tomllib.load(f)

        try:
            tool_config = toml_data["tool"]["mudlogmap"]
        except KeyError:
            raise KeyError(f"Missing [tool.mudlogmap] section in {config_file}")

        api_config = tool_config.get("api", {})
        identity_config = tool_config.get("identity", {})
        portal_config = tool_config.get("portal", {})
        logging_config = tool_config.get("logging", {})

        config_dict = {
            "api_base_url": api_config.get("base_url"),
            "request_timeout_seconds": api_config.get("timeout_seconds"),
            "default_terrain": api_config.get("default_terrain"),
            "similarity_threshold": identity_config.get("similarity_threshold"),
            "short_description_length": identity_config.get("short_description_length"),
            "min_description_length": identity_config.get("min_description_length"),
            "transient_failure_limit": portal_config.get("transient_failure_limit"),
            "log_file": logging_config.get("log_file"),
            "json_log_file": logging_config.get("json_log_file"),
            "log_level": logging_config.get("level"),
        }

        # Unset keys fall through to the field defaults
        return cls(**{key: value for key, value in config_dict.items() if value is not None})

    @classmethod
    def load(cls, config_file: Optional[Path] = None) -> "ParserConfiguration":
        """
        Load configuration for the CLI.

        An explicitly given file must exist and contain the section; without
        one, pyproject.toml in the working directory is used when it has a
        [tool.mudlogmap] table, and defaults otherwise.
        """
        if config_file is not None:
            return cls.from_toml(Path(config_file))
        try:
            return cls.from_toml()
        except (FileNotFoundError, KeyError):
            load_dotenv()
            return cls()
