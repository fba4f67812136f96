"""Zhuzh Configuration.

Includes:
- AppConfig: Main application settings with environment variable support
- ConversationSettings: Conversation TTL, sweep interval and prompt style
- ResolverSettings: Auto-resolve thresholds and scoring weight overrides
- HoursSettings: Limits for planned and logged hours
- LogSettings: Log file location, level and rotation

Environment Variables:
    ZHUZH_DATA_PATH: Directory holding the .zhuzh/ data folder
    ZHUZH_BACKEND: local, memory or supabase
    ZHUZH_SUPABASE_URL: Supabase project URL
    ZHUZH_SUPABASE_KEY: Supabase service key
    ZHUZH_DEFAULT_ORG_ID: Organization used by the local CLI
    ZHUZH_CONVERSATION__TTL_MINUTES: Nested sections use a double underscore
    ZHUZH_DEBUG: Any non-empty value forces DEBUG logging
"""

from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

CONFIG_DIR = ".zhuzh"
CONFIG_FILE = "config.yaml"
LOG_DIR = "logs"


class ConversationSettings(BaseModel):
    """Multi-turn conversation settings.

    Attributes:
        ttl_minutes: How long a pending prompt stays answerable
        sweep_interval_seconds: How often expired prompts are purged
        presentation: "text" for numbered replies, "buttons" for Block Kit buttons
    """

    ttl_minutes: float = Field(default=10.0, gt=0)
    sweep_interval_seconds: float = Field(default=60.0, gt=0)
    presentation: Literal["text", "buttons"] = "text"


class ResolverSettings(BaseModel):
    """Disambiguation policy and matcher weight overrides.

    Weight overrides map rule names (exact_name, exact_alias, name_prefix, ...)
    to a score, or to null to disable the rule.
    """

    auto_resolve_min_score: int = Field(default=90, ge=0, le=100)
    auto_resolve_min_gap: int = Field(default=20, ge=0, le=100)
    max_options: int = Field(default=5, ge=1, le=10)
    person_weights: dict[str, Optional[int]] = Field(default_factory=dict)
    project_weights: dict[str, Optional[int]] = Field(default_factory=dict)


class HoursSettings(BaseModel):
    """Limits for hours figures.

    With confirm_over_capacity on, an add past weekly_capacity_hours asks
    for yes/no confirmation instead of writing straight away.
    """

    max_hours_per_entry: float = Field(default=80.0, gt=0)
    weekly_capacity_hours: float = Field(default=40.0, gt=0)
    max_log_minutes: int = Field(default=24 * 60, gt=0)
    confirm_over_capacity: bool = False


class LogSettings(BaseModel):
    """Rotating log file settings.

    Attributes:
        directory: Where zhuzh.log lives; defaults to .zhuzh/logs under data_path
        level: Root logger level
        max_bytes: Size at which the file rotates
        backup_count: Rotated files to keep
    """

    directory: Optional[Path] = None
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    max_bytes: int = Field(default=5 * 1024 * 1024, gt=0)
    backup_count: int = Field(default=3, ge=0)


class AppConfig(BaseSettings):
    """Application configuration with environment variable support.

    Configuration is loaded from environment variables with ZHUZH_ prefix.
    For example, ZHUZH_BACKEND sets backend.

    Precedence (highest to lowest):
        1. Environment variables (ZHUZH_*)
        2. Config file (.zhuzh/config.yaml)
        3. Default values
    """

    model_config = SettingsConfigDict(
        env_prefix="ZHUZH_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    data_path: Path = Field(default_factory=Path.cwd)
    backend: Literal["local", "memory", "supabase"] = "local"

    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    default_org_id: Optional[str] = None

    conversation: ConversationSettings = Field(default_factory=ConversationSettings)
    resolver: ResolverSettings = Field(default_factory=ResolverSettings)
    hours: HoursSettings = Field(default_factory=HoursSettings)
    logs: LogSettings = Field(default_factory=LogSettings)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        # Values passed in (from the config file) yield to the environment
        return env_settings, init_settings, dotenv_settings, file_secret_settings

    @property
    def config_file(self) -> Path:
        return self.data_path / CONFIG_DIR / CONFIG_FILE

    @property
    def log_dir(self) -> Path:
        return self.logs.directory or self.data_path / CONFIG_DIR / LOG_DIR

    @classmethod
    def load(cls, path: Path) -> "AppConfig":
        """Load configuration from .zhuzh/config.yaml if it exists.

        Args:
            path: Directory holding the .zhuzh/ folder

        Returns:
            AppConfig with file values applied under environment overrides
        """
        from ruamel.yaml import YAML

        config_file = Path(path) / CONFIG_DIR / CONFIG_FILE
        data: dict[str, Any] = {}

        if config_file.exists():
            yaml = YAML(typ="safe")
            with config_file.open() as f:
                data = yaml.load(f) or {}

        data.setdefault("data_path", Path(path))
        return cls(**data)

    def save(self) -> None:
        """Save configuration to .zhuzh/config.yaml in the data path.

        The Supabase key is never written to disk.
        """
        from ruamel.yaml import YAML

        config_dir = self.data_path / CONFIG_DIR
        config_dir.mkdir(parents=True, exist_ok=True)

        yaml = YAML()
        yaml.default_flow_style = False

        data = self.model_dump(
            mode="json",
            exclude={"data_path", "supabase_key"},
            exclude_none=True,
        )

        with self.config_file.open("w") as f:
            yaml.dump(data, f)


__all__ = [
    "AppConfig",
    "ConversationSettings",
    "HoursSettings",
    "LogSettings",
    "ResolverSettings",
]
