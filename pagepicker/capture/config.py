"""Configuration system for Page Picker.

This module provides configuration management for the capture pipeline, the
injected programs and the sandbox host, including YAML loading, validation,
and environment-specific overrides.
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, Field, field_validator

from ..utils.url_normalizer import DEFAULT_EXCLUDED_PREFIXES


ENVIRONMENT_VARIABLE = "PAGEPICKER_ENV"
VALID_ENVIRONMENTS = {'production', 'staging', 'development', 'test'}


class CaptureSettings(BaseModel):
    """Page fetch and resource inlining settings."""

    saved_pages_root: str = Field(
        default="saved_pages",
        description="Folder holding one subfolder per captured page"
    )
    inline_resources: bool = Field(default=True, description="Inline stylesheets and images")
    save_resource_copies: bool = Field(
        default=True,
        description="Persist fetched resources under the page folder"
    )
    resource_timeout_s: Optional[float] = Field(
        default=20.0,
        gt=0,
        description="Timeout for a single resource fetch; null disables it"
    )
    max_concurrent_fetches: int = Field(default=6, ge=1, le=64)
    excluded_prefixes: List[str] = Field(
        default_factory=lambda: list(DEFAULT_EXCLUDED_PREFIXES),
        description="Reference prefixes never fetched for inlining"
    )


class SandboxSettings(BaseModel):
    """Timing of the injected programs."""

    ready_initial_delay_ms: int = Field(default=500, ge=0)
    ready_max_delay_ms: int = Field(default=5000, ge=0)
    ready_max_attempts: int = Field(default=8, ge=1, le=100)
    link_debounce_ms: int = Field(default=100, ge=0)

    @field_validator('ready_max_delay_ms')
    @classmethod
    def validate_max_delay(cls, v, info):
        initial = info.data.get('ready_initial_delay_ms', 0)
        if v < initial:
            raise ValueError("ready_max_delay_ms must not be smaller than ready_initial_delay_ms")
        return v


class HttpSettings(BaseModel):
    """Settings of the reference HTTP backend."""

    user_agent: str = Field(default="Mozilla/5.0 (compatible; PagePicker/1.0)")
    timeout_s: float = Field(default=30.0, gt=0)


class BrowserSettings(BaseModel):
    """Settings of the Playwright sandbox host."""

    engine: str = Field(default="chromium")
    headless: bool = Field(default=True)
    viewport_width: int = Field(default=1366, ge=320)
    viewport_height: int = Field(default=768, ge=240)

    @field_validator('engine')
    @classmethod
    def validate_engine(cls, v):
        if v not in ('chromium', 'firefox', 'webkit'):
            raise ValueError("engine must be one of: chromium, firefox, webkit")
        return v


class PagePickerConfig(BaseModel):
    """Root configuration."""

    environment: str = Field(default="production", description="Environment name")
    capture: CaptureSettings = Field(default_factory=CaptureSettings)
    sandbox: SandboxSettings = Field(default_factory=SandboxSettings)
    http: HttpSettings = Field(default_factory=HttpSettings)
    browser: BrowserSettings = Field(default_factory=BrowserSettings)
    environments: Dict[str, Dict[str, Any]] = Field(
        default_factory=dict,
        description="Environment-specific overrides"
    )

    @field_validator('environment')
    @classmethod
    def validate_environment(cls, v):
        if v not in VALID_ENVIRONMENTS:
            raise ValueError(f"Environment must be one of: {VALID_ENVIRONMENTS}")
        return v

    def resolved(self) -> "PagePickerConfig":
        """Return a copy with the current environment's overrides applied."""
        overrides = self.environments.get(self.environment)
        if not overrides:
            return self

        data = self.model_dump()
        for section, values in overrides.items():
            if isinstance(values, dict) and isinstance(data.get(section), dict):
                data[section].update(values)
            else:
                data[section] = values
        data['environments'] = {}
        return PagePickerConfig(**data)


class ConfigManager:
    """Manager for configuration loading and caching."""

    def __init__(self, config_path: Optional[Union[str, Path]] = None):
        """Initialize configuration manager.

        Args:
            config_path: Path to the YAML file. Defaults to config/pagepicker.yaml
        """
        if config_path is None:
            project_root = Path(__file__).parent.parent.parent
            config_path = project_root / "config" / "pagepicker.yaml"

        self.config_path = Path(config_path)
        self._config: Optional[PagePickerConfig] = None
        self._loaded_env = None

    def load_config(self, force_reload: bool = False) -> PagePickerConfig:
        """Load configuration from the YAML file.

        A missing file yields the defaults.

        Raises:
            yaml.YAMLError: If YAML is invalid
            ValueError: If configuration validation fails
        """
        current_env = os.environ.get(ENVIRONMENT_VARIABLE, 'production')

        if self._config is not None and not force_reload and current_env == self._loaded_env:
            return self._config

        config_data: Dict[str, Any] = {}
        if self.config_path.exists():
            try:
                with open(self.config_path, 'r') as f:
                    config_data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise yaml.YAMLError(f"Invalid YAML in {self.config_path}: {e}")

        if current_env != 'production':
            config_data['environment'] = current_env

        try:
            self._config = PagePickerConfig(**config_data).resolved()
        except Exception as e:
            raise ValueError(f"Configuration validation failed: {e}") from e

        self._loaded_env = current_env
        return self._config

    @property
    def config(self) -> PagePickerConfig:
        """Get current configuration, loading if necessary."""
        if self._config is None:
            return self.load_config()
        return self._config

    @property
    def environment(self) -> str:
        return self.config.environment


_config_manager: Optional[ConfigManager] = None


def get_config(config_path: Optional[Union[str, Path]] = None) -> ConfigManager:
    """Get the global configuration manager.

    Args:
        config_path: Path to config file (only used on first call)
    """
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager(config_path)
    return _config_manager


def reset_config() -> None:
    """Drop the global configuration manager."""
    global _config_manager
    _config_manager = None
