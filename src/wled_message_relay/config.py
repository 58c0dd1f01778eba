"""Configuration management using pydantic-settings."""

from pathlib import Path

import yaml
from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from wled_message_relay.exceptions import ConfigurationError


class LinkConfig(BaseSettings):
    """SSH port-forward settings for reaching the device.

    ``device_host``/``device_port`` are the WLED address as seen from the
    SSH host, not from this machine.
    """

    model_config = SettingsConfigDict(env_prefix="LINK_", extra="ignore")

    ssh_host: str = Field(default="localhost", description="SSH host that can reach the device")
    ssh_user: str | None = Field(default=None, description="SSH user (uses ssh defaults if not set)")
    device_host: str = Field(default="127.0.0.1", description="Device host as seen from the SSH host")
    device_port: int = Field(default=80, gt=0, le=65535, description="Device HTTP port as seen from the SSH host")
    local_port: int = Field(default=18080, gt=0, le=65535, description="Local port of the forward")
    settle_seconds: float = Field(default=0.4, ge=0.0, description="Wait after spawning the forward")
    retry_seconds: float = Field(default=5.0, gt=0.0, description="Wait after a failed ensure")
    healthy_interval_seconds: float = Field(default=10.0, gt=0.0, description="Wait after a good heartbeat")
    unhealthy_interval_seconds: float = Field(default=2.0, gt=0.0, description="Wait after a failed heartbeat")
    request_timeout: float = Field(default=5.0, gt=0.0, description="HTTP timeout for device and probe calls")


class DeviceConfig(BaseSettings):
    """WLED device settings."""

    model_config = SettingsConfigDict(env_prefix="DEVICE_", extra="ignore")

    text_param_key: str | None = Field(
        default=None,
        description="Legacy /win query key for text (e.g. 'TT' with a text usermod)",
    )
    text_preset_id: int | None = Field(default=None, description="Preset that activates scrolling text")
    brightness: int = Field(default=128, ge=0, le=255, description="Brightness applied with every message")
    mock: bool = Field(default=False, description="Use mock device for testing without hardware")


class RotationConfig(BaseSettings):
    """Message rotation timing."""

    model_config = SettingsConfigDict(env_prefix="ROTATION_", extra="ignore")

    dwell_seconds: float = Field(default=60.0, gt=0.0, description="How long each message stays active")
    tick_interval_seconds: float = Field(default=0.9, gt=0.0, description="Scheduler tick interval")
    max_text_length: int = Field(default=128, gt=0, description="Maximum message length after trimming")


class HTTPConfig(BaseSettings):
    """Ingress API server settings."""

    model_config = SettingsConfigDict(env_prefix="HTTP_", extra="ignore")

    enabled: bool = Field(default=True, description="Serve the ingress HTTP API")
    host: str = Field(default="0.0.0.0", description="Bind address")
    port: int = Field(default=8080, gt=0, le=65535, description="Bind port")


SECTIONS = ("link", "device", "rotation", "http")


class Settings(BaseSettings):
    """Main application settings aggregating all configuration sections."""

    model_config = SettingsConfigDict(
        env_nested_delimiter="__",
        extra="ignore",
    )

    link: LinkConfig = Field(default_factory=LinkConfig)
    device: DeviceConfig = Field(default_factory=DeviceConfig)
    rotation: RotationConfig = Field(default_factory=RotationConfig)
    http: HTTPConfig = Field(default_factory=HTTPConfig)

    config_file: Path | None = Field(default=None, description="Path to YAML configuration file")

    @classmethod
    def from_yaml(cls, yaml_path: Path) -> "Settings":
        """Load settings from a YAML configuration file.

        Args:
            yaml_path: Path to the YAML configuration file.

        Returns:
            Settings instance with values from YAML merged with env vars.

        Raises:
            ConfigurationError: If the file is not valid YAML, not a mapping, or
                holds invalid values.
        """
        try:
            with yaml_path.open() as f:
                yaml_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {yaml_path}: {e}") from e

        if not isinstance(yaml_config, dict):
            raise ConfigurationError(f"Top level of {yaml_path} must be a mapping")

        # Raw section dicts are deep-merged with nested env vars; YAML wins per field
        sections = {name: yaml_config.get(name) or {} for name in SECTIONS}
        try:
            return cls(**sections, config_file=yaml_path)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid settings in {yaml_path}: {e}") from e


def load_settings(config_path: Path | None = None) -> Settings:
    """Load application settings from config file and environment variables.

    Args:
        config_path: Optional path to YAML configuration file.

    Returns:
        Settings instance with merged configuration.
    """
    if config_path and config_path.exists():
        return Settings.from_yaml(config_path)
    return Settings()
