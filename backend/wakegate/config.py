"""WakeGate configuration — Pydantic BaseSettings loaded from .env."""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from wakegate.utils.wol import parse_mac_address


class Settings(BaseSettings):
    """Gateway settings. Required: health_check, mac_address, upstream_url."""

    app_name: str = "WakeGate"
    service_name: str = "Service"
    debug: bool = False
    log_level: str = "INFO"

    # Listener
    host: str = "0.0.0.0"
    listen_port: int = 8080

    # Managed backend
    health_check: str
    upstream_url: str
    health_check_interval: float = Field(10, ge=0)  # seconds

    # Wake-on-LAN
    mac_address: str
    ip_address: Optional[str] = None  # unicast destination, tried first
    broadcast_address: Optional[str] = None  # skips interface discovery
    network_interface: Optional[str] = None
    port: int = Field(9, ge=1, le=65535)
    timeout: float = Field(30, ge=0)  # seconds to wait per attempt
    retry_attempts: int = Field(3, ge=1)
    retry_interval: float = Field(5, ge=0)  # seconds

    # Control page (interactive mode)
    enable_control_page: bool = False
    control_prefix: str = "/control"
    redirect_delay: float = Field(3, ge=0)  # seconds before leaving the page once online
    show_power_off_button: bool = True
    confirm_power_off: bool = True
    power_off_command: str = "/usr/local/bin/shutdown-script.sh"

    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),
        env_file_encoding="utf-8",
        env_prefix="WAKEGATE_",
        extra="ignore",
    )

    @field_validator("mac_address")
    @classmethod
    def _check_mac(cls, value: str) -> str:
        parse_mac_address(value)
        return value

    @field_validator("health_check", "upstream_url")
    @classmethod
    def _check_url(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError(f"must be an http(s) URL, got {value!r}")
        return value

    @field_validator("upstream_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator("control_prefix")
    @classmethod
    def _normalize_prefix(cls, value: str) -> str:
        value = "/" + value.strip("/")
        if value == "/":
            raise ValueError("control_prefix must not be the root path")
        return value

    @field_validator("ip_address", "broadcast_address", "network_interface", mode="before")
    @classmethod
    def _empty_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @model_validator(mode="after")
    def _check_power_off(self) -> "Settings":
        if self.show_power_off_button and not self.power_off_command:
            raise ValueError("power_off_command is required when show_power_off_button is enabled")
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
