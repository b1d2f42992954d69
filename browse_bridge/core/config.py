"""Configuration models and YAML loader for the request bridge."""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator


class BrowserConfig(BaseModel):
    """Browser session configuration."""

    headless: bool = True
    timeout_ms: int = Field(default=30000, ge=1000)


class BridgeConfig(BaseModel):
    """Request dispatch configuration."""

    max_redirections: int = Field(default=5, ge=0)
    gateway_hosts: list[str] = Field(default_factory=list)
    log_body_chars: int = Field(default=1000, ge=0)

    @field_validator("gateway_hosts")
    @classmethod
    def hosts_not_blank(cls, v: list[str]) -> list[str]:
        hosts: list[str] = []
        for host in v:
            cleaned = host.strip().lower()
            if not cleaned:
                msg = "gateway host must not be empty"
                raise ValueError(msg)
            hosts.append(cleaned)
        return hosts


class Settings(BaseModel):
    """Top-level settings loaded from YAML."""

    browser: BrowserConfig = Field(default_factory=BrowserConfig)
    bridge: BridgeConfig = Field(default_factory=BridgeConfig)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Settings":
        """Load settings from a YAML file."""
        path = Path(path)
        if not path.exists():
            msg = f"Config file not found: {path}"
            raise FileNotFoundError(msg)
        raw: dict[str, Any] = yaml.safe_load(path.read_text()) or {}
        return cls.model_validate(raw)
