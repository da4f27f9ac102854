"""
Configuration — typed, validated settings loaded from environment/.env.

Two layers of configuration exist:

  - AppSettings: how this tool itself behaves (log level, HTTP timeouts,
    where the host configuration lives). Loaded with pydantic-settings from
    PKI_BOOTSTRAP_* environment variables, falling back to a .env file.
  - Host settings: where the CA material is installed. Those come from a
    puppet.conf style file and are resolved by adapters/puppet_config.py
    into a PuppetSettings model.
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from pki_bootstrap.domain.models import CrlUsage

_ENV_FILE = Path(__file__).parent.parent.parent / ".env"

ROOT_CONFDIR = Path("/etc/puppetlabs/puppet")

CRL_USAGE = {
    "true": CrlUsage.CHAIN,
    "chain": CrlUsage.CHAIN,
    "leaf": CrlUsage.LEAF,
    "false": CrlUsage.NONE,
}


def default_confdir() -> Path:
    """The host confdir: system wide when running as root, per-user otherwise."""
    if hasattr(os, "geteuid") and os.geteuid() == 0:
        return ROOT_CONFDIR
    return Path.home() / ".puppetlabs" / "etc" / "puppet"


class PuppetSettings(BaseModel):
    """
    Resolved host settings, every path fully interpolated.

    cacert / cakey / cacrl are the install destinations; localcacert, hostcrl
    and certificate_revocation configure TLS for the CA service client.
    """

    confdir: Path
    ssldir: Path
    cadir: Path
    certdir: Path
    cacert: Path
    cakey: Path
    cacrl: Path
    localcacert: Path
    hostcrl: Path
    certificate_revocation: CrlUsage = CrlUsage.CHAIN
    server: str = "puppet"
    ca_server: str = "puppet"
    ca_port: int = Field(default=8140, ge=1, le=65535)

    @field_validator("certificate_revocation", mode="before")
    @classmethod
    def parse_certificate_revocation(cls, value: object) -> object:
        """puppet.conf spells the modes true/chain, leaf and false."""
        if not isinstance(value, str):
            return value
        usage = CRL_USAGE.get(value.strip().lower())
        if usage is None:
            raise ValueError("expected true, chain, leaf or false")
        return usage


class AppSettings(BaseSettings):
    """
    Root application settings.

    Load order (highest priority first):
      1. Environment variables (PKI_BOOTSTRAP_LOG_LEVEL, ...)
      2. .env file
      3. Default values
    """

    model_config = SettingsConfigDict(
        env_prefix="PKI_BOOTSTRAP_",
        env_file=_ENV_FILE,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: str = Field(default="WARNING")
    confdir: Path | None = Field(
        default=None,
        description="Host confdir; defaults to the system or per-user puppet confdir",
    )
    http_timeout_seconds: int = Field(default=30, ge=1)
    http_retries: int = Field(default=3, ge=1)

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        return value.strip().upper()

    def resolved_confdir(self) -> Path:
        return self.confdir if self.confdir is not None else default_confdir()
