"""Registration service configuration.

Loads from an optional YAML file (CC_IPR_CONFIG_FILE) first, then environment
overrides. A ``.env`` in the working directory is honoured. The Intel
endpoints and the request timeout are constants and cannot be overridden from
either source.
"""
from __future__ import annotations

import os
from typing import Any, Dict, Mapping, Optional, Tuple
from urllib.parse import urlparse

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .constants import (
    CONFIG_FILE_ENV,
    DEFAULT_REGISTRATION_INTERVAL_MINUTES,
    DEFAULT_SERVICE_PORT,
    INTEL_PCK_RETRIEVAL_ENDPOINT,
    INTEL_PLATFORM_REGISTRATION_ENDPOINT,
    INTEL_REQUEST_TIMEOUT_SEC,
    PCCS_CA_CERT_PATH_ENV,
    PCCS_URLS_ENV,
    PLATFORM_PROVIDER_ENV,
    REGISTRATION_INTERVAL_MINUTES_ENV,
    SERVICE_PORT_ENV,
)
from .errors import ConfigurationError

load_dotenv()


class RegistrationServiceConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    # PCCS configuration
    pccs_urls: Tuple[str, ...] = ()
    pccs_ca_cert_path: str = ""

    request_timeout_sec: float = INTEL_REQUEST_TIMEOUT_SEC

    registration_interval_minutes: int = Field(DEFAULT_REGISTRATION_INTERVAL_MINUTES, gt=0)
    service_port: int = Field(DEFAULT_SERVICE_PORT, ge=1, le=65535)
    platform_provider: str = ""

    @field_validator("pccs_urls", mode="before")
    @classmethod
    def _parse_pccs_urls(cls, value: Any) -> Tuple[str, ...]:
        if value is None:
            return ()
        if isinstance(value, str):
            value = value.split(",")
        urls = []
        for raw in value:
            raw = str(raw).strip()
            if not raw:
                continue
            parsed = urlparse(raw)
            if parsed.scheme != "https" or not parsed.netloc:
                raise ValueError(f"PCCS URL must use HTTPS: '{raw}'")
            urls.append(raw.rstrip("/"))
        return tuple(urls)

    # Intel endpoints (final fallback) are fixed
    @property
    def intel_registration_url(self) -> str:
        return INTEL_PLATFORM_REGISTRATION_ENDPOINT

    @property
    def intel_pck_retrieval_url(self) -> str:
        return INTEL_PCK_RETRIEVAL_ENDPOINT

    @property
    def registration_interval_sec(self) -> float:
        return self.registration_interval_minutes * 60.0


_ENV_MAP = {
    "pccs_urls": PCCS_URLS_ENV,
    "pccs_ca_cert_path": PCCS_CA_CERT_PATH_ENV,
    "registration_interval_minutes": REGISTRATION_INTERVAL_MINUTES_ENV,
    "service_port": SERVICE_PORT_ENV,
    "platform_provider": PLATFORM_PROVIDER_ENV,
}


def _read_file(path: str) -> Dict[str, Any]:
    if not os.path.isfile(path):
        raise ConfigurationError(f"config file not found: {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            file_cfg = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"cannot read config file {path}: {e}") from e
    if not isinstance(file_cfg, dict):
        raise ConfigurationError(f"config file {path} must hold a mapping")
    return {k: v for k, v in file_cfg.items() if k in _ENV_MAP}


def load_config(environ: Optional[Mapping[str, str]] = None, path: Optional[str] = None) -> RegistrationServiceConfig:
    env = os.environ if environ is None else environ
    data: Dict[str, Any] = {}
    path = path or env.get(CONFIG_FILE_ENV)
    if path:
        data.update(_read_file(path))
    for field, env_name in _ENV_MAP.items():
        val = env.get(env_name)
        if val:
            data[field] = val
    try:
        return RegistrationServiceConfig(**data)
    except ValidationError as e:
        raise ConfigurationError(f"invalid registration service configuration: {e}") from e
