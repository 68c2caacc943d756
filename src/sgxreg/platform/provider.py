"""Contract with the trusted-execution platform collaborator.

The native MP/UEFI and platform-info libraries live outside this service;
an implementation is plugged in through a ``module:attribute`` factory that
returns a fresh provider for each registration cycle.
"""
from __future__ import annotations

import importlib
from dataclasses import dataclass
from typing import Callable, Protocol

from ..errors import ConfigurationError


@dataclass(frozen=True)
class PlatformIdentity:
    """Hex-encoded identifiers used as PCK lookup keys. Never decoded here."""

    encrypted_ppid: str
    pce_id: str
    pce_isvsvn: str = ""
    qe_id: str = ""
    cpu_svn: str = ""


class PlatformProvider(Protocol):
    def is_registered(self) -> bool: ...

    def build_manifest(self) -> bytes: ...

    def mark_registration_complete(self) -> None: ...

    def read_identity(self) -> PlatformIdentity: ...

    def close(self) -> None: ...


ProviderFactory = Callable[[], PlatformProvider]


def load_provider_factory(spec: str) -> ProviderFactory:
    """Resolve ``package.module:attribute`` to a provider factory."""
    if not spec or ":" not in spec:
        raise ConfigurationError(f"platform provider must be given as 'module:attribute', got {spec!r}")
    module_name, _, attr = spec.partition(":")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigurationError(f"cannot import platform provider module {module_name!r}: {e}") from e
    factory = module
    for part in attr.split("."):
        factory = getattr(factory, part, None)
        if factory is None:
            raise ConfigurationError(f"platform provider {spec!r} has no attribute {part!r}")
    if not callable(factory):
        raise ConfigurationError(f"platform provider {spec!r} is not callable")
    return factory
