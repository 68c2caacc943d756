"""TLS trust context for every outbound call.

The system CA bundle is always loaded (Intel PCS needs it). An optional
directory adds operator roots for PCCS deployments behind a private CA. A
directory that is configured but yields no certificate fails closed instead
of silently trusting the system store only.
"""
from __future__ import annotations

import os
import ssl
from dataclasses import dataclass
from typing import Optional, Tuple

from cryptography import x509
from cryptography.hazmat.primitives import serialization

from ..constants import CA_CERT_SUFFIXES
from ..errors import ConfigurationError
from ..utils.logging import get_logger

MINIMUM_TLS_VERSION = ssl.TLSVersion.TLSv1_2

log = get_logger()


@dataclass(frozen=True)
class TrustConfig:
    ssl_context: ssl.SSLContext
    custom_roots: Tuple[x509.Certificate, ...] = ()
    ca_cert_dir: Optional[str] = None
    minimum_version: ssl.TLSVersion = MINIMUM_TLS_VERSION


def _base_context() -> ssl.SSLContext:
    ctx = ssl.create_default_context()
    ctx.minimum_version = MINIMUM_TLS_VERSION
    return ctx


def _load_pem_file(path: str):
    with open(path, "rb") as f:
        data = f.read()
    # raises ValueError when the file holds no PEM certificate
    return x509.load_pem_x509_certificates(data)


def build_trust_config(ca_cert_dir: Optional[str] = None) -> TrustConfig:
    ctx = _base_context()
    if not ca_cert_dir:
        log.debug("Using system CA bundle only (no custom CA configured)")
        return TrustConfig(ssl_context=ctx)

    if not os.path.exists(ca_cert_dir):
        raise ConfigurationError(f"CA certificate path does not exist: {ca_cert_dir}")
    if not os.path.isdir(ca_cert_dir):
        raise ConfigurationError(f"CA certificate path must be a directory, got file: {ca_cert_dir}")

    log.debug("Loading custom CA certificates from directory path=%s", ca_cert_dir)
    try:
        names = sorted(os.listdir(ca_cert_dir))
    except OSError as e:
        raise ConfigurationError(f"failed to read CA certificate directory {ca_cert_dir}: {e}") from e

    roots = []
    for name in names:
        path = os.path.join(ca_cert_dir, name)
        if not os.path.isfile(path) or not name.endswith(CA_CERT_SUFFIXES):
            continue
        try:
            certs = _load_pem_file(path)
        except OSError as e:
            log.warning("Failed to read CA certificate file, skipping file=%s error=%s", path, e)
            continue
        except ValueError as e:
            log.warning("Failed to parse CA certificate, skipping file=%s error=%s", path, e)
            continue
        for cert in certs:
            try:
                ctx.load_verify_locations(cadata=cert.public_bytes(serialization.Encoding.PEM).decode("ascii"))
            except ssl.SSLError as e:
                log.warning("CA certificate rejected by TLS store, skipping file=%s error=%s", path, e)
                continue
            roots.append(cert)
            log.debug("Loaded custom CA certificate file=%s subject=%s", name, cert.subject.rfc4514_string())

    if not roots:
        raise ConfigurationError(f"no valid CA certificates found in directory {ca_cert_dir}")

    log.info("TLS configured with system CA pool + custom CA certificates custom_certs=%d", len(roots))
    return TrustConfig(ssl_context=ctx, custom_roots=tuple(roots), ca_cert_dir=ca_cert_dir)
