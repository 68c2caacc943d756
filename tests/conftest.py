import datetime

import httpx
import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from sgxreg.config import RegistrationServiceConfig
from sgxreg.intel.client import IntelServiceClient
from sgxreg.platform.provider import PlatformIdentity
from sgxreg.trust.tls import build_trust_config


def _self_signed_pem(common_name: str) -> bytes:
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    now = datetime.datetime.now(datetime.timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=30))
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
        .sign(key, hashes.SHA256())
    )
    return cert.public_bytes(serialization.Encoding.PEM)


@pytest.fixture
def make_ca_pem():
    return _self_signed_pem


@pytest.fixture
def identity():
    return PlatformIdentity(encrypted_ppid="a1b2" * 96, pce_id="0000", pce_isvsvn="000d")


@pytest.fixture
def make_client():
    """Build an IntelServiceClient whose HTTP traffic goes to ``handler``."""
    clients = []

    def _make(handler, pccs_urls=()):
        cfg = RegistrationServiceConfig(pccs_urls=list(pccs_urls))
        client = IntelServiceClient(cfg, trust=build_trust_config(None), transport=httpx.MockTransport(handler))
        clients.append(client)
        return client

    yield _make
    for c in clients:
        c.close()
