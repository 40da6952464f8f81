from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

from selfsigned_installer.installer import PrivilegedInstaller
from selfsigned_installer.request import CertificateRequest


class FakeInstaller(PrivilegedInstaller):
    """Records every call and keeps a copy of the container it was handed."""

    def __init__(self, exit_code=0, error=None):
        self.exit_code = exit_code
        self.error = error
        self.calls = []
        self.data = None

    def install(self, path, password, friendly_name, store):
        path = Path(path)
        self.calls.append((path, password, friendly_name, store))
        if path.exists():
            self.data = path.read_bytes()
        if self.error is not None:
            raise self.error
        return self.exit_code


@pytest.fixture(scope="session")
def rsa_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def sha1_signing_supported(rsa_key):
    """Whether the installed OpenSSL still signs with SHA-1."""
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "sha1-check")])
    start = datetime(2026, 1, 1, tzinfo=timezone.utc)
    builder = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(rsa_key.public_key())
        .serial_number(1)
        .not_valid_before(start)
        .not_valid_after(start + timedelta(days=1))
    )
    try:
        builder.sign(rsa_key, hashes.SHA1())
    except (ValueError, TypeError, UnsupportedAlgorithm):
        return False
    return True


@pytest.fixture
def make_request():
    def _make(names="host1,host2", **kwargs):
        kwargs.setdefault("key_size", 1024)
        kwargs.setdefault("friendly_name", "Test Certificate")
        return CertificateRequest.from_input(names, **kwargs)
    return _make


@pytest.fixture
def validity():
    start = datetime(2026, 1, 1, tzinfo=timezone.utc)
    return start, start + timedelta(days=365)


@pytest.fixture
def temp_dir(tmp_path, monkeypatch):
    """Redirect tempfile so transient containers land in an isolated directory."""
    import tempfile
    monkeypatch.setattr(tempfile, "tempdir", str(tmp_path))
    return tmp_path
