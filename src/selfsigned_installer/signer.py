"""Certificate signing."""

import logging
from dataclasses import dataclass

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization

from .errors import SigningError

logger = logging.getLogger(__name__)

# Digest selectors accepted by sign_certificate()
DIGESTS = {
    "SHA1": hashes.SHA1,
    "SHA256": hashes.SHA256,
}


@dataclass(frozen=True)
class SignedCertificate:
    """A signed certificate and its DER encoding.

    ``friendly_name`` is a display attribute only; it is not part of the DER.
    """
    certificate: x509.Certificate
    der: bytes
    friendly_name: str = ""


def resolve_digest(digest: str) -> hashes.HashAlgorithm:
    """Map a selector such as ``SHA256`` or ``sha-1`` to a hash algorithm."""
    key = (digest or "").upper().replace("-", "")
    if key not in DIGESTS:
        raise SigningError(f"Unsupported digest algorithm: {digest!r}")
    return DIGESTS[key]()


def sign_certificate(
    unsigned: x509.CertificateBuilder,
    private_key,
    digest: str,
    friendly_name: str = "",
) -> SignedCertificate:
    """Sign ``unsigned`` with ``private_key`` using the selected digest."""
    algorithm = resolve_digest(digest)
    try:
        certificate = unsigned.sign(private_key, algorithm)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise SigningError(f"Certificate signing failed: {e}") from e

    logger.debug(f"Signed certificate with {algorithm.name}")
    return SignedCertificate(
        certificate=certificate,
        der=certificate.public_bytes(serialization.Encoding.DER),
        friendly_name=friendly_name,
    )
