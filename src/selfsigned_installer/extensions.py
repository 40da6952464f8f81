"""Standard extension set for self-signed certificates.

The order of the returned extensions is fixed:

1. BasicConstraints (CA, no path length)
2. ExtendedKeyUsage (server authentication)
3. SubjectKeyIdentifier
4. AuthorityKeyIdentifier
5. SubjectAlternativeName (only when DNS names are given)

Issuer and subject share one key, so both key identifiers carry the same
SHA-1 digest of the public key bytes.
"""

import hashlib
from typing import List, Optional, Sequence

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.x509.oid import ExtendedKeyUsageOID


def key_identifier(public_key) -> bytes:
    """Return the SHA-1 digest of the subjectPublicKey bits of ``public_key``."""
    # For RSA the BIT STRING payload of SubjectPublicKeyInfo is the PKCS#1 key
    data = public_key.public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.PKCS1,
    )
    return hashlib.sha1(data).digest()


def assemble_extensions(public_key, san_names: Optional[Sequence[str]] = None) -> List[x509.Extension]:
    """Build the ordered extension list for ``public_key``."""
    identifier = key_identifier(public_key)

    values = [
        x509.BasicConstraints(ca=True, path_length=None),
        x509.ExtendedKeyUsage([ExtendedKeyUsageOID.SERVER_AUTH]),
        x509.SubjectKeyIdentifier(identifier),
        x509.AuthorityKeyIdentifier(
            key_identifier=identifier,
            authority_cert_issuer=None,
            authority_cert_serial_number=None,
        ),
    ]
    if san_names:
        values.append(x509.SubjectAlternativeName([x509.DNSName(name) for name in san_names]))

    return [x509.Extension(value.oid, False, value) for value in values]
