"""PKCS#12 packaging of a certificate and its private key.

The container holds a single SafeContents (id-data) with two bags:

- a CertBag carrying the DER certificate
- a PKCS8ShroudedKeyBag carrying the password-encrypted private key

Both bags get a ``localKeyId`` attribute with the literal bytes
``01 00 00 00``. Consumers pair the bags on these bytes, so they must not be
derived from an integer. Integrity is protected by an HMAC-SHA256 MAC keyed
with the RFC 7292 appendix B derivation of the password.
"""

import hashlib
import hmac
import logging
import os
import secrets
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

from cryptography.hazmat.primitives import serialization
from pyasn1.codec.der import encoder
from pyasn1.type import namedtype, tag, univ
from pyasn1_modules import rfc2459

from .errors import InvalidRequestError, PackagingError
from .signer import SignedCertificate

logger = logging.getLogger(__name__)

LOCAL_KEY_ID = bytes([1, 0, 0, 0])

MAC_ITERATIONS = 2048
MAC_SALT_LENGTH = 16
MAC_HASH = "sha256"
PFX_VERSION = 3

ID_DATA = univ.ObjectIdentifier("1.2.840.113549.1.7.1")
ID_CERT_BAG = univ.ObjectIdentifier("1.2.840.113549.1.12.10.1.3")
ID_PKCS8_SHROUDED_KEY_BAG = univ.ObjectIdentifier("1.2.840.113549.1.12.10.1.2")
ID_X509_CERTIFICATE = univ.ObjectIdentifier("1.2.840.113549.1.9.22.1")
ID_LOCAL_KEY_ID = univ.ObjectIdentifier("1.2.840.113549.1.9.21")
ID_SHA256 = univ.ObjectIdentifier("2.16.840.1.101.3.4.2.1")

# Key derivation purpose for the integrity MAC
_MAC_KEY_ID = 3


def _explicit(number):
    return tag.Tag(tag.tagClassContext, tag.tagFormatConstructed, number)


class ContentInfo(univ.Sequence):
    componentType = namedtype.NamedTypes(
        namedtype.NamedType("contentType", univ.ObjectIdentifier()),
        namedtype.OptionalNamedType("content", univ.Any().subtype(explicitTag=_explicit(0))),
    )


class AuthenticatedSafe(univ.SequenceOf):
    componentType = ContentInfo()


class AttributeValues(univ.SetOf):
    componentType = univ.Any()


class Attribute(univ.Sequence):
    componentType = namedtype.NamedTypes(
        namedtype.NamedType("attrId", univ.ObjectIdentifier()),
        namedtype.NamedType("attrValues", AttributeValues()),
    )


class BagAttributes(univ.SetOf):
    componentType = Attribute()


class SafeBag(univ.Sequence):
    componentType = namedtype.NamedTypes(
        namedtype.NamedType("bagId", univ.ObjectIdentifier()),
        namedtype.NamedType("bagValue", univ.Any().subtype(explicitTag=_explicit(0))),
        namedtype.OptionalNamedType("bagAttributes", BagAttributes()),
    )


class SafeContents(univ.SequenceOf):
    componentType = SafeBag()


class CertBag(univ.Sequence):
    componentType = namedtype.NamedTypes(
        namedtype.NamedType("certId", univ.ObjectIdentifier()),
        namedtype.NamedType("certValue", univ.Any().subtype(explicitTag=_explicit(0))),
    )


class DigestInfo(univ.Sequence):
    componentType = namedtype.NamedTypes(
        namedtype.NamedType("digestAlgorithm", rfc2459.AlgorithmIdentifier()),
        namedtype.NamedType("digest", univ.OctetString()),
    )


class MacData(univ.Sequence):
    componentType = namedtype.NamedTypes(
        namedtype.NamedType("mac", DigestInfo()),
        namedtype.NamedType("macSalt", univ.OctetString()),
        namedtype.DefaultedNamedType("iterations", univ.Integer(1)),
    )


class PFX(univ.Sequence):
    componentType = namedtype.NamedTypes(
        namedtype.NamedType("version", univ.Integer()),
        namedtype.NamedType("authSafe", ContentInfo()),
        namedtype.OptionalNamedType("macData", MacData()),
    )


@dataclass(frozen=True)
class PortableContainer:
    """Encoded PKCS#12 bytes together with the password protecting them."""
    data: bytes
    password: str = field(repr=False)


def generate_password() -> str:
    """Return a random container password."""
    return secrets.token_urlsafe(18)


def pkcs12_kdf(password: bytes, salt: bytes, purpose: int, iterations: int, length: int,
               hash_name: str = MAC_HASH) -> bytes:
    """Derive ``length`` bytes with the PKCS#12 key derivation (RFC 7292, B.2).

    ``password`` must already be a null-terminated BMPString.
    """
    u = hashlib.new(hash_name).digest_size
    v = hashlib.new(hash_name).block_size

    def fill(data):
        if not data:
            return b""
        size = v * ((len(data) + v - 1) // v)
        return (data * (size // len(data) + 1))[:size]

    diversifier = bytes([purpose]) * v
    block = bytearray(fill(salt) + fill(password))
    modulus = 1 << (8 * v)
    output = b""

    while len(output) < length:
        digest = hashlib.new(hash_name, diversifier + bytes(block)).digest()
        for _ in range(iterations - 1):
            digest = hashlib.new(hash_name, digest).digest()
        output += digest

        increment = int.from_bytes((digest * (v // u + 1))[:v], "big") + 1
        for offset in range(0, len(block), v):
            value = (int.from_bytes(block[offset:offset + v], "big") + increment) % modulus
            block[offset:offset + v] = value.to_bytes(v, "big")

    return output[:length]


def _bmp_password(password: str) -> bytes:
    return password.encode("utf-16-be") + b"\x00\x00"


def _local_key_id_attributes() -> BagAttributes:
    values = AttributeValues()
    values.setComponentByPosition(0, univ.Any(encoder.encode(univ.OctetString(LOCAL_KEY_ID))))

    attribute = Attribute()
    attribute["attrId"] = ID_LOCAL_KEY_ID
    attribute["attrValues"] = values

    attributes = BagAttributes()
    attributes.setComponentByPosition(0, attribute)
    return attributes


def _safe_bag(bag_id, value: bytes) -> SafeBag:
    bag = SafeBag()
    bag["bagId"] = bag_id
    bag["bagValue"] = value
    bag["bagAttributes"] = _local_key_id_attributes()
    return bag


def _cert_bag(der: bytes) -> bytes:
    cert_bag = CertBag()
    cert_bag["certId"] = ID_X509_CERTIFICATE
    cert_bag["certValue"] = encoder.encode(univ.OctetString(der))
    return encoder.encode(cert_bag)


def _mac_data(password: str, content: bytes) -> MacData:
    salt = os.urandom(MAC_SALT_LENGTH)
    key = pkcs12_kdf(
        _bmp_password(password), salt, _MAC_KEY_ID, MAC_ITERATIONS,
        hashlib.new(MAC_HASH).digest_size,
    )
    mac = hmac.new(key, content, MAC_HASH).digest()

    algorithm = rfc2459.AlgorithmIdentifier()
    algorithm["algorithm"] = ID_SHA256
    algorithm["parameters"] = univ.Any(encoder.encode(univ.Null()))

    digest_info = DigestInfo()
    digest_info["digestAlgorithm"] = algorithm
    digest_info["digest"] = mac

    mac_data = MacData()
    mac_data["mac"] = digest_info
    mac_data["macSalt"] = salt
    mac_data["iterations"] = MAC_ITERATIONS
    return mac_data


def package_container(signed: SignedCertificate, private_key, password: str) -> PortableContainer:
    """Bundle ``signed`` and ``private_key`` into a password-protected PKCS#12."""
    if not password:
        raise InvalidRequestError("Container password cannot be empty.")

    try:
        shrouded_key = private_key.private_bytes(
            encoding=serialization.Encoding.DER,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.BestAvailableEncryption(password.encode("utf-8")),
        )
    except (ValueError, TypeError) as e:
        raise PackagingError(f"Cannot encrypt private key: {e}") from e

    safe_contents = SafeContents()
    safe_contents.setComponentByPosition(0, _safe_bag(ID_CERT_BAG, _cert_bag(signed.der)))
    safe_contents.setComponentByPosition(1, _safe_bag(ID_PKCS8_SHROUDED_KEY_BAG, shrouded_key))

    data_info = ContentInfo()
    data_info["contentType"] = ID_DATA
    data_info["content"] = encoder.encode(univ.OctetString(encoder.encode(safe_contents)))

    authenticated_safe = AuthenticatedSafe()
    authenticated_safe.setComponentByPosition(0, data_info)
    auth_safe_der = encoder.encode(authenticated_safe)

    auth_safe = ContentInfo()
    auth_safe["contentType"] = ID_DATA
    auth_safe["content"] = encoder.encode(univ.OctetString(auth_safe_der))

    pfx = PFX()
    pfx["version"] = PFX_VERSION
    pfx["authSafe"] = auth_safe
    pfx["macData"] = _mac_data(password, auth_safe_der)

    data = encoder.encode(pfx)
    logger.debug(f"Packaged PKCS#12 container ({len(data)} bytes)")
    return PortableContainer(data=data, password=password)


def write_transient_file(container: PortableContainer) -> Path:
    """Write ``container`` to a new uniquely named temporary file (mode 0600).

    The caller owns the file and must delete it.
    """
    fd, name = tempfile.mkstemp(prefix="selfsigned-", suffix=".pfx")
    path = Path(name)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(container.data)
    except OSError as e:
        path.unlink(missing_ok=True)
        raise PackagingError(f"Cannot write container to {path}: {e}") from e

    logger.debug(f"Container written to {path}")
    return path
