"""Assembly of the to-be-signed certificate."""

import logging
import os
import uuid
from typing import Sequence

from cryptography import x509

from .errors import InvalidRequestError
from .request import CertificateRequest

logger = logging.getLogger(__name__)

SERIAL_NUMBER_LENGTH = 20


def generate_serial_number() -> bytes:
    """Return 20 random bytes whose big-endian integer value is non-negative.

    The first 16 bytes come from a random UUID, the rest from os.urandom.
    """
    serial = bytearray(uuid.uuid4().bytes + os.urandom(SERIAL_NUMBER_LENGTH - 16))
    # Serial number MUST be positive
    serial[0] &= 0x7F
    return bytes(serial)


def build_certificate(
    request: CertificateRequest,
    private_key,
    extensions: Sequence[x509.Extension],
) -> x509.CertificateBuilder:
    """Build the unsigned X.509 v3 certificate for ``request``.

    Issuer and subject are both the request name. Extensions are attached in
    the given order.
    """
    if not request.subject or not request.subject.strip():
        raise InvalidRequestError("Subject name cannot be empty.")
    if request.not_after <= request.not_before:
        raise InvalidRequestError("Validity end must be after validity start.")

    serial = int.from_bytes(generate_serial_number(), "big")
    # An all-zero serial is not a valid positive integer
    while serial == 0:
        serial = int.from_bytes(generate_serial_number(), "big")

    name = request.subject_name
    builder = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(private_key.public_key())
        .serial_number(serial)
    )
    try:
        builder = builder.not_valid_before(request.not_before).not_valid_after(request.not_after)
    except ValueError as e:
        raise InvalidRequestError(f"Invalid validity window: {e}") from e
    for extension in extensions:
        builder = builder.add_extension(extension.value, critical=extension.critical)

    logger.debug(f"Built certificate for {request.subject} (serial {serial:x})")
    return builder
