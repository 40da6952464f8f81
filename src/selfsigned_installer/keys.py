"""RSA key pair generation."""

import logging

from cryptography.hazmat.primitives.asymmetric import rsa

from .errors import KeyGenerationError

logger = logging.getLogger(__name__)

# Key lengths offered to the user
KEY_SIZES = (512, 1024, 2048, 4096)
DEFAULT_KEY_SIZE = 2048
PUBLIC_EXPONENT = 65537


def generate_key_pair(bits: int = DEFAULT_KEY_SIZE) -> rsa.RSAPrivateKey:
    """Generate a fresh RSA key pair of ``bits`` length.

    Raises:
        KeyGenerationError: the provider refused the requested strength
    """
    logger.debug(f"Generating {bits}-bit RSA key")
    try:
        return rsa.generate_private_key(public_exponent=PUBLIC_EXPONENT, key_size=bits)
    except (ValueError, TypeError) as e:
        raise KeyGenerationError(f"Cannot generate a {bits}-bit RSA key: {e}") from e
