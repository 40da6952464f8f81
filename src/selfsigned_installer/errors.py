"""Exceptions raised while generating and installing a certificate."""


class CertificateError(Exception):
    """Base class for all errors raised by selfsigned_installer."""

    # Whether the error should be forwarded to the error reporter
    reportable = True


class InvalidRequestError(CertificateError):
    """The request parameters are unusable; the user must correct them."""

    reportable = False


class KeyGenerationError(CertificateError):
    """The crypto provider could not produce a key of the requested size."""


class SigningError(CertificateError):
    """Signing the certificate failed (unsupported digest, key mismatch...)."""


class PackagingError(CertificateError):
    """The PKCS#12 container could not be built or written."""


class InstallerError(CertificateError):
    """The privileged installer could not be launched."""


class ElevationCancelledError(InstallerError):
    """The user declined the privilege elevation prompt."""

    reportable = False
