"""selfsigned-installer - Generate self-signed certificates and install them into a certificate store."""

__version__ = "1.0.0"

from .errors import (
    CertificateError,
    InvalidRequestError,
    KeyGenerationError,
    SigningError,
    PackagingError,
    InstallerError,
    ElevationCancelledError,
)
from .request import CertificateRequest, parse_dns_names
from .installer import (
    StoreName,
    InstallStatus,
    InstallOutcome,
    PrivilegedInstaller,
    CommandInstaller,
    install_container,
)
from .pipeline import CertificatePipeline, PipelineState, generate_and_install

__all__ = [
    "CertificateError",
    "InvalidRequestError",
    "KeyGenerationError",
    "SigningError",
    "PackagingError",
    "InstallerError",
    "ElevationCancelledError",
    "CertificateRequest",
    "parse_dns_names",
    "StoreName",
    "InstallStatus",
    "InstallOutcome",
    "PrivilegedInstaller",
    "CommandInstaller",
    "install_container",
    "CertificatePipeline",
    "PipelineState",
    "generate_and_install",
]
