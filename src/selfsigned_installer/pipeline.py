"""Generate-and-install pipeline for one certificate request.

States run strictly in order::

    IDLE -> KEY_GENERATED -> EXTENSIONS_ASSEMBLED -> BUILT -> SIGNED
         -> PACKAGED -> INSTALLING -> INSTALLED | INSTALL_FAILED
                                     | ELEVATION_CANCELLED | LAUNCH_ERROR

Any error before packaging completes moves the pipeline to ABORTED before
any container file exists. Unexpected exceptions are always reported.
"""

import logging
from enum import Enum
from typing import Callable, Optional

from .builder import build_certificate
from .container import generate_password, package_container, write_transient_file
from .errors import CertificateError
from .extensions import assemble_extensions
from .installer import ErrorReporter, InstallOutcome, InstallStatus, PrivilegedInstaller, install_container
from .keys import generate_key_pair
from .request import CertificateRequest
from .signer import sign_certificate

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    IDLE = "idle"
    KEY_GENERATED = "key_generated"
    EXTENSIONS_ASSEMBLED = "extensions_assembled"
    BUILT = "built"
    SIGNED = "signed"
    PACKAGED = "packaged"
    INSTALLING = "installing"
    INSTALLED = "installed"
    INSTALL_FAILED = "install_failed"
    ELEVATION_CANCELLED = "elevation_cancelled"
    LAUNCH_ERROR = "launch_error"
    ABORTED = "aborted"


_FINAL_STATES = {
    InstallStatus.INSTALLED: PipelineState.INSTALLED,
    InstallStatus.FAILED: PipelineState.INSTALL_FAILED,
    InstallStatus.CANCELLED: PipelineState.ELEVATION_CANCELLED,
    InstallStatus.LAUNCH_ERROR: PipelineState.LAUNCH_ERROR,
}


class CertificatePipeline:
    """Run one request through key generation, signing, packaging and install."""

    def __init__(
        self,
        installer: PrivilegedInstaller,
        password: Optional[str] = None,
        report_error: Optional[ErrorReporter] = None,
        callback: Optional[Callable[[str], None]] = None,
    ):
        self.installer = installer
        self.password = password
        self.report_error = report_error
        self.callback = callback
        self.state = PipelineState.IDLE

    def _log(self, msg: str):
        logger.debug(msg)
        if self.callback:
            self.callback(msg)

    def _advance(self, state: PipelineState):
        logger.debug(f"Pipeline state {self.state.value} -> {state.value}")
        self.state = state

    def run(self, request: CertificateRequest) -> InstallOutcome:
        if self.state is not PipelineState.IDLE:
            raise RuntimeError("A pipeline instance can only run once")

        try:
            self._log(f"Generating {request.key_size}-bit RSA key...")
            key = generate_key_pair(request.key_size)
            self._advance(PipelineState.KEY_GENERATED)

            extensions = assemble_extensions(key.public_key(), request.san_names)
            self._advance(PipelineState.EXTENSIONS_ASSEMBLED)

            unsigned = build_certificate(request, key, extensions)
            self._advance(PipelineState.BUILT)

            self._log(f"Signing certificate for {request.subject} with {request.digest}...")
            signed = sign_certificate(unsigned, key, request.digest, request.friendly_name)
            self._advance(PipelineState.SIGNED)

            password = generate_password() if self.password is None else self.password
            container = package_container(signed, key, password)
            path = write_transient_file(container)
            self._advance(PipelineState.PACKAGED)
        except CertificateError as e:
            self._advance(PipelineState.ABORTED)
            if e.reportable and self.report_error:
                self.report_error(e, {"stage": "generate", "subject": request.subject})
            raise
        except Exception as e:
            self._advance(PipelineState.ABORTED)
            if self.report_error:
                self.report_error(e, {"stage": "generate", "subject": request.subject})
            raise

        self._log(f"Installing into {request.store.display_name} store...")
        self._advance(PipelineState.INSTALLING)
        outcome = install_container(
            path,
            container.password,
            request.friendly_name,
            request.store,
            self.installer,
            report_error=self.report_error,
        )
        self._advance(_FINAL_STATES[outcome.status])
        return outcome


def generate_and_install(
    request: CertificateRequest,
    installer: PrivilegedInstaller,
    password: Optional[str] = None,
    report_error: Optional[ErrorReporter] = None,
    callback: Optional[Callable[[str], None]] = None,
) -> InstallOutcome:
    """Generate a self-signed certificate for ``request`` and install it.

    Raises:
        InvalidRequestError, KeyGenerationError, SigningError, PackagingError:
            the pipeline aborted before any install was attempted
    """
    pipeline = CertificatePipeline(installer, password=password, report_error=report_error, callback=callback)
    return pipeline.run(request)
