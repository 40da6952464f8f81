"""Hand-off of a PKCS#12 container to the privileged certificate installer."""

import logging
import os
import subprocess
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Optional, Sequence

from .errors import ElevationCancelledError

logger = logging.getLogger(__name__)

# report_error(exception, context) - injected error reporting port
ErrorReporter = Callable[[BaseException, Dict], None]

# Exit codes an elevation helper uses when the user dismisses its prompt
ELEVATION_CANCEL_CODES = {
    "pkexec": (126,),
}


class StoreName(str, Enum):
    """Target certificate stores understood by the installer."""
    PERSONAL = "MY"
    WEB_HOSTING = "WebHosting"

    @property
    def display_name(self) -> str:
        return "Personal" if self is StoreName.PERSONAL else "Web Hosting"


class InstallStatus(str, Enum):
    INSTALLED = "installed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    LAUNCH_ERROR = "launch_error"


@dataclass(frozen=True)
class InstallOutcome:
    """Result of one installer invocation."""
    status: InstallStatus
    exit_code: Optional[int] = None
    message: str = ""

    @property
    def success(self) -> bool:
        return self.status is InstallStatus.INSTALLED


class PrivilegedInstaller:
    """Capability that registers a container in a certificate store.

    Implementations return the installer exit code and raise
    ``ElevationCancelledError`` when the user declines elevation. Any
    ``OSError`` means the installer could not be started.
    """

    def install(self, path: Path, password: str, friendly_name: str, store: StoreName) -> int:
        raise NotImplementedError


class CommandInstaller(PrivilegedInstaller):
    """Run the installer executable through an elevation helper.

    ``timeout`` defaults to None: wait for the installer indefinitely.
    """

    def __init__(self, executable: str, elevate: Sequence[str] = ("pkexec",), timeout: Optional[float] = None):
        self.executable = executable
        self.elevate = list(elevate)
        self.timeout = timeout

    def build_command(self, path: Path, password: str, friendly_name: str, store: StoreName) -> list:
        return self.elevate + [
            self.executable,
            f"/f:{path}",
            f"/p:{password}",
            f"/n:{friendly_name}",
            f"/s:{StoreName(store).value}",
        ]

    def install(self, path: Path, password: str, friendly_name: str, store: StoreName) -> int:
        cmd = self.build_command(path, password, friendly_name, store)
        logger.info(f"Running certificate installer {self.executable} for store {StoreName(store).value}")

        result = subprocess.run(cmd, capture_output=True, text=True, errors="replace", timeout=self.timeout)

        if self.elevate:
            helper = os.path.basename(self.elevate[0])
            if result.returncode in ELEVATION_CANCEL_CODES.get(helper, ()):
                raise ElevationCancelledError(f"{helper} authorization was dismissed")

        if result.returncode != 0:
            logger.warning(f"Installer exited with code {result.returncode}: {result.stderr.strip()[:200]}")
        return result.returncode


def install_container(
    path: Path,
    password: str,
    friendly_name: str,
    store: StoreName,
    installer: PrivilegedInstaller,
    report_error: Optional[ErrorReporter] = None,
) -> InstallOutcome:
    """Install the container at ``path`` and always delete it afterwards.

    Nonzero exit codes and a declined elevation prompt are outcomes, not
    errors, and are never reported. Launch failures are reported.
    """
    path = Path(path)
    try:
        exit_code = installer.install(path, password, friendly_name, store)
    except ElevationCancelledError:
        logger.info("Privilege elevation was cancelled by the user")
        return InstallOutcome(InstallStatus.CANCELLED)
    except Exception as e:
        logger.error(f"Failed to launch certificate installer: {e}")
        if report_error:
            report_error(e, {"stage": "install", "store": StoreName(store).value})
        return InstallOutcome(InstallStatus.LAUNCH_ERROR, message=str(e))
    finally:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.error(f"Could not remove transient container {path}: {e}")

    if exit_code == 0:
        logger.info(f"Certificate '{friendly_name}' installed into {StoreName(store).value}")
        return InstallOutcome(InstallStatus.INSTALLED, exit_code=0)

    return InstallOutcome(InstallStatus.FAILED, exit_code=exit_code, message=str(exit_code))
