import subprocess

import pytest

from selfsigned_installer import installer as installer_module
from selfsigned_installer.errors import ElevationCancelledError
from selfsigned_installer.installer import (
    CommandInstaller,
    InstallStatus,
    StoreName,
    install_container,
)

from conftest import FakeInstaller


@pytest.fixture
def container_file(tmp_path):
    path = tmp_path / "container.pfx"
    path.write_bytes(b"pfx")
    return path


@pytest.fixture
def reported():
    errors = []
    return errors


def _reporter(errors):
    return lambda exc, context: errors.append((exc, context))


def test_success(container_file, reported):
    fake = FakeInstaller(exit_code=0)
    outcome = install_container(container_file, "pw", "My Cert", StoreName.PERSONAL, fake, _reporter(reported))

    assert outcome.status is InstallStatus.INSTALLED
    assert outcome.success
    assert fake.calls == [(container_file, "pw", "My Cert", StoreName.PERSONAL)]
    assert fake.data == b"pfx"
    assert not container_file.exists()
    assert reported == []


def test_nonzero_exit_code(container_file, reported):
    outcome = install_container(container_file, "pw", "My Cert", StoreName.PERSONAL,
                                FakeInstaller(exit_code=5), _reporter(reported))

    assert outcome.status is InstallStatus.FAILED
    assert outcome.exit_code == 5
    assert outcome.message == "5"
    assert not outcome.success
    assert not container_file.exists()
    assert reported == []


def test_elevation_cancelled(container_file, reported):
    fake = FakeInstaller(error=ElevationCancelledError("dismissed"))
    outcome = install_container(container_file, "pw", "My Cert", StoreName.WEB_HOSTING, fake, _reporter(reported))

    assert outcome.status is InstallStatus.CANCELLED
    assert not container_file.exists()
    assert reported == []


def test_launch_error(container_file, reported):
    error = FileNotFoundError("certificateinstaller")
    outcome = install_container(container_file, "pw", "My Cert", StoreName.PERSONAL,
                                FakeInstaller(error=error), _reporter(reported))

    assert outcome.status is InstallStatus.LAUNCH_ERROR
    assert "certificateinstaller" in outcome.message
    assert not container_file.exists()
    assert reported[0][0] is error
    assert reported[0][1]["store"] == "MY"


def test_launch_error_without_reporter(container_file):
    outcome = install_container(container_file, "pw", "x", StoreName.PERSONAL,
                                FakeInstaller(error=PermissionError("denied")))
    assert outcome.status is InstallStatus.LAUNCH_ERROR
    assert not container_file.exists()


def test_build_command():
    command = CommandInstaller("/opt/certificateinstaller", elevate=("pkexec",)).build_command(
        "/tmp/a.pfx", "pw", "My Cert", StoreName.WEB_HOSTING
    )
    assert command == [
        "pkexec",
        "/opt/certificateinstaller",
        "/f:/tmp/a.pfx",
        "/p:pw",
        "/n:My Cert",
        "/s:WebHosting",
    ]


def test_build_command_without_elevation():
    command = CommandInstaller("certificateinstaller", elevate=()).build_command("a.pfx", "pw", "n", "MY")
    assert command == ["certificateinstaller", "/f:a.pfx", "/p:pw", "/n:n", "/s:MY"]


def _fake_run(returncode, calls):
    def run(cmd, **kwargs):
        calls.append((cmd, kwargs))
        return subprocess.CompletedProcess(cmd, returncode, "", "boom")
    return run


def test_command_installer_returns_exit_code(monkeypatch):
    calls = []
    monkeypatch.setattr(installer_module.subprocess, "run", _fake_run(5, calls))

    code = CommandInstaller("certificateinstaller").install("a.pfx", "pw", "n", StoreName.PERSONAL)

    assert code == 5
    assert calls[0][0][0] == "pkexec"
    assert calls[0][1]["timeout"] is None
    assert calls[0][1]["errors"] == "replace"


def test_command_installer_maps_pkexec_dismissal(monkeypatch):
    monkeypatch.setattr(installer_module.subprocess, "run", _fake_run(126, []))

    with pytest.raises(ElevationCancelledError):
        CommandInstaller("certificateinstaller", elevate=("/usr/bin/pkexec",)).install(
            "a.pfx", "pw", "n", StoreName.PERSONAL
        )


def test_command_installer_126_without_elevation_is_exit_code(monkeypatch):
    monkeypatch.setattr(installer_module.subprocess, "run", _fake_run(126, []))
    assert CommandInstaller("certificateinstaller", elevate=()).install("a.pfx", "pw", "n", "MY") == 126


def test_missing_executable_is_launch_error(container_file, monkeypatch):
    def missing(cmd, **kwargs):
        raise FileNotFoundError(2, "No such file or directory", cmd[0])

    monkeypatch.setattr(installer_module.subprocess, "run", missing)
    outcome = install_container(container_file, "pw", "n", StoreName.PERSONAL, CommandInstaller("nope"))

    assert outcome.status is InstallStatus.LAUNCH_ERROR
    assert not container_file.exists()


def test_store_display_names():
    assert StoreName.PERSONAL.value == "MY"
    assert StoreName.PERSONAL.display_name == "Personal"
    assert StoreName.WEB_HOSTING.display_name == "Web Hosting"


def test_undecodable_installer_output_keeps_exit_code(monkeypatch):
    def run(cmd, **kwargs):
        stderr = b"\xff\xfe failed".decode("utf-8", errors=kwargs["errors"])
        return subprocess.CompletedProcess(cmd, 7, "", stderr)

    monkeypatch.setattr(installer_module.subprocess, "run", run)

    assert CommandInstaller("certificateinstaller", elevate=()).install("a.pfx", "pw", "n", "MY") == 7
