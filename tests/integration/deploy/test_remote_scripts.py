"""Integration tests running the remote scripts in a local shell.

A ``LocalShellExecutor`` replaces ``ssh`` with ``sh -c`` so every script is
executed for real against a temporary directory tree. ``sudo`` and
``systemctl`` are replaced by small fakes on PATH; the fake systemctl keeps
unit state in files and records every call.
"""

from __future__ import annotations

import fcntl
import os
import shutil
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pytest

from deploydeck.deploy import scripts
from deploydeck.deploy.executor import RemoteExecutor
from deploydeck.deploy.registry import DeploymentRegistry
from deploydeck.deploy.releases import pruned_releases
from deploydeck.deploy.service import ServiceUnit
from deploydeck.lib.errors import DeploymentError
from deploydeck.models.deployment import DeployConfig, FailureKind

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(
        not sys.platform.startswith("linux"),
        reason="remote scripts need GNU coreutils",
    ),
]

FAKE_SUDO = """\
#!/bin/sh
exec "$@"
"""

FAKE_SYSTEMCTL = """\
#!/bin/sh
echo "$*" >> "$FAKE_SYSTEMD/calls.log"
case "$1" in
  status)
    if [ ! -f "$FAKE_SYSTEMD/$2.service" ]; then
      echo "Unit $2.service could not be found." >&2
      exit 4
    fi
    echo "* $2.service"
    echo "     Loaded: loaded ($FAKE_SYSTEMD/$2.service; enabled; preset: enabled)"
    if [ "$(cat "$FAKE_SYSTEMD/$2.state" 2>/dev/null)" = active ]; then
      echo "     Active: active (running)"
    else
      echo "     Active: inactive (dead)"
      exit 3
    fi
    ;;
  restart)
    if [ ! -f "$FAKE_SYSTEMD/$2.service" ]; then
      echo "Failed to restart $2.service: Unit $2.service not found." >&2
      exit 5
    fi
    echo active > "$FAKE_SYSTEMD/$2.state"
    ;;
  disable)
    rm -f "$FAKE_SYSTEMD/$3.state"
    ;;
esac
exit 0
"""

FAILING_RM = """\
#!/bin/sh
case "$*" in
  *a-bad*)
    echo "rm: cannot remove $*" >&2
    exit 1
    ;;
esac
exec {rm} "$@"
"""

HOUR = 3600


class LocalShellExecutor(RemoteExecutor):
    """Runs scripts with the local ``sh`` instead of ssh."""

    def build_argv(self, host: str, script: str) -> list[str]:
        return ["sh", "-c", script]


@dataclass
class FakeHost:
    """Paths of the simulated remote host."""

    base_dir: Path
    systemd_dir: Path
    lock_dir: Path
    bin_dir: Path

    def calls(self) -> list[str]:
        log = self.systemd_dir / "calls.log"
        return log.read_text().splitlines() if log.exists() else []


def _install_tool(host: FakeHost, name: str, body: str) -> None:
    path = host.bin_dir / name
    path.write_text(body)
    path.chmod(0o755)


@pytest.fixture
def fake_host(temp_dir: Path, monkeypatch: Any) -> FakeHost:
    """Fake sudo/systemctl on PATH and redirect unit and lock files."""
    bin_dir = temp_dir / "bin"
    bin_dir.mkdir()
    host = FakeHost(
        base_dir=temp_dir / "deploy",
        systemd_dir=temp_dir / "systemd",
        lock_dir=temp_dir / "locks",
        bin_dir=bin_dir,
    )
    _install_tool(host, "sudo", FAKE_SUDO)
    _install_tool(host, "systemctl", FAKE_SYSTEMCTL)
    host.systemd_dir.mkdir()
    host.lock_dir.mkdir()

    monkeypatch.setenv("PATH", f"{bin_dir}{os.pathsep}{os.environ['PATH']}")
    monkeypatch.setenv("FAKE_SYSTEMD", str(host.systemd_dir))
    monkeypatch.setattr(scripts, "SYSTEMD_UNIT_DIR", str(host.systemd_dir))
    monkeypatch.setattr(
        scripts, "lock_file", lambda unit: str(host.lock_dir / f"{unit}.lock")
    )
    return host


@pytest.fixture
def service(fake_host: FakeHost, config_data: dict[str, Any]) -> ServiceUnit:
    """The api service bound to the local shell executor."""
    config_data["host"] = "localhost"
    config_data["baseDir"] = str(fake_host.base_dir)
    config_data["lockTimeout"] = 1
    registry = DeploymentRegistry(
        DeployConfig.model_validate(config_data), executor=LocalShellExecutor()
    )
    return registry.service("api")


def _release(service: ServiceUnit, name: str, age_hours: float = 0) -> Path:
    path = Path(service.releases_dir) / name
    path.mkdir(parents=True)
    (path / "server.js").write_text(f"// release {name}\n")
    mtime = time.time() - age_hours * HOUR
    os.utime(path, (mtime, mtime))
    return path


def _point_current(service: ServiceUnit, name: str) -> None:
    current = Path(service.service_dir) / "current"
    if current.is_symlink():
        current.unlink()
    current.symlink_to(Path(service.releases_dir) / name)


def _current_target(service: ServiceUnit) -> str:
    return os.readlink(Path(service.service_dir) / "current")


class TestListReleases:
    """Listing against a real directory tree."""

    @pytest.mark.asyncio
    async def test_sorted_with_current(self, service: ServiceUnit) -> None:
        """Test two releases list ascending with the first one current."""
        _release(service, "20240102000000")
        _release(service, "20240101000000")
        _point_current(service, "20240101000000")

        entries = await service.releases.list()

        assert [(e.timestamp, e.current) for e in entries] == [
            ("20240101000000", True),
            ("20240102000000", False),
        ]

    @pytest.mark.asyncio
    async def test_missing_releases_dir(self, service: ServiceUnit) -> None:
        """Test a service that was never installed has no releases."""
        assert await service.releases.list() == []

    @pytest.mark.asyncio
    async def test_dangling_current(self, service: ServiceUnit) -> None:
        """Test a current link to a removed release marks nothing current."""
        _release(service, "20240101000000")
        _point_current(service, "20231231000000")

        entries = await service.releases.list()

        assert [e.current for e in entries] == [False]

    @pytest.mark.asyncio
    async def test_absent_current(self, service: ServiceUnit) -> None:
        """Test releases without a current link are all old."""
        _release(service, "20240101000000")
        _release(service, "20240102000000")

        entries = await service.releases.list()

        assert not any(e.current for e in entries)


class TestSwitch:
    """Switching releases with the real symlink commands."""

    @pytest.mark.asyncio
    async def test_switch_then_list(self, service: ServiceUnit) -> None:
        """Test exactly the switched release is current afterwards."""
        await service.install()
        _release(service, "20240101000000")
        _release(service, "20240102000000")
        _point_current(service, "20240101000000")

        await service.releases.switch("20240102000000")

        entries = await service.releases.list()
        assert [e.timestamp for e in entries if e.current] == ["20240102000000"]
        assert _current_target(service).endswith("/releases/20240102000000")
        assert not list(Path(service.service_dir).glob(".current.tmp*"))

    @pytest.mark.asyncio
    async def test_status_stays_active_across_switch(
        self, service: ServiceUnit, fake_host: FakeHost
    ) -> None:
        """Test an active unit is still active after switching and restarting."""
        assert (await service.install()).success
        _release(service, "20240101000000")
        _release(service, "20240102000000")
        await service.releases.switch("20240101000000")
        assert (await service.status()).is_active

        await service.releases.switch("20240102000000")

        status = await service.status()
        assert status.installed is True
        assert status.loaded == "loaded"
        assert status.is_active
        assert fake_host.calls().count("restart bbgw-api") == 2

    @pytest.mark.asyncio
    async def test_missing_release_leaves_current(
        self, service: ServiceUnit, fake_host: FakeHost
    ) -> None:
        """Test switching to a missing release changes nothing and skips restart."""
        await service.install()
        _release(service, "20240101000000")
        _point_current(service, "20240101000000")
        before = _current_target(service)

        with pytest.raises(DeploymentError) as exc_info:
            await service.releases.switch("20991231000000")

        assert "Release 20991231000000 not found" in exc_info.value.message
        assert _current_target(service) == before
        assert "restart bbgw-api" not in fake_host.calls()

    @pytest.mark.asyncio
    async def test_pointer_moves_before_restart(self, service: ServiceUnit) -> None:
        """Test a failing restart happens after the pointer was replaced."""
        _release(service, "20240101000000")

        with pytest.raises(DeploymentError) as exc_info:
            await service.releases.switch("20240101000000")

        assert "Unit bbgw-api.service not found" in exc_info.value.message
        assert _current_target(service).endswith("/releases/20240101000000")

    @pytest.mark.asyncio
    @pytest.mark.slow
    @pytest.mark.skipif(shutil.which("flock") is None, reason="flock not installed")
    async def test_locked_service(
        self, service: ServiceUnit, fake_host: FakeHost
    ) -> None:
        """Test a held service lock rejects a concurrent switch."""
        _release(service, "20240101000000")
        _point_current(service, "20240101000000")
        before = _current_target(service)

        with open(fake_host.lock_dir / "bbgw-api.lock", "w") as holder:
            fcntl.flock(holder, fcntl.LOCK_EX)
            with pytest.raises(DeploymentError) as exc_info:
                await service.releases.switch("20240101000000")

        assert "locked by another deployment" in exc_info.value.message
        assert _current_target(service) == before

    @pytest.mark.asyncio
    @pytest.mark.skipif(shutil.which("flock") is None, reason="flock not installed")
    async def test_existing_read_only_lock_file(
        self, service: ServiceUnit, fake_host: FakeHost
    ) -> None:
        """Test a lock file left behind read-only is reused, not rewritten."""
        await service.install()
        _release(service, "20240101000000")
        lock_path = fake_host.lock_dir / "bbgw-api.lock"
        lock_path.write_text("")
        lock_path.chmod(0o444)

        await service.releases.switch("20240101000000")

        assert _current_target(service).endswith("/releases/20240101000000")
        assert lock_path.stat().st_mode & 0o777 == 0o444


class TestPrune:
    """Pruning with real modification times."""

    @pytest.mark.asyncio
    async def test_removes_only_old_non_current(self, service: ServiceUnit) -> None:
        """Test a 50h old release goes and the 10h current one stays."""
        _release(service, "20240101000000", age_hours=50)
        _release(service, "20240103000000", age_hours=10)
        _point_current(service, "20240103000000")

        result = await service.releases.prune(48)

        assert result.success
        assert pruned_releases(result) == ["20240101000000"]
        remaining = sorted(p.name for p in Path(service.releases_dir).iterdir())
        assert remaining == ["20240103000000"]

    @pytest.mark.asyncio
    async def test_never_removes_current(self, service: ServiceUnit) -> None:
        """Test the current release survives whatever its age."""
        _release(service, "20230101000000", age_hours=500)
        _point_current(service, "20230101000000")

        result = await service.releases.prune(0)

        assert result.success
        assert pruned_releases(result) == []
        assert (Path(service.releases_dir) / "20230101000000").is_dir()

    @pytest.mark.asyncio
    async def test_threshold_is_strict(self, service: ServiceUnit) -> None:
        """Test a release at the threshold in whole hours is kept."""
        _release(service, "at-threshold", age_hours=48.5)
        _release(service, "past-threshold", age_hours=49.5)

        result = await service.releases.prune(48)

        assert pruned_releases(result) == ["past-threshold"]
        assert (Path(service.releases_dir) / "at-threshold").is_dir()

    @pytest.mark.asyncio
    async def test_failed_removal_does_not_stop_others(
        self, service: ServiceUnit, fake_host: FakeHost
    ) -> None:
        """Test one failing removal is reported while the rest are pruned."""
        _install_tool(fake_host, "rm", FAILING_RM.format(rm=shutil.which("rm")))
        _release(service, "a-bad", age_hours=100)
        _release(service, "b-good", age_hours=100)
        _release(service, "c-cur", age_hours=100)
        _point_current(service, "c-cur")

        result = await service.releases.prune(48)

        assert not result.success
        assert result.exit_code == 1
        assert pruned_releases(result) == ["b-good"]
        assert "failed to prune a-bad" in result.stderr
        remaining = sorted(p.name for p in Path(service.releases_dir).iterdir())
        assert remaining == ["a-bad", "c-cur"]

    @pytest.mark.asyncio
    async def test_not_installed(self, service: ServiceUnit) -> None:
        """Test pruning without a releases directory reports a failure."""
        result = await service.releases.prune(48)

        assert not result.success
        assert result.stderr
        assert pruned_releases(result) == []


class TestUnitLifecycle:
    """Install, status and uninstall against the fake systemd."""

    @pytest.mark.asyncio
    async def test_install_writes_unit_and_layout(
        self, service: ServiceUnit, fake_host: FakeHost
    ) -> None:
        """Test install creates directories and the unit file from stdin."""
        result = await service.install()

        assert result.success
        assert "bbgw-api Installed successfully" in result.stdout
        assert Path(service.releases_dir).is_dir()
        unit_file = fake_host.systemd_dir / "bbgw-api.service"
        assert unit_file.read_text() == service.render_unit()
        assert "daemon-reload" in fake_host.calls()

    @pytest.mark.asyncio
    async def test_status_not_installed(self, service: ServiceUnit) -> None:
        """Test a never installed service is synthesized from the failure."""
        status = await service.status()

        assert status.installed is False
        assert status.loaded == "no"
        assert status.active == "inactive"
        assert status.location == service.service_dir
        assert status.failure == FailureKind.NOT_INSTALLED

    @pytest.mark.asyncio
    async def test_status_installed_inactive(self, service: ServiceUnit) -> None:
        """Test an installed but stopped unit is loaded and inactive."""
        await service.install()

        status = await service.status()

        assert status.installed is True
        assert status.loaded == "loaded"
        assert status.active == "inactive"
        assert status.reason == "dead"
        assert status.failure is None

    @pytest.mark.asyncio
    async def test_restart(self, service: ServiceUnit) -> None:
        """Test restart activates an installed unit."""
        await service.install()

        assert (await service.restart()).success
        assert (await service.status()).is_active

    @pytest.mark.asyncio
    async def test_uninstall_keeps_releases(
        self, service: ServiceUnit, fake_host: FakeHost
    ) -> None:
        """Test uninstall removes the unit file but not the releases."""
        await service.install()
        _release(service, "20240101000000")

        result = await service.uninstall()

        assert result.success
        assert not (fake_host.systemd_dir / "bbgw-api.service").exists()
        assert (Path(service.releases_dir) / "20240101000000").is_dir()
        assert "disable --now bbgw-api" in fake_host.calls()
