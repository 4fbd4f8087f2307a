"""Remote shell script templates.

Each function renders the exact script body sent to the remote host for
one operation. Rendering is pure so that every script can be diffed
against its expected text in tests. Paths and names are quoted with
``shlex.quote``; the remote shell is POSIX ``sh`` with GNU coreutils.
"""

from __future__ import annotations

import shlex

from deploydeck.deploy.failures import LOCKED_EXIT, LOCKED_MESSAGE

SYSTEMD_UNIT_DIR = "/etc/systemd/system"
# Exit status of the switch script when the requested release is missing
MISSING_RELEASE_EXIT = 66


def lock_file(unit_name: str) -> str:
    """Remote path of the lock file serializing mutations of one unit."""
    return f"/tmp/{unit_name}.deploydeck.lock"


def lock_lines(unit_name: str, timeout: int) -> list[str]:
    """Lines taking the per-unit lock on fd 9 for the rest of the script.

    The lock is released when the remote shell exits. Hosts without
    ``flock`` run the script unlocked. The file is only created when
    missing and is then opened read-only, so an operator logged in as a
    different user can still take a lock file another user created in
    sticky ``/tmp`` (``fs.protected_regular`` rejects that open for write).
    """
    path = shlex.quote(lock_file(unit_name))
    return [
        "if command -v flock >/dev/null 2>&1; then",
        f"  [ -e {path} ] || : > {path}",
        f"  exec 9<{path}",
        f"  flock -w {timeout} 9 || "
        f'{{ echo "{LOCKED_MESSAGE}" >&2; exit {LOCKED_EXIT}; }}',
        "fi",
    ]


def list_releases(releases_dir: str) -> list[str]:
    """Script printing one ``<name>|current`` or ``<name>|old`` line per release."""
    return [
        f"cd {shlex.quote(releases_dir)} 2>/dev/null || exit 0",
        'CURRENT=$(readlink -f ../current || echo "")',
        "for dir in *; do",
        '  if [ -d "$dir" ]; then',
        '    FULL=$(readlink -f "$dir")',
        '    if [ "$FULL" = "$CURRENT" ]; then',
        '      echo "$dir|current"',
        "    else",
        '      echo "$dir|old"',
        "    fi",
        "  fi",
        "done",
    ]


def switch_release(
    releases_dir: str,
    service_dir: str,
    release_id: str,
    unit_name: str,
    lock_timeout: int,
) -> list[str]:
    """Script pointing ``current`` at a release and restarting the unit.

    The new symlink is created under a temporary name and renamed over
    ``current`` so the pointer is never missing or half-written.
    """
    target = shlex.quote(f"{releases_dir}/{release_id}")
    temp_link = f"{shlex.quote(service_dir + '/.current.tmp')}.$$"
    current = shlex.quote(f"{service_dir}/current")
    return [
        "set -e",
        *lock_lines(unit_name, lock_timeout),
        f"[ -d {target} ] || "
        f'{{ echo "Release {release_id} not found" >&2; '
        f"exit {MISSING_RELEASE_EXIT}; }}",
        f"ln -sfn {target} {temp_link}",
        f"mv -Tf {temp_link} {current}",
        f"sudo systemctl restart {shlex.quote(unit_name)}",
    ]


def prune_releases(releases_dir: str, hours: int) -> list[str]:
    """Script removing non-current releases older than ``hours`` whole hours.

    Deletions are independent: a failed removal is reported on stderr and
    the loop continues; the script exits 1 at the end if any removal failed.
    """
    return [
        "set -e",
        f"cd {shlex.quote(releases_dir)}",
        "NOW=$(date +%s)",
        'CURRENT=$(readlink -f ../current || echo "")',
        "FAILED=0",
        "for dir in *; do",
        '  if [ -d "$dir" ]; then',
        '    FULL=$(readlink -f "$dir")',
        '    if [ "$FULL" != "$CURRENT" ]; then',
        '      MTIME=$(stat -c %Y "$dir")',
        "      AGE=$(( (NOW - MTIME) / 3600 ))",
        f'      if [ "$AGE" -gt {hours} ]; then',
        '        if rm -rf "$dir"; then',
        '          echo "pruned $dir"',
        "        else",
        '          echo "failed to prune $dir" >&2',
        "          FAILED=1",
        "        fi",
        "      fi",
        "    fi",
        "  fi",
        "done",
        'exit "$FAILED"',
    ]


def restart_unit(unit_name: str) -> list[str]:
    """Script restarting a unit with elevated privileges."""
    return [
        "set -e",
        f"sudo systemctl restart {shlex.quote(unit_name)}",
    ]


def unit_status(unit_name: str) -> str:
    """Command printing the process manager's status report for a unit."""
    return f"systemctl status {shlex.quote(unit_name)}"


def service_installed(service_dir: str) -> str:
    """Command that fails when the service directory does not exist."""
    return f"ls {shlex.quote(service_dir)}"


def unit_path(unit_name: str) -> str:
    """Remote path of a unit's definition file."""
    return f"{SYSTEMD_UNIT_DIR}/{unit_name}.service"


def install_unit(
    service_dir: str,
    releases_dir: str,
    unit_name: str,
    guard: str,
    lock_timeout: int,
) -> list[str]:
    """Script creating the service layout and writing the unit file from stdin."""
    return [
        *lock_lines(unit_name, lock_timeout),
        f"mkdir -p {shlex.quote(service_dir)}",
        f"mkdir -p {shlex.quote(releases_dir)}",
        f"sudo tee {shlex.quote(unit_path(unit_name))} > /dev/null",
        "sudo systemctl daemon-reload",
        f"echo {shlex.quote(guard)}",
    ]


def uninstall_unit(unit_name: str, guard: str, lock_timeout: int) -> list[str]:
    """Script stopping, disabling and removing a unit definition.

    Release directories are left untouched.
    """
    unit = shlex.quote(unit_name)
    return [
        *lock_lines(unit_name, lock_timeout),
        f"sudo systemctl disable --now {unit} 2>/dev/null || true",
        f"sudo rm -f {shlex.quote(unit_path(unit_name))}",
        "sudo systemctl daemon-reload",
        f"echo {shlex.quote(guard)}",
    ]
