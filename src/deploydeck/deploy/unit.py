"""systemd unit file generation for DeployDeck services."""

from __future__ import annotations

import posixpath
import re

from deploydeck.models.deployment import ServiceDescriptor

# Restart policy: at most START_LIMIT_BURST starts per START_LIMIT_INTERVAL
# seconds, then systemd backs off
START_LIMIT_INTERVAL = 30
START_LIMIT_BURST = 5
RESTART_SEC = 2

INTRA_PROJECT_PREFIX = "."

# Words systemd splits correctly without quoting
SAFE_WORD = re.compile(r"[^\s'\"\\]+")


def qualify_dependency(dependency: str, project: str) -> str:
    """Rewrite an intra-project dependency into its unit name.

    A dependency written with a leading '.' (``.db``) names another service
    of the same project and becomes ``<project>-db``; anything else is an
    external unit name and is returned unchanged.

    Example:
        >>> qualify_dependency(".db", "weather")
        'weather-db'
        >>> qualify_dependency("redis", "weather")
        'redis'
    """
    if dependency.startswith(INTRA_PROJECT_PREFIX):
        return f"{project}-{dependency[len(INTRA_PROJECT_PREFIX):]}"
    return dependency


def escape_specifiers(text: str) -> str:
    """Double '%' so systemd does not expand it as a specifier."""
    return text.replace("%", "%%")


def quote_word(word: str) -> str:
    """Quote one word for systemd's own command-line splitting.

    systemd only honours a quote at the start of a word, so shell-style
    quoting (``'it'"'"'s'``) does not work; words needing quotes are
    wrapped whole in double quotes with backslash escapes.

    Example:
        >>> quote_word("my app")
        '"my app"'
    """
    if SAFE_WORD.fullmatch(word):
        return word
    escaped = word.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _exec_word(word: str) -> str:
    # ExecStart expands $VAR and ${VAR} even inside quotes
    return escape_specifiers(quote_word(word)).replace("$", "$$")


def _environment_line(key: str, value: str) -> str:
    return f"Environment={escape_specifiers(quote_word(f'{key}={value}'))}"


def generate_unit(
    *,
    service: ServiceDescriptor,
    base_dir: str,
    project: str,
    user: str | None = None,
) -> str:
    """Generate the systemd unit file for a service.

    Args:
        service: Service descriptor from configuration
        base_dir: Remote base directory holding the service directories
        project: Project namespace used to qualify dependencies
        user: Account the service runs as; the line is omitted when None

    Returns:
        Unit file text without trailing newline
    """
    dependencies = [
        f"{qualify_dependency(dep, project)}.service" for dep in service.requires
    ]
    exec_start = " ".join(
        _exec_word(word) for word in [service.exec.command, *service.exec.args]
    )
    working_dir = posixpath.join(base_dir, service.name, "current")

    lines = [
        "[Unit]",
        f"Description={escape_specifiers(service.label)}",
        " ".join(["After=network.target", *dependencies]),
    ]
    if dependencies:
        lines.append(f"Requires={' '.join(dependencies)}")
    lines += [
        f"StartLimitIntervalSec={START_LIMIT_INTERVAL}",
        f"StartLimitBurst={START_LIMIT_BURST}",
        "",
        "[Service]",
        "Type=simple",
    ]
    if user:
        lines.append(f"User={user}")
    lines += [
        f"WorkingDirectory={escape_specifiers(working_dir)}",
        f"ExecStart={exec_start}",
        "Restart=always",
        f"RestartSec={RESTART_SEC}",
    ]
    lines += [_environment_line(key, value) for key, value in service.env.items()]
    lines += [
        "",
        "[Install]",
        "WantedBy=multi-user.target",
    ]
    return "\n".join(lines)
