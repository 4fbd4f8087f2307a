"""Custom exception hierarchy for DeployDeck configuration and operations."""


class DeployDeckError(Exception):
    """Base exception for all DeployDeck errors.

    All DeployDeck-specific exceptions inherit from this class, enabling
    centralized exception handling in the CLI.
    """

    pass


class ConfigError(DeployDeckError):
    """Exception raised for configuration errors.

    This exception is raised when configuration loading or parsing fails.
    It includes field-specific information to help users identify and fix
    configuration issues.

    Attributes:
        field: The configuration field that caused the error
        message: Human-readable error message describing the issue
    """

    def __init__(self, field: str, message: str) -> None:
        """Initialize ConfigError with field and message.

        Args:
            field: Configuration field name where error occurred
            message: Descriptive error message
        """
        self.field = field
        self.message = message
        super().__init__(f"Configuration error in '{field}': {message}")


class ServiceNotFoundError(ConfigError):
    """Raised when a service name does not match any configured service."""

    def __init__(self, name: str, available: list[str]) -> None:
        """Create a lookup error listing the configured service names."""
        self.name = name
        self.available = available
        choices = ", ".join(available) if available else "(none)"
        super().__init__(
            "services",
            f"Service '{name}' is not configured. Available services: {choices}",
        )


class FileNotFoundError(DeployDeckError):
    """Exception raised when a configuration file is not found.

    Attributes:
        path: Path to the file that was not found
        message: Human-readable error message
    """

    def __init__(self, path: str, message: str) -> None:
        """Initialize FileNotFoundError with path and message.

        Args:
            path: Path to the file that was not found
            message: Descriptive error message, optionally with suggestions
        """
        self.path = path
        self.message = message
        super().__init__(f"File not found: {path}\n{message}")


class DeploymentError(DeployDeckError):
    """Exception raised when a remote deployment operation fails.

    Attributes:
        operation: Operation that failed (e.g. "switch", "list")
        message: Human-readable error message
    """

    def __init__(self, operation: str, message: str) -> None:
        """Create a deployment error for the given operation."""
        self.operation = operation
        self.message = message
        super().__init__(f"Deployment {operation} failed: {message}")


class TransportError(DeploymentError):
    """Raised when an ssh invocation exits non-zero or cannot run at all.

    Keeps whatever output the remote command produced so callers can still
    render or classify it.

    Attributes:
        host: SSH destination the command was sent to
        stdout: Captured standard output ("" if none)
        stderr: Captured standard error, or the local error message
        exit_code: Exit status of the ssh process, None if it never ran
    """

    def __init__(
        self,
        host: str,
        stdout: str,
        stderr: str,
        exit_code: int | None,
        operation: str = "ssh",
    ) -> None:
        """Create a transport error from a failed invocation."""
        self.host = host
        self.stdout = stdout
        self.stderr = stderr
        self.exit_code = exit_code
        detail = stderr.strip() or f"exit status {exit_code}"
        super().__init__(operation, f"{host}: {detail}")
