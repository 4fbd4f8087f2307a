"""Configuration defaults for DeployDeck."""

DEFAULT_CONFIG_FILE = "deploy.yaml"

ENV_FILE_NAME = ".env"

# Status polling interval of `status --watch`, in seconds
DEFAULT_POLL_INTERVAL = 5.0

# Environment variable overrides: config key path -> variable name
ENV_VAR_MAP: dict[tuple[str, ...], str] = {
    ("host",): "DEPLOYDECK_HOST",
    ("keepHours",): "DEPLOYDECK_KEEP_HOURS",
    ("ssh", "connectTimeout"): "DEPLOYDECK_CONNECT_TIMEOUT",
}
