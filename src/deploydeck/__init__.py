"""DeployDeck: release management for systemd services over SSH."""

__version__ = "0.1.0"
