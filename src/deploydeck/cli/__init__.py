"""Command line interface for DeployDeck."""
