"""Command-line entry point for chain-mesh."""
