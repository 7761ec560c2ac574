"""Command-line interface for labseed."""
