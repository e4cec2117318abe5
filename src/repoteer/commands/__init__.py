"""Command implementations for the Repoteer CLI."""
