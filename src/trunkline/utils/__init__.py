"""Utility helpers shared by the CLI and core packages."""
