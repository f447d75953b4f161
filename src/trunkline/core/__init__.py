"""Core business logic for trunkline, independent of the CLI."""
