"""Configuration and logging primitives shared by providers and the CLI."""
