"""Observability — logging setup and health reporting."""
