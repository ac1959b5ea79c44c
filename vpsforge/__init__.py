"""vpsforge — idempotent VPS provisioning for developer tooling and coding agents."""

__version__ = "0.1.0"
