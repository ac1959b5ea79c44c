"""Persistence — per-run install log and JSON summary artifacts."""
