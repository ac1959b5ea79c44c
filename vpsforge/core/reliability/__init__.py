"""Reliability — network fetch with rate-limit backoff."""
