"""Configuration — settings file and module manifest loading."""
