"""Core — models, engine, services and persistence."""
