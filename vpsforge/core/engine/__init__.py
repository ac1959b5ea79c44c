"""Engine — install ordering, per-module installer and run executor."""
