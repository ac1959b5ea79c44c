"""Use cases — vertical slices from CLI intent to result objects."""
