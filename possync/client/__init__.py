"""Client side of the position sync protocol."""
