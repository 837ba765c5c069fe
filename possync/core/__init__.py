"""Server core: identifier pool, registry, wire codec, reassembly and reactor."""
