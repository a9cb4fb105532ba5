"""Agent generation: provider generators, validation and their registry."""
