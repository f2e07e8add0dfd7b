"""HTTP app mode."""
