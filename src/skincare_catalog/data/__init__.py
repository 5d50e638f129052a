"""Package data: the bundled seed catalog."""
