"""Property tests for engine invariants."""
