"""Question engine test suite."""
