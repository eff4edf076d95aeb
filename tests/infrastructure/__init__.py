"""Test infrastructure: mocks and helpers shared across the suite."""
