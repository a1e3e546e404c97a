"""HTTP surface for the flag engine."""
