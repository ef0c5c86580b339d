"""Core components for segment-file log storage and indexing."""
