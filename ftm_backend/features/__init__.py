"""Feature services built on the storage and filesystem adapters."""
