"""HTTP API for the event store."""
