"""HTTP API for Squadron League."""
